from datetime import datetime, timedelta, timezone

import pytest

from docportal.core.audit import log_verification
from docportal.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from docportal.models.document import DocumentShareToken
from docportal.models.verification_log import DocumentVerificationLog
from docportal.services import document_store
from docportal.services.document_store import DocumentStore, ShareLinkOptions


def _create(store, file_hash, **overrides):
    values = dict(
        original_file_name=f"{file_hash}.pdf",
        file_size=1024,
        mime_type="application/pdf",
        stored_file_path=f"/uploads/documents/{file_hash}.pdf",
        file_hash=file_hash,
        issuer_id="teacher-1",
    )
    values.update(overrides)
    return store.create(**values)


def test_create_assigns_code_and_defaults(db):
    record = _create(DocumentStore(db), "a" * 64)

    assert len(record.verification_code) == 10
    assert record.verification_code == record.verification_code.upper()
    assert record.barcode_value == record.verification_code
    assert record.hash_algorithm == "sha256"
    assert record.status == "active"
    assert record.downloads == 0
    assert record.issued_at is not None


def test_create_stores_metadata_as_json(db):
    record = _create(DocumentStore(db), "b" * 64, metadata={"semester": 2})
    assert record.metadata_ == '{"semester": 2}'


def test_duplicate_hash_is_conflict(db):
    store = DocumentStore(db)
    _create(store, "c" * 64)
    with pytest.raises(ConflictError):
        _create(store, "c" * 64, stored_file_path="/uploads/documents/other.pdf")


def test_invalid_status_is_rejected(db):
    with pytest.raises(ValidationError):
        _create(DocumentStore(db), "d" * 64, status="deleted")


def test_code_collision_is_retried(db, monkeypatch):
    store = DocumentStore(db)
    codes = iter(["DUPLICATE1", "DUPLICATE1", "FRESHCODE2"])
    monkeypatch.setattr(document_store, "generate_verification_code", lambda length: next(codes))

    first = _create(store, "e" * 64)
    second = _create(store, "f" * 64)

    assert first.verification_code == "DUPLICATE1"
    assert second.verification_code == "FRESHCODE2"


def test_code_attempts_exhausted(db, monkeypatch):
    store = DocumentStore(db, code_attempts=2)
    monkeypatch.setattr(document_store, "generate_verification_code", lambda length: "SAMECODE00")
    _create(store, "1" * 64)

    with pytest.raises(ConflictError, match="verification code"):
        _create(store, "2" * 64)


def test_get_unknown_document(db):
    with pytest.raises(NotFoundError):
        DocumentStore(db).get("missing")


def test_list_by_filter_per_role(db):
    store = DocumentStore(db)
    older = _create(store, "3" * 64, issued_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
    newer = _create(store, "4" * 64, issued_at=datetime(2024, 6, 1, tzinfo=timezone.utc))
    other = _create(store, "5" * 64, issuer_id="teacher-2", status="revoked")

    assert [d.id for d in store.list_by_filter("admin", "admin-1")] == [other.id, newer.id, older.id]
    assert {d.id for d in store.list_by_filter("teacher", "teacher-1")} == {older.id, newer.id}
    assert [d.id for d in store.list_by_filter("teacher", "teacher-2")] == [other.id]
    assert [d.id for d in store.list_by_filter("student", "student-1")] == [newer.id, older.id]


def test_list_by_filter_rejects_unknown_role_and_anonymous_teacher(db):
    store = DocumentStore(db)
    with pytest.raises(ForbiddenError):
        store.list_by_filter("parent", "p-1")
    with pytest.raises(ForbiddenError):
        store.list_by_filter("teacher", None)


def test_update_status_any_transition(db):
    store = DocumentStore(db)
    record = _create(store, "6" * 64)

    assert store.update_status(record.id, "revoked").status == "revoked"
    assert store.update_status(record.id, "active").status == "active"
    with pytest.raises(ValidationError):
        store.update_status(record.id, "gone")


def test_increment_downloads_is_sql_side(db):
    store = DocumentStore(db)
    record = _create(store, "7" * 64)

    store.increment_downloads(record.id)
    store.increment_downloads(record.id)
    db.commit()

    assert store.get(record.id).downloads == 2
    with pytest.raises(NotFoundError):
        store.increment_downloads("missing")


def test_delete_removes_logs_and_share_tokens(db):
    store = DocumentStore(db)
    record = _create(
        store,
        "8" * 64,
        share_link=ShareLinkOptions(expires_at=datetime.now(timezone.utc) + timedelta(days=1)),
    )
    log_verification(db, document=record, submitted_hash=None, matched=True, verified_via="code")

    stored_path = store.delete(record.id)

    assert stored_path == "/uploads/documents/" + "8" * 64 + ".pdf"
    assert db.query(DocumentVerificationLog).count() == 0
    assert db.query(DocumentShareToken).count() == 0
    with pytest.raises(NotFoundError):
        store.get(record.id)


def test_share_link_created_with_document(db):
    store = DocumentStore(db)
    record = _create(store, "9" * 64, share_link=ShareLinkOptions(max_downloads=3))

    assert len(record.share_tokens) == 1
    share = record.share_tokens[0]
    assert share.max_downloads == 3
    assert share.download_count == 0
    assert store.get_share_token(share.token).document_id == record.id
    with pytest.raises(NotFoundError):
        store.get_share_token("nope")
