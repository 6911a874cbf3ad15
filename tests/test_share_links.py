from datetime import datetime, timedelta, timezone

import pytest

from docportal.core.errors import GoneError, NotFoundError
from docportal.core.hashing import hash_bytes
from docportal.models.verification_log import DocumentVerificationLog
from docportal.services.document_store import DocumentStore, ShareLinkOptions
from docportal.services.downloads import DownloadPipeline

from tests.support import TEACHER, make_pdf

FIXED_NOW = datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(db):
    return DocumentStore(db)


@pytest.fixture
def pipeline(db, storage, store):
    return DownloadPipeline(db, storage, store, clock=lambda: FIXED_NOW)


@pytest.fixture
def shared(storage, store):
    def _shared(expires_at=None, max_downloads=None, text="Shared certificate"):
        content = make_pdf(text)
        return store.create(
            original_file_name="certificate.pdf",
            file_size=len(content),
            mime_type="application/pdf",
            stored_file_path=storage.save("certificate.pdf", content),
            file_hash=hash_bytes(content),
            issuer_id=TEACHER.id,
            share_link=ShareLinkOptions(expires_at=expires_at, max_downloads=max_downloads),
        )

    return _shared


def test_guest_download_updates_both_counters(db, pipeline, store, shared):
    document = shared(max_downloads=2)
    token = document.share_tokens[0].token

    result = pipeline.download_shared(token, ip_address="203.0.113.9")

    assert result.watermarked is True
    assert store.get(document.id).downloads == 1
    assert store.get_share_token(token).download_count == 1
    log = db.query(DocumentVerificationLog).one()
    assert log.verified_via == "share-download"
    assert log.verifier_name == "Guest"
    assert log.verifier_role == "guest"
    assert log.submitted_hash == result.content_hash


def test_download_limit(pipeline, shared):
    token = shared(max_downloads=1).share_tokens[0].token
    pipeline.download_shared(token)

    with pytest.raises(GoneError) as exc_info:
        pipeline.download_shared(token)
    assert exc_info.value.code == "DOWNLOAD_LIMIT_REACHED"


def test_expired_link(pipeline, shared):
    token = shared(expires_at=FIXED_NOW - timedelta(minutes=1)).share_tokens[0].token

    with pytest.raises(GoneError) as exc_info:
        pipeline.describe_shared(token)
    assert exc_info.value.code == "LINK_EXPIRED"


def test_link_of_inactive_document(pipeline, store, shared):
    document = shared()
    store.update_status(document.id, "archived")

    with pytest.raises(GoneError) as exc_info:
        pipeline.download_shared(document.share_tokens[0].token)
    assert exc_info.value.code == "DOCUMENT_UNAVAILABLE"


def test_unknown_token(pipeline):
    with pytest.raises(NotFoundError):
        pipeline.describe_shared("does-not-exist")


def test_describe_shared_over_http(client, act_as, shared):
    document = shared(expires_at=datetime.now(timezone.utc) + timedelta(days=7), max_downloads=5)
    token = document.share_tokens[0].token
    act_as(None)

    response = client.get(f"/documents/shared/{token}")

    assert response.status_code == 200
    body = response.json()
    assert body["document"]["id"] == document.id
    assert "file_hash" not in body["document"]
    assert "stored_file_path" not in body["document"]
    assert body["share_token"]["remaining_downloads"] == 5


def test_guest_download_over_http(client, act_as, shared):
    token = shared(max_downloads=1).share_tokens[0].token
    act_as(None)

    first = client.get(f"/documents/shared/{token}/download")
    second = client.get(f"/documents/shared/{token}/download")

    assert first.status_code == 200
    assert first.headers["content-type"] == "application/pdf"
    assert first.content.startswith(b"%PDF")
    assert second.status_code == 410
    assert second.json() == {
        "detail": "Guest download limit reached",
        "code": "DOWNLOAD_LIMIT_REACHED",
    }
