"""
Document Store: persistence of DocumentRecord rows.

Uniqueness of file_hash and verification_code is enforced by the database;
a verification-code collision is retried with a fresh code, a hash collision
is reported to the caller as ConflictError.
"""
import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from docportal.core.audit import dump_metadata
from docportal.core.config import settings
from docportal.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from docportal.core.hashing import HASH_ALGORITHM
from docportal.models.document import DOCUMENT_STATUSES, DocumentRecord, DocumentShareToken
from docportal.models.verification_log import DocumentVerificationLog

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_verification_code(length: int) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def generate_share_token() -> str:
    return secrets.token_urlsafe(18)


@dataclass
class ShareLinkOptions:
    expires_at: Optional[datetime] = None
    max_downloads: Optional[int] = None


class DocumentStore:
    def __init__(
        self,
        db: Session,
        *,
        code_length: Optional[int] = None,
        code_attempts: Optional[int] = None,
    ) -> None:
        self._db = db
        self._code_length = code_length or settings.VERIFICATION_CODE_LENGTH
        self._code_attempts = code_attempts or settings.VERIFICATION_CODE_ATTEMPTS

    def _hash_exists(self, file_hash: str) -> bool:
        return (
            self._db.query(DocumentRecord.id).filter(DocumentRecord.file_hash == file_hash).first()
            is not None
        )

    def create(
        self,
        *,
        original_file_name: str,
        file_size: int,
        mime_type: str,
        stored_file_path: str,
        file_hash: str,
        issued_for: Optional[str] = None,
        issuer_id: Optional[str] = None,
        issued_at: Optional[datetime] = None,
        status: str = "active",
        metadata: Optional[Dict[str, Any]] = None,
        title: Optional[str] = None,
        description: Optional[str] = None,
        share_link: Optional[ShareLinkOptions] = None,
    ) -> DocumentRecord:
        if status not in DOCUMENT_STATUSES:
            raise ValidationError(f"Invalid status {status!r}", issues={"status": list(DOCUMENT_STATUSES)})
        if self._hash_exists(file_hash):
            raise ConflictError("A document with the same file hash already exists")

        for attempt in range(1, self._code_attempts + 1):
            code = generate_verification_code(self._code_length).upper()
            record = DocumentRecord(
                id=uuid4().hex,
                title=title,
                description=description,
                original_file_name=original_file_name,
                file_size=file_size,
                mime_type=mime_type,
                stored_file_path=stored_file_path,
                file_hash=file_hash,
                hash_algorithm=HASH_ALGORITHM,
                verification_code=code,
                barcode_value=code,
                issued_for=issued_for,
                issuer_id=issuer_id,
                status=status,
                downloads=0,
                metadata_=dump_metadata(metadata),
            )
            if issued_at is not None:
                record.issued_at = issued_at
            self._db.add(record)
            if share_link is not None:
                self._db.add(
                    DocumentShareToken(
                        id=uuid4().hex,
                        document=record,
                        token=generate_share_token(),
                        expires_at=share_link.expires_at,
                        max_downloads=share_link.max_downloads,
                        download_count=0,
                        created_by_id=issuer_id,
                    )
                )
            try:
                self._db.commit()
            except IntegrityError:
                self._db.rollback()
                if self._hash_exists(file_hash):
                    raise ConflictError("A document with the same file hash already exists")
                logger.warning(
                    "Verification code collision on attempt %s/%s, regenerating",
                    attempt,
                    self._code_attempts,
                )
                continue
            self._db.refresh(record)
            logger.info("Document %s issued with code %s", record.id, record.verification_code)
            return record

        raise ConflictError("Could not allocate a unique verification code")

    def get(self, document_id: str) -> DocumentRecord:
        document = self._db.query(DocumentRecord).filter(DocumentRecord.id == document_id).first()
        if not document:
            raise NotFoundError("Document not found")
        return document

    def find_by_code(self, code: str) -> Optional[DocumentRecord]:
        return self._db.query(DocumentRecord).filter(DocumentRecord.verification_code == code).first()

    def find_by_hash(self, file_hash: str) -> Optional[DocumentRecord]:
        return self._db.query(DocumentRecord).filter(DocumentRecord.file_hash == file_hash).first()

    def list_by_filter(self, role: str, actor_id: Optional[str]) -> List[DocumentRecord]:
        """Admins see everything, teachers what they issued, students active documents."""
        q = self._db.query(DocumentRecord)

        if role == "teacher":
            if not actor_id:
                raise ForbiddenError("Unauthorized")
            q = q.filter(DocumentRecord.issuer_id == actor_id)
        elif role == "student":
            q = q.filter(DocumentRecord.status == "active")
        elif role != "admin":
            raise ForbiddenError("Unauthorized")

        return q.order_by(DocumentRecord.issued_at.desc(), DocumentRecord.created_at.desc()).all()

    def update_status(self, document_id: str, status: str) -> DocumentRecord:
        # Any status may move to any other; no transition table
        if status not in DOCUMENT_STATUSES:
            raise ValidationError(f"Invalid status {status!r}", issues={"status": list(DOCUMENT_STATUSES)})
        document = self.get(document_id)
        document.status = status
        self._db.commit()
        self._db.refresh(document)
        logger.info("Document %s status set to %s", document_id, status)
        return document

    def delete(self, document_id: str) -> str:
        """
        Remove the record together with its log entries and share tokens.
        Returns the stored file path so the caller can remove the file.
        """
        document = self.get(document_id)
        stored_file_path = document.stored_file_path
        try:
            self._db.query(DocumentVerificationLog).filter(
                DocumentVerificationLog.document_id == document_id
            ).delete(synchronize_session=False)
            self._db.query(DocumentShareToken).filter(
                DocumentShareToken.document_id == document_id
            ).delete(synchronize_session=False)
            self._db.expire(document, ["share_tokens"])
            self._db.delete(document)
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise
        logger.info("Document %s deleted", document_id)
        return stored_file_path

    def increment_downloads(self, document_id: str) -> None:
        """
        SQL-side ``downloads = downloads + 1``. Not committed here; the caller
        commits it together with the matching download log entry.
        """
        updated = (
            self._db.query(DocumentRecord)
            .filter(DocumentRecord.id == document_id)
            .update({DocumentRecord.downloads: DocumentRecord.downloads + 1}, synchronize_session=False)
        )
        if not updated:
            raise NotFoundError("Document not found")

    def get_share_token(self, token: str) -> DocumentShareToken:
        share = self._db.query(DocumentShareToken).filter(DocumentShareToken.token == token).first()
        if not share or not share.document:
            raise NotFoundError("Share link not found")
        return share

    def increment_share_downloads(self, share_id: str) -> None:
        self._db.query(DocumentShareToken).filter(DocumentShareToken.id == share_id).update(
            {DocumentShareToken.download_count: DocumentShareToken.download_count + 1},
            synchronize_session=False,
        )

    def list_logs(self, document_id: str) -> List[DocumentVerificationLog]:
        return (
            self._db.query(DocumentVerificationLog)
            .filter(DocumentVerificationLog.document_id == document_id)
            .order_by(DocumentVerificationLog.created_at.desc(), DocumentVerificationLog.id.desc())
            .all()
        )
