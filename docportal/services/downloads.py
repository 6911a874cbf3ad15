"""
Download Pipeline.

AuthorizeAccess -> LocateFile -> ReadBytes -> ConditionallyWatermark ->
HashOutput -> PersistAuditAndCounter (one commit) -> response.

The hash of the bytes actually served is logged as a matched "download"
entry; that entry is what lets a watermarked copy be verified later.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

from docportal.core.audit import VerifierIdentity, log_verification
from docportal.core.auth import User
from docportal.core.config import settings
from docportal.core.errors import ForbiddenError, GoneError, NotFoundError
from docportal.core.hashing import hash_bytes
from docportal.core.storage import DocumentStorage
from docportal.core.watermark import WatermarkAnnotation, apply_pdf_watermark
from docportal.models.document import DocumentRecord, DocumentShareToken
from docportal.services.document_store import DocumentStore

logger = logging.getLogger(__name__)

GUEST_NAME = "Guest"


@dataclass
class DownloadResult:
    content: bytes
    content_type: str
    filename: str
    content_hash: str
    watermarked: bool


def ensure_can_access(document: DocumentRecord, actor: User) -> None:
    """Teachers reach only what they issued, students only active documents."""
    if actor.role == "admin":
        return
    if actor.role == "teacher":
        if not actor.id or document.issuer_id != actor.id:
            raise ForbiddenError("Forbidden")
        return
    if actor.role == "student":
        if document.status != "active":
            raise ForbiddenError("Forbidden")
        return
    raise ForbiddenError("Forbidden")


def is_pdf(document: DocumentRecord) -> bool:
    return (
        document.mime_type == "application/pdf"
        or document.original_file_name.lower().endswith(".pdf")
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DownloadPipeline:
    def __init__(
        self,
        db: Session,
        storage: DocumentStorage,
        store: Optional[DocumentStore] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db = db
        self._storage = storage
        self._store = store or DocumentStore(db)
        self._clock = clock

    def _read_stored_bytes(self, document: DocumentRecord) -> bytes:
        if not self._storage.exists(document.stored_file_path):
            raise NotFoundError("Stored file missing")
        return self._storage.read(document.stored_file_path)

    def _maybe_watermark(
        self, document: DocumentRecord, data: bytes, annotation: Optional[WatermarkAnnotation]
    ) -> bytes:
        if annotation is None or not settings.WATERMARK_ENABLED or not is_pdf(document):
            return data
        try:
            return apply_pdf_watermark(data, annotation)
        except Exception:
            # Never fail a download because of the watermark
            logger.exception("Failed to apply watermark to document %s, serving original", document.id)
            return data

    def download(
        self, document_id: str, actor: User, ip_address: Optional[str] = None
    ) -> DownloadResult:
        document = self._store.get(document_id)
        ensure_can_access(document, actor)

        original = self._read_stored_bytes(document)
        downloaded_at = self._clock()
        annotation = WatermarkAnnotation(
            viewer_name=actor.name or actor.email or "User",
            viewer_email=actor.email,
            timestamp=downloaded_at,
            verification_code=document.verification_code,
            ip_address=ip_address,
        )
        content = self._maybe_watermark(document, original, annotation)
        content_hash = hash_bytes(content)

        try:
            self._store.increment_downloads(document.id)
            log_verification(
                self._db,
                document=document,
                submitted_hash=content_hash,
                matched=True,
                verified_via="download",
                verifier=VerifierIdentity.from_user(actor),
                metadata={
                    "event": "download",
                    "original_hash": document.file_hash,
                    "variant_hash": content_hash,
                    "timestamp": downloaded_at.isoformat(),
                    "requester_role": actor.role,
                    "ip_address": ip_address,
                },
                commit=False,
            )
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise

        return DownloadResult(
            content=content,
            content_type=document.mime_type,
            filename=document.original_file_name,
            content_hash=content_hash,
            watermarked=content is not original,
        )

    def check_share_token(self, share: DocumentShareToken, now: Optional[datetime] = None) -> None:
        now = now or self._clock()
        document = share.document
        if document is None or document.status != "active":
            raise GoneError("Document is no longer available for sharing", code="DOCUMENT_UNAVAILABLE")
        expires_at = share.expires_at
        if expires_at is not None:
            # SQLite hands back naive datetimes
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            if expires_at <= now:
                raise GoneError("Guest link has expired", code="LINK_EXPIRED")
        if share.max_downloads is not None and share.download_count >= share.max_downloads:
            raise GoneError("Guest download limit reached", code="DOWNLOAD_LIMIT_REACHED")

    def describe_shared(self, token: str) -> DocumentShareToken:
        share = self._store.get_share_token(token)
        self.check_share_token(share)
        return share

    def download_shared(self, token: str, ip_address: Optional[str] = None) -> DownloadResult:
        share = self._store.get_share_token(token)
        self.check_share_token(share)
        document = share.document

        original = self._read_stored_bytes(document)
        downloaded_at = self._clock()
        annotation = WatermarkAnnotation(
            viewer_name=GUEST_NAME,
            timestamp=downloaded_at,
            verification_code=document.verification_code,
            ip_address=ip_address,
        )
        content = self._maybe_watermark(document, original, annotation)
        content_hash = hash_bytes(content)

        try:
            self._store.increment_downloads(document.id)
            self._store.increment_share_downloads(share.id)
            log_verification(
                self._db,
                document=document,
                submitted_hash=content_hash,
                matched=True,
                verified_via="share-download",
                verifier=VerifierIdentity(name=GUEST_NAME, role="guest"),
                metadata={
                    "event": "share-download",
                    "share_token_id": share.id,
                    "original_hash": document.file_hash,
                    "variant_hash": content_hash,
                    "timestamp": downloaded_at.isoformat(),
                    "ip_address": ip_address,
                },
                commit=False,
            )
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise

        return DownloadResult(
            content=content,
            content_type=document.mime_type,
            filename=document.original_file_name,
            content_hash=content_hash,
            watermarked=content is not original,
        )
