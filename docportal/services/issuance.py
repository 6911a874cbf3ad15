import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from docportal.core.auth import User
from docportal.core.config import settings
from docportal.core.errors import ValidationError
from docportal.core.hashing import hash_file
from docportal.core.storage import DocumentStorage
from docportal.models.document import DocumentRecord
from docportal.schemas.document import UploadForm
from docportal.services.document_store import DocumentStore, ShareLinkOptions

logger = logging.getLogger(__name__)


@dataclass
class UploadedFile:
    filename: str
    content_type: str
    data: bytes


def parse_metadata(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """Form metadata is JSON text; anything else is kept as a free-form note."""
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except ValueError:
        return {"note": raw}
    if isinstance(parsed, dict):
        return parsed
    return {"note": parsed}


def validate_upload(upload: UploadedFile) -> None:
    if upload.content_type not in settings.ALLOWED_UPLOAD_TYPES:
        raise ValidationError(
            f"Invalid file type: {upload.content_type or 'unknown'}. "
            f"Allowed: {', '.join(settings.ALLOWED_UPLOAD_TYPES)}"
        )
    if not upload.data:
        raise ValidationError("Uploaded file is empty")
    size_mb = len(upload.data) / (1024 * 1024)
    if size_mb > settings.MAX_UPLOAD_MB:
        raise ValidationError(
            f"File too large: {size_mb:.1f} MB. Max size: {settings.MAX_UPLOAD_MB} MB."
        )


def issue_document(
    store: DocumentStore,
    storage: DocumentStorage,
    upload: UploadedFile,
    form: UploadForm,
    issuer: User,
) -> DocumentRecord:
    """
    Store the uploaded file, hash it and register the document.

    The stored file is removed again if registration fails (duplicate hash,
    exhausted verification code attempts, database error).
    """
    validate_upload(upload)
    metadata = parse_metadata(form.metadata)

    share_link = None
    if form.generate_share_link:
        share_link = ShareLinkOptions(
            expires_at=form.share_link_expires_at,
            max_downloads=form.share_link_max_downloads,
        )

    stored_path = storage.save(upload.filename, upload.data)
    try:
        file_hash = hash_file(storage.path_for(stored_path))
        document = store.create(
            original_file_name=upload.filename,
            file_size=len(upload.data),
            mime_type=upload.content_type,
            stored_file_path=stored_path,
            file_hash=file_hash,
            issued_for=form.issued_for,
            issuer_id=issuer.id,
            issued_at=form.issued_at,
            status=form.status,
            metadata=metadata,
            title=form.title,
            description=form.description,
            share_link=share_link,
        )
    except Exception:
        storage.remove(stored_path)
        raise

    logger.info("User %s issued document %s (%s)", issuer.id, document.id, upload.filename)
    return document
