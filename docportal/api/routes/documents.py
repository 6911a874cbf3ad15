import io
import logging
import re
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import ValidationError as PydanticValidationError

from docportal.api.deps import (
    get_document_store,
    get_download_pipeline,
    get_resolver,
    get_storage,
)
from docportal.core.audit import VerifierIdentity
from docportal.core.auth import User, get_current_user, get_optional_user, require_roles
from docportal.core.errors import ForbiddenError, ValidationError
from docportal.core.storage import DocumentStorage
from docportal.models.document import DocumentRecord
from docportal.schemas.document import (
    DocumentLogsOut,
    DocumentOut,
    SharedDocumentInfo,
    SharedDocumentOut,
    SharedTokenInfo,
    StatusUpdate,
    UploadForm,
    VerificationLogOut,
    VerificationResult,
    VerifyRequest,
)
from docportal.services.document_store import DocumentStore
from docportal.services.downloads import DownloadPipeline, DownloadResult, ensure_can_access
from docportal.services.issuance import UploadedFile, issue_document
from docportal.services.verification import VerificationResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


def _document_out(document: DocumentRecord, viewer: User) -> DocumentOut:
    out = DocumentOut.model_validate(document)
    if viewer.role == "student":
        # Share links are issuer/admin business
        out = out.model_copy(update={"share_tokens": None})
    return out


def _verifier(
    user: Optional[User],
    name: Optional[str] = None,
    email: Optional[str] = None,
    role: Optional[str] = None,
) -> VerifierIdentity:
    identity = VerifierIdentity.from_user(user)
    identity.name = identity.name or name
    identity.email = identity.email or email
    if user is None:
        identity.role = role
    return identity


def _file_response(result: DownloadResult) -> StreamingResponse:
    safe_name = re.sub(r'[\r\n"\\]', "_", result.filename) or "document.pdf"
    return StreamingResponse(
        io.BytesIO(result.content),
        media_type=result.content_type,
        headers={
            "Content-Disposition": f'attachment; filename="{safe_name}"',
            "Content-Length": str(len(result.content)),
            "X-Content-SHA256": result.content_hash,
        },
    )


@router.post("", response_model=DocumentOut, status_code=201)
async def upload_document(
    file: UploadFile = File(..., description="PDF document to issue"),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    issued_for: Optional[str] = Form(None),
    issued_at: Optional[str] = Form(None),
    metadata: Optional[str] = Form(None),
    status: Optional[str] = Form(None),
    generate_share_link: Optional[str] = Form(None),
    share_link_expires_at: Optional[str] = Form(None),
    share_link_max_downloads: Optional[str] = Form(None),
    current_user: User = Depends(require_roles("admin", "teacher")),
    store: DocumentStore = Depends(get_document_store),
    storage: DocumentStorage = Depends(get_storage),
):
    """
    Issue a document: store the PDF, hash it and assign a verification code.
    """
    raw_form = {
        "title": title,
        "description": description,
        "issued_for": issued_for,
        "issued_at": issued_at,
        "metadata": metadata,
        "status": status,
        "generate_share_link": generate_share_link,
        "share_link_expires_at": share_link_expires_at,
        "share_link_max_downloads": share_link_max_downloads,
    }
    try:
        form = UploadForm.model_validate({k: v for k, v in raw_form.items() if v is not None})
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid upload payload",
            issues=e.errors(include_url=False, include_context=False, include_input=False),
        )

    upload = UploadedFile(
        filename=file.filename or "document.pdf",
        content_type=file.content_type or "",
        data=await file.read(),
    )
    document = issue_document(store, storage, upload, form, current_user)
    return _document_out(document, current_user)


@router.get("", response_model=List[DocumentOut])
def list_documents(
    current_user: User = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store),
):
    documents = store.list_by_filter(current_user.role, current_user.id)
    return [_document_out(d, current_user) for d in documents]


@router.post("/verify", response_model=VerificationResult)
def verify_document(
    payload: VerifyRequest,
    current_user: Optional[User] = Depends(get_optional_user),
    resolver: VerificationResolver = Depends(get_resolver),
):
    """
    Public verification by code and/or SHA-256 hash.

    Always answers 200; an unknown document comes back with matched=false
    and status "unknown".
    """
    verifier = _verifier(
        current_user, payload.verifier_name, payload.verifier_email, payload.verifier_role
    )
    return resolver.verify_by_reference(code=payload.code, file_hash=payload.hash, verifier=verifier)


@router.post("/verify/upload", response_model=VerificationResult)
async def verify_document_upload(
    file: UploadFile = File(..., description="Copy of the document to verify"),
    code: Optional[str] = Form(None),
    verifier_name: Optional[str] = Form(None),
    verifier_email: Optional[str] = Form(None),
    verifier_role: Optional[str] = Form(None),
    current_user: Optional[User] = Depends(get_optional_user),
    resolver: VerificationResolver = Depends(get_resolver),
):
    data = await file.read()
    if not data:
        raise ValidationError("Uploaded file is empty")
    verifier = _verifier(current_user, verifier_name, verifier_email, verifier_role)
    return resolver.verify_by_upload(
        data, code=code, verifier=verifier, original_file_name=file.filename
    )


@router.get("/shared/{token}", response_model=SharedDocumentOut)
def describe_shared_document(
    token: str,
    pipeline: DownloadPipeline = Depends(get_download_pipeline),
):
    share = pipeline.describe_shared(token)
    remaining = None
    if share.max_downloads is not None:
        remaining = max(share.max_downloads - share.download_count, 0)
    return SharedDocumentOut(
        document=SharedDocumentInfo.model_validate(share.document),
        share_token=SharedTokenInfo(
            token=share.token,
            expires_at=share.expires_at,
            max_downloads=share.max_downloads,
            download_count=share.download_count,
            remaining_downloads=remaining,
            created_at=share.created_at,
        ),
    )


@router.get("/shared/{token}/download")
def download_shared_document(
    token: str,
    request: Request,
    pipeline: DownloadPipeline = Depends(get_download_pipeline),
):
    result = pipeline.download_shared(token, ip_address=_client_ip(request))
    return _file_response(result)


@router.get("/{document_id}", response_model=DocumentOut)
def get_document(
    document_id: str,
    current_user: User = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store),
):
    document = store.get(document_id)
    ensure_can_access(document, current_user)
    return _document_out(document, current_user)


@router.get("/{document_id}/download")
def download_document(
    document_id: str,
    request: Request,
    current_user: User = Depends(get_current_user),
    pipeline: DownloadPipeline = Depends(get_download_pipeline),
):
    result = pipeline.download(document_id, current_user, ip_address=_client_ip(request))
    return _file_response(result)


@router.get("/{document_id}/logs", response_model=DocumentLogsOut)
def list_verification_logs(
    document_id: str,
    current_user: User = Depends(require_roles("admin")),
    store: DocumentStore = Depends(get_document_store),
):
    document = store.get(document_id)
    return DocumentLogsOut(
        document=DocumentOut.model_validate(document),
        logs=[VerificationLogOut.model_validate(log) for log in store.list_logs(document_id)],
    )


@router.patch("/{document_id}/status", response_model=DocumentOut)
def update_document_status(
    document_id: str,
    payload: StatusUpdate,
    current_user: User = Depends(require_roles("admin")),
    store: DocumentStore = Depends(get_document_store),
):
    document = store.update_status(document_id, payload.status)
    return _document_out(document, current_user)


@router.delete("/{document_id}", status_code=204)
def delete_document(
    document_id: str,
    current_user: User = Depends(require_roles("admin", "teacher")),
    store: DocumentStore = Depends(get_document_store),
    storage: DocumentStorage = Depends(get_storage),
):
    document = store.get(document_id)
    if current_user.role == "teacher" and document.issuer_id != current_user.id:
        raise ForbiddenError("Teachers can only delete documents they issued")

    stored_file_path = store.delete(document_id)
    storage.remove(stored_file_path)
    logger.info("User %s deleted document %s", current_user.id, document_id)
    return Response(status_code=204)
