import json
from datetime import datetime
from typing import Any, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, EmailStr, Field, field_validator, model_validator

DocumentStatus = Literal["active", "inactive", "revoked", "archived"]


def _parse_json_text(v):
    if isinstance(v, str):
        return json.loads(v)
    return v


class ShareTokenOut(BaseModel):
    id: str
    token: str
    expires_at: Optional[datetime] = None
    max_downloads: Optional[int] = None
    download_count: int
    created_at: datetime

    class Config:
        from_attributes = True


class DocumentOut(BaseModel):
    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    original_file_name: str
    file_size: int
    mime_type: str
    stored_file_path: str
    file_hash: str
    hash_algorithm: str
    verification_code: str
    barcode_value: str
    issued_for: Optional[str] = None
    issuer_id: Optional[str] = None
    issued_at: datetime
    status: str
    downloads: int
    metadata: Optional[Any] = Field(default=None, validation_alias=AliasChoices("metadata_", "metadata"))
    created_at: datetime
    updated_at: datetime
    # Only filled in for admins and teachers
    share_tokens: Optional[List[ShareTokenOut]] = None

    @field_validator("metadata", mode="before")
    @classmethod
    def parse_metadata(cls, v):
        return _parse_json_text(v)

    class Config:
        from_attributes = True


class DocumentStatusOut(BaseModel):
    """What a caller learns about a document that failed verification."""
    id: str
    status: str


class StatusUpdate(BaseModel):
    status: DocumentStatus

    @field_validator("status", mode="before")
    @classmethod
    def strip_status(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v


class UploadForm(BaseModel):
    """Form fields sent alongside the uploaded file."""
    title: Optional[str] = Field(default=None, min_length=3)
    description: Optional[str] = Field(default=None, min_length=5)
    issued_for: Optional[str] = Field(default=None, min_length=3)
    issued_at: Optional[datetime] = None
    metadata: Optional[str] = None
    status: DocumentStatus = "active"
    generate_share_link: bool = False
    share_link_expires_at: Optional[datetime] = None
    share_link_max_downloads: Optional[int] = Field(default=None, gt=0)

    @field_validator("title", "description", "issued_for", "metadata", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("issued_at", "share_link_expires_at", "share_link_max_downloads", "status", mode="before")
    @classmethod
    def empty_to_default(cls, v, info):
        if isinstance(v, str) and not v.strip():
            return "active" if info.field_name == "status" else None
        return v


class VerifyRequest(BaseModel):
    code: Optional[str] = Field(default=None, min_length=4)
    hash: Optional[str] = Field(default=None, min_length=10)
    verifier_name: Optional[str] = None
    verifier_email: Optional[EmailStr] = None
    verifier_role: Optional[str] = None

    @field_validator("code", "hash", mode="before")
    @classmethod
    def strip_strings(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v

    @model_validator(mode="after")
    def require_code_or_hash(self):
        if not (self.code or self.hash):
            raise ValueError("Verification requires a code or file hash")
        return self


class VerificationResult(BaseModel):
    matched: bool
    status: str  # document status, or "unknown" when nothing matched
    hash: Optional[str] = None
    document: Union[DocumentOut, DocumentStatusOut, None] = None
    match_type: Optional[Literal["code", "hash", "variant"]] = None
    message: Optional[str] = None


class VerificationLogOut(BaseModel):
    id: int
    document_id: str
    verifier_id: Optional[str] = None
    verifier_name: Optional[str] = None
    verifier_email: Optional[str] = None
    verifier_role: Optional[str] = None
    submitted_hash: str
    matched: bool
    verified_via: str
    metadata: Optional[Any] = Field(default=None, validation_alias=AliasChoices("metadata_", "metadata"))
    created_at: datetime

    @field_validator("metadata", mode="before")
    @classmethod
    def parse_metadata(cls, v):
        return _parse_json_text(v)

    class Config:
        from_attributes = True


class DocumentLogsOut(BaseModel):
    document: DocumentOut
    logs: List[VerificationLogOut]


class SharedDocumentInfo(BaseModel):
    """Public subset of a document exposed through a guest share link."""
    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    original_file_name: str
    file_size: int
    mime_type: str
    issued_for: Optional[str] = None
    issued_at: datetime
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class SharedTokenInfo(BaseModel):
    token: str
    expires_at: Optional[datetime] = None
    max_downloads: Optional[int] = None
    download_count: int
    remaining_downloads: Optional[int] = None
    created_at: datetime


class SharedDocumentOut(BaseModel):
    document: SharedDocumentInfo
    share_token: SharedTokenInfo
