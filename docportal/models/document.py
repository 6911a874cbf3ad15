from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from docportal.core.database import Base

DOCUMENT_STATUSES = ("active", "inactive", "revoked", "archived")


def _utcnow():
    return datetime.now(timezone.utc)


class DocumentRecord(Base):
    __tablename__ = "document_records"

    id = Column(String, primary_key=True, index=True)

    title = Column(String, nullable=True)
    description = Column(Text, nullable=True)

    # Upload attributes, immutable after creation
    original_file_name = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String, nullable=False)
    stored_file_path = Column(String, nullable=False)

    # Canonical digest of the stored bytes; never recomputed
    file_hash = Column(String, nullable=False, unique=True, index=True)
    hash_algorithm = Column(String, nullable=False, default="sha256")

    verification_code = Column(String, nullable=False, unique=True, index=True)
    barcode_value = Column(String, nullable=False)

    issued_for = Column(String, nullable=True)
    issuer_id = Column(String, nullable=True, index=True)
    issued_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    status = Column(String, nullable=False, default="active", index=True)  # active/inactive/revoked/archived
    downloads = Column(Integer, nullable=False, default=0)

    # JSON serialized as text
    metadata_ = Column("metadata", Text, nullable=True)

    share_tokens = relationship(
        "DocumentShareToken",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="DocumentShareToken.created_at.desc()",
    )

    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
        nullable=False,
    )


class DocumentShareToken(Base):
    __tablename__ = "document_share_tokens"

    id = Column(String, primary_key=True, index=True)
    document_id = Column(
        String, ForeignKey("document_records.id", ondelete="CASCADE"), nullable=False, index=True
    )
    document = relationship("DocumentRecord", back_populates="share_tokens")

    token = Column(String, nullable=False, unique=True, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    max_downloads = Column(Integer, nullable=True)
    download_count = Column(Integer, nullable=False, default=0)
    created_by_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
