from sqlalchemy import Column, String, DateTime, Integer, Boolean, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from docportal.core.database import Base
from docportal.models.document import _utcnow


class DocumentVerificationLog(Base):
    __tablename__ = "document_verification_logs"

    id = Column(Integer, primary_key=True, index=True)

    document_id = Column(
        String, ForeignKey("document_records.id", ondelete="CASCADE"), nullable=False, index=True
    )
    document = relationship("DocumentRecord")

    # Who triggered the event; all empty for anonymous verification
    verifier_id = Column(String, nullable=True, index=True)
    verifier_name = Column(String, nullable=True)
    verifier_email = Column(String, nullable=True)
    verifier_role = Column(String, nullable=True)

    # Presented hash, or for downloads the hash of the bytes actually served
    submitted_hash = Column(String, nullable=False, index=True)
    matched = Column(Boolean, nullable=False, default=False, index=True)
    verified_via = Column(String, nullable=False)  # code/hash/code+hash/upload/upload+code/download/share-download

    metadata_ = Column("metadata", Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False, index=True
    )
