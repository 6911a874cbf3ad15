import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from docportal.core.auth import User
from docportal.models.document import DocumentRecord
from docportal.models.verification_log import DocumentVerificationLog
from sqlalchemy.orm import Session


@dataclass
class VerifierIdentity:
    """Whoever triggered a verification or download; every field may be empty."""

    verifier_id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None

    @classmethod
    def from_user(cls, user: Optional[User]) -> "VerifierIdentity":
        if user is None:
            return cls()
        return cls(verifier_id=user.id, name=user.name, email=user.email, role=user.role)


def dump_metadata(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    return json.dumps(metadata) if metadata else None


def log_verification(
    db: Session,
    *,
    document: DocumentRecord,
    submitted_hash: Optional[str],
    matched: bool,
    verified_via: str,
    verifier: Optional[VerifierIdentity] = None,
    metadata: Optional[Dict[str, Any]] = None,
    commit: bool = True,
) -> DocumentVerificationLog:
    """
    Append one verification-log entry for ``document``.

    With commit=False the row is only added to the session so the caller can
    commit it together with other writes (download counter).
    """
    verifier = verifier or VerifierIdentity()
    log = DocumentVerificationLog(
        document_id=document.id,
        verifier_id=verifier.verifier_id,
        verifier_name=verifier.name,
        verifier_email=verifier.email,
        verifier_role=verifier.role,
        submitted_hash=submitted_hash or document.file_hash,
        matched=matched,
        verified_via=verified_via,
        metadata_=dump_metadata(metadata),
    )
    db.add(log)
    if commit:
        db.commit()
        db.refresh(log)
    return log
