"""
Verification Resolver.

Maps a verification code and/or file hash to a DocumentRecord:

1. code given: look the code up. If found and a hash was also given that
   differs from the canonical hash, look for the newest matched log entry of
   that document with that hash; if one exists this is a variant match.
   Otherwise it is a code match. An unknown code falls through to step 2.
2. hash given: canonical hash lookup, then the newest matched log entry with
   that hash across all documents (variant match).
3. nothing found: no match.

A located document verifies only when it is active and the hash (if any)
equals the canonical hash or was justified as a variant. Matched download
and verification entries written to the log are what later make watermarked
copies verifiable, so every attempt that locates a document is logged.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from docportal.core.audit import VerifierIdentity, log_verification
from docportal.core.hashing import hash_bytes
from docportal.models.document import DocumentRecord
from docportal.models.verification_log import DocumentVerificationLog
from docportal.schemas.document import DocumentOut, DocumentStatusOut, VerificationResult
from docportal.services.document_store import DocumentStore

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Document not found"


@dataclass
class DocumentMatch:
    document: DocumentRecord
    match_type: str  # code / hash / variant
    variant_log: Optional[DocumentVerificationLog] = None


def normalize_code(code: Optional[str]) -> Optional[str]:
    if code is None:
        return None
    return code.strip().upper() or None


def normalize_hash(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip().lower() or None


class VerificationResolver:
    def __init__(self, db: Session, store: Optional[DocumentStore] = None) -> None:
        self._db = db
        self._store = store or DocumentStore(db)

    def _latest_matched_log(
        self, file_hash: str, document_id: Optional[str] = None
    ) -> Optional[DocumentVerificationLog]:
        q = self._db.query(DocumentVerificationLog).filter(
            DocumentVerificationLog.submitted_hash == file_hash,
            DocumentVerificationLog.matched.is_(True),
        )
        if document_id is not None:
            q = q.filter(DocumentVerificationLog.document_id == document_id)
        return q.order_by(
            DocumentVerificationLog.created_at.desc(), DocumentVerificationLog.id.desc()
        ).first()

    def find_document(
        self, code: Optional[str] = None, file_hash: Optional[str] = None
    ) -> Optional[DocumentMatch]:
        """Resolve already-normalized identifiers to a document, or None."""
        if code:
            document = self._store.find_by_code(code)
            if document:
                if file_hash and document.file_hash != file_hash:
                    variant_log = self._latest_matched_log(file_hash, document_id=document.id)
                    if variant_log is not None:
                        return DocumentMatch(document, "variant", variant_log)
                return DocumentMatch(document, "code")

        if file_hash:
            direct = self._store.find_by_hash(file_hash)
            if direct:
                return DocumentMatch(direct, "hash")

            variant_log = self._latest_matched_log(file_hash)
            if variant_log is not None and variant_log.document is not None:
                return DocumentMatch(variant_log.document, "variant", variant_log)

        return None

    @staticmethod
    def is_matched(match: DocumentMatch, file_hash: Optional[str]) -> bool:
        document = match.document
        hash_ok = (
            file_hash is None
            or match.match_type == "variant"
            or document.file_hash == file_hash
        )
        return document.status == "active" and hash_ok

    @staticmethod
    def _result(match: DocumentMatch, matched: bool, result_hash: Optional[str]) -> VerificationResult:
        document = match.document
        payload = (
            DocumentOut.model_validate(document).model_copy(update={"share_tokens": None})
            if matched
            else DocumentStatusOut(id=document.id, status=document.status)
        )
        return VerificationResult(
            matched=matched,
            status=document.status,
            hash=result_hash,
            document=payload,
            match_type=match.match_type,
        )

    @staticmethod
    def _no_match(result_hash: Optional[str]) -> VerificationResult:
        return VerificationResult(
            matched=False,
            status="unknown",
            hash=result_hash,
            document=None,
            message=NOT_FOUND_MESSAGE,
        )

    def verify_by_reference(
        self,
        code: Optional[str] = None,
        file_hash: Optional[str] = None,
        verifier: Optional[VerifierIdentity] = None,
    ) -> VerificationResult:
        code = normalize_code(code)
        file_hash = normalize_hash(file_hash)

        match = self.find_document(code=code, file_hash=file_hash)
        if match is None:
            logger.info("Verification found no document (code=%s, hash=%s)", code, file_hash)
            return self._no_match(file_hash)

        matched = self.is_matched(match, file_hash)
        metadata = None
        if match.variant_log is not None:
            metadata = {
                "variant_match": True,
                "source_log_id": match.variant_log.id,
                "source_verified_via": match.variant_log.verified_via,
            }

        if code and file_hash:
            verified_via = "code+hash"
        elif code:
            verified_via = "code"
        else:
            verified_via = "hash"

        log_verification(
            self._db,
            document=match.document,
            submitted_hash=file_hash,
            matched=matched,
            verified_via=verified_via,
            verifier=verifier,
            metadata=metadata,
        )

        if file_hash is None:
            result_hash = match.variant_log.submitted_hash if match.variant_log else match.document.file_hash
        else:
            result_hash = file_hash
        return self._result(match, matched, result_hash)

    def verify_by_upload(
        self,
        data: bytes,
        code: Optional[str] = None,
        verifier: Optional[VerifierIdentity] = None,
        original_file_name: Optional[str] = None,
    ) -> VerificationResult:
        """Hash the uploaded bytes and resolve them like verify_by_reference."""
        code = normalize_code(code)
        file_hash = hash_bytes(data)

        match = self.find_document(code=code, file_hash=file_hash)
        if match is None:
            logger.info("Upload verification found no document (code=%s, hash=%s)", code, file_hash)
            return self._no_match(file_hash)

        matched = self.is_matched(match, file_hash)
        log_verification(
            self._db,
            document=match.document,
            submitted_hash=file_hash,
            matched=matched,
            verified_via="upload+code" if code else "upload",
            verifier=verifier,
            metadata={
                "match_type": match.match_type,
                "variant_match": match.match_type == "variant",
                "variant_source_log_id": match.variant_log.id if match.variant_log else None,
                "original_file_name": original_file_name,
                "file_size": len(data),
            },
        )
        return self._result(match, matched, file_hash)
