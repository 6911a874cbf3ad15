"""
Domain errors raised by the document services.

Services raise these instead of HTTPException so they can be used (and
tested) without a request. register_exception_handlers() renders them with
the same {"detail": ...} body FastAPI uses for HTTPException.
"""
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class DocumentError(Exception):
    """Base class for document-domain failures."""

    status_code = 400

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra: Dict[str, Any] = extra

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message}
        body.update({k: v for k, v in self.extra.items() if v is not None})
        return body


class ValidationError(DocumentError):
    """Malformed input payload (missing field, bad date, unknown status)."""

    status_code = 400

    def __init__(self, message: str, *, issues: Optional[Any] = None) -> None:
        super().__init__(message, issues=issues)
        self.issues = issues


class ConflictError(DocumentError):
    """Unique constraint violation on file hash or verification code."""

    status_code = 409


class NotFoundError(DocumentError):
    """Document record or its stored file does not exist."""

    status_code = 404


class ForbiddenError(DocumentError):
    """The actor's role does not allow this operation on this document."""

    status_code = 403


class GoneError(DocumentError):
    """A guest share link can no longer be used."""

    status_code = 410

    def __init__(self, message: str, *, code: str) -> None:
        super().__init__(message, code=code)
        self.code = code


class MalformedInputError(DocumentError):
    """The bytes handed to the watermark transform are not a readable PDF."""

    status_code = 422


async def _document_error_handler(request: Request, exc: DocumentError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DocumentError, _document_error_handler)
