from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from docportal.core.config import settings
from docportal.core.database import SessionLocal
from docportal.core.storage import DocumentStorage
from docportal.services.document_store import DocumentStore
from docportal.services.downloads import DownloadPipeline
from docportal.services.verification import VerificationResolver


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_storage() -> DocumentStorage:
    return DocumentStorage(settings.UPLOADS_DIR)


def get_document_store(db: Session = Depends(get_db)) -> DocumentStore:
    return DocumentStore(db)


def get_resolver(
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
) -> VerificationResolver:
    return VerificationResolver(db, store)


def get_download_pipeline(
    db: Session = Depends(get_db),
    storage: DocumentStorage = Depends(get_storage),
    store: DocumentStore = Depends(get_document_store),
) -> DownloadPipeline:
    return DownloadPipeline(db, storage, store)
