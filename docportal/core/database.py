from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from docportal.core.config import settings


def _connect_args(url: str) -> dict:
    # SQLite connections are handed across FastAPI's threadpool workers
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(settings.DATABASE_URL, connect_args=_connect_args(settings.DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db():
    """Create all tables directly (local development without Alembic)."""
    from docportal.models import document, verification_log  # noqa: F401

    Base.metadata.create_all(bind=engine)
