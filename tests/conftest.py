import os

os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"

from typing import Optional

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from docportal.api.deps import get_db, get_storage
from docportal.core.auth import User, get_current_user, get_optional_user
from docportal.core.database import Base
from docportal.core.storage import DocumentStorage
from docportal.main import app
from docportal.models import document, verification_log  # noqa: F401

from tests.support import TEACHER


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def storage(tmp_path):
    return DocumentStorage(tmp_path / "uploads")


class Actor:
    """Who the test client is authenticated as; None means anonymous."""

    def __init__(self):
        self.user: Optional[User] = None

    def __call__(self, user: Optional[User]) -> Optional[User]:
        self.user = user
        return user


@pytest.fixture
def act_as():
    return Actor()


@pytest.fixture
def client(db, storage, act_as):
    def _current_user() -> User:
        if act_as.user is None:
            raise HTTPException(status_code=401, detail="Not authenticated")
        return act_as.user

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_current_user] = _current_user
    app.dependency_overrides[get_optional_user] = lambda: act_as.user
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def upload(client, act_as):
    """POST a PDF to /documents as the given user (teacher by default)."""

    def _upload(content: bytes, filename: str = "certificate.pdf", as_user: User = TEACHER,
                content_type: str = "application/pdf", **form):
        act_as(as_user)
        return client.post(
            "/documents",
            files={"file": (filename, content, content_type)},
            data={k: str(v) for k, v in form.items()},
        )

    return _upload
