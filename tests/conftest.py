"""Shared test fixtures for the CloudVault backend test suite.

Tests run against a throwaway SQLite database file and a temporary content
store directory. Every test starts from freshly created tables.
"""

import os
import tempfile

# Point the app at throwaway storage before any app imports.
_TMP_ROOT = tempfile.mkdtemp(prefix="cloudvault-tests-")
os.environ["DATABASE_URL"] = os.environ.get(
    "TEST_DATABASE_URL",
    f"sqlite:///{os.path.join(_TMP_ROOT, 'test.db')}",
)
os.environ["STORAGE_ROOT"] = os.path.join(_TMP_ROOT, "uploads")
os.environ["LOG_FORMAT"] = "text"

import io

import pytest
from fastapi.testclient import TestClient

from cloudvault.database import Base, get_db, engine, SessionLocal
from cloudvault.main import app
from cloudvault.storage import LocalContentStore, get_content_store


@pytest.fixture(autouse=True)
def _clean_tables():
    """Recreate all tables before each test for isolation."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def store(tmp_path):
    """Content store rooted in a per-test directory."""
    return LocalContentStore(str(tmp_path / "store"))


@pytest.fixture()
def client(db, store):
    """FastAPI TestClient with DB and content store overridden to the test instances."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_content_store] = lambda: store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def auth_headers(user_id: str = "alice") -> dict:
    """Identity header as forwarded by the upstream gateway."""
    return {"X-User-Id": user_id}


def payload(size: int, fill: bytes = b"x") -> io.BytesIO:
    """In-memory upload stream of *size* bytes."""
    return io.BytesIO(fill * size)
