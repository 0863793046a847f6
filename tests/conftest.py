# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from messaging_backend.core.security import TokenService, get_token_service
from messaging_backend.core.settings import Settings
from messaging_backend.db.session import Base
from messaging_backend.db.session import get_db as app_get_session
from messaging_backend.main import app as fastapi_app
from messaging_backend.services.auth_service import AuthResult, AuthService
from messaging_backend.services.file_store import FileStore, get_file_store

TEST_DB_URL = "sqlite://"

_TEST_SETTINGS_INSTANCE = Settings()


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Ensure each test sees a clean database even though services commit.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def media_root(tmp_path: Path) -> Path:
    return tmp_path / "media"


@pytest.fixture(autouse=True)
def override_file_store(app: FastAPI, media_root: Path) -> Iterator[FileStore]:
    store = FileStore(root=media_root, max_bytes=1024)
    app.dependency_overrides[get_file_store] = lambda: store
    try:
        yield store
    finally:
        app.dependency_overrides.pop(get_file_store, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Provide a Settings instance aligned with runtime configuration."""
    return _TEST_SETTINGS_INSTANCE


@pytest.fixture()
def token_service() -> TokenService:
    return get_token_service()


def register_user(db: Session, username: str, password: str = "pw123") -> AuthResult:
    """Create an account through the service layer and return its token."""
    return AuthService().register(
        db,
        username=username,
        email=f"{username}@example.com",
        password=password,
    )


@pytest.fixture()
def alice(db_session: Session) -> AuthResult:
    """Registered primary test user."""
    return register_user(db_session, "alice")


@pytest.fixture()
def bob(db_session: Session) -> AuthResult:
    """Registered secondary test user."""
    return register_user(db_session, "bob")


@pytest.fixture()
def alice_headers(alice: AuthResult) -> dict[str, str]:
    """Return authorization headers for the primary test user."""
    return {"Authorization": f"Bearer {alice.token}"}


@pytest.fixture()
def bob_headers(bob: AuthResult) -> dict[str, str]:
    """Return authorization headers for the secondary test user."""
    return {"Authorization": f"Bearer {bob.token}"}


@pytest.fixture()
def make_user(db_session: Session):
    """Factory registering extra users against the test session."""

    def _make(username: str, password: str = "pw123") -> AuthResult:
        return register_user(db_session, username, password)

    return _make
