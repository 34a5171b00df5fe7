"""
Shared fixtures for the vault core test suite.

Every test gets a fresh in-memory SQLite database, settings with a cheap
bcrypt cost, and (for command tests) a TestClient whose session and
settings dependencies point at those.
"""

import os

# The app module builds its engine at import time; keep it off the disk.
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, select  # noqa: E402

from aegis.server.auth_gate import AuthGate  # noqa: E402
from aegis.server.config import Settings, get_settings  # noqa: E402
from aegis.server.database import build_engine, get_session, init_db  # noqa: E402
from aegis.server.main import app  # noqa: E402
from aegis.server.models import User  # noqa: E402
from aegis.server.registry import UserRegistry  # noqa: E402
from aegis.server.session_context import SessionContext  # noqa: E402
from aegis.server.vault_store import VaultStore  # noqa: E402


class Ticker:
    """Deterministic clock for VaultStore; each call moves forward one second."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        SECRET_KEY="test-secret-key-not-for-production-use",
        BCRYPT_ROUNDS=4,
        DATABASE_URL="sqlite://",
    )


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def registry(session, test_settings):
    return UserRegistry(session, test_settings)


@pytest.fixture
def gate(session, test_settings):
    return AuthGate(session, test_settings)


@pytest.fixture
def context(session, test_settings):
    return SessionContext(session, test_settings)


@pytest.fixture
def ticker():
    return Ticker()


@pytest.fixture
def store(session, ticker):
    return VaultStore(session, clock=ticker)


@pytest.fixture
def alice(registry, context):
    """Registered user without a second factor; returns (user_id, token)."""
    result = registry.register("alice", "alice@example.com", "correct horse")
    return context.resolve(result.token), result.token


@pytest.fixture
def bob(registry, context):
    result = registry.register("bob", "bob@example.com", "battery staple")
    return context.resolve(result.token), result.token


@pytest.fixture
def user_by_name(session):
    def _lookup(username: str) -> User:
        session.expire_all()
        return session.exec(select(User).where(User.username == username)).one()
    return _lookup


@pytest.fixture
def client(engine, test_settings):
    def _get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_settings] = lambda: test_settings
    yield TestClient(app)
    app.dependency_overrides.clear()
