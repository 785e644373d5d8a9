"""
- Spins up a temp SQLite DB for the SQL store tests
- Builds the game services on an in-memory store with a fixed clock
- Overrides FastAPI's get_services so routes use those services
- Provides a client fixture (TestClient(app)) with the override applied
"""
import os
import pytest
from typing import Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure the app does NOT run startup hooks (logging setup, background sync timer)
os.environ.setdefault("APP_ENV", "test")

from bullscows.bootstrap_db import create_all
from bullscows.db import Base
from bullscows.identity import IdentityStore
from bullscows.ledger import ScoreLedger
from bullscows.main import Services, app, build_services, get_services
from bullscows.persistence import DocumentStore
from bullscows.settings import GameSettings
from bullscows.store import InMemoryStore
from bullscows.sync import SyncBacklog

# Use SQLite in-memory for tests (fast, isolated)
TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"


class FakeClock:
    """Seconds since the epoch; tests move it forward by hand."""

    def __init__(self, start: float = 1_718_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport:
    """Remote score store double: records what it receives, can be switched offline."""

    def __init__(self, online: bool = True):
        self.online = online
        self.stored = []
        self.submitted = []

    def submit(self, record) -> bool:
        self.submitted.append(record)
        if not self.online:
            return False
        if all(r.round_id != record.round_id for r in self.stored):
            self.stored.append(record)
        return True

    def fetch(self):
        if not self.online:
            return None
        return list(self.stored)

    def is_available(self) -> bool:
        return self.online


@pytest.fixture(scope="session")
def engine():
    # StaticPool + check_same_thread=False shares ONE in-memory SQLite database
    # across threads. Otherwise each connection would see a different empty DB.
    engine = create_engine(
        TEST_DATABASE_URL,
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_all(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(engine) -> Generator:
    with engine.begin() as conn:
        conn.execute(text("DELETE FROM storage_entries"))
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def documents(backend) -> DocumentStore:
    return DocumentStore(backend)


@pytest.fixture
def identities(documents, clock) -> IdentityStore:
    return IdentityStore(documents, clock=clock)


@pytest.fixture
def ledger(documents, identities) -> ScoreLedger:
    return ScoreLedger(documents, identities, levels=(3, 4, 5), max_per_level=10)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def backlog(documents, transport, clock) -> SyncBacklog:
    return SyncBacklog(documents, transport, max_pending=5, clock=clock)


@pytest.fixture
def services() -> Services:
    settings = GameSettings(app_env="test", storage_backend="memory")
    return build_services(settings, backend=InMemoryStore())


@pytest.fixture(autouse=True)
def override_dep(services):
    """Force the app to use the per-test services for every request."""
    app.dependency_overrides[get_services] = lambda: services
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    # Talks to the FastAPI app in-process, against the overridden services.
    return TestClient(app)
