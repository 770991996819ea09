# tests/conftest.py

import pytest
from unittest.mock import MagicMock
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.testclient import TestClient

import app.models  # noqa: F401  (registers every table on Base.metadata)
from app import scheduler as scheduler_module
from app.core.config import settings
from app.db.base_class import Base
from app.db.session import get_db

# --- Test Database Setup ---
# One in-memory SQLite connection shared by the test, the request handlers
# and the background jobs. Every test runs inside a transaction that is
# rolled back at the end; sessions join it through savepoints, so their
# commits stay visible to each other within the test.
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# pysqlite needs these two hooks for SAVEPOINT to behave
@event.listens_for(engine, "connect")
def _do_connect(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _do_begin(conn):
    conn.exec_driver_sql("BEGIN")


SESSION_LOCAL_TARGETS = (
    "app.background_tasks.event_reminder_tasks.SessionLocal",
    "app.background_tasks.event_publication_tasks.SessionLocal",
    "app.background_tasks.audit_archive_tasks.SessionLocal",
    "app.tasks.SessionLocal",
)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def connection():
    conn = engine.connect()
    transaction = conn.begin()
    yield conn
    if transaction.is_active:
        transaction.rollback()
    conn.close()


@pytest.fixture(scope="function")
def session_factory(connection, monkeypatch):
    """A sessionmaker bound to the test transaction, also patched in as SessionLocal."""
    factory = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        join_transaction_mode="create_savepoint",
    )
    for target in SESSION_LOCAL_TARGETS:
        monkeypatch.setattr(target, factory)
    return factory


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


# --- Mock Dependencies Setup ---
@pytest.fixture(autouse=True)
def redis_mock(monkeypatch):
    """Pub/sub never leaves the process in tests."""
    client = MagicMock()
    monkeypatch.setattr("app.services.notifications.redis_client", client)
    monkeypatch.setattr("app.api.v1.endpoints.health.redis_client", client)
    return client


@pytest.fixture(scope="function")
def scheduler():
    """A paused in-memory scheduler: jobs can be inspected but never fire."""
    sched = scheduler_module.init_scheduler(paused=True, jobstore="memory", periodic=False)
    yield sched
    scheduler_module.shutdown_scheduler(wait=False)


# --- Test Client Fixtures ---
@pytest.fixture(scope="function")
def client(session_factory, monkeypatch):
    """
    TestClient wired to the test transaction. The background scheduler is
    not started by the lifespan.
    """
    from app.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    monkeypatch.setattr(settings, "SCHEDULER_ENABLED", False)
    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
