"""Test fixtures and configuration."""

import logging
import os
import sys
from uuid import uuid4

import pytest
import pytest_asyncio
import structlog
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set ENVIRONMENT for pydantic settings
os.environ["ENVIRONMENT"] = "testing"

from statement_recon.logger import get_logger  # noqa: E402
from statement_recon.services import matching  # noqa: E402

logger = get_logger(__name__)

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# --- Reconciliation config cache cleanup ---
@pytest.fixture(autouse=True)
def reset_reconciliation_config():
    """Clear cached reconciliation config before and after each test."""
    matching._config_cache = None
    yield
    matching._config_cache = None


# --- Structlog Configuration for Tests ---
@pytest.fixture(autouse=True, scope="session")
def configure_structlog_for_tests():
    """Configure structlog for proper capsys capture in tests."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(colors=False),
        foreign_pre_chain=processors[:-1],
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG)

    yield

    structlog.reset_defaults()


def _enable_sqlite_savepoints(engine) -> None:
    """Let SQLAlchemy own BEGIN so SAVEPOINT works on pysqlite/aiosqlite."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Fresh in-memory database per test.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    from statement_recon.database import Base
    from statement_recon.models import BankStatement, BankStatementTransaction, Payment  # noqa: F401

    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    _enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_maker(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db(session_maker):
    """Session for service-level tests."""
    session = session_maker()
    yield session
    await session.close()


@pytest.fixture
def tenant_id():
    return uuid4()


@pytest.fixture
def other_tenant_id():
    return uuid4()


@pytest_asyncio.fixture(scope="function")
async def client(session_maker, tenant_id):
    """Async test client acting for ``tenant_id``.

    Data seeded through the ``db`` fixture must be committed before requests
    are sent, since the app opens its own sessions.
    """
    from statement_recon import database
    from statement_recon.main import app

    previous = database.set_test_session_maker(session_maker)
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(
            transport=transport,
            base_url="http://test",
            headers={"X-Tenant-ID": str(tenant_id)},
        ) as client_instance:
            yield client_instance
    finally:
        database.set_test_session_maker(previous)
