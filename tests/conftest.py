"""Shared test fixtures and configuration."""
import pytest
import os
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("LIFF_ID", "test-liff")
os.environ.setdefault("ADMIN_UIDS", "Uadmin1,Uadmin2")
os.environ.setdefault("PLANETKIT_AGENT_CALL_MOCK_MODE", "true")
os.environ.setdefault("VAPID_PUBLIC_KEY", "test-vapid-public")

from callbridge.main import app
from callbridge.db.database import get_db
from callbridge.db.models import Base
from callbridge.core import dependencies
from callbridge.core.dependencies import (
    get_line_client,
    get_planetkit_client,
    get_push_sender,
)
from callbridge.services.agent_call.initiator import AgentCallInitiator
from callbridge.services.agent_call.lifecycle import AgentCallLifecycleService
from callbridge.services.agent_call.planetkit_client import PlanetKitAgentCallClient
from callbridge.services.notifications.dispatcher import NotificationDispatcher
from callbridge.services.notifications.line_messaging import LineMessagingClient
from callbridge.services.notifications.web_push import WebPushSender


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def test_db(test_db_engine):
    """Create test database session."""
    async_session = async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture
async def file_db_sessionmaker(tmp_path):
    """Session factory over a file database, so each session gets its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'callbridge-test.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def override_get_db(test_db):
    """Override get_db dependency with test database."""
    async def _override_get_db():
        yield test_db
    return _override_get_db


@pytest.fixture
def fake_line_client():
    """LINE push client that records messages instead of sending them."""
    return AsyncMock(spec=LineMessagingClient)


@pytest.fixture
def fake_push_sender():
    """Web push sender that records payloads instead of sending them."""
    return AsyncMock(spec=WebPushSender)


@pytest.fixture
def mock_planetkit_client():
    """Agent call client in mock mode: no HTTP, generated sids."""
    return PlanetKitAgentCallClient(
        base_url="https://planetkit.test",
        api_key=None,
        api_secret=None,
        mock_mode=True,
    )


@pytest.fixture
def dispatcher(test_db, fake_line_client, fake_push_sender):
    return NotificationDispatcher(
        test_db,
        fake_line_client,
        fake_push_sender,
        liff_id="test-liff",
        admin_uids=["Uadmin1", "Uadmin2"],
    )


@pytest.fixture
def lifecycle(test_db, dispatcher):
    return AgentCallLifecycleService(test_db, dispatcher)


@pytest.fixture
def initiator(test_db, mock_planetkit_client):
    return AgentCallInitiator(test_db, mock_planetkit_client)


@pytest.fixture
def test_client(override_get_db, fake_line_client, fake_push_sender, mock_planetkit_client):
    """Create FastAPI test client with overrides."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_line_client] = lambda: fake_line_client
    app.dependency_overrides[get_push_sender] = lambda: fake_push_sender
    app.dependency_overrides[get_planetkit_client] = lambda: mock_planetkit_client

    client = TestClient(app)

    yield client

    # Clear overrides
    app.dependency_overrides.clear()


@pytest.fixture
def cron_headers():
    return {"x-vercel-cron-secret": "test-cron-secret"}


@pytest.fixture(autouse=True)
def reset_process_state():
    """Clear the process-wide lock store and debug log buffer between tests."""
    dependencies._room_lock_store.clear()
    dependencies._debug_log_buffer.clear()
    yield
    dependencies._room_lock_store.clear()
    dependencies._debug_log_buffer.clear()
