"""Global pytest fixtures for Questline.

This module provides shared fixtures for testing including:
- Mock async database sessions and session factories
- In-memory instance store and recording side-effect hooks
- An HTTP client bound to the FastAPI app
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from questline.instances.config import get_instance_settings
from tests.factories import InMemoryInstanceStore, RecordingHook


# ===========================================
# SETTINGS
# ===========================================


@pytest.fixture(autouse=True)
def reset_instance_settings(monkeypatch: pytest.MonkeyPatch):
    """Give every test fresh settings with short timeouts."""
    monkeypatch.setenv("INSTANCE_PERSISTENCE_TIMEOUT_SECONDS", "0.5")
    monkeypatch.setenv("INSTANCE_SIDE_EFFECT_TIMEOUT_SECONDS", "0.5")
    get_instance_settings.cache_clear()
    yield
    get_instance_settings.cache_clear()


# ===========================================
# DATABASE SESSION FIXTURES
# ===========================================


def _make_session() -> AsyncMock:
    session = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.flush = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    return session


@pytest.fixture
def db_session() -> AsyncMock:
    """Create a mock async database session for unit tests."""
    return _make_session()


@pytest.fixture
def hook_session() -> AsyncMock:
    """Session handed out by ``session_factory`` to side-effect hooks."""
    return _make_session()


@pytest.fixture
def session_factory(hook_session: AsyncMock):
    """Drop-in for ``get_db_session`` that always yields ``hook_session``."""

    @asynccontextmanager
    async def factory():
        yield hook_session

    return factory


# ===========================================
# LIFECYCLE FIXTURES
# ===========================================


@pytest.fixture
def instance_store() -> InMemoryInstanceStore:
    """Empty in-memory instance store."""
    return InMemoryInstanceStore()


@pytest.fixture
def recording_hook() -> RecordingHook:
    return RecordingHook("recorder")


@pytest.fixture
def lifecycle_service(db_session, instance_store, recording_hook):
    """LifecycleService over the in-memory store with a single recording hook."""
    from questline.instances.service import LifecycleService
    from questline.instances.side_effects import SideEffectDispatcher

    dispatcher = SideEffectDispatcher(hooks=[recording_hook])
    return LifecycleService(db_session, instance_repo=instance_store, dispatcher=dispatcher)


# ===========================================
# HTTP CLIENT FIXTURES
# ===========================================


@pytest_asyncio.fixture
async def async_client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for API testing with the database dependency mocked."""
    from questline.infrastructure.database.session import get_db
    from questline.main import create_app

    app = create_app()

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
