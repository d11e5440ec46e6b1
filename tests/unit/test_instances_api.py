"""Tests for the instance lifecycle HTTP endpoints."""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from questline.instances.base import TransitionResult
from questline.instances.exceptions import (
    ConcurrentModificationError,
    InstanceNotFoundError,
    InvalidTransitionError,
    MissingReasonError,
    PersistenceError,
)
from questline.instances.state_machine import InstanceStatus

BASE = "/api/v1/instances"
ADMIN_ID = str(uuid4())


@pytest.fixture
def mock_service():
    """Patch LifecycleService in the API module with an AsyncMock-backed stand-in."""
    service = MagicMock()
    for name in ("transition", "pause", "resume", "cancel", "archive", "get_available_transitions"):
        setattr(service, name, AsyncMock())
    with patch("questline.instances.api.LifecycleService", return_value=service):
        yield service


class TestStatuses:
    @pytest.mark.asyncio
    async def test_lists_every_status(self, async_client):
        response = await async_client.get(f"{BASE}/statuses")

        assert response.status_code == 200
        statuses = {s["status"]: s for s in response.json()["statuses"]}
        assert set(statuses) == {s.value for s in InstanceStatus}
        assert statuses["paused"]["label"] == "Paused"
        assert statuses["paused"]["requires_reason"] is True
        assert statuses["paused"]["allowed_transitions"] == [
            "cancelled",
            "live",
            "locked",
            "recruiting",
        ]
        assert statuses["archived"]["allowed_transitions"] == []


class TestTransitionEndpoint:
    @pytest.mark.asyncio
    async def test_success(self, async_client, mock_service):
        instance_id = uuid4()
        mock_service.transition.return_value = TransitionResult.succeeded(
            InstanceStatus.LOCKED, previous_status=InstanceStatus.RECRUITING
        )

        response = await async_client.post(
            f"{BASE}/{instance_id}/transition", json={"target_status": "locked"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "new_status": "locked",
            "previous_status": "recruiting",
        }
        args, kwargs = mock_service.transition.call_args
        assert args == (instance_id, InstanceStatus.LOCKED)
        assert kwargs["reason"] is None
        assert kwargs["notify_users"] is False
        assert kwargs["actor_id"] is None

    @pytest.mark.asyncio
    async def test_unknown_status_rejected_by_schema(self, async_client, mock_service):
        response = await async_client.post(
            f"{BASE}/{uuid4()}/transition", json={"target_status": "published"}
        )

        assert response.status_code == 422
        mock_service.transition.assert_not_called()

    @pytest.mark.asyncio
    async def test_bad_instance_id(self, async_client, mock_service):
        response = await async_client.post(
            f"{BASE}/not-a-uuid/transition", json={"target_status": "locked"}
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,status_code,error_type",
        [
            (InstanceNotFoundError("x"), 404, "instance_not_found"),
            (InvalidTransitionError("recruiting", "live"), 409, "invalid_transition"),
            (MissingReasonError("paused"), 422, "missing_reason"),
            (PersistenceError("x", "timed out writing instance"), 503, "persistence_error"),
            (ConcurrentModificationError("x", "recruiting"), 409, "concurrent_modification"),
        ],
    )
    async def test_error_mapping(self, async_client, mock_service, error, status_code, error_type):
        mock_service.transition.return_value = TransitionResult.failed(error)

        response = await async_client.post(
            f"{BASE}/{uuid4()}/transition", json={"target_status": "live"}
        )

        assert response.status_code == status_code
        detail = response.json()["detail"]
        assert detail["status"] == status_code
        assert detail["type"].endswith(f"/errors/{error_type}")
        assert detail["detail"] == error.message


class TestShortcutEndpoints:
    @pytest.mark.asyncio
    async def test_pause(self, async_client, mock_service):
        instance_id = uuid4()
        mock_service.pause.return_value = TransitionResult.succeeded(
            InstanceStatus.PAUSED, previous_status=InstanceStatus.LIVE
        )

        response = await async_client.post(f"{BASE}/{instance_id}/pause", json={"reason": "storm"})

        assert response.status_code == 200
        assert response.json()["new_status"] == "paused"
        mock_service.pause.assert_awaited_once_with(instance_id, "storm", actor_id=None)

    @pytest.mark.asyncio
    async def test_pause_without_reason(self, async_client, mock_service):
        mock_service.pause.return_value = TransitionResult.failed(MissingReasonError("paused"))

        response = await async_client.post(f"{BASE}/{uuid4()}/pause", json={})

        assert response.status_code == 422
        assert response.json()["detail"]["title"] == "Missing Reason"

    @pytest.mark.asyncio
    async def test_resume(self, async_client, mock_service):
        instance_id = uuid4()
        mock_service.resume.return_value = TransitionResult.succeeded(
            InstanceStatus.RECRUITING, previous_status=InstanceStatus.PAUSED
        )

        response = await async_client.post(f"{BASE}/{instance_id}/resume")

        assert response.status_code == 200
        assert response.json()["previous_status"] == "paused"
        mock_service.resume.assert_awaited_once_with(instance_id, actor_id=None)

    @pytest.mark.asyncio
    async def test_cancel(self, async_client, mock_service):
        instance_id = uuid4()
        mock_service.cancel.return_value = TransitionResult.succeeded(InstanceStatus.CANCELLED)

        response = await async_client.post(
            f"{BASE}/{instance_id}/cancel", json={"reason": "venue closed"}
        )

        assert response.status_code == 200
        mock_service.cancel.assert_awaited_once_with(instance_id, "venue closed", actor_id=None)

    @pytest.mark.asyncio
    async def test_archive_invalid(self, async_client, mock_service):
        mock_service.archive.return_value = TransitionResult.failed(
            InvalidTransitionError("live", "archived")
        )

        response = await async_client.post(f"{BASE}/{uuid4()}/archive")

        assert response.status_code == 409


class TestAvailableTransitionsEndpoint:
    @pytest.mark.asyncio
    async def test_success(self, async_client, mock_service):
        instance_id = uuid4()
        payload = {
            "instance_id": str(instance_id),
            "status": "completed",
            "allowed_transitions": [{"status": "archived", "requires_reason": False}],
        }
        mock_service.get_available_transitions.return_value = payload

        response = await async_client.get(f"{BASE}/{instance_id}/transitions")

        assert response.status_code == 200
        assert response.json() == payload

    @pytest.mark.asyncio
    async def test_not_found(self, async_client, mock_service):
        mock_service.get_available_transitions.side_effect = InstanceNotFoundError("x")

        response = await async_client.get(f"{BASE}/{uuid4()}/transitions")

        assert response.status_code == 404


class TestActorAttribution:
    """The acting admin comes from ``request.state.user``."""

    @pytest_asyncio.fixture
    async def authed_client(self, db_session):
        from questline.infrastructure.database.session import get_db
        from questline.main import create_app

        app = create_app()

        @app.middleware("http")
        async def fake_auth(request, call_next):
            request.state.user = {"user_id": ADMIN_ID}
            return await call_next(request)

        async def override_get_db():
            yield db_session

        app.dependency_overrides[get_db] = override_get_db
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client

    @pytest.mark.asyncio
    async def test_actor_forwarded(self, authed_client, mock_service):
        instance_id = uuid4()
        mock_service.archive.return_value = TransitionResult.succeeded(InstanceStatus.ARCHIVED)

        await authed_client.post(f"{BASE}/{instance_id}/archive")

        mock_service.archive.assert_awaited_once_with(instance_id, actor_id=ADMIN_ID)


class TestRootEndpoints:
    @pytest.mark.asyncio
    async def test_health(self, async_client):
        response = await async_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Request-ID" in response.headers
