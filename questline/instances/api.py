"""API endpoints for the instance lifecycle."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from questline.infrastructure.database.session import get_db
from questline.instances.base import TransitionResult
from questline.instances.config import STATUS_DISPLAY
from questline.instances.exceptions import InstanceLifecycleError, raise_http_exception
from questline.instances.schemas import ReasonRequest, TransitionRequest
from questline.instances.service import LifecycleService
from questline.instances.state_machine import (
    InstanceStatus,
    allowed_transitions,
    requires_reason,
)
from questline.shared.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/instances", tags=["instances"])


def _get_actor_id(request: Request) -> str | None:
    """Extract the acting admin's id from request state."""
    user = getattr(request.state, "user", None)
    if user and isinstance(user, dict):
        return user.get("user_id") or None
    return None


def _respond(result: TransitionResult) -> dict[str, Any]:
    if not result.success:
        raise_http_exception(result.error)
    return result.to_dict()


# ===========================================
# READ-ONLY
# ===========================================


@router.get("/statuses")
async def list_statuses() -> dict[str, Any]:
    """Every status with its display data and outgoing edges."""
    return {
        "statuses": [
            {
                "status": s.value,
                **STATUS_DISPLAY[s.value],
                "requires_reason": requires_reason(s),
                "allowed_transitions": sorted(t.value for t in allowed_transitions(s)),
            }
            for s in InstanceStatus
        ]
    }


@router.get("/{instance_id}/transitions")
async def get_transitions(
    instance_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Legal next statuses for one instance."""
    try:
        service = LifecycleService(db)
        return await service.get_available_transitions(instance_id)
    except InstanceLifecycleError as e:
        raise_http_exception(e)


# ===========================================
# TRANSITIONS
# ===========================================


@router.post("/{instance_id}/transition")
async def transition_instance(
    request: Request,
    instance_id: UUID,
    body: TransitionRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Move an instance to any legal status."""
    service = LifecycleService(db)
    result = await service.transition(
        instance_id,
        body.target_status,
        reason=body.reason,
        notify_users=body.notify_users,
        actor_id=_get_actor_id(request),
    )
    return _respond(result)


@router.post("/{instance_id}/pause")
async def pause_instance(
    request: Request,
    instance_id: UUID,
    body: ReasonRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Pause an instance and notify participants."""
    service = LifecycleService(db)
    result = await service.pause(instance_id, body.reason, actor_id=_get_actor_id(request))
    return _respond(result)


@router.post("/{instance_id}/resume")
async def resume_instance(
    request: Request,
    instance_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Resume a paused instance to its previous status."""
    service = LifecycleService(db)
    result = await service.resume(instance_id, actor_id=_get_actor_id(request))
    return _respond(result)


@router.post("/{instance_id}/cancel")
async def cancel_instance(
    request: Request,
    instance_id: UUID,
    body: ReasonRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Cancel an instance and notify participants."""
    service = LifecycleService(db)
    result = await service.cancel(instance_id, body.reason, actor_id=_get_actor_id(request))
    return _respond(result)


@router.post("/{instance_id}/archive")
async def archive_instance(
    request: Request,
    instance_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Archive a completed or cancelled instance."""
    service = LifecycleService(db)
    result = await service.archive(instance_id, actor_id=_get_actor_id(request))
    return _respond(result)
