"""Pydantic schemas for instance lifecycle requests."""

from __future__ import annotations

from pydantic import BaseModel, Field

from questline.instances.state_machine import InstanceStatus


class TransitionRequest(BaseModel):
    """Request to move an instance to a new status."""

    target_status: InstanceStatus
    reason: str | None = Field(default=None, max_length=2000)
    notify_users: bool = False


class ReasonRequest(BaseModel):
    """Request body for pause and cancel."""

    reason: str | None = Field(default=None, max_length=2000)
