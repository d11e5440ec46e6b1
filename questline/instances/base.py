"""Data structures shared by the lifecycle service and its side-effect hooks."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from questline.instances.exceptions import InstanceLifecycleError
from questline.instances.state_machine import InstanceStatus


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a lifecycle operation.

    Exactly one of ``new_status`` (on success) or ``error`` (on failure)
    is set. Callers branch on ``success`` and render ``error.message``.
    """

    success: bool
    new_status: InstanceStatus | None = None
    previous_status: InstanceStatus | None = None
    error: InstanceLifecycleError | None = None

    @classmethod
    def succeeded(
        cls,
        new_status: InstanceStatus,
        previous_status: InstanceStatus | None = None,
    ) -> TransitionResult:
        return cls(success=True, new_status=new_status, previous_status=previous_status)

    @classmethod
    def failed(cls, error: InstanceLifecycleError) -> TransitionResult:
        return cls(success=False, error=error)

    @property
    def error_type(self) -> str | None:
        return self.error.error_type if self.error else None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success}
        if self.success:
            result["new_status"] = self.new_status.value if self.new_status else None
            result["previous_status"] = (
                self.previous_status.value if self.previous_status else None
            )
        else:
            result["error"] = self.error_type
            result["message"] = self.error.message if self.error else None
        return result


@dataclass(frozen=True)
class StatusChange:
    """A committed status change, handed to every side-effect hook."""

    instance_id: UUID | str
    instance_title: str
    from_status: InstanceStatus
    to_status: InstanceStatus
    reason: str | None = None
    notify_users: bool = False
    actor_id: UUID | str | None = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def action(self) -> str:
        """Audit/ops action name, e.g. ``instance_paused``."""
        return f"instance_{self.to_status.value}"

    def log_context(self) -> dict[str, Any]:
        """Fields needed to reconstruct a missed side effect from the logs."""
        return {
            "instance_id": str(self.instance_id),
            "from_status": self.from_status.value,
            "target_status": self.to_status.value,
            "reason": self.reason,
            "actor_id": str(self.actor_id) if self.actor_id else None,
            "occurred_at": self.occurred_at.isoformat(),
        }
