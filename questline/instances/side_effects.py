"""Post-commit side effects of instance status changes.

Every committed transition is handed to a set of hooks: the operational
event log, the compliance audit log and participant notification. Hooks
run only after the authoritative write, each in its own session, and a
failing hook is logged with enough context to replay it. Nothing raised
here reaches the caller of a transition.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Callable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from questline.infrastructure.database.session import get_db_session
from questline.instances.base import StatusChange
from questline.instances.config import NOTIFICATION_TEMPLATES, get_instance_settings
from questline.instances.repository import (
    AuditLogRepository,
    OpsEventRepository,
    SignupRepository,
)
from questline.instances.state_machine import (
    AUDITED_STATUSES,
    NOTIFY_STATUSES,
    InstanceStatus,
    has_reason,
)
from questline.notifications.service import NotificationService
from questline.shared.utils.logging import get_logger

logger = get_logger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

HOOK_OK = "ok"
HOOK_FAILED = "failed"
HOOK_SKIPPED = "skipped"

# Background dispatches still running, across every dispatcher instance
_pending_dispatches: set[asyncio.Task] = set()


class SideEffectHook(ABC):
    """A single post-commit concern."""

    name: str = "side_effect"

    def __init__(self, session_factory: SessionFactory = get_db_session):
        self.session_factory = session_factory

    def applies_to(self, change: StatusChange) -> bool:
        return True

    @abstractmethod
    async def run(self, change: StatusChange) -> None:
        """Perform the side effect. May raise; the dispatcher isolates it."""


class OpsEventHook(SideEffectHook):
    """Record every transition in the operational event log."""

    name = "ops_event"

    async def run(self, change: StatusChange) -> None:
        event_type = (
            "manual_override"
            if change.to_status == InstanceStatus.PAUSED
            else "quest_status_changed"
        )
        async with self.session_factory() as session:
            await OpsEventRepository(session).record(
                event_type=event_type,
                instance_id=change.instance_id,
                actor_id=change.actor_id,
                before_state={"status": change.from_status.value},
                after_state={"status": change.to_status.value, "reason": change.reason},
                metadata={"action": change.action},
            )
            await session.commit()


class AuditLogHook(SideEffectHook):
    """Record compliance-relevant transitions in the admin audit log."""

    name = "audit_log"

    def applies_to(self, change: StatusChange) -> bool:
        return change.to_status in AUDITED_STATUSES

    async def run(self, change: StatusChange) -> None:
        async with self.session_factory() as session:
            await AuditLogRepository(session).record(
                action=change.action,
                target_table="quest_instances",
                target_id=change.instance_id,
                admin_id=change.actor_id,
                old_values={"status": change.from_status.value},
                new_values={"status": change.to_status.value, "reason": change.reason},
            )
            await session.commit()


def render_notification(change: StatusChange) -> tuple[str, str]:
    """Build the (title, body) pair for a pause or cancellation."""
    template = NOTIFICATION_TEMPLATES[change.to_status.value]
    reason = change.reason if has_reason(change.reason) else template["fallback"]
    title = template["title"].format(title=change.instance_title)
    body = template["body"].format(reason=reason)
    return title, body


class ParticipantNotificationHook(SideEffectHook):
    """Tell pending and confirmed participants their quest was paused or cancelled."""

    name = "participant_notification"

    def applies_to(self, change: StatusChange) -> bool:
        return change.notify_users and change.to_status in NOTIFY_STATUSES

    async def run(self, change: StatusChange) -> None:
        settings = get_instance_settings()
        title, body = render_notification(change)

        async with self.session_factory() as session:
            user_ids = await SignupRepository(session).list_active_participants(
                change.instance_id
            )
            if not user_ids:
                logger.debug("no_participants_to_notify", instance_id=str(change.instance_id))
                return

            await NotificationService(session).create_batch(
                user_ids,
                notification_type=settings.notification_type,
                title=title,
                body=body,
                priority=settings.notification_priority,
                data={
                    "instance_id": str(change.instance_id),
                    "status": change.to_status.value,
                },
            )
            await session.commit()

        logger.info(
            "participants_notified",
            instance_id=str(change.instance_id),
            status=change.to_status.value,
            count=len(user_ids),
        )


class SideEffectDispatcher:
    """Runs side-effect hooks for a committed change, isolating their failures."""

    def __init__(
        self,
        hooks: Sequence[SideEffectHook] | None = None,
        timeout_seconds: float | None = None,
    ):
        if hooks is None:
            hooks = default_hooks()
        if timeout_seconds is None:
            timeout_seconds = get_instance_settings().side_effect_timeout_seconds
        self.hooks = list(hooks)
        self.timeout_seconds = timeout_seconds
        self._background: set[asyncio.Task] = set()

    async def dispatch(self, change: StatusChange) -> dict[str, str]:
        """Run every applicable hook concurrently.

        Returns a report mapping hook name to ``ok``, ``failed`` or
        ``skipped``.
        """
        report = {hook.name: HOOK_SKIPPED for hook in self.hooks}
        applicable = [hook for hook in self.hooks if hook.applies_to(change)]

        outcomes = await asyncio.gather(
            *(self._run_hook(hook, change) for hook in applicable)
        )
        for hook, outcome in zip(applicable, outcomes):
            report[hook.name] = outcome
        return report

    def dispatch_in_background(self, change: StatusChange) -> asyncio.Task:
        """Schedule dispatch on the running loop without waiting for it."""
        task = asyncio.get_running_loop().create_task(self.dispatch(change))
        self._background.add(task)
        _pending_dispatches.add(task)
        task.add_done_callback(self._background.discard)
        task.add_done_callback(_pending_dispatches.discard)
        return task

    async def _run_hook(self, hook: SideEffectHook, change: StatusChange) -> str:
        try:
            await asyncio.wait_for(hook.run(change), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(
                "side_effect_failed",
                hook=hook.name,
                error=f"timed out after {self.timeout_seconds}s",
                **change.log_context(),
            )
            return HOOK_FAILED
        except Exception as e:
            logger.error(
                "side_effect_failed",
                hook=hook.name,
                error=str(e),
                error_class=type(e).__name__,
                exc_info=True,
                **change.log_context(),
            )
            return HOOK_FAILED
        return HOOK_OK


async def drain_background_dispatches(timeout_seconds: float) -> int:
    """Wait for in-flight background dispatches before shutdown.

    Dispatches still running after ``timeout_seconds`` are cancelled and
    logged. Returns how many were abandoned.
    """
    tasks = [task for task in _pending_dispatches if not task.done()]
    if not tasks:
        return 0

    logger.info("side_effects_draining", count=len(tasks))
    _, pending = await asyncio.wait(tasks, timeout=timeout_seconds)
    for task in pending:
        task.cancel()
    if pending:
        logger.error("side_effects_abandoned", count=len(pending))
    return len(pending)


def default_hooks(session_factory: SessionFactory = get_db_session) -> list[SideEffectHook]:
    """The standard hook set, in recording order."""
    return [
        OpsEventHook(session_factory),
        AuditLogHook(session_factory),
        ParticipantNotificationHook(session_factory),
    ]
