"""Lifecycle Service: applies instance status transitions.

Each transition is: load the instance, validate the edge and reason,
compute the field delta (pause bookkeeping included), write it with a
compare-and-swap on the current status, commit, then hand the committed
change to the side-effect dispatcher. Validation and persistence failures
abort before any side effect; side-effect failures never undo a commit.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from questline.infrastructure.database.models import QuestInstance
from questline.instances.base import StatusChange, TransitionResult
from questline.instances.config import get_instance_settings
from questline.instances.exceptions import (
    ConcurrentModificationError,
    InstanceLifecycleError,
    InstanceNotFoundError,
    PersistenceError,
)
from questline.instances.repository import InstanceRepository
from questline.instances.side_effects import SideEffectDispatcher
from questline.instances.state_machine import (
    InstanceStatus,
    allowed_transitions,
    coerce_status,
    requires_reason,
    validate_transition,
)
from questline.shared.utils.logging import get_logger

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_update_fields(
    current: InstanceStatus,
    target: InstanceStatus,
    reason: str | None,
    now: datetime,
) -> dict[str, Any]:
    """Column values to write for ``current`` → ``target``."""
    fields: dict[str, Any] = {"status": target.value}
    if target == InstanceStatus.PAUSED:
        fields["paused_at"] = now
        fields["paused_reason"] = reason
        fields["previous_status"] = current.value
    elif current == InstanceStatus.PAUSED:
        fields["paused_at"] = None
        fields["paused_reason"] = None
        fields["previous_status"] = None
    return fields


class LifecycleService:
    """Orchestrates instance status transitions.

    The service owns the transaction for the authoritative write: it
    commits before side effects run, so callers must not hold other
    pending changes on the same session.
    """

    def __init__(
        self,
        session: AsyncSession,
        instance_repo: InstanceRepository | None = None,
        dispatcher: SideEffectDispatcher | None = None,
    ):
        self.session = session
        self.settings = get_instance_settings()
        self.instance_repo = instance_repo or InstanceRepository(session)
        self.dispatcher = dispatcher or SideEffectDispatcher()

    # ==========================================
    # Core operation
    # ==========================================

    async def transition(
        self,
        instance_id: str | UUID,
        target_status: InstanceStatus | str,
        reason: str | None = None,
        notify_users: bool = False,
        actor_id: str | UUID | None = None,
    ) -> TransitionResult:
        """Move an instance to ``target_status``.

        Never raises lifecycle errors; they come back on the result.
        """
        try:
            change = await self._apply(instance_id, target_status, reason, notify_users, actor_id)
        except InstanceLifecycleError as e:
            logger.warning(
                "instance_transition_rejected",
                instance_id=str(instance_id),
                target_status=str(getattr(target_status, "value", target_status)),
                error_type=e.error_type,
                error=e.message,
            )
            return TransitionResult.failed(e)

        logger.info(
            "instance_transitioned",
            instance_id=str(instance_id),
            from_status=change.from_status.value,
            to_status=change.to_status.value,
            actor_id=str(actor_id) if actor_id else None,
        )

        if self.settings.dispatch_side_effects_in_background:
            self.dispatcher.dispatch_in_background(change)
        else:
            await self.dispatcher.dispatch(change)

        return TransitionResult.succeeded(change.to_status, previous_status=change.from_status)

    async def _apply(
        self,
        instance_id: str | UUID,
        target_status: InstanceStatus | str,
        reason: str | None,
        notify_users: bool,
        actor_id: str | UUID | None,
    ) -> StatusChange:
        instance = await self._load(instance_id)
        current = coerce_status(instance.status)

        validate_transition(instance.status, target_status, reason)
        target = InstanceStatus(target_status)
        reason = (reason.strip() or None) if reason else None

        now = _utc_now()
        fields = build_update_fields(current, target, reason, now)
        await self._persist(instance.id, fields, expected_status=current)

        return StatusChange(
            instance_id=instance.id,
            instance_title=instance.title,
            from_status=current,
            to_status=target,
            reason=reason,
            notify_users=notify_users,
            actor_id=actor_id,
            occurred_at=now,
        )

    async def _load(self, instance_id: str | UUID) -> QuestInstance:
        # A malformed id can never resolve; keep it away from the driver
        try:
            instance_uuid = instance_id if isinstance(instance_id, UUID) else UUID(str(instance_id))
        except ValueError as e:
            raise InstanceNotFoundError(str(instance_id)) from e

        try:
            instance = await asyncio.wait_for(
                self.instance_repo.get_by_id(instance_uuid),
                timeout=self.settings.persistence_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise PersistenceError(str(instance_id), "timed out loading instance") from e
        except SQLAlchemyError as e:
            raise PersistenceError(str(instance_id), str(e)) from e

        if instance is None:
            raise InstanceNotFoundError(str(instance_id))
        return instance

    async def _persist(
        self,
        instance_id: str | UUID,
        fields: dict[str, Any],
        expected_status: InstanceStatus,
    ) -> None:
        try:
            updated = await asyncio.wait_for(
                self._write(instance_id, fields, expected_status),
                timeout=self.settings.persistence_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            await self._rollback(instance_id)
            raise PersistenceError(str(instance_id), "timed out writing instance") from e
        except SQLAlchemyError as e:
            await self._rollback(instance_id)
            raise PersistenceError(str(instance_id), str(e)) from e

        if not updated:
            await self._rollback(instance_id)
            raise ConcurrentModificationError(str(instance_id), expected_status.value)

    async def _write(
        self,
        instance_id: str | UUID,
        fields: dict[str, Any],
        expected_status: InstanceStatus,
    ) -> bool:
        updated = await self.instance_repo.update_fields(
            instance_id, fields, expected_status=expected_status.value
        )
        if updated:
            await self.session.commit()
        return updated

    async def _rollback(self, instance_id: str | UUID) -> None:
        try:
            await self.session.rollback()
        except SQLAlchemyError as e:
            logger.error("instance_rollback_failed", instance_id=str(instance_id), error=str(e))

    # ==========================================
    # Convenience operations
    # ==========================================

    async def pause(
        self,
        instance_id: str | UUID,
        reason: str,
        actor_id: str | UUID | None = None,
    ) -> TransitionResult:
        """Pause an instance and notify its participants."""
        return await self.transition(
            instance_id, InstanceStatus.PAUSED, reason=reason, notify_users=True, actor_id=actor_id
        )

    async def resume(
        self,
        instance_id: str | UUID,
        actor_id: str | UUID | None = None,
    ) -> TransitionResult:
        """Return a paused instance to the status it was paused from.

        Rows paused without a recorded previous status resume to
        ``recruiting``. The current status is not checked here: a
        ``locked`` or ``draft`` instance has no previous status either, so
        resuming it moves it to ``recruiting`` through the ordinary
        transition rules.
        """
        try:
            instance = await self._load(instance_id)
        except InstanceLifecycleError as e:
            return TransitionResult.failed(e)

        resume_to = coerce_status(instance.previous_status)
        if resume_to is None:
            logger.info(
                "instance_resume_defaulted",
                instance_id=str(instance_id),
                previous_status=instance.previous_status,
                resume_to=InstanceStatus.RECRUITING.value,
            )
            resume_to = InstanceStatus.RECRUITING

        return await self.transition(instance_id, resume_to, actor_id=actor_id)

    async def cancel(
        self,
        instance_id: str | UUID,
        reason: str,
        actor_id: str | UUID | None = None,
    ) -> TransitionResult:
        """Cancel an instance and notify its participants."""
        return await self.transition(
            instance_id, InstanceStatus.CANCELLED, reason=reason, notify_users=True, actor_id=actor_id
        )

    async def archive(
        self,
        instance_id: str | UUID,
        actor_id: str | UUID | None = None,
    ) -> TransitionResult:
        """Archive a completed or cancelled instance."""
        return await self.transition(instance_id, InstanceStatus.ARCHIVED, actor_id=actor_id)

    # ==========================================
    # Read helpers
    # ==========================================

    async def get_available_transitions(self, instance_id: str | UUID) -> dict[str, Any]:
        """Current status and legal next steps, for rendering admin controls.

        Raises InstanceNotFoundError or PersistenceError.
        """
        instance = await self._load(instance_id)
        targets = sorted(allowed_transitions(instance.status), key=lambda s: s.value)
        return {
            "instance_id": str(instance.id),
            "status": instance.status,
            "allowed_transitions": [
                {"status": s.value, "requires_reason": requires_reason(s)}
                for s in targets
            ],
        }

    # ==========================================
    # Maintenance
    # ==========================================

    async def archive_stale_completed(
        self,
        older_than: timedelta | None = None,
        limit: int | None = None,
    ) -> list[TransitionResult]:
        """Archive completed instances untouched for ``older_than``."""
        if older_than is None:
            older_than = timedelta(days=self.settings.auto_archive_after_days)
        if limit is None:
            limit = self.settings.auto_archive_batch_size

        cutoff = _utc_now() - older_than
        instance_ids = await self.instance_repo.list_completed_before(cutoff, limit=limit)

        results = []
        for instance_id in instance_ids:
            results.append(await self.archive(instance_id))

        archived = sum(1 for r in results if r.success)
        logger.info(
            "stale_instances_archived",
            candidates=len(instance_ids),
            archived=archived,
            failed=len(results) - archived,
        )
        return results
