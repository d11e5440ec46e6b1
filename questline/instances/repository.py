"""Repository layer for quest instance database operations."""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from questline.infrastructure.database.models import (
    AdminAuditLog,
    OpsEvent,
    QuestInstance,
    QuestSignup,
)
from questline.shared.utils.logging import get_logger

logger = get_logger(__name__)

# Signup statuses whose holders hear about pauses and cancellations
ACTIVE_SIGNUP_STATUSES: tuple[str, ...] = ("pending", "confirmed")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InstanceRepository:
    """Repository for quest instance rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, instance_id: str | UUID) -> QuestInstance | None:
        query = select(QuestInstance).where(QuestInstance.id == instance_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def update_fields(
        self,
        instance_id: str | UUID,
        fields: dict[str, Any],
        expected_status: str | None = None,
    ) -> bool:
        """Apply ``fields`` in a single UPDATE.

        When ``expected_status`` is given the row is only touched if its
        status still equals it. Returns False when no row matched.
        """
        conditions = [QuestInstance.id == instance_id]
        if expected_status is not None:
            conditions.append(QuestInstance.status == expected_status)

        query = (
            update(QuestInstance)
            .where(*conditions)
            .values(**fields, updated_at=_utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(query)
        return result.rowcount == 1

    async def list_completed_before(self, cutoff: datetime, limit: int = 100) -> list[UUID]:
        """Ids of completed instances last updated before ``cutoff``, oldest first."""
        query = (
            select(QuestInstance.id)
            .where(
                QuestInstance.status == "completed",
                QuestInstance.updated_at < cutoff,
            )
            .order_by(QuestInstance.updated_at.asc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())


class SignupRepository:
    """Repository for quest signups."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_active_participants(self, instance_id: str | UUID) -> list[UUID]:
        query = (
            select(QuestSignup.user_id)
            .where(
                QuestSignup.instance_id == instance_id,
                QuestSignup.status.in_(ACTIVE_SIGNUP_STATUSES),
            )
            .distinct()
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())


class OpsEventRepository:
    """Repository for operational events."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(
        self,
        event_type: str,
        instance_id: str | UUID | None = None,
        actor_id: str | UUID | None = None,
        before_state: dict[str, Any] | None = None,
        after_state: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> OpsEvent:
        event = OpsEvent(
            event_type=event_type,
            instance_id=instance_id,
            actor_id=actor_id,
            before_state=before_state,
            after_state=after_state,
            metadata_=metadata or {},
        )
        self.session.add(event)
        await self.session.flush()
        return event


class AuditLogRepository:
    """Repository for the admin audit log."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(
        self,
        action: str,
        target_table: str,
        target_id: str | UUID | None = None,
        admin_id: str | UUID | None = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> AdminAuditLog:
        entry = AdminAuditLog(
            admin_id=admin_id,
            action=action,
            target_table=target_table,
            target_id=target_id,
            old_values=old_values,
            new_values=new_values,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry
