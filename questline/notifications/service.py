"""Notification service for participant notifications.

Wraps the Notification ORM model with async batch creation. All methods
operate within the caller-provided ``AsyncSession``; the caller is
responsible for committing or rolling back.
"""

from __future__ import annotations

from typing import Any, Iterable
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from questline.infrastructure.database.models import Notification
from questline.shared.utils.logging import get_logger

logger = get_logger(__name__)


def _as_uuid(value: str | UUID) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


def _notification_to_dict(notification: Notification) -> dict[str, Any]:
    """Serialise a Notification row to a plain dictionary."""
    return {
        "id": str(notification.id),
        "user_id": str(notification.user_id),
        "notification_type": notification.notification_type,
        "priority": notification.priority,
        "title": notification.title,
        "body": notification.body,
        "data": notification.data,
        "read_at": notification.read_at.isoformat() if notification.read_at else None,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }


class NotificationService:
    """Service layer for creating notifications."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_batch(
        self,
        user_ids: Iterable[str | UUID],
        notification_type: str,
        title: str,
        body: str | None = None,
        priority: str = "normal",
        data: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Insert one notification per user with shared content.

        Args:
            user_ids: Recipients; duplicates are collapsed.
            notification_type: Category (e.g. ``general``).
            title: Short human-readable title.
            body: Optional longer description.
            priority: One of ``low``, ``normal``, ``high``, ``urgent``.
            data: Optional JSON payload copied onto every row.

        Returns:
            Serialised notification dicts, in recipient order.
        """
        recipients = list(dict.fromkeys(_as_uuid(uid) for uid in user_ids))
        if not recipients:
            return []

        notifications = [
            Notification(
                id=uuid4(),
                user_id=user_id,
                notification_type=notification_type,
                priority=priority,
                title=title,
                body=body,
                data=dict(data) if data else None,
            )
            for user_id in recipients
        ]
        self.session.add_all(notifications)
        await self.session.flush()

        logger.info(
            "notifications_created",
            count=len(notifications),
            notification_type=notification_type,
        )
        return [_notification_to_dict(n) for n in notifications]
