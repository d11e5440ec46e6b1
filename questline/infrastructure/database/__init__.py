"""Database models and async session management."""

from questline.infrastructure.database.models import (
    AdminAuditLog,
    Base,
    Notification,
    OpsEvent,
    QuestInstance,
    QuestSignup,
)
from questline.infrastructure.database.session import (
    get_db,
    get_db_session,
    get_engine,
    get_session_factory,
)

__all__ = [
    "AdminAuditLog",
    "Base",
    "Notification",
    "OpsEvent",
    "QuestInstance",
    "QuestSignup",
    "get_db",
    "get_db_session",
    "get_engine",
    "get_session_factory",
]
