"""SQLAlchemy ORM models for the Questline database."""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    type_annotation_map = {
        dict[str, Any]: JSONB,
    }


# ===========================================
# QUEST INSTANCE TABLES
# ===========================================


class QuestInstance(Base):
    """A scheduled run of a quest that participants sign up for."""

    __tablename__ = "quest_instances"

    id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    instance_slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")

    # Pause bookkeeping, only populated while status == 'paused'
    paused_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    paused_reason: Mapped[str | None] = mapped_column(Text)
    previous_status: Mapped[str | None] = mapped_column(String(20))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, onupdate=_utc_now)

    signups: Mapped[list["QuestSignup"]] = relationship(back_populates="instance", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'recruiting', 'locked', 'live', 'paused', "
            "'completed', 'cancelled', 'archived')",
            name="valid_instance_status",
        ),
        Index("idx_quest_instances_status", "status"),
        Index("idx_quest_instances_updated", "updated_at"),
    )


class QuestSignup(Base):
    """A user's registration for a quest instance."""

    __tablename__ = "quest_signups"

    id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    instance_id: Mapped[UUID] = mapped_column(ForeignKey("quest_instances.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)

    instance: Mapped["QuestInstance"] = relationship(back_populates="signups")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'standby', 'dropped', 'no_show', 'completed')",
            name="valid_signup_status",
        ),
        UniqueConstraint("instance_id", "user_id", name="uq_signup_instance_user"),
        Index("idx_quest_signups_instance_status", "instance_id", "status"),
    )


# ===========================================
# OPERATIONS & AUDIT TABLES
# ===========================================


class OpsEvent(Base):
    """Best-effort operational event, used for visibility and replay."""

    __tablename__ = "ops_events"

    id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    instance_id: Mapped[UUID | None] = mapped_column(UUID(as_uuid=True))
    actor_id: Mapped[UUID | None] = mapped_column(UUID(as_uuid=True))
    before_state: Mapped[dict[str, Any] | None] = mapped_column(JSONB)
    after_state: Mapped[dict[str, Any] | None] = mapped_column(JSONB)
    metadata_: Mapped[dict[str, Any]] = mapped_column("metadata", JSONB, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)

    __table_args__ = (
        Index("idx_ops_events_instance", "instance_id"),
        Index("idx_ops_events_type_created", "event_type", "created_at"),
    )


class AdminAuditLog(Base):
    """Durable compliance record of sensitive administrative actions."""

    __tablename__ = "admin_audit_log"

    id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    admin_id: Mapped[UUID | None] = mapped_column(UUID(as_uuid=True))
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    target_table: Mapped[str] = mapped_column(String(100), nullable=False)
    target_id: Mapped[UUID | None] = mapped_column(UUID(as_uuid=True))
    old_values: Mapped[dict[str, Any] | None] = mapped_column(JSONB)
    new_values: Mapped[dict[str, Any] | None] = mapped_column(JSONB)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)

    __table_args__ = (
        Index("idx_admin_audit_log_target", "target_table", "target_id"),
        Index("idx_admin_audit_log_action", "action"),
        Index("idx_admin_audit_log_created", "created_at"),
    )


# ===========================================
# NOTIFICATION TABLES
# ===========================================


class Notification(Base):
    """In-app notification addressed to a user."""

    __tablename__ = "notifications"

    id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    notification_type: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="normal")
    title: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str | None] = mapped_column(Text)
    data: Mapped[dict[str, Any] | None] = mapped_column(JSONB)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)

    __table_args__ = (
        Index("idx_notifications_user", "user_id"),
        Index("idx_notifications_unread", "user_id", postgresql_where="read_at IS NULL"),
        Index("idx_notifications_created", "created_at", postgresql_using="btree"),
    )
