"""Reminder preference and delivery ledger models."""
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from app.db.base import Base


DEFAULT_MINUTES_BEFORE = 30

CHANNEL_EMAIL = "email"
CHANNEL_WEB_PUSH = "web_push"

STATUS_PENDING = "pending"
STATUS_SENT = "sent"
STATUS_FAILED = "failed"


class ReminderPreferences(Base):
    """Per-user reminder defaults."""

    __tablename__ = "reminder_preferences"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    email_enabled = Column(Boolean, nullable=False, default=True)
    web_push_enabled = Column(Boolean, nullable=False, default=False)
    email_override = Column(String(255))
    default_minutes_before = Column(Integer, nullable=False, default=DEFAULT_MINUTES_BEFORE)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class EventReminderOverride(Base):
    """Per-event lead time and optional channel flags.

    A null channel flag inherits the user's default.
    """

    __tablename__ = "event_reminder_overrides"
    __table_args__ = (UniqueConstraint("user_id", "event_id", name="uq_event_reminder_override"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_id = Column(
        UUID(as_uuid=True),
        ForeignKey("schedule_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    minutes_before = Column(Integer, nullable=False)
    email_enabled = Column(Boolean, nullable=True)
    web_push_enabled = Column(Boolean, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class ReminderNotificationLog(Base):
    """One row per (event, channel) delivery attempt."""

    __tablename__ = "reminder_notifications_log"
    __table_args__ = (
        # At most one in-flight or successful delivery per event and channel.
        Index(
            "uq_reminder_log_delivered",
            "event_id",
            "channel",
            unique=True,
            postgresql_where=text("status IN ('pending', 'sent')"),
            sqlite_where=text("status IN ('pending', 'sent')"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_id = Column(
        UUID(as_uuid=True),
        ForeignKey("schedule_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    channel = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=STATUS_PENDING)
    error_msg = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
