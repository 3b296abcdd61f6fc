"""reminder engine schema

Revision ID: 0001_reminder_engine
Revises:
Create Date: 2026-02-14 09:00:00.000000

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0001_reminder_engine"
down_revision = None
branch_labels = None
depends_on = None


def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "courses",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=255)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    )
    op.create_index("ix_courses_user_id", "courses", ["user_id"])

    op.create_table(
        "schedule_events",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("course_id", _uuid(), sa.ForeignKey("courses.id", ondelete="SET NULL")),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("event_type", sa.String(length=50)),
        sa.Column("location", sa.String(length=255)),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    )
    op.create_index("ix_schedule_events_user_id", "schedule_events", ["user_id"])
    op.create_index("ix_schedule_events_start_time", "schedule_events", ["start_time"])

    op.create_table(
        "reminder_preferences",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("email_enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("web_push_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("email_override", sa.String(length=255)),
        sa.Column("default_minutes_before", sa.Integer(), nullable=False, server_default="30"),
        *_timestamps(),
    )
    op.create_index("ix_reminder_preferences_user_id", "reminder_preferences", ["user_id"], unique=True)

    op.create_table(
        "event_reminder_overrides",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "event_id", _uuid(), sa.ForeignKey("schedule_events.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("minutes_before", sa.Integer(), nullable=False),
        sa.Column("email_enabled", sa.Boolean()),
        sa.Column("web_push_enabled", sa.Boolean()),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "event_id", name="uq_event_reminder_override"),
    )
    op.create_index("ix_event_reminder_overrides_user_id", "event_reminder_overrides", ["user_id"])
    op.create_index("ix_event_reminder_overrides_event_id", "event_reminder_overrides", ["event_id"])

    op.create_table(
        "push_subscriptions",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("endpoint", sa.Text(), nullable=False),
        sa.Column("p256dh", sa.Text(), nullable=False),
        sa.Column("auth", sa.Text(), nullable=False),
        sa.Column("user_agent", sa.String(length=255)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("user_id", "endpoint", name="uq_push_subscription_endpoint"),
    )
    op.create_index("ix_push_subscriptions_user_id", "push_subscriptions", ["user_id"])

    op.create_table(
        "reminder_notifications_log",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "event_id", _uuid(), sa.ForeignKey("schedule_events.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("channel", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("error_msg", sa.Text()),
        *_timestamps(),
    )
    op.create_index("ix_reminder_notifications_log_user_id", "reminder_notifications_log", ["user_id"])
    op.create_index("ix_reminder_notifications_log_event_id", "reminder_notifications_log", ["event_id"])
    op.create_index(
        "uq_reminder_log_delivered",
        "reminder_notifications_log",
        ["event_id", "channel"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'sent')"),
    )


def downgrade() -> None:
    op.drop_index("uq_reminder_log_delivered", table_name="reminder_notifications_log")
    op.drop_table("reminder_notifications_log")
    op.drop_table("push_subscriptions")
    op.drop_table("event_reminder_overrides")
    op.drop_table("reminder_preferences")
    op.drop_table("schedule_events")
    op.drop_table("courses")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
