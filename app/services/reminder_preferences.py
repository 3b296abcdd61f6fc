"""Reminder preference storage and per-event resolution."""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.reminders import (
    ChannelDefaults,
    ChannelOverride,
    EffectivePreference,
    merge_preferences,
)
from app.db.models.reminder import (
    DEFAULT_MINUTES_BEFORE,
    EventReminderOverride,
    ReminderPreferences,
)
from app.db.models.schedule_event import ScheduleEvent
from app.schemas.reminder import EventReminderOverrideUpsert, ReminderPreferencesUpdate
from app.utils.exceptions import PreferenceError


def to_defaults(prefs: ReminderPreferences) -> ChannelDefaults:
    return ChannelDefaults(
        minutes_before=prefs.default_minutes_before,
        email_enabled=bool(prefs.email_enabled),
        web_push_enabled=bool(prefs.web_push_enabled),
        email_override=prefs.email_override or None,
    )


def to_override(row: EventReminderOverride | None) -> ChannelOverride | None:
    if row is None:
        return None
    return ChannelOverride(
        minutes_before=row.minutes_before,
        email_enabled=row.email_enabled,
        web_push_enabled=row.web_push_enabled,
    )


class ReminderPreferenceService:
    """Reads and writes reminder preferences and overrides."""

    def __init__(self, db: Session):
        self.db = db

    def find(self, user_id: uuid.UUID) -> ReminderPreferences | None:
        stmt = select(ReminderPreferences).where(ReminderPreferences.user_id == user_id)
        return self.db.scalars(stmt).first()

    def get_or_create(self, user_id: uuid.UUID) -> ReminderPreferences:
        """Return the user's preferences, creating the default row on first read."""

        prefs = self.find(user_id)
        if prefs is not None:
            return prefs

        prefs = ReminderPreferences(
            user_id=user_id,
            email_enabled=True,
            web_push_enabled=False,
            default_minutes_before=DEFAULT_MINUTES_BEFORE,
        )
        self.db.add(prefs)
        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent request created the row first.
            self.db.rollback()
            existing = self.find(user_id)
            if existing is None:
                raise
            return existing
        return prefs

    def update(self, user_id: uuid.UUID, payload: ReminderPreferencesUpdate) -> ReminderPreferences:
        prefs = self.get_or_create(user_id)
        for field, value in payload.model_dump(exclude_unset=True).items():
            if field in {"email_enabled", "web_push_enabled", "default_minutes_before"} and value is None:
                continue
            setattr(prefs, field, value)
        self.db.add(prefs)
        self.db.commit()
        self.db.refresh(prefs)
        return prefs

    def get_override(self, user_id: uuid.UUID, event_id: uuid.UUID) -> EventReminderOverride | None:
        stmt = select(EventReminderOverride).where(
            EventReminderOverride.user_id == user_id,
            EventReminderOverride.event_id == event_id,
        )
        return self.db.scalars(stmt).first()

    def upsert_override(
        self, user_id: uuid.UUID, event_id: uuid.UUID, payload: EventReminderOverrideUpsert
    ) -> EventReminderOverride:
        event = self.db.get(ScheduleEvent, event_id)
        if event is None or event.user_id != user_id:
            raise PreferenceError("Event not found", {"event_id": str(event_id)})

        row = self.get_override(user_id, event_id)
        if row is None:
            row = EventReminderOverride(user_id=user_id, event_id=event_id)
        row.minutes_before = payload.minutes_before
        row.email_enabled = payload.email_enabled
        row.web_push_enabled = payload.web_push_enabled
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def delete_override(self, user_id: uuid.UUID, event_id: uuid.UUID) -> bool:
        row = self.get_override(user_id, event_id)
        if row is None:
            return False
        self.db.delete(row)
        self.db.commit()
        return True

    def resolve(self, user_id: uuid.UUID, event_id: uuid.UUID) -> EffectivePreference:
        """Effective lead time and channels for one event."""

        prefs = self.get_or_create(user_id)
        override = self.get_override(user_id, event_id)
        return merge_preferences(to_defaults(prefs), to_override(override))

    def max_lead_minutes(self) -> int:
        """Largest lead time stored anywhere, used to size the event lookahead."""

        defaults = self.db.scalar(select(func.max(ReminderPreferences.default_minutes_before)))
        overrides = self.db.scalar(select(func.max(EventReminderOverride.minutes_before)))
        return max(defaults or 0, overrides or 0, DEFAULT_MINUTES_BEFORE)

    def upcoming(
        self, user_id: uuid.UUID, now: Optional[datetime] = None, days: int = 7
    ) -> list[tuple[ScheduleEvent, Optional[int], int]]:
        """Events in the next ``days`` days with their override and effective lead times."""

        now = now or datetime.now(timezone.utc)
        prefs = self.get_or_create(user_id)
        events = self.db.scalars(
            select(ScheduleEvent)
            .where(ScheduleEvent.user_id == user_id)
            .where(ScheduleEvent.start_time >= now)
            .where(ScheduleEvent.start_time <= now + timedelta(days=days))
            .order_by(ScheduleEvent.start_time)
        ).all()
        overrides = {
            row.event_id: row.minutes_before
            for row in self.db.scalars(
                select(EventReminderOverride).where(EventReminderOverride.user_id == user_id)
            )
        }
        result = []
        for event in events:
            override_minutes = overrides.get(event.id)
            effective = (
                override_minutes if override_minutes is not None else prefs.default_minutes_before
            )
            result.append((event, override_minutes, effective))
        return result
