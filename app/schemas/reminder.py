"""Pydantic models for reminder preferences and dispatch results."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

MAX_MINUTES_BEFORE = 7 * 24 * 60


class ReminderPreferencesRead(BaseModel):
    """A user's reminder defaults."""

    email_enabled: bool
    web_push_enabled: bool
    email_override: Optional[str] = None
    default_minutes_before: int

    model_config = ConfigDict(from_attributes=True)


class ReminderPreferencesUpdate(BaseModel):
    """Partial update of reminder defaults."""

    email_enabled: Optional[bool] = None
    web_push_enabled: Optional[bool] = None
    email_override: Optional[EmailStr] = None
    default_minutes_before: Optional[int] = Field(default=None, ge=0, le=MAX_MINUTES_BEFORE)


class EventReminderOverrideUpsert(BaseModel):
    """Per-event override; null channel flags inherit the defaults."""

    minutes_before: int = Field(ge=0, le=MAX_MINUTES_BEFORE)
    email_enabled: Optional[bool] = None
    web_push_enabled: Optional[bool] = None


class EventReminderOverrideRead(EventReminderOverrideUpsert):
    event_id: uuid.UUID

    model_config = ConfigDict(from_attributes=True)


class UpcomingEventRead(BaseModel):
    """An upcoming event with the lead time its reminder will use."""

    id: uuid.UUID
    title: str
    start_time: datetime
    end_time: datetime
    location: Optional[str] = None
    course_code: Optional[str] = None
    reminder_minutes_before: Optional[int] = None
    effective_minutes_before: int


class DispatchSummaryRead(BaseModel):
    """Aggregate counts of one scheduler invocation."""

    ok: bool = True
    sent: int
    failed: int
    skipped: int
    retired: int
    errors: int
