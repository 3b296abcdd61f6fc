"""Reminder preference endpoints and the scheduler trigger."""
from __future__ import annotations

import uuid
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api import deps
from app.config import ReminderConfig
from app.db.models.user import User
from app.schemas import (
    DispatchSummaryRead,
    EventReminderOverrideRead,
    EventReminderOverrideUpsert,
    ReminderPreferencesRead,
    ReminderPreferencesUpdate,
    UpcomingEventRead,
)
from app.services.reminder_dispatcher import ReminderDispatcher
from app.services.reminder_preferences import ReminderPreferenceService
from app.utils.exceptions import PreferenceError, handle_preference_error

router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.post(
    "/dispatch",
    response_model=DispatchSummaryRead,
    dependencies=[Depends(deps.verify_cron_secret)],
)
def dispatch_reminders(
    db: Session = Depends(deps.get_db),
    config: ReminderConfig = Depends(deps.get_config),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(deps.get_http_transport),
) -> DispatchSummaryRead:
    """Run one reminder pass. Called by the external scheduler every minute."""

    summary = ReminderDispatcher(db, config, transport=transport).run()
    return DispatchSummaryRead(**summary.as_dict())


@router.get("/preferences", response_model=ReminderPreferencesRead)
def read_preferences(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> ReminderPreferencesRead:
    """Return reminder defaults, creating them on first access."""

    prefs = ReminderPreferenceService(db).get_or_create(current_user.id)
    return ReminderPreferencesRead.model_validate(prefs)


@router.put("/preferences", response_model=ReminderPreferencesRead)
def update_preferences(
    payload: ReminderPreferencesUpdate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> ReminderPreferencesRead:
    prefs = ReminderPreferenceService(db).update(current_user.id, payload)
    return ReminderPreferencesRead.model_validate(prefs)


@router.get("/upcoming", response_model=list[UpcomingEventRead])
def list_upcoming(
    days: int = Query(7, ge=1, le=31),
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> list[UpcomingEventRead]:
    """Upcoming events with the lead time their reminder will use."""

    rows = ReminderPreferenceService(db).upcoming(current_user.id, days=days)
    return [
        UpcomingEventRead(
            id=event.id,
            title=event.title,
            start_time=event.start_time,
            end_time=event.end_time,
            location=event.location,
            course_code=event.course.code if event.course else None,
            reminder_minutes_before=override_minutes,
            effective_minutes_before=effective,
        )
        for event, override_minutes, effective in rows
    ]


@router.get("/overrides/{event_id}", response_model=EventReminderOverrideRead)
def read_override(
    event_id: uuid.UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> EventReminderOverrideRead:
    row = ReminderPreferenceService(db).get_override(current_user.id, event_id)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No override for this event")
    return EventReminderOverrideRead.model_validate(row)


@router.put("/overrides/{event_id}", response_model=EventReminderOverrideRead)
def upsert_override(
    event_id: uuid.UUID,
    payload: EventReminderOverrideUpsert,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> EventReminderOverrideRead:
    try:
        row = ReminderPreferenceService(db).upsert_override(current_user.id, event_id, payload)
    except PreferenceError as exc:
        raise handle_preference_error(exc) from exc
    return EventReminderOverrideRead.model_validate(row)


@router.delete("/overrides/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_override(
    event_id: uuid.UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> None:
    ReminderPreferenceService(db).delete_override(current_user.id, event_id)
