"""Pydantic schemas package."""

from app.schemas.auth import TokenPayload
from app.schemas.push import (
    PushSubscriptionCreate,
    PushSubscriptionDelete,
    SubscriptionKeys,
    VapidPublicKeyRead,
)
from app.schemas.reminder import (
    DispatchSummaryRead,
    EventReminderOverrideRead,
    EventReminderOverrideUpsert,
    ReminderPreferencesRead,
    ReminderPreferencesUpdate,
    UpcomingEventRead,
)

__all__ = [
    "TokenPayload",
    "PushSubscriptionCreate",
    "PushSubscriptionDelete",
    "SubscriptionKeys",
    "VapidPublicKeyRead",
    "DispatchSummaryRead",
    "EventReminderOverrideRead",
    "EventReminderOverrideUpsert",
    "ReminderPreferencesRead",
    "ReminderPreferencesUpdate",
    "UpcomingEventRead",
]
