"""Database models package."""
from app.db.models.user import User
from app.db.models.course import Course
from app.db.models.schedule_event import ScheduleEvent
from app.db.models.reminder import (
    EventReminderOverride,
    ReminderNotificationLog,
    ReminderPreferences,
)
from app.db.models.push_subscription import PushSubscription

__all__ = [
    "User",
    "Course",
    "ScheduleEvent",
    "ReminderPreferences",
    "EventReminderOverride",
    "ReminderNotificationLog",
    "PushSubscription",
]
