"""Service layer package."""

from app.services.delivery_ledger import DeliveryLedger
from app.services.email_channel import EmailChannel
from app.services.push_channel import PushChannel
from app.services.push_subscriptions import PushSubscriptionService
from app.services.reminder_dispatcher import DispatchSummary, ReminderDispatcher
from app.services.reminder_preferences import ReminderPreferenceService

__all__ = [
    "DeliveryLedger",
    "DispatchSummary",
    "EmailChannel",
    "PushChannel",
    "PushSubscriptionService",
    "ReminderDispatcher",
    "ReminderPreferenceService",
]
