"""Pure reminder scheduling rules: preference merging and window matching."""

from app.core.reminders.preferences import (
    ChannelDefaults,
    ChannelOverride,
    EffectivePreference,
    merge_preferences,
)
from app.core.reminders.window import DEFAULT_FIRING_WINDOW, is_due, reminder_instant

__all__ = [
    "ChannelDefaults",
    "ChannelOverride",
    "EffectivePreference",
    "merge_preferences",
    "DEFAULT_FIRING_WINDOW",
    "is_due",
    "reminder_instant",
]
