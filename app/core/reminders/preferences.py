"""Merge a user's reminder defaults with an optional per-event override."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ChannelDefaults:
    """A user's stored reminder defaults."""

    minutes_before: int
    email_enabled: bool
    web_push_enabled: bool
    email_override: Optional[str] = None


@dataclass(frozen=True)
class ChannelOverride:
    """Per-event override. ``None`` on a channel flag means inherit."""

    minutes_before: int
    email_enabled: Optional[bool] = None
    web_push_enabled: Optional[bool] = None


@dataclass(frozen=True)
class EffectivePreference:
    """Lead time and channel set that apply to one event."""

    minutes_before: int
    email_enabled: bool
    web_push_enabled: bool
    email_override: Optional[str] = None

    @property
    def channels(self) -> tuple[str, ...]:
        selected = []
        if self.email_enabled:
            selected.append("email")
        if self.web_push_enabled:
            selected.append("web_push")
        return tuple(selected)

    @property
    def has_channels(self) -> bool:
        return self.email_enabled or self.web_push_enabled


def _inherit(value: Optional[bool], default: bool) -> bool:
    return default if value is None else value


def merge_preferences(
    defaults: ChannelDefaults, override: Optional[ChannelOverride] = None
) -> EffectivePreference:
    """Return the effective preference for one event.

    The override's lead time always wins when an override exists; each channel
    flag falls back to the default only when the override leaves it null.
    """

    if override is None:
        return EffectivePreference(
            minutes_before=defaults.minutes_before,
            email_enabled=defaults.email_enabled,
            web_push_enabled=defaults.web_push_enabled,
            email_override=defaults.email_override,
        )

    return EffectivePreference(
        minutes_before=override.minutes_before,
        email_enabled=_inherit(override.email_enabled, defaults.email_enabled),
        web_push_enabled=_inherit(override.web_push_enabled, defaults.web_push_enabled),
        email_override=defaults.email_override,
    )
