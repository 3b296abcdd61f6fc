"""Firing-window arithmetic for periodic reminder checks."""
from __future__ import annotations

import datetime as dt

DEFAULT_FIRING_WINDOW = dt.timedelta(minutes=1)

UTC = dt.timezone.utc


def as_utc(value: dt.datetime) -> dt.datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def reminder_instant(start_time: dt.datetime, minutes_before: int) -> dt.datetime:
    """Instant at which the reminder for an event starting at ``start_time`` fires."""
    return as_utc(start_time) - dt.timedelta(minutes=minutes_before)


def is_due(
    start_time: dt.datetime,
    minutes_before: int,
    now: dt.datetime,
    window: dt.timedelta = DEFAULT_FIRING_WINDOW,
) -> bool:
    """True when ``now`` lies within half a window of the reminder instant.

    Windows that have already elapsed are never matched again; there is no
    catch-up delivery.
    """
    offset = abs(as_utc(now) - reminder_instant(start_time, minutes_before))
    return offset <= window / 2


def candidate_range(
    now: dt.datetime, horizon: dt.timedelta, window: dt.timedelta = DEFAULT_FIRING_WINDOW
) -> tuple[dt.datetime, dt.datetime]:
    """Start-time bounds of events that could possibly be due at ``now``.

    ``horizon`` must cover the largest lead time in use.
    """
    now = as_utc(now)
    return now - window / 2, now + horizon + window / 2
