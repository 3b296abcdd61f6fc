"""Render reminder text for the email and push channels."""
from __future__ import annotations

import html
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from app.core.reminders.window import as_utc

SCHEDULE_PATH = "/dashboard/schedule"


@dataclass(frozen=True)
class ReminderMessage:
    """Channel-independent reminder content."""

    event_id: str
    subject: str
    text: str
    html: str
    url: str

    def push_payload(self) -> bytes:
        return json.dumps(
            {
                "title": self.subject,
                "body": self.text,
                "url": SCHEDULE_PATH,
                "tag": f"event-{self.event_id}",
            },
            ensure_ascii=False,
        ).encode("utf-8")


def lead_time_label(minutes: int) -> str:
    """Human label for a lead time: ``5 minutes``, ``1 hour``, ``1h 30m``."""

    if minutes < 60:
        return f"{minutes} minute{'' if minutes == 1 else 's'}"
    hours, rest = divmod(minutes, 60)
    if rest == 0:
        return f"{hours} hour{'' if hours == 1 else 's'}"
    return f"{hours}h {rest}m"


def _local(start_time: datetime, timezone_name: str) -> datetime:
    return as_utc(start_time).astimezone(ZoneInfo(timezone_name))


def render_reminder(
    *,
    event_id: str,
    title: str,
    start_time: datetime,
    minutes_before: int,
    app_url: str,
    course_code: Optional[str] = None,
    location: Optional[str] = None,
    timezone_name: str = "UTC",
) -> ReminderMessage:
    local_start = _local(start_time, timezone_name)
    time_str = local_start.strftime("%I:%M %p").lstrip("0")
    date_str = local_start.strftime("%A, %B %d").replace(" 0", " ")

    subject = f"⏰ {title} starts in {lead_time_label(minutes_before)}"
    course = f" ({course_code})" if course_code else ""
    lines = [f'Your event "{title}"{course} starts at {time_str} on {date_str}.']
    if location:
        lines.append(f"Location: {location}")
    text = "\n".join(lines)

    url = f"{app_url.rstrip('/')}{SCHEDULE_PATH}"
    body_html = html.escape(text).replace("\n", "<br>\n")
    html_content = f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333;">
<div style="max-width: 520px; margin: auto; padding: 32px 24px; border: 1px solid #e5e7eb; border-radius: 12px;">
<h2 style="font-size: 18px; color: #111; margin: 0 0 12px;">{html.escape(subject)}</h2>
<p style="color: #555; margin: 0 0 20px;">{body_html}</p>
<a href="{html.escape(url, quote=True)}" style="display: inline-block; background: #111; color: #fff; padding: 10px 20px; border-radius: 8px; text-decoration: none; font-size: 13px;">View Schedule</a>
<p style="color: #aaa; font-size: 11px; margin-top: 24px;">You are receiving this because you enabled email reminders.</p>
</div>
</body>
</html>"""

    return ReminderMessage(
        event_id=event_id,
        subject=subject,
        text=text,
        html=html_content,
        url=url,
    )
