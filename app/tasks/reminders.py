"""Celery tasks for reminder delivery."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from loguru import logger

from app.celery_app import celery_app
from app.config import get_reminder_config
from app.db.session import SessionLocal
from app.services.reminder_dispatcher import ReminderDispatcher


@celery_app.task(name="app.tasks.reminders.dispatch_due_reminders")
def dispatch_due_reminders(now: Optional[str] = None) -> dict[str, int]:
    """Send every reminder due in the current firing window (periodic task)."""

    db = SessionLocal()
    try:
        instant = datetime.fromisoformat(now) if now else None
        summary = ReminderDispatcher(db, get_reminder_config()).run(now=instant)
        return summary.as_dict()
    except Exception as exc:
        logger.error("Reminder dispatch task failed", error=str(exc))
        raise
    finally:
        db.close()
