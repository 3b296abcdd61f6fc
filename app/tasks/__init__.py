"""Celery tasks package."""

from app.tasks import reminders

__all__ = ["reminders"]
