"""API endpoint modules for v1."""

from app.api.v1.endpoints import notifications, reminders

__all__ = ["notifications", "reminders"]
