"""Custom exception classes and error handling utilities."""
from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from loguru import logger


class ReminderEngineException(Exception):
    """Base exception for the application."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(ReminderEngineException):
    """A delivery channel is missing the settings it needs."""
    pass


class AlreadyDeliveredError(ReminderEngineException):
    """The ledger already holds a successful or in-flight delivery."""
    pass


class AuthenticationError(ReminderEngineException):
    """Authentication and authorization errors."""
    pass


class PreferenceError(ReminderEngineException):
    """Reminder preference or override errors."""
    pass


def handle_authentication_error(error: AuthenticationError) -> HTTPException:
    """Handle authentication errors."""
    logger.warning(f"Authentication error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=error.message,
        headers={"WWW-Authenticate": "Bearer"},
    )


def handle_preference_error(error: PreferenceError) -> HTTPException:
    """Handle preference lookup errors."""
    logger.info(f"Preference error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=error.message
    )
