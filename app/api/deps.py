"""Shared API dependencies."""
from __future__ import annotations

import uuid
from typing import Optional

import httpx
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.config import ReminderConfig, get_reminder_config
from app.core.security import InvalidTokenError, decode_token, verify_bearer_secret
from app.db.models.user import User
from app.db.session import get_db
from app.schemas import TokenPayload
from app.utils.exceptions import AuthenticationError, handle_authentication_error

# Access tokens are issued by the main application; this service only verifies them.
bearer_scheme = HTTPBearer(auto_error=False)


def get_config() -> ReminderConfig:
    return get_reminder_config()


def get_http_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Outbound transport for mail and push calls; ``None`` uses the network."""

    return None


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the authenticated user from the Authorization header."""

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    try:
        payload = decode_token(credentials.credentials)
        if payload.get("type") != "access":
            raise InvalidTokenError("Token must be an access token")
        token_data = TokenPayload.model_validate(payload)
    except (InvalidTokenError, ValidationError, ValueError, KeyError) as exc:
        raise credentials_exception from exc

    user_id = uuid.UUID(str(token_data.sub))
    user = db.get(User, user_id)
    if not user or not user.is_active:
        raise credentials_exception
    return user


def verify_cron_secret(
    authorization: Optional[str] = Header(default=None),
    config: ReminderConfig = Depends(get_config),
) -> None:
    """Reject scheduler calls that do not carry the shared secret."""

    if not verify_bearer_secret(authorization, config.cron_secret):
        raise handle_authentication_error(AuthenticationError("Unauthorized"))
