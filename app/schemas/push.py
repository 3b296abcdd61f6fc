"""Pydantic models for browser push subscriptions."""
from __future__ import annotations

from pydantic import BaseModel, Field


class SubscriptionKeys(BaseModel):
    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)


class PushSubscriptionCreate(BaseModel):
    """Subscription object as serialized by ``PushSubscription.toJSON()``."""

    endpoint: str = Field(min_length=1)
    keys: SubscriptionKeys


class PushSubscriptionDelete(BaseModel):
    endpoint: str = Field(min_length=1)


class VapidPublicKeyRead(BaseModel):
    publicKey: str | None
