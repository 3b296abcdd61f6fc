"""Server-side storage of browser push subscriptions."""
from __future__ import annotations

import uuid
from typing import Iterable, Optional

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.db.models.push_subscription import PushSubscription


class PushSubscriptionService:
    def __init__(self, db: Session):
        self.db = db

    def subscribe(
        self,
        user_id: uuid.UUID,
        endpoint: str,
        p256dh: str,
        auth: str,
        user_agent: Optional[str] = None,
    ) -> PushSubscription:
        """Register a push subscription, refreshing keys if the endpoint is known."""
        if not endpoint:
            raise ValueError("Endpoint required")

        stmt = select(PushSubscription).where(
            PushSubscription.user_id == user_id,
            PushSubscription.endpoint == endpoint
        )
        sub = self.db.scalars(stmt).first()
        if sub:
            sub.p256dh = p256dh
            sub.auth = auth
            sub.user_agent = user_agent
        else:
            sub = PushSubscription(
                user_id=user_id,
                endpoint=endpoint,
                p256dh=p256dh,
                auth=auth,
                user_agent=user_agent
            )
            self.db.add(sub)

        self.db.commit()
        return sub

    def unsubscribe(self, user_id: uuid.UUID, endpoint: str) -> bool:
        result = self.db.execute(
            delete(PushSubscription).where(
                PushSubscription.user_id == user_id,
                PushSubscription.endpoint == endpoint,
            )
        )
        self.db.commit()
        return bool(result.rowcount)

    def list_for_user(self, user_id: uuid.UUID) -> list[PushSubscription]:
        stmt = (
            select(PushSubscription)
            .where(PushSubscription.user_id == user_id)
            .order_by(PushSubscription.created_at)
        )
        return list(self.db.scalars(stmt))

    def retire_endpoints(self, endpoints: Iterable[str]) -> int:
        """Delete subscriptions the push service reported as gone."""
        endpoints = list(set(endpoints))
        if not endpoints:
            return 0
        result = self.db.execute(
            delete(PushSubscription).where(PushSubscription.endpoint.in_(endpoints))
        )
        self.db.commit()
        logger.info("Retired push subscriptions", count=result.rowcount)
        return result.rowcount
