"""Delivery ledger: the idempotency gate for reminder sends.

Every (event, channel) delivery goes through a ``pending`` claim row before
anything is sent. A partial unique index on (event_id, channel) covering the
``pending`` and ``sent`` statuses lets the datastore arbitrate between
overlapping scheduler runs; losing the insert race means another run owns
the delivery. ``failed`` rows are outside the index so a later run may retry.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.models.reminder import (
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SENT,
    ReminderNotificationLog,
)
from app.utils.exceptions import AlreadyDeliveredError

FINAL_STATUSES = (STATUS_SENT, STATUS_FAILED)


class DeliveryLedger:
    """Records delivery attempts per event and channel."""

    def __init__(self, db: Session):
        self.db = db

    def has_attempted(self, event_id: uuid.UUID, channel: str) -> bool:
        """True when a successful or in-flight delivery exists."""

        stmt = (
            select(ReminderNotificationLog.id)
            .where(ReminderNotificationLog.event_id == event_id)
            .where(ReminderNotificationLog.channel == channel)
            .where(ReminderNotificationLog.status.in_((STATUS_PENDING, STATUS_SENT)))
            .limit(1)
        )
        return self.db.scalar(stmt) is not None

    def record(
        self,
        event_id: uuid.UUID,
        user_id: uuid.UUID,
        channel: str,
        status: str,
        error_message: Optional[str] = None,
    ) -> ReminderNotificationLog:
        """Append one attempt row.

        Raises ``AlreadyDeliveredError`` when the datastore rejects a second
        ``pending``/``sent`` row for the same event and channel.
        """

        entry = ReminderNotificationLog(
            event_id=event_id,
            user_id=user_id,
            channel=channel,
            status=status,
            error_msg=error_message,
        )
        self.db.add(entry)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise AlreadyDeliveredError(
                "Reminder already delivered or in flight",
                {"event_id": str(event_id), "channel": channel},
            ) from exc
        return entry

    def claim(
        self, event_id: uuid.UUID, user_id: uuid.UUID, channel: str
    ) -> ReminderNotificationLog | None:
        """Reserve the delivery; ``None`` when another run already owns it."""

        try:
            return self.record(event_id, user_id, channel, STATUS_PENDING)
        except AlreadyDeliveredError:
            logger.debug("Delivery already claimed", event_id=str(event_id), channel=channel)
            return None

    def complete(
        self,
        entry: ReminderNotificationLog,
        status: str,
        error_message: Optional[str] = None,
    ) -> ReminderNotificationLog:
        if status not in FINAL_STATUSES:
            raise ValueError(f"Unknown final status {status!r}")
        entry.status = status
        entry.error_msg = error_message
        self.db.add(entry)
        self.db.commit()
        return entry

    def release(self, entry: ReminderNotificationLog) -> None:
        """Drop a claim when nothing was delivered and nothing failed."""

        self.db.delete(entry)
        self.db.commit()

    def expire_stale_claims(self, older_than: timedelta) -> int:
        """Mark ``pending`` claims left behind by a crashed run as failed.

        A worker killed between ``claim`` and ``complete`` would otherwise
        block the (event, channel) pair for good.
        """

        cutoff = datetime.now(timezone.utc) - older_than
        result = self.db.execute(
            update(ReminderNotificationLog)
            .where(ReminderNotificationLog.status == STATUS_PENDING)
            .where(ReminderNotificationLog.created_at < cutoff)
            .values(status=STATUS_FAILED, error_msg="Claim expired before delivery finished")
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        if result.rowcount:
            logger.warning("Expired stale delivery claims", count=result.rowcount)
        return result.rowcount
