"""Scheduler entry point: find due reminders and deliver them.

One invocation runs in three phases. Planning reads events, resolves
preferences, matches the firing window and claims each (event, channel) in
the delivery ledger. Delivery sends every claimed reminder concurrently over
a single HTTP client. Finalising writes the outcome of each claim back to
the ledger and deletes push subscriptions reported as gone. All database
work stays on the calling thread.
"""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import ReminderConfig
from app.core.reminders import EffectivePreference, is_due
from app.core.reminders.window import as_utc, candidate_range
from app.db.models.reminder import (
    CHANNEL_EMAIL,
    CHANNEL_WEB_PUSH,
    STATUS_FAILED,
    STATUS_SENT,
    ReminderNotificationLog,
)
from app.db.models.schedule_event import ScheduleEvent
from app.db.models.user import User
from app.services.delivery_ledger import DeliveryLedger
from app.services.delivery_result import DeliveryResult, describe_exception
from app.services.email_channel import EmailChannel
from app.services.push_channel import PushChannel, PushTarget
from app.services.push_subscriptions import PushSubscriptionService
from app.services.reminder_messages import ReminderMessage, render_reminder
from app.services.reminder_preferences import ReminderPreferenceService
from app.utils.exceptions import ConfigurationError


# Must exceed the Celery hard task_time_limit.
STALE_CLAIM_AFTER = timedelta(minutes=10)


@dataclass
class DispatchSummary:
    """Aggregate counts reported by one invocation."""

    sent: int = 0
    failed: int = 0
    skipped: int = 0
    retired: int = 0
    errors: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class PlannedDelivery:
    entry: ReminderNotificationLog
    event_id: uuid.UUID
    channel: str
    message: ReminderMessage
    recipient: Optional[str] = None
    targets: tuple[PushTarget, ...] = field(default_factory=tuple)


class ReminderDispatcher:
    """Run one reminder pass over all candidate events."""

    def __init__(
        self,
        db: Session,
        config: ReminderConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.db = db
        self.config = config
        self.transport = transport
        self.preferences = ReminderPreferenceService(db)
        self.ledger = DeliveryLedger(db)
        self.subscriptions = PushSubscriptionService(db)

    def _load_channels(self) -> dict[str, EmailChannel | PushChannel | None]:
        """Build channels; a misconfigured channel is disabled for this run only."""

        channels: dict[str, EmailChannel | PushChannel | None] = {}
        for name, factory in ((CHANNEL_EMAIL, EmailChannel), (CHANNEL_WEB_PUSH, PushChannel)):
            try:
                channels[name] = factory.from_config(self.config)
            except ConfigurationError as exc:
                logger.error("Reminder channel disabled", channel=name, error=exc.message)
                channels[name] = None
        return channels

    def candidate_events(self, now: datetime) -> list[ScheduleEvent]:
        """Events whose start time could put their reminder in the current window."""

        horizon = max(self.config.lookahead, timedelta(minutes=self.preferences.max_lead_minutes()))
        window_start, window_end = candidate_range(now, horizon, self.config.firing_window)
        stmt = (
            select(ScheduleEvent)
            .where(ScheduleEvent.start_time >= window_start)
            .where(ScheduleEvent.start_time <= window_end)
            .order_by(ScheduleEvent.start_time)
        )
        return list(self.db.scalars(stmt))

    def run(self, now: Optional[datetime] = None) -> DispatchSummary:
        now = as_utc(now or datetime.now(timezone.utc))
        summary = DispatchSummary()
        try:
            self.ledger.expire_stale_claims(STALE_CLAIM_AFTER)
        except Exception:
            self.db.rollback()
            summary.errors += 1
            logger.exception("Expiring stale delivery claims failed")
        channels = self._load_channels()

        plans: list[PlannedDelivery] = []
        for event in self.candidate_events(now):
            event_id = event.id
            try:
                plans.extend(self._plan_event(event, now, channels, summary))
            except Exception:
                self.db.rollback()
                summary.errors += 1
                logger.exception("Reminder planning failed", event_id=str(event_id))

        if plans:
            results = asyncio.run(self._deliver(plans, channels))
            for plan, result in zip(plans, results):
                self._finalize(plan, result, summary)

        logger.info("Reminder dispatch finished", **summary.as_dict())
        return summary

    def _render(self, event: ScheduleEvent, prefs: EffectivePreference) -> ReminderMessage:
        return render_reminder(
            event_id=str(event.id),
            title=event.title,
            start_time=event.start_time,
            minutes_before=prefs.minutes_before,
            app_url=self.config.app_url,
            course_code=event.course.code if event.course else None,
            location=event.location,
            timezone_name=self.config.display_timezone,
        )

    def _plan_event(
        self,
        event: ScheduleEvent,
        now: datetime,
        channels: dict[str, EmailChannel | PushChannel | None],
        summary: DispatchSummary,
    ) -> list[PlannedDelivery]:
        prefs = self.preferences.resolve(event.user_id, event.id)
        if not is_due(event.start_time, prefs.minutes_before, now, self.config.firing_window):
            return []
        if not prefs.has_channels:
            logger.debug("No reminder channels enabled", event_id=str(event.id))
            return []

        message = self._render(event, prefs)
        planned: list[PlannedDelivery] = []
        try:
            for channel in prefs.channels:
                if channels.get(channel) is None:
                    summary.skipped += 1
                    continue

                recipient = None
                targets: tuple[PushTarget, ...] = ()
                if channel == CHANNEL_EMAIL:
                    recipient = prefs.email_override or self._user_email(event.user_id)
                    if not recipient:
                        summary.skipped += 1
                        continue
                else:
                    targets = tuple(
                        PushTarget(sub.endpoint, sub.p256dh, sub.auth)
                        for sub in self.subscriptions.list_for_user(event.user_id)
                    )
                    if not targets:
                        summary.skipped += 1
                        continue

                if self.ledger.has_attempted(event.id, channel):
                    summary.skipped += 1
                    continue
                entry = self.ledger.claim(event.id, event.user_id, channel)
                if entry is None:
                    summary.skipped += 1
                    continue

                planned.append(
                    PlannedDelivery(
                        entry=entry,
                        event_id=event.id,
                        channel=channel,
                        message=message,
                        recipient=recipient,
                        targets=targets,
                    )
                )
        except Exception:
            self.db.rollback()
            for plan in planned:
                self.ledger.release(plan.entry)
            raise
        return planned

    def _user_email(self, user_id: uuid.UUID) -> Optional[str]:
        user = self.db.get(User, user_id)
        return user.email if user else None

    async def _deliver(
        self,
        plans: list[PlannedDelivery],
        channels: dict[str, EmailChannel | PushChannel | None],
    ) -> list[DeliveryResult | BaseException]:
        async with httpx.AsyncClient(
            timeout=self.config.http_timeout_seconds, transport=self.transport
        ) as client:
            return await asyncio.gather(
                *(self._deliver_one(client, plan, channels) for plan in plans),
                return_exceptions=True,
            )

    async def _deliver_one(
        self,
        client: httpx.AsyncClient,
        plan: PlannedDelivery,
        channels: dict[str, EmailChannel | PushChannel | None],
    ) -> DeliveryResult:
        channel = channels[plan.channel]
        if isinstance(channel, EmailChannel):
            return await channel.send(client, plan.recipient, plan.message)
        return await channel.send(client, plan.targets, plan.message.push_payload())

    def _finalize(
        self,
        plan: PlannedDelivery,
        result: DeliveryResult | BaseException,
        summary: DispatchSummary,
    ) -> None:
        """Write the claim's outcome, then retire gone push endpoints."""

        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            result = DeliveryResult.failed(describe_exception(result))

        try:
            self._record_outcome(plan, result, summary)
        except Exception as exc:
            self.db.rollback()
            summary.errors += 1
            logger.exception("Recording reminder outcome failed", event_id=str(plan.event_id))
            self._fail_claim(plan, describe_exception(exc))

        if result.gone_endpoints:
            try:
                self.subscriptions.retire_endpoints(result.gone_endpoints)
            except Exception:
                self.db.rollback()
                summary.errors += 1
                logger.exception(
                    "Retiring push subscriptions failed",
                    event_id=str(plan.event_id),
                    count=len(result.gone_endpoints),
                )

    def _record_outcome(
        self, plan: PlannedDelivery, result: DeliveryResult, summary: DispatchSummary
    ) -> None:
        if result.status == STATUS_SENT:
            self.ledger.complete(plan.entry, STATUS_SENT)
            summary.sent += 1
            logger.info("Reminder sent", event_id=str(plan.event_id), channel=plan.channel)
        elif result.status == STATUS_FAILED:
            self.ledger.complete(plan.entry, STATUS_FAILED, result.error)
            summary.failed += 1
            logger.warning(
                "Reminder delivery failed",
                event_id=str(plan.event_id),
                channel=plan.channel,
                error=result.error,
            )
        else:
            self.ledger.release(plan.entry)
            summary.retired += 1

    def _fail_claim(self, plan: PlannedDelivery, error: str) -> None:
        """Best effort: never leave a claim ``pending`` after its run is done."""

        try:
            self.ledger.complete(plan.entry, STATUS_FAILED, error)
        except Exception:
            self.db.rollback()
            logger.exception(
                "Could not mark claim failed; it will expire",
                event_id=str(plan.event_id),
                channel=plan.channel,
            )
