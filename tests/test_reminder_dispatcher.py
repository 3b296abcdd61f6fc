"""End-to-end tests for the reminder dispatcher."""
from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from app.db.models.push_subscription import PushSubscription
from app.db.models.reminder import (
    CHANNEL_EMAIL,
    CHANNEL_WEB_PUSH,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SENT,
    ReminderNotificationLog,
)
from app.schemas.reminder import EventReminderOverrideUpsert
from app.services.reminder_dispatcher import ReminderDispatcher
from app.services.reminder_preferences import ReminderPreferenceService

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture()
def dispatcher(db_session, reminder_config, fake_services) -> ReminderDispatcher:
    return ReminderDispatcher(db_session, reminder_config, transport=fake_services.transport)


def ledger_rows(db_session) -> list[tuple[str, str]]:
    return sorted(
        (row.channel, row.status) for row in db_session.query(ReminderNotificationLog).all()
    )


def test_due_event_sends_email_once(db_session, dispatcher, fake_services, make_user, make_event):
    user = make_user(email="ada@example.com")
    make_event(user, T0 + timedelta(minutes=30), title="Calculus II", course_code="MATH 152")

    summary = dispatcher.run(now=T0)

    assert summary.sent == 1
    assert summary.failed == 0
    assert ledger_rows(db_session) == [(CHANNEL_EMAIL, STATUS_SENT)]
    (request,) = fake_services.mail_requests()
    body = json.loads(request.content)
    assert body["to"] == ["ada@example.com"]
    assert body["subject"] == "⏰ Calculus II starts in 30 minutes"
    assert "(MATH 152)" in body["text"]


def test_second_run_in_same_window_does_not_resend(db_session, dispatcher, fake_services, make_user, make_event):
    user = make_user()
    make_event(user, T0 + timedelta(minutes=30))

    first = dispatcher.run(now=T0)
    second = dispatcher.run(now=T0 + timedelta(seconds=10))

    assert first.sent == 1
    assert second.sent == 0
    assert second.skipped == 1
    assert len(fake_services.mail_requests()) == 1
    assert ledger_rows(db_session) == [(CHANNEL_EMAIL, STATUS_SENT)]


def test_gone_subscription_is_deleted_and_others_still_receive(
    db_session, dispatcher, fake_services, make_user, make_event, make_subscription
):
    user = make_user(email_enabled=False, web_push_enabled=True)
    make_subscription(user, "https://push.example.com/sub/laptop")
    make_subscription(user, "https://push.example.com/sub/old-phone")
    fake_services.push_responses["https://push.example.com/sub/old-phone"] = 410
    make_event(user, T0 + timedelta(minutes=30))

    summary = dispatcher.run(now=T0)

    assert summary.sent == 1
    assert len(fake_services.push_requests()) == 2
    remaining = [sub.endpoint for sub in db_session.query(PushSubscription).all()]
    assert remaining == ["https://push.example.com/sub/laptop"]
    assert ledger_rows(db_session) == [(CHANNEL_WEB_PUSH, STATUS_SENT)]


def test_override_lead_time_wins_over_default(db_session, dispatcher, fake_services, make_user, make_event):
    user = make_user()
    event = make_event(user, T0 + timedelta(minutes=10))
    ReminderPreferenceService(db_session).upsert_override(
        user.id, event.id, EventReminderOverrideUpsert(minutes_before=5)
    )

    at_default = dispatcher.run(now=T0 - timedelta(minutes=20))
    at_override = dispatcher.run(now=T0 + timedelta(minutes=5))

    assert at_default.sent == 0
    assert at_override.sent == 1
    body = json.loads(fake_services.mail_requests()[0].content)
    assert body["subject"].endswith("starts in 5 minutes")


def test_events_outside_window_are_ignored(db_session, dispatcher, fake_services, make_user, make_event):
    user = make_user()
    make_event(user, T0 + timedelta(minutes=45))
    make_event(user, T0 + timedelta(minutes=29))

    summary = dispatcher.run(now=T0)

    assert summary.as_dict() == {"sent": 0, "failed": 0, "skipped": 0, "retired": 0, "errors": 0}
    assert fake_services.requests == []


def test_override_email_address_is_used(db_session, dispatcher, fake_services, make_user, make_event):
    user = make_user(email="account@example.com", email_override="inbox@example.org")
    make_event(user, T0 + timedelta(minutes=30))

    dispatcher.run(now=T0)

    body = json.loads(fake_services.mail_requests()[0].content)
    assert body["to"] == ["inbox@example.org"]


def test_no_enabled_channels_writes_nothing(db_session, dispatcher, fake_services, make_user, make_event):
    user = make_user(email_enabled=False, web_push_enabled=False)
    make_event(user, T0 + timedelta(minutes=30))

    summary = dispatcher.run(now=T0)

    assert summary.sent == summary.skipped == 0
    assert ledger_rows(db_session) == []


def test_push_without_subscriptions_is_skipped(db_session, dispatcher, make_user, make_event):
    user = make_user(web_push_enabled=True)
    make_event(user, T0 + timedelta(minutes=30))

    summary = dispatcher.run(now=T0)

    assert summary.sent == 1
    assert summary.skipped == 1
    assert ledger_rows(db_session) == [(CHANNEL_EMAIL, STATUS_SENT)]


def test_failed_email_is_recorded_and_retried(db_session, dispatcher, fake_services, make_user, make_event):
    user = make_user()
    make_event(user, T0 + timedelta(minutes=30))
    fake_services.mail_status = 503
    fake_services.mail_body = "service unavailable"

    first = dispatcher.run(now=T0)

    assert first.failed == 1
    row = db_session.query(ReminderNotificationLog).one()
    assert row.status == STATUS_FAILED
    assert row.error_msg == "Resend 503: service unavailable"

    fake_services.mail_status = 200
    second = dispatcher.run(now=T0 + timedelta(seconds=20))

    assert second.sent == 1
    assert ledger_rows(db_session) == [(CHANNEL_EMAIL, STATUS_FAILED), (CHANNEL_EMAIL, STATUS_SENT)]


def test_all_endpoints_gone_leaves_no_ledger_row(
    db_session, dispatcher, fake_services, make_user, make_event, make_subscription
):
    user = make_user(email_enabled=False, web_push_enabled=True)
    make_subscription(user, "https://push.example.com/sub/stale")
    fake_services.push_responses["https://push.example.com/sub/stale"] = 404
    make_event(user, T0 + timedelta(minutes=30))

    summary = dispatcher.run(now=T0)

    assert summary.retired == 1
    assert summary.failed == 0
    assert ledger_rows(db_session) == []
    assert db_session.query(PushSubscription).count() == 0


def test_missing_mail_config_disables_only_email(
    db_session, reminder_config, fake_services, make_user, make_event, make_subscription
):
    config = replace(reminder_config, resend_api_key=None)
    dispatcher = ReminderDispatcher(db_session, config, transport=fake_services.transport)
    user = make_user(web_push_enabled=True)
    make_subscription(user, "https://push.example.com/sub/desktop")
    make_event(user, T0 + timedelta(minutes=30))

    summary = dispatcher.run(now=T0)

    assert summary.sent == 1
    assert summary.skipped == 1
    assert fake_services.mail_requests() == []
    assert ledger_rows(db_session) == [(CHANNEL_WEB_PUSH, STATUS_SENT)]


def test_one_broken_event_does_not_stop_the_run(
    db_session, dispatcher, fake_services, make_user, make_event, monkeypatch
):
    broken = make_event(make_user(), T0 + timedelta(minutes=30), title="Broken")
    make_event(make_user(), T0 + timedelta(minutes=30), title="Healthy")

    original = dispatcher.preferences.resolve

    def resolve(user_id, event_id):
        if event_id == broken.id:
            raise RuntimeError("preference lookup failed")
        return original(user_id, event_id)

    monkeypatch.setattr(dispatcher.preferences, "resolve", resolve)

    summary = dispatcher.run(now=T0)

    assert summary.errors == 1
    assert summary.sent == 1
    body = json.loads(fake_services.mail_requests()[0].content)
    assert "Healthy" in body["subject"]


def test_lookahead_covers_long_lead_times(db_session, dispatcher, fake_services, make_user, make_event):
    user = make_user(default_minutes_before=24 * 60)
    make_event(user, T0 + timedelta(days=1))

    summary = dispatcher.run(now=T0)

    assert summary.sent == 1
    body = json.loads(fake_services.mail_requests()[0].content)
    assert body["subject"].endswith("starts in 24 hours")


def test_delivered_push_is_recorded_even_if_retiring_endpoints_fails(
    db_session, dispatcher, fake_services, make_user, make_event, make_subscription, monkeypatch
):
    user = make_user(email_enabled=False, web_push_enabled=True)
    make_subscription(user, "https://push.example.com/sub/laptop")
    make_subscription(user, "https://push.example.com/sub/old-phone")
    fake_services.push_responses["https://push.example.com/sub/old-phone"] = 410
    make_event(user, T0 + timedelta(minutes=30))

    def retire_endpoints(endpoints):
        raise OperationalError("DELETE FROM push_subscriptions", {}, Exception("database is locked"))

    monkeypatch.setattr(dispatcher.subscriptions, "retire_endpoints", retire_endpoints)

    summary = dispatcher.run(now=T0)

    assert summary.sent == 1
    assert summary.errors == 1
    assert ledger_rows(db_session) == [(CHANNEL_WEB_PUSH, STATUS_SENT)]


def test_claim_is_failed_when_outcome_cannot_be_written(
    db_session, dispatcher, make_user, make_event, monkeypatch
):
    make_event(make_user(), T0 + timedelta(minutes=30))
    original = dispatcher.ledger.complete

    def complete(entry, status, error_message=None):
        if status == STATUS_SENT:
            raise OperationalError("UPDATE reminder_notifications_log", {}, Exception("connection reset"))
        return original(entry, status, error_message)

    monkeypatch.setattr(dispatcher.ledger, "complete", complete)

    summary = dispatcher.run(now=T0)

    assert summary.errors == 1
    row = db_session.query(ReminderNotificationLog).one()
    assert row.status == STATUS_FAILED
    assert "OperationalError" in row.error_msg


def test_stale_pending_claim_does_not_block_delivery(db_session, dispatcher, make_user, make_event):
    user = make_user()
    event = make_event(user, T0 + timedelta(minutes=30))
    db_session.add(
        ReminderNotificationLog(
            event_id=event.id,
            user_id=user.id,
            channel=CHANNEL_EMAIL,
            status=STATUS_PENDING,
            created_at=datetime.now(timezone.utc) - timedelta(hours=1),
        )
    )
    db_session.commit()

    summary = dispatcher.run(now=T0)

    assert summary.sent == 1
    assert ledger_rows(db_session) == [(CHANNEL_EMAIL, STATUS_FAILED), (CHANNEL_EMAIL, STATUS_SENT)]
