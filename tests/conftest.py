"""Pytest fixtures for reminder engine tests."""

import os
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from datetime import datetime, timedelta

os.environ.setdefault("SECRET_KEY", "test-secret-key")

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_config, get_db, get_http_transport
from app.config import ReminderConfig
from app.core.webpush.encoding import b64url_encode
from app.core.webpush.vapid import generate_key_pair
from app.db import models  # noqa: F401  # Imported for side effects
from app.db.base import Base
from app.db.models import (
    Course,
    PushSubscription,
    ReminderPreferences,
    ScheduleEvent,
    User,
)
from app.main import create_app

CRON_SECRET = "test-cron-secret"


@pytest.fixture(scope="session")
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine, expire_on_commit=False)


@pytest.fixture()
def db_session(session_factory) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()
        db.close()


@pytest.fixture(scope="session")
def vapid_keys() -> tuple[str, str]:
    return generate_key_pair()


@pytest.fixture()
def reminder_config(vapid_keys) -> ReminderConfig:
    public_key, private_key = vapid_keys
    return ReminderConfig(
        resend_api_key="re_test_key",
        from_email="StudyTraka <reminders@example.com>",
        app_url="https://app.example.com",
        vapid_public_key=public_key,
        vapid_private_key=private_key,
        vapid_subject="mailto:ops@example.com",
        cron_secret=CRON_SECRET,
        lookahead=timedelta(minutes=60),
        firing_window=timedelta(seconds=60),
        http_timeout_seconds=5.0,
    )


@dataclass
class FakeServices:
    """Stands in for the mail API and every push service.

    ``push_responses`` maps an endpoint to a status code or an exception.
    """

    push_responses: dict[str, int | Exception] = field(default_factory=dict)
    mail_status: int = 200
    mail_body: str = '{"id": "email_123"}'
    requests: list[httpx.Request] = field(default_factory=list)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url.endswith("/emails"):
            return httpx.Response(self.mail_status, text=self.mail_body)
        outcome = self.push_responses.get(url, 201)
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome, text="" if outcome < 400 else "push service error")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def mail_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url).endswith("/emails")]

    def push_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if not str(r.url).endswith("/emails")]


@pytest.fixture()
def fake_services() -> FakeServices:
    return FakeServices()


@pytest.fixture()
def client(db_session: Session, reminder_config, fake_services) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_config] = lambda: reminder_config
    app.dependency_overrides[get_http_transport] = lambda: fake_services.transport
    with TestClient(app) as test_client:
        yield test_client


def make_browser_keys() -> tuple[ec.EllipticCurvePrivateKey, str, str]:
    """Key material a browser would hand out for a new subscription."""

    private_key = ec.generate_private_key(ec.SECP256R1())
    p256dh = private_key.public_key().public_bytes(
        serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
    )
    return private_key, b64url_encode(p256dh), b64url_encode(os.urandom(16))


@pytest.fixture()
def make_user(db_session) -> Callable[..., User]:
    counter = {"n": 0}

    def factory(email: str | None = None, **prefs) -> User:
        counter["n"] += 1
        user = User(email=email or f"student{counter['n']}@example.com", full_name="Test Student")
        db_session.add(user)
        db_session.commit()
        if prefs:
            db_session.add(ReminderPreferences(user_id=user.id, **prefs))
            db_session.commit()
        return user

    return factory


@pytest.fixture()
def make_event(db_session) -> Callable[..., ScheduleEvent]:
    def factory(
        user: User,
        start_time: datetime,
        title: str = "Linear Algebra Lecture",
        course_code: str | None = None,
        location: str | None = None,
    ) -> ScheduleEvent:
        course_id = None
        if course_code:
            course = Course(user_id=user.id, code=course_code, title="Course")
            db_session.add(course)
            db_session.commit()
            course_id = course.id
        event = ScheduleEvent(
            user_id=user.id,
            course_id=course_id,
            title=title,
            start_time=start_time,
            end_time=start_time + timedelta(hours=1),
            location=location,
        )
        db_session.add(event)
        db_session.commit()
        return event

    return factory


@pytest.fixture()
def make_subscription(db_session) -> Callable[..., PushSubscription]:
    def factory(user: User, endpoint: str) -> PushSubscription:
        _, p256dh, auth = make_browser_keys()
        sub = PushSubscription(user_id=user.id, endpoint=endpoint, p256dh=p256dh, auth=auth)
        db_session.add(sub)
        db_session.commit()
        return sub

    return factory
