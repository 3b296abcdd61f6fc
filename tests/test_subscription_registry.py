"""Tests for the browser-side subscription state machine."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Optional

import httpx
import pytest

from app.services.subscription_registry import (
    HttpSubscriptionStore,
    PermissionState,
    PlatformSubscription,
    PushStatus,
    SubscriptionRegistry,
)

SERVER_KEY = "BEl62iUYgUivxIkv69yViEuiBIa-Ib9-SkvMeAtA3LFgDzkrxZJjSgSnfckjBJuBkr3qBUYIHBQFLXYp5Nksh8U"


@dataclass
class FakePlatform:
    supported: bool = True
    permission: PermissionState = PermissionState.DEFAULT
    grant_on_request: PermissionState = PermissionState.GRANTED
    existing: Optional[PlatformSubscription] = None
    keys: tuple[Optional[bytes], Optional[bytes]] = (b"\x04" + b"\x01" * 64, b"\x02" * 16)
    subscribed_with: list[bytes] = field(default_factory=list)
    unsubscribed: list[str] = field(default_factory=list)

    def is_supported(self) -> bool:
        return self.supported

    def permission_state(self) -> PermissionState:
        return self.permission

    def get_subscription(self) -> Optional[PlatformSubscription]:
        return self.existing

    def request_permission(self) -> PermissionState:
        self.permission = self.grant_on_request
        return self.permission

    def subscribe(self, application_server_key: bytes) -> PlatformSubscription:
        self.subscribed_with.append(application_server_key)
        self.existing = PlatformSubscription("https://push.example.com/sub/new", *self.keys)
        return self.existing

    def unsubscribe(self, subscription: PlatformSubscription) -> None:
        self.unsubscribed.append(subscription.endpoint)
        self.existing = None


@dataclass
class FakeStore:
    saved: list[tuple[str, str, str]] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    fail: bool = False

    def save(self, endpoint: str, p256dh: str, auth: str) -> None:
        if self.fail:
            raise httpx.HTTPStatusError("boom", request=httpx.Request("POST", "https://x"), response=httpx.Response(500))
        self.saved.append((endpoint, p256dh, auth))

    def delete(self, endpoint: str) -> None:
        self.deleted.append(endpoint)


def test_unsupported_platform():
    registry = SubscriptionRegistry(FakePlatform(supported=False), FakeStore(), SERVER_KEY)

    assert registry.load() == PushStatus.UNSUPPORTED
    assert "cannot receive push" in registry.status_message()
    assert registry.subscribe() is False


def test_existing_subscription_means_granted():
    existing = PlatformSubscription("https://push.example.com/sub/old", b"k", b"a")
    registry = SubscriptionRegistry(FakePlatform(existing=existing), FakeStore(), SERVER_KEY)

    assert registry.load() == PushStatus.GRANTED
    assert registry.status_message() is None


def test_denied_permission_is_reported():
    registry = SubscriptionRegistry(
        FakePlatform(permission=PermissionState.DENIED), FakeStore(), SERVER_KEY
    )

    assert registry.load() == PushStatus.DENIED
    assert registry.notification_permission_state() == PushStatus.DENIED
    assert "blocked" in registry.status_message()
    assert registry.subscribe() is False


def test_subscribe_saves_keys_and_grants():
    platform = FakePlatform()
    store = FakeStore()
    registry = SubscriptionRegistry(platform, store, SERVER_KEY)
    registry.load()

    assert registry.subscribe() is True

    assert registry.status == PushStatus.GRANTED
    assert len(platform.subscribed_with[0]) == 65
    endpoint, p256dh, auth = store.saved[0]
    assert endpoint == "https://push.example.com/sub/new"
    assert "=" not in p256dh and "=" not in auth


def test_permission_refused_during_subscribe():
    platform = FakePlatform(grant_on_request=PermissionState.DENIED)
    registry = SubscriptionRegistry(platform, FakeStore(), SERVER_KEY)
    registry.load()

    assert registry.subscribe() is False
    assert registry.status == PushStatus.DENIED
    assert platform.subscribed_with == []


@pytest.mark.parametrize(
    "keys",
    [(None, b"\x02" * 16), (b"\x04" + b"\x01" * 64, None)],
)
def test_missing_subscription_keys_fail(keys):
    store = FakeStore()
    registry = SubscriptionRegistry(FakePlatform(keys=keys), store, SERVER_KEY)
    registry.load()

    assert registry.subscribe() is False
    assert "keys are missing" in str(registry.last_error)
    assert store.saved == []


def test_store_failure_returns_to_default():
    registry = SubscriptionRegistry(FakePlatform(), FakeStore(fail=True), SERVER_KEY)
    registry.load()

    assert registry.subscribe() is False
    assert registry.status == PushStatus.DEFAULT
    assert isinstance(registry.last_error, httpx.HTTPStatusError)


def test_missing_server_key():
    registry = SubscriptionRegistry(FakePlatform(), FakeStore(), None)
    registry.load()

    assert registry.subscribe() is False
    assert "VAPID" in str(registry.last_error)


def test_unsubscribe_removes_everywhere():
    platform = FakePlatform()
    store = FakeStore()
    registry = SubscriptionRegistry(platform, store, SERVER_KEY)
    registry.load()
    registry.subscribe()

    assert registry.unsubscribe() is True

    assert store.deleted == ["https://push.example.com/sub/new"]
    assert platform.unsubscribed == ["https://push.example.com/sub/new"]
    assert registry.status == PushStatus.DEFAULT
    assert registry.unsubscribe() is False


def test_http_store_posts_to_notification_api():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"status": "success"})

    store = HttpSubscriptionStore(
        "https://api.example.com/api/v1/",
        "token-123",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    store.save("https://push.example.com/sub/1", "p256", "auth")
    store.delete("https://push.example.com/sub/1")

    assert [str(r.url) for r in requests] == [
        "https://api.example.com/api/v1/notifications/subscribe",
        "https://api.example.com/api/v1/notifications/unsubscribe",
    ]
    assert requests[0].headers["Authorization"] == "Bearer token-123"
    assert json.loads(requests[0].content) == {
        "endpoint": "https://push.example.com/sub/1",
        "keys": {"p256dh": "p256", "auth": "auth"},
    }


def test_http_store_closes_only_its_own_client():
    with HttpSubscriptionStore("https://api.example.com/api/v1", "token-123") as store:
        owned = store.client
    assert owned.is_closed

    injected = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    with HttpSubscriptionStore("https://api.example.com/api/v1", "token-123", client=injected):
        pass
    assert not injected.is_closed
    injected.close()
