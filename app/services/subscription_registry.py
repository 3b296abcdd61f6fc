"""Browser-side push subscription state machine.

The registry mirrors what a settings screen needs: whether push is possible
at all, whether the user has decided, and a way to subscribe or unsubscribe.
The browser surface (service worker, ``PushManager``, ``Notification``
permission) is injected as a :class:`PushPlatform`, so the permission state
is always read explicitly from the platform rather than from ambient state.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
from loguru import logger

from app.core.webpush.encoding import b64decode_any, b64url_encode


class PermissionState(str, enum.Enum):
    """``Notification.permission`` as reported by the platform."""

    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


class PushStatus(str, enum.Enum):
    UNSUPPORTED = "unsupported"
    DENIED = "denied"
    DEFAULT = "default"
    LOADING = "loading"
    GRANTED = "granted"


STATUS_MESSAGES = {
    PushStatus.DENIED: (
        "Notifications are blocked for this site. Open your browser's site settings, "
        "allow notifications, then reload the page to enable reminders."
    ),
    PushStatus.UNSUPPORTED: (
        "This browser cannot receive push notifications. Use a browser with service "
        "worker and Push API support, or on iOS add the app to your home screen first."
    ),
}


@dataclass(frozen=True)
class PlatformSubscription:
    """A subscription object created by the browser's push manager."""

    endpoint: str
    p256dh: Optional[bytes]
    auth: Optional[bytes]


class PushPlatform(Protocol):
    def is_supported(self) -> bool:
        ...

    def permission_state(self) -> PermissionState:
        ...

    def get_subscription(self) -> Optional[PlatformSubscription]:
        ...

    def request_permission(self) -> PermissionState:
        ...

    def subscribe(self, application_server_key: bytes) -> PlatformSubscription:
        ...

    def unsubscribe(self, subscription: PlatformSubscription) -> None:
        ...


class SubscriptionStore(Protocol):
    def save(self, endpoint: str, p256dh: str, auth: str) -> None:
        ...

    def delete(self, endpoint: str) -> None:
        ...


class SubscriptionError(RuntimeError):
    """Raised inside ``subscribe`` for problems the platform did not raise itself."""


class HttpSubscriptionStore:
    """Persist subscriptions through the notification API."""

    def __init__(self, base_url: str, access_token: str, client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=10.0)

    def close(self) -> None:
        """Close the HTTP client if this store created it."""
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> "HttpSubscriptionStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    def save(self, endpoint: str, p256dh: str, auth: str) -> None:
        response = self.client.post(
            f"{self.base_url}/notifications/subscribe",
            json={"endpoint": endpoint, "keys": {"p256dh": p256dh, "auth": auth}},
            headers=self._headers(),
        )
        response.raise_for_status()

    def delete(self, endpoint: str) -> None:
        response = self.client.post(
            f"{self.base_url}/notifications/unsubscribe",
            json={"endpoint": endpoint},
            headers=self._headers(),
        )
        response.raise_for_status()


class SubscriptionRegistry:
    """Drive the ``unsupported/denied/default/loading/granted`` state machine."""

    def __init__(
        self,
        platform: PushPlatform,
        store: SubscriptionStore,
        application_server_key: Optional[str],
    ):
        self.platform = platform
        self.store = store
        self.application_server_key = application_server_key
        self.status = PushStatus.LOADING
        self.subscription: Optional[PlatformSubscription] = None
        self.last_error: Optional[BaseException] = None

    def load(self) -> PushStatus:
        """Determine the initial state from the platform."""

        if not self.platform.is_supported():
            self.status = PushStatus.UNSUPPORTED
            return self.status

        try:
            existing = self.platform.get_subscription()
        except Exception as exc:  # noqa: BLE001 - service worker registration failed
            logger.warning("Push platform unavailable", error=str(exc))
            self.last_error = exc
            self.status = PushStatus.UNSUPPORTED
            return self.status

        if existing is not None:
            self.subscription = existing
            self.status = PushStatus.GRANTED
        else:
            self.status = self._status_from_permission()
        return self.status

    def _status_from_permission(self) -> PushStatus:
        # Granted permission without a subscription still needs subscribe().
        if self.platform.permission_state() == PermissionState.DENIED:
            return PushStatus.DENIED
        return PushStatus.DEFAULT

    def notification_permission_state(self) -> PushStatus:
        return self.status

    def status_message(self) -> Optional[str]:
        """Actionable explanation for states the user has to fix themselves."""
        return STATUS_MESSAGES.get(self.status)

    def subscribe(self) -> bool:
        if self.status == PushStatus.GRANTED:
            return True
        if self.status != PushStatus.DEFAULT:
            return False
        if not self.application_server_key:
            self.last_error = SubscriptionError("Push notifications are not configured (missing VAPID key)")
            return False

        self.status = PushStatus.LOADING
        try:
            if self.platform.request_permission() != PermissionState.GRANTED:
                raise SubscriptionError("Notification permission was not granted")

            subscription = self.platform.subscribe(b64decode_any(self.application_server_key))
            if not subscription.p256dh or not subscription.auth:
                raise SubscriptionError("Push subscription keys are missing")

            self.store.save(
                subscription.endpoint,
                b64url_encode(subscription.p256dh),
                b64url_encode(subscription.auth),
            )
        except Exception as exc:  # noqa: BLE001 - surfaced through last_error
            logger.warning("Push subscribe failed", error=str(exc))
            self.last_error = exc
            self.status = self._status_from_permission()
            return False

        self.subscription = subscription
        self.last_error = None
        self.status = PushStatus.GRANTED
        return True

    def unsubscribe(self) -> bool:
        if self.subscription is None:
            return False
        try:
            self.store.delete(self.subscription.endpoint)
            self.platform.unsubscribe(self.subscription)
        except Exception as exc:  # noqa: BLE001 - surfaced through last_error
            logger.warning("Push unsubscribe failed", error=str(exc))
            self.last_error = exc
            return False

        self.subscription = None
        self.status = PushStatus.DEFAULT
        return True
