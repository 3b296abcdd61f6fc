"""Web Push delivery without a vendor SDK.

Each subscription gets its own encrypted copy of the payload, POSTed to the
subscription endpoint with a VAPID authorization header. A user's devices
are contacted in parallel; one endpoint's failure never affects another.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Sequence

import httpx
from loguru import logger

from app.config import ReminderConfig
from app.core.webpush import CONTENT_ENCODING, VapidSigner, encrypt_payload
from app.services.delivery_result import DeliveryResult, describe_exception

GONE_STATUSES = frozenset({404, 410})

OUTCOME_DELIVERED = "delivered"
OUTCOME_GONE = "gone"
OUTCOME_FAILED = "failed"


@dataclass(frozen=True)
class PushTarget:
    """Addressing data of one stored subscription."""

    endpoint: str
    p256dh: str
    auth: str


@dataclass(frozen=True)
class PushAttempt:
    endpoint: str
    outcome: str
    status_code: Optional[int] = None
    error: Optional[str] = None


@lru_cache(maxsize=4)
def load_signer(private_key: Optional[str], public_key: Optional[str], subject: str) -> VapidSigner:
    """Parse the VAPID key pair once per process."""
    return VapidSigner.from_keys(private_key, public_key, subject)


class PushChannel:
    """Send reminder payloads to every push subscription of a user."""

    name = "web_push"

    def __init__(self, signer: VapidSigner, ttl_seconds: int = 86400):
        self.signer = signer
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_config(cls, config: ReminderConfig) -> "PushChannel":
        signer = load_signer(config.vapid_private_key, config.vapid_public_key, config.vapid_subject)
        return cls(signer, ttl_seconds=config.push_ttl_seconds)

    def build_headers(self, endpoint: str, body: bytes) -> dict[str, str]:
        return {
            "Authorization": self.signer.authorization_header(endpoint),
            "Content-Encoding": CONTENT_ENCODING,
            "Content-Type": "application/octet-stream",
            "Content-Length": str(len(body)),
            "TTL": str(self.ttl_seconds),
        }

    async def send_one(
        self, client: httpx.AsyncClient, target: PushTarget, payload: bytes
    ) -> PushAttempt:
        try:
            body = encrypt_payload(payload, target.p256dh, target.auth)
            response = await client.post(
                target.endpoint, content=body, headers=self.build_headers(target.endpoint, body)
            )
        except (httpx.HTTPError, ValueError) as exc:
            return PushAttempt(target.endpoint, OUTCOME_FAILED, error=describe_exception(exc))

        if response.is_success:
            return PushAttempt(target.endpoint, OUTCOME_DELIVERED, status_code=response.status_code)
        if response.status_code in GONE_STATUSES:
            return PushAttempt(target.endpoint, OUTCOME_GONE, status_code=response.status_code)
        return PushAttempt(
            target.endpoint,
            OUTCOME_FAILED,
            status_code=response.status_code,
            error=f"Push endpoint {response.status_code}: {response.text}",
        )

    async def send(
        self, client: httpx.AsyncClient, targets: Sequence[PushTarget], payload: bytes
    ) -> DeliveryResult:
        """Fan out to all targets and fold the outcomes into one channel result.

        Sent when at least one endpoint accepted the message; retired when every
        endpoint reported itself gone; failed otherwise.
        """

        results = await asyncio.gather(
            *(self.send_one(client, target, payload) for target in targets),
            return_exceptions=True,
        )

        attempts: list[PushAttempt] = []
        for target, result in zip(targets, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                result = PushAttempt(target.endpoint, OUTCOME_FAILED, error=describe_exception(result))
            attempts.append(result)

        gone = tuple(a.endpoint for a in attempts if a.outcome == OUTCOME_GONE)
        failures = [a for a in attempts if a.outcome == OUTCOME_FAILED]
        delivered = sum(1 for a in attempts if a.outcome == OUTCOME_DELIVERED)

        for attempt in failures:
            logger.warning(
                "Push delivery failed",
                endpoint=attempt.endpoint,
                status=attempt.status_code,
                error=attempt.error,
            )
        if gone:
            logger.info("Push endpoints gone", count=len(gone))

        if delivered:
            return DeliveryResult.sent(gone_endpoints=gone)
        if failures:
            return DeliveryResult.failed("; ".join(a.error or "unknown error" for a in failures), gone_endpoints=gone)
        return DeliveryResult.retired(gone)
