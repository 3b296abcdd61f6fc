"""Transactional email delivery through the Resend HTTP API."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

import httpx
from loguru import logger

from app.config import ReminderConfig
from app.services.delivery_result import DeliveryResult, describe_exception
from app.services.reminder_messages import ReminderMessage
from app.utils.exceptions import ConfigurationError


@dataclass(frozen=True)
class EmailChannel:
    """Hand a rendered reminder to the mail API. No retries are attempted."""

    api_key: str
    from_email: str
    base_url: str = "https://api.resend.com"

    name = "email"

    @classmethod
    def from_config(cls, config: ReminderConfig) -> "EmailChannel":
        if not config.resend_api_key:
            raise ConfigurationError("RESEND_API_KEY not set")
        return cls(
            api_key=config.resend_api_key,
            from_email=config.from_email,
            base_url=config.resend_api_base,
        )

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def build_payload(self, to: str, message: ReminderMessage) -> Dict[str, Any]:
        return {
            "from": self.from_email,
            "to": [to],
            "subject": message.subject,
            "text": message.text,
            "html": message.html,
        }

    async def send(
        self, client: httpx.AsyncClient, to: str, message: ReminderMessage
    ) -> DeliveryResult:
        try:
            response = await client.post(
                f"{self.base_url}/emails",
                json=self.build_payload(to, message),
                headers=self._build_headers(),
            )
        except httpx.HTTPError as exc:
            error = describe_exception(exc)
            logger.warning("Email transport error", event_id=message.event_id, error=error)
            return DeliveryResult.failed(error)

        if response.is_success:
            logger.info("Reminder email accepted", event_id=message.event_id, status=response.status_code)
            return DeliveryResult.sent()

        error = f"Resend {response.status_code}: {response.text}"
        logger.error("Mail API rejected reminder", event_id=message.event_id, status=response.status_code, body=response.text)
        return DeliveryResult.failed(error)
