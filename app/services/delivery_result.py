"""Outcome of handing a reminder to one channel."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from app.db.models.reminder import STATUS_FAILED, STATUS_SENT

STATUS_RETIRED = "retired"


@dataclass(frozen=True)
class DeliveryResult:
    status: str
    error: Optional[str] = None
    gone_endpoints: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def sent(cls, gone_endpoints: tuple[str, ...] = ()) -> "DeliveryResult":
        return cls(STATUS_SENT, gone_endpoints=gone_endpoints)

    @classmethod
    def failed(cls, error: str, gone_endpoints: tuple[str, ...] = ()) -> "DeliveryResult":
        return cls(STATUS_FAILED, error=error, gone_endpoints=gone_endpoints)

    @classmethod
    def retired(cls, gone_endpoints: tuple[str, ...]) -> "DeliveryResult":
        """Every target endpoint was gone; nothing to alert on."""
        return cls(STATUS_RETIRED, gone_endpoints=gone_endpoints)

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SENT


def describe_exception(exc: BaseException) -> str:
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__
