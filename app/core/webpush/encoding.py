"""Base64 helpers tolerant of both alphabets browsers hand out."""
from __future__ import annotations

import base64


def b64url_encode(data: bytes) -> str:
    """URL-safe base64 without padding, as used in JWTs and VAPID keys."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64decode_any(value: str) -> bytes:
    """Decode standard or URL-safe base64, with or without padding."""
    normalized = value.strip().replace("+", "-").replace("/", "_")
    normalized += "=" * (-len(normalized) % 4)
    return base64.urlsafe_b64decode(normalized)
