"""VAPID (RFC 8292) application server identification.

A VAPID token is an ES256 JWT whose audience is the push service origin. The
push service checks the signature against the public key the browser was
given when it subscribed, so no registration handshake is needed.
"""
from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from app.core.webpush.encoding import b64decode_any, b64url_encode
from app.utils.exceptions import ConfigurationError

TOKEN_LIFETIME_SECONDS = 3600
JWT_HEADER = {"typ": "JWT", "alg": "ES256"}


def _b64url_json(payload: Dict[str, Any]) -> str:
    return b64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))


def endpoint_origin(endpoint: str) -> str:
    """Return ``scheme://host[:port]`` of a push endpoint."""

    parts = urlsplit(endpoint)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"Push endpoint is not an absolute URL: {endpoint!r}")
    return f"{parts.scheme}://{parts.netloc}"


def load_private_key(value: str) -> ec.EllipticCurvePrivateKey:
    """Load a P-256 private key.

    Accepts the raw 32-byte scalar (base64url, as produced by most VAPID key
    generators), base64-encoded DER (PKCS#8 or SEC1), or PEM.
    """

    value = value.strip()
    try:
        if value.startswith("-----BEGIN"):
            key = serialization.load_pem_private_key(value.encode("ascii"), password=None)
        else:
            raw = b64decode_any(value)
            if len(raw) == 32:
                key = ec.derive_private_key(int.from_bytes(raw, "big"), ec.SECP256R1())
            else:
                key = serialization.load_der_private_key(raw, password=None)
    except ValueError as exc:
        raise ConfigurationError("VAPID private key could not be parsed") from exc

    if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(key.curve, ec.SECP256R1):
        raise ConfigurationError("VAPID private key must be an EC key on curve P-256")
    return key


def public_key_bytes(key: ec.EllipticCurvePrivateKey) -> bytes:
    return key.public_key().public_bytes(
        serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
    )


@dataclass(frozen=True)
class VapidSigner:
    """Holds the application server key pair and signs VAPID tokens."""

    private_key: ec.EllipticCurvePrivateKey
    public_key: str
    subject: str

    @classmethod
    def from_keys(
        cls, private_key: Optional[str], public_key: Optional[str], subject: str
    ) -> "VapidSigner":
        if not private_key:
            raise ConfigurationError("VAPID_PRIVATE_KEY is not set")
        key = load_private_key(private_key)
        derived = public_key_bytes(key)
        if public_key:
            try:
                configured = b64decode_any(public_key)
            except ValueError as exc:
                raise ConfigurationError("VAPID public key could not be parsed") from exc
            if configured != derived:
                raise ConfigurationError("VAPID public key does not match the private key")
        return cls(private_key=key, public_key=b64url_encode(derived), subject=subject)

    def sign(self, data: bytes) -> bytes:
        """ES256 signature as the raw 64-byte ``r || s`` JWS form."""
        der = self.private_key.sign(data, ec.ECDSA(hashes.SHA256()))
        r, s = decode_dss_signature(der)
        return r.to_bytes(32, "big") + s.to_bytes(32, "big")

    def token(self, endpoint: str, now: Optional[float] = None) -> str:
        issued = int(time.time() if now is None else now)
        claims = {
            "aud": endpoint_origin(endpoint),
            "exp": issued + TOKEN_LIFETIME_SECONDS,
            "sub": self.subject,
        }
        unsigned = f"{_b64url_json(JWT_HEADER)}.{_b64url_json(claims)}"
        signature = self.sign(unsigned.encode("utf-8"))
        return f"{unsigned}.{b64url_encode(signature)}"

    def authorization_header(self, endpoint: str, now: Optional[float] = None) -> str:
        return f"vapid t={self.token(endpoint, now=now)},k={self.public_key}"


def generate_key_pair() -> tuple[str, str]:
    """Return a fresh ``(public_key, private_key)`` pair, both base64url."""

    key = ec.generate_private_key(ec.SECP256R1())
    private_raw = key.private_numbers().private_value.to_bytes(32, "big")
    return b64url_encode(public_key_bytes(key)), b64url_encode(private_raw)
