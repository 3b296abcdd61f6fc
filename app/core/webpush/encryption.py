"""Message encryption for Web Push (RFC 8291, ``aes128gcm``)."""
from __future__ import annotations

import os

import http_ece
from cryptography.hazmat.primitives.asymmetric import ec

from app.core.webpush.encoding import b64decode_any

CONTENT_ENCODING = "aes128gcm"


def encrypt_payload(payload: bytes, p256dh: str, auth: str) -> bytes:
    """Encrypt ``payload`` for the browser holding the subscription keys.

    A new ephemeral sender key is generated per message; its public half
    travels in the aes128gcm header so the browser can derive the secret.
    """
    receiver_key = b64decode_any(p256dh)
    auth_secret = b64decode_any(auth)
    if len(receiver_key) != 65 or len(auth_secret) != 16:
        raise ValueError("Subscription keys have unexpected lengths")

    sender_key = ec.generate_private_key(ec.SECP256R1())
    return http_ece.encrypt(
        payload,
        salt=os.urandom(16),
        private_key=sender_key,
        dh=receiver_key,
        auth_secret=auth_secret,
        version=CONTENT_ENCODING,
    )
