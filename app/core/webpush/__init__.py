"""Web Push primitives: VAPID signing and aes128gcm payload encryption."""

from app.core.webpush.encoding import b64decode_any, b64url_encode
from app.core.webpush.encryption import CONTENT_ENCODING, encrypt_payload
from app.core.webpush.vapid import VapidSigner, endpoint_origin, load_private_key

__all__ = [
    "b64decode_any",
    "b64url_encode",
    "CONTENT_ENCODING",
    "encrypt_payload",
    "VapidSigner",
    "endpoint_origin",
    "load_private_key",
]
