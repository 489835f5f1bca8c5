"""
HMAC signatures for outbound webhooks.

Receivers verify ``X-Webhook-Signature: sha256=<hex>`` by recomputing the
HMAC-SHA256 of the raw request body with their shared secret.
"""

import hashlib
import hmac

SIGNATURE_HEADER = "X-Webhook-Signature"
SIGNATURE_PREFIX = "sha256="


def sign_payload(payload: str | bytes, secret: str) -> str:
    """Return the ``sha256=<hex>`` signature of *payload* under *secret*."""
    body = payload.encode() if isinstance(payload, str) else payload
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(payload: str | bytes, signature: str, secret: str) -> bool:
    """Constant-time check of a ``sha256=<hex>`` signature."""
    if not signature or not secret:
        return False
    return hmac.compare_digest(signature, sign_payload(payload, secret))
