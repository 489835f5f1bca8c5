"""
Rate limiting using slowapi.

Only the webhook test endpoint makes an outbound call on demand, so it
gets a tight per-client limit; everything else shares a generous default.
Counters live in RATE_LIMIT_STORAGE_URI (in-memory unless configured).
"""

import ipaddress
import logging

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

RATE_LIMITS = {
    "webhook_test": "5/minute",
    "default": "100/minute",
}


def _public_ip(value: str) -> str | None:
    try:
        addr = ipaddress.ip_address(value.strip())
    except ValueError:
        return None
    # Private and loopback hops are trivially spoofed
    if addr.is_private or addr.is_loopback or addr.is_link_local:
        return None
    return str(addr)


def client_key(request: Request) -> str:
    """Rate limit key: the connecting address, or the first public forwarded hop."""
    if settings.trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = _public_ip(forwarded.split(",")[0]) if forwarded else None
        if first_hop:
            return first_hop
    return get_remote_address(request)


if settings.is_production and settings.rate_limit_storage_uri.startswith("memory://"):
    logger.warning("Rate limits are kept in process memory; each worker counts separately")

limiter = Limiter(
    key_func=client_key,
    storage_uri=settings.rate_limit_storage_uri,
    default_limits=[RATE_LIMITS["default"]],
)


def get_rate_limit(endpoint: str) -> str:
    """Limit string for *endpoint*, falling back to the default."""
    return RATE_LIMITS.get(endpoint, RATE_LIMITS["default"])
