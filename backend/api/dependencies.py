"""
API dependencies for cron trigger and webhook settings authentication.
"""

import hmac
import logging
from typing import Annotated, Optional

from fastapi import Header, HTTPException, status

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)


def _require_bearer(authorization: Optional[str], expected: str, caller: str) -> None:
    token = None
    if authorization and authorization.startswith("Bearer "):
        parts = authorization.split(" ", 1)
        token = parts[1] if len(parts) > 1 and parts[1] else None

    if not token or not hmac.compare_digest(token.encode(), expected.encode()):
        logger.warning(f"Rejected {caller} with missing or invalid credentials")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def verify_cron_secret(
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """
    Dependency guarding the cron trigger endpoints.

    When CRON_SECRET is configured the caller must send
    ``Authorization: Bearer <CRON_SECRET>``. Without it the check is skipped,
    which is only allowed outside production (enforced at startup).
    """
    if settings.cron_secret:
        _require_bearer(authorization, settings.cron_secret, "cron trigger")


async def verify_api_key(
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Dependency guarding the webhook settings endpoints with ``API_KEY``."""
    if settings.api_key:
        _require_bearer(authorization, settings.api_key, "webhook settings request")
