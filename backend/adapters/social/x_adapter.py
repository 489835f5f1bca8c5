"""
X (formerly Twitter) API v2 adapter for scheduled post publishing.

Uses the OAuth 2.0 refresh-token grant to obtain an access token, then
creates a single tweet per call.
"""

import base64
import logging
from typing import Any, Optional

import httpx

from infrastructure.config.settings import settings
from .base import (
    BaseSocialAdapter,
    SocialPlatform,
    SocialCredentials,
    PostResult,
    SocialAuthError,
    SocialAPIError,
    SocialRateLimitError,
    SocialValidationError,
    json_or_empty,
)

logger = logging.getLogger(__name__)

AUTH_EXPIRED_MESSAGE = "X authentication expired - please reconnect your X account in settings"


class XAdapter(BaseSocialAdapter):
    """
    X API v2 adapter for posting tweets.

    X rotates refresh tokens: the credentials returned by
    ``refresh_access_token`` carry the new refresh token and ``rotated=True``
    when one was issued, and the caller must store it.
    """

    platform = SocialPlatform.X

    OAUTH_TOKEN_URL = "https://api.twitter.com/2/oauth2/token"
    API_BASE_URL = "https://api.twitter.com/2"

    CHARACTER_LIMIT = 280

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize X adapter.

        Args:
            client_id: X OAuth client ID
            client_secret: X OAuth client secret
            timeout: Request timeout in seconds
            client: Shared HTTP client
        """
        super().__init__(timeout or settings.social_request_timeout_seconds, client)
        self.client_id = client_id or settings.x_client_id
        self.client_secret = client_secret or settings.x_client_secret

    def _basic_auth(self) -> str:
        raw = f"{self.client_id}:{self.client_secret}".encode()
        return f"Basic {base64.b64encode(raw).decode()}"

    async def refresh_access_token(self, credentials: SocialCredentials) -> SocialCredentials:
        """
        Refresh the access token.

        Raises:
            SocialAuthError: If X rejects the refresh token or the app credentials
        """
        if not credentials.refresh_token:
            raise SocialAuthError("No refresh token available")
        if not self.client_id or not self.client_secret:
            raise SocialAuthError("X OAuth client credentials are not configured")

        logger.info("Refreshing X access token")
        response = await self._request(
            "POST",
            self.OAUTH_TOKEN_URL,
            data={
                "grant_type": "refresh_token",
                "refresh_token": credentials.refresh_token,
            },
            headers={
                "Authorization": self._basic_auth(),
                "Content-Type": "application/x-www-form-urlencoded",
            },
        )

        if response.status_code != 200:
            error_data = json_or_empty(response)
            error_code = error_data.get("error", "")
            if response.status_code == 401 or error_code in ("invalid_grant", "invalid_client"):
                logger.error(f"X token refresh rejected: {error_code or response.status_code}")
                raise SocialAuthError(AUTH_EXPIRED_MESSAGE, status_code=response.status_code)
            error_msg = error_data.get("error_description", "Token refresh failed")
            logger.error(f"X token refresh failed: {error_msg}")
            raise SocialAuthError(
                f"Token refresh failed: {error_msg}", status_code=response.status_code
            )

        token_data = json_or_empty(response)
        if not token_data.get("access_token"):
            raise SocialAuthError("X token response contained no access token")

        credentials.access_token = token_data["access_token"]
        new_refresh = token_data.get("refresh_token")
        if new_refresh and new_refresh != credentials.refresh_token:
            credentials.refresh_token = new_refresh
            credentials.rotated = True

        return credentials

    def build_submission(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Tweet text: the X-specific override, else the shared base text."""
        x_fields = payload.get("x") or {}
        text = x_fields.get("text") or self._base_text(payload)
        if not text:
            raise SocialValidationError("Missing text for X post")
        if len(text) > self.CHARACTER_LIMIT:
            raise SocialValidationError(
                f"Tweet exceeds {self.CHARACTER_LIMIT} characters ({len(text)})"
            )
        return {"text": text}

    async def publish(self, credentials: SocialCredentials, payload: dict[str, Any]) -> PostResult:
        submission = self.build_submission(payload)
        credentials = await self.refresh_access_token(credentials)

        response = await self._request(
            "POST",
            f"{self.API_BASE_URL}/tweets",
            json=submission,
            headers={
                "Authorization": f"Bearer {credentials.access_token}",
                "Content-Type": "application/json",
            },
        )

        if response.status_code == 429:
            retry_after = response.headers.get("x-rate-limit-reset", "unknown")
            logger.warning(f"X rate limit exceeded. Reset at: {retry_after}")
            raise SocialRateLimitError(f"Rate limit exceeded. Reset at: {retry_after}")

        if response.status_code not in (200, 201):
            error_msg = json_or_empty(response).get("detail", "Tweet creation failed")
            logger.error(f"X API error ({response.status_code}): {error_msg}")
            raise SocialAPIError(
                f"Tweet creation failed: {error_msg}", status_code=response.status_code
            )

        tweet_id = (json_or_empty(response).get("data") or {}).get("id")
        if not tweet_id:
            raise SocialAPIError("X API returned no tweet id")

        username = credentials.account_username or "i/web"
        return PostResult(
            success=True,
            post_id=str(tweet_id),
            post_url=f"https://x.com/{username}/status/{tweet_id}",
        )
