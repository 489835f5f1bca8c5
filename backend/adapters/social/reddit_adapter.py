"""
Reddit API adapter for scheduled self-post publishing.

Each publish exchanges the stored refresh token for a short-lived access
token and submits one text post to the target subreddit.
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


class RedditAdapter(BaseSocialAdapter):
    """Reddit adapter submitting ``kind=self`` posts through the OAuth API."""

    platform = SocialPlatform.REDDIT

    OAUTH_TOKEN_URL = "https://www.reddit.com/api/v1/access_token"
    SUBMIT_URL = "https://oauth.reddit.com/api/submit"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(timeout or settings.social_request_timeout_seconds, client)
        self.client_id = client_id or settings.reddit_client_id
        self.client_secret = client_secret or settings.reddit_client_secret
        # Reddit throttles requests without a descriptive User-Agent
        self.user_agent = user_agent or settings.social_user_agent

    async def refresh_access_token(self, credentials: SocialCredentials) -> SocialCredentials:
        if not credentials.refresh_token:
            raise SocialAuthError("No refresh token available")
        if not self.client_id or not self.client_secret:
            raise SocialAuthError("Reddit OAuth client credentials are not configured")

        raw = f"{self.client_id}:{self.client_secret}".encode()
        response = await self._request(
            "POST",
            self.OAUTH_TOKEN_URL,
            data={
                "grant_type": "refresh_token",
                "refresh_token": credentials.refresh_token,
            },
            headers={
                "Authorization": f"Basic {base64.b64encode(raw).decode()}",
                "Content-Type": "application/x-www-form-urlencoded",
                "User-Agent": self.user_agent,
            },
        )

        if response.status_code != 200:
            logger.error(f"Reddit token refresh failed: {response.status_code}")
            raise SocialAuthError(
                f"Failed to refresh Reddit token: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        access_token = json_or_empty(response).get("access_token")
        if not access_token:
            raise SocialAuthError("Reddit token response contained no access token")

        credentials.access_token = access_token
        return credentials

    def build_submission(self, payload: dict[str, Any]) -> dict[str, Any]:
        reddit = payload.get("reddit") or {}
        if not reddit.get("subreddit") or not reddit.get("title"):
            raise SocialValidationError("Missing Reddit subreddit or title")

        text = reddit.get("text")
        if text is None:
            text = self._base_text(payload) or ""

        return {
            "kind": "self",
            "sr": reddit["subreddit"],
            "title": reddit["title"],
            "text": text,
            "api_type": "json",
        }

    async def publish(self, credentials: SocialCredentials, payload: dict[str, Any]) -> PostResult:
        """
        Submit a self post.

        Raises:
            SocialValidationError: Missing fields, or Reddit rejected the submission
            SocialRateLimitError: HTTP 429 or a RATELIMIT submission error
            SocialAPIError: Any other failure
        """
        submission = self.build_submission(payload)
        credentials = await self.refresh_access_token(credentials)

        response = await self._request(
            "POST",
            self.SUBMIT_URL,
            data=submission,
            headers={
                "Authorization": f"Bearer {credentials.access_token}",
                "Content-Type": "application/x-www-form-urlencoded",
                "User-Agent": self.user_agent,
            },
        )

        if response.status_code == 403:
            raise SocialAPIError(
                "Access denied. You may not have permission to post in this subreddit.",
                status_code=403,
            )
        if response.status_code == 429:
            raise SocialRateLimitError("Rate limit exceeded. Please try again later.")
        if response.status_code >= 400:
            raise SocialAPIError(
                f"Failed to submit post to Reddit: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        body = json_or_empty(response).get("json") or {}
        errors = body.get("errors") or []
        if errors:
            codes = [e[0] for e in errors if e]
            message = ", ".join(
                str(e[1]) if len(e) > 1 and e[1] else str(e[0]) for e in errors if e
            )
            logger.warning(f"Reddit rejected submission to r/{submission['sr']}: {message}")
            if "RATELIMIT" in codes:
                raise SocialRateLimitError(f"Reddit API error: {message}")
            raise SocialValidationError(f"Reddit API error: {message}")

        data = body.get("data") or {}
        post_id = data.get("id")
        if not post_id:
            raise SocialAPIError("Post submission failed - no post ID returned")

        return PostResult(success=True, post_id=post_id, post_url=data.get("url"))
