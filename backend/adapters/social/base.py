"""
Base classes and interfaces for social media publishing adapters.

Provides abstract base class, data structures, and exceptions for
publishing scheduled posts to Reddit and X.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import httpx


class SocialPlatform(StrEnum):
    """Supported publishing platforms."""

    REDDIT = "reddit"
    X = "x"


@dataclass
class SocialCredentials:
    """OAuth credentials for one connected account."""

    platform: SocialPlatform
    refresh_token: str
    access_token: str | None = None
    account_username: str | None = None

    # Set when the provider issued a new refresh token during refresh
    rotated: bool = False


@dataclass
class PostResult:
    """Result of a publish operation."""

    success: bool
    post_id: str | None = None
    post_url: str | None = None
    error_message: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "post_id": self.post_id,
            "post_url": self.post_url,
            "error_message": self.error_message,
        }


# Custom Exceptions
class SocialAdapterError(Exception):
    """Base exception for social media adapter errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SocialAuthError(SocialAdapterError):
    """Raised when refreshing the access token fails."""

    pass


class SocialAPIError(SocialAdapterError):
    """Raised when the platform API returns an error."""

    pass


class SocialRateLimitError(SocialAdapterError):
    """Raised when API rate limit is exceeded."""

    def __init__(self, message: str, status_code: int | None = 429):
        super().__init__(message, status_code)


class SocialValidationError(SocialAdapterError):
    """Raised when post content is missing or invalid for the platform."""

    pass


class BaseSocialAdapter(ABC):
    """
    Abstract base class for social media publishing adapters.

    Subclasses turn a stored post payload into one platform API call.
    """

    platform: SocialPlatform

    def __init__(self, timeout: float = 30.0, client: httpx.AsyncClient | None = None):
        """
        Args:
            timeout: Request timeout in seconds
            client: Shared HTTP client; a short-lived one is used per request if omitted
        """
        self.timeout = timeout
        self._client = client

    @abstractmethod
    async def refresh_access_token(self, credentials: SocialCredentials) -> SocialCredentials:
        """
        Trade the stored refresh token for a fresh access token.

        Raises:
            SocialAuthError: If the platform rejects the refresh token
        """
        pass

    @abstractmethod
    def build_submission(self, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Resolve platform-specific fields from a stored payload.

        Raises:
            SocialValidationError: If required fields are missing
        """
        pass

    @abstractmethod
    async def publish(self, credentials: SocialCredentials, payload: dict[str, Any]) -> PostResult:
        """
        Publish a post.

        Raises:
            SocialValidationError: If the payload is unusable
            SocialAPIError: If post creation fails
            SocialRateLimitError: If rate limit is exceeded
            httpx.HTTPError: On transport failures
        """
        pass

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        if self._client is not None:
            return await self._client.request(method, url, **kwargs)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.request(method, url, **kwargs)

    @staticmethod
    def _base_text(payload: dict[str, Any]) -> str | None:
        base = payload.get("base") or {}
        return base.get("text")


def json_or_empty(response: httpx.Response) -> dict:
    """Decode a JSON object body, or return {} for empty or non-object bodies."""
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
