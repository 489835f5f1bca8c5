"""
Social publishing adapters for Reddit and X.

Each adapter trades a stored refresh token for an access token and makes
one publish call per scheduled post.
"""

from .base import (
    BaseSocialAdapter,
    PostResult,
    SocialAdapterError,
    SocialAPIError,
    SocialAuthError,
    SocialCredentials,
    SocialPlatform,
    SocialRateLimitError,
    SocialValidationError,
)
from .reddit_adapter import RedditAdapter
from .x_adapter import AUTH_EXPIRED_MESSAGE, XAdapter

_ADAPTERS: dict[SocialPlatform, type[BaseSocialAdapter]] = {
    SocialPlatform.REDDIT: RedditAdapter,
    SocialPlatform.X: XAdapter,
}


def get_social_adapter(platform: SocialPlatform | str, **kwargs) -> BaseSocialAdapter:
    """
    Build the adapter for *platform*.

    Keyword arguments (``client``, ``timeout``, app credentials) are passed
    to the adapter constructor.

    Raises:
        ValueError: If the platform is not supported
    """
    try:
        adapter_class = _ADAPTERS[SocialPlatform(platform)]
    except ValueError:
        supported = ", ".join(p.value for p in SocialPlatform)
        raise ValueError(f"Unsupported social platform: {platform}. Supported: {supported}")

    return adapter_class(**kwargs)


__all__ = [
    "BaseSocialAdapter",
    "SocialPlatform",
    "SocialCredentials",
    "PostResult",
    "SocialAdapterError",
    "SocialAuthError",
    "SocialAPIError",
    "SocialRateLimitError",
    "SocialValidationError",
    "RedditAdapter",
    "XAdapter",
    "AUTH_EXPIRED_MESSAGE",
    "get_social_adapter",
]
