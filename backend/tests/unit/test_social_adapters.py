"""
Unit tests for the Reddit and X publishing adapters.

Tests cover:
- Refresh-token exchange and rotation
- Submission building from stored payloads
- Mapping of provider errors to adapter exceptions
"""

import base64
import json
from urllib.parse import parse_qs

import httpx
import pytest

from adapters.social import (
    AUTH_EXPIRED_MESSAGE,
    RedditAdapter,
    SocialAPIError,
    SocialAuthError,
    SocialCredentials,
    SocialPlatform,
    SocialRateLimitError,
    SocialValidationError,
    XAdapter,
    get_social_adapter,
)


def _client(routes: dict) -> httpx.AsyncClient:
    """Client whose responses are looked up by URL; records every request."""
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        url = str(request.url)
        return routes[url](request) if callable(routes[url]) else routes[url]

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client.calls = calls
    return client


def _form(request: httpx.Request) -> dict:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


# ============================================================================
# Factory
# ============================================================================


def test_factory_returns_platform_adapter():
    assert isinstance(get_social_adapter(SocialPlatform.REDDIT), RedditAdapter)
    assert isinstance(get_social_adapter("x"), XAdapter)


def test_factory_rejects_unknown_platform():
    with pytest.raises(ValueError, match="Unsupported social platform"):
        get_social_adapter("myspace")


# ============================================================================
# X
# ============================================================================

X_TOKEN = XAdapter.OAUTH_TOKEN_URL
X_TWEETS = f"{XAdapter.API_BASE_URL}/tweets"


def _x(client) -> XAdapter:
    return XAdapter(client_id="x-id", client_secret="x-secret", client=client)


def _x_creds() -> SocialCredentials:
    return SocialCredentials(
        platform=SocialPlatform.X, refresh_token="old-refresh", account_username="bot"
    )


@pytest.mark.asyncio
async def test_x_publish_posts_tweet_and_rotates_token():
    client = _client(
        {
            X_TOKEN: httpx.Response(
                200, json={"access_token": "acc", "refresh_token": "new-refresh"}
            ),
            X_TWEETS: httpx.Response(201, json={"data": {"id": "1789"}}),
        }
    )
    creds = _x_creds()

    result = await _x(client).publish(creds, {"base": {"text": "hello"}, "x": {"text": "hi X"}})

    assert result.success is True
    assert result.post_id == "1789"
    assert result.post_url == "https://x.com/bot/status/1789"
    assert creds.rotated is True
    assert creds.refresh_token == "new-refresh"

    token_request, tweet_request = client.calls
    expected_auth = base64.b64encode(b"x-id:x-secret").decode()
    assert token_request.headers["Authorization"] == f"Basic {expected_auth}"
    assert _form(token_request) == {"grant_type": "refresh_token", "refresh_token": "old-refresh"}
    assert tweet_request.headers["Authorization"] == "Bearer acc"
    assert json.loads(tweet_request.content) == {"text": "hi X"}


@pytest.mark.asyncio
async def test_x_same_refresh_token_is_not_rotation():
    client = _client(
        {
            X_TOKEN: httpx.Response(
                200, json={"access_token": "acc", "refresh_token": "old-refresh"}
            ),
            X_TWEETS: httpx.Response(201, json={"data": {"id": "1"}}),
        }
    )
    creds = _x_creds()

    await _x(client).publish(creds, {"base": {"text": "hello"}})

    assert creds.rotated is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(401, json={"error": "unauthorized"}),
        httpx.Response(400, json={"error": "invalid_grant"}),
        httpx.Response(400, json={"error": "invalid_client"}),
    ],
)
async def test_x_rejected_refresh_asks_user_to_reconnect(response):
    client = _client({X_TOKEN: response})

    with pytest.raises(SocialAuthError) as exc_info:
        await _x(client).publish(_x_creds(), {"base": {"text": "hello"}})

    assert str(exc_info.value) == AUTH_EXPIRED_MESSAGE
    assert exc_info.value.status_code == response.status_code


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>upstream proxy error</html>"),
        httpx.Response(200, json={"token_type": "bearer"}),
    ],
)
async def test_x_token_response_without_access_token_is_auth_error(response):
    client = _client({X_TOKEN: response})

    with pytest.raises(SocialAuthError, match="no access token"):
        await _x(client).publish(_x_creds(), {"base": {"text": "hello"}})

    assert [str(r.url) for r in client.calls] == [X_TOKEN]


@pytest.mark.asyncio
async def test_x_rate_limit():
    client = _client(
        {
            X_TOKEN: httpx.Response(200, json={"access_token": "acc"}),
            X_TWEETS: httpx.Response(429, headers={"x-rate-limit-reset": "1700000000"}),
        }
    )

    with pytest.raises(SocialRateLimitError) as exc_info:
        await _x(client).publish(_x_creds(), {"base": {"text": "hello"}})

    assert exc_info.value.status_code == 429


@pytest.mark.asyncio
async def test_x_server_error_carries_status():
    client = _client(
        {
            X_TOKEN: httpx.Response(200, json={"access_token": "acc"}),
            X_TWEETS: httpx.Response(503, json={"detail": "Service Unavailable"}),
        }
    )

    with pytest.raises(SocialAPIError) as exc_info:
        await _x(client).publish(_x_creds(), {"base": {"text": "hello"}})

    assert exc_info.value.status_code == 503


def test_x_missing_text_is_validation_error():
    with pytest.raises(SocialValidationError, match="Missing text for X"):
        _x(None).build_submission({"reddit": {"title": "t"}})


def test_x_text_over_limit_is_validation_error():
    with pytest.raises(SocialValidationError):
        _x(None).build_submission({"x": {"text": "a" * 281}})


@pytest.mark.asyncio
async def test_x_without_app_credentials_fails_before_any_request():
    client = _client({})
    adapter = XAdapter(client_id="", client_secret="", client=client)
    adapter.client_id = None

    with pytest.raises(SocialAuthError) as exc_info:
        await adapter.publish(_x_creds(), {"base": {"text": "hello"}})

    assert exc_info.value.status_code is None
    assert client.calls == []


# ============================================================================
# Reddit
# ============================================================================

R_TOKEN = RedditAdapter.OAUTH_TOKEN_URL
R_SUBMIT = RedditAdapter.SUBMIT_URL

REDDIT_PAYLOAD = {
    "base": {"text": "Base body"},
    "reddit": {"subreddit": "python", "title": "New article"},
}


def _reddit(client) -> RedditAdapter:
    return RedditAdapter(client_id="r-id", client_secret="r-secret", client=client)


def _reddit_creds() -> SocialCredentials:
    return SocialCredentials(platform=SocialPlatform.REDDIT, refresh_token="r-refresh")


def _reddit_ok(post_id="abc123"):
    return httpx.Response(
        200,
        json={"json": {"errors": [], "data": {"id": post_id, "url": f"https://redd.it/{post_id}"}}},
    )


@pytest.mark.asyncio
async def test_reddit_publish_submits_self_post():
    client = _client(
        {
            R_TOKEN: httpx.Response(200, json={"access_token": "r-acc"}),
            R_SUBMIT: _reddit_ok(),
        }
    )

    result = await _reddit(client).publish(_reddit_creds(), REDDIT_PAYLOAD)

    assert result.success is True
    assert result.post_id == "abc123"

    token_request, submit_request = client.calls
    assert token_request.headers["User-Agent"] == "Contentbot/1.0"
    assert submit_request.headers["Authorization"] == "Bearer r-acc"
    assert _form(submit_request) == {
        "kind": "self",
        "sr": "python",
        "title": "New article",
        "text": "Base body",
        "api_type": "json",
    }


def test_reddit_text_override_wins():
    payload = {
        "base": {"text": "Base body"},
        "reddit": {"subreddit": "python", "title": "T", "text": "Reddit body"},
    }
    assert _reddit(None).build_submission(payload)["text"] == "Reddit body"


@pytest.mark.parametrize(
    "reddit",
    [{}, {"subreddit": "python"}, {"title": "T"}],
)
def test_reddit_requires_subreddit_and_title(reddit):
    with pytest.raises(SocialValidationError, match="Missing Reddit subreddit or title"):
        _reddit(None).build_submission({"base": {"text": "x"}, "reddit": reddit})


@pytest.mark.asyncio
async def test_reddit_token_failure_is_auth_error_with_status():
    client = _client({R_TOKEN: httpx.Response(401)})

    with pytest.raises(SocialAuthError) as exc_info:
        await _reddit(client).publish(_reddit_creds(), REDDIT_PAYLOAD)

    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_reddit_forbidden_subreddit():
    client = _client(
        {
            R_TOKEN: httpx.Response(200, json={"access_token": "r-acc"}),
            R_SUBMIT: httpx.Response(403),
        }
    )

    with pytest.raises(SocialAPIError, match="Access denied") as exc_info:
        await _reddit(client).publish(_reddit_creds(), REDDIT_PAYLOAD)

    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_reddit_http_rate_limit():
    client = _client(
        {
            R_TOKEN: httpx.Response(200, json={"access_token": "r-acc"}),
            R_SUBMIT: httpx.Response(429),
        }
    )

    with pytest.raises(SocialRateLimitError):
        await _reddit(client).publish(_reddit_creds(), REDDIT_PAYLOAD)


@pytest.mark.asyncio
async def test_reddit_submission_errors_are_validation_errors():
    client = _client(
        {
            R_TOKEN: httpx.Response(200, json={"access_token": "r-acc"}),
            R_SUBMIT: httpx.Response(
                200,
                json={"json": {"errors": [["SUBREDDIT_NOEXIST", "that subreddit doesn't exist", "sr"]]}},
            ),
        }
    )

    with pytest.raises(SocialValidationError, match="that subreddit doesn't exist"):
        await _reddit(client).publish(_reddit_creds(), REDDIT_PAYLOAD)


@pytest.mark.asyncio
async def test_reddit_ratelimit_submission_error_is_rate_limit():
    client = _client(
        {
            R_TOKEN: httpx.Response(200, json={"access_token": "r-acc"}),
            R_SUBMIT: httpx.Response(
                200,
                json={"json": {"errors": [["RATELIMIT", "you are doing that too much", "ratelimit"]]}},
            ),
        }
    )

    with pytest.raises(SocialRateLimitError):
        await _reddit(client).publish(_reddit_creds(), REDDIT_PAYLOAD)


@pytest.mark.asyncio
async def test_reddit_missing_post_id():
    client = _client(
        {
            R_TOKEN: httpx.Response(200, json={"access_token": "r-acc"}),
            R_SUBMIT: httpx.Response(200, json={"json": {"errors": [], "data": {}}}),
        }
    )

    with pytest.raises(SocialAPIError, match="no post ID returned") as exc_info:
        await _reddit(client).publish(_reddit_creds(), REDDIT_PAYLOAD)

    assert exc_info.value.status_code is None
