"""Tests for scheduling social posts."""

from datetime import UTC, datetime, timedelta

import pytest

from services.social_posts import schedule_social_post


def _naive(value: datetime) -> datetime:
    return value.replace(tzinfo=None) if value.tzinfo else value


@pytest.mark.asyncio
async def test_schedule_sets_first_attempt_at_publish_time(db_session, project):
    publish_at = datetime.now(UTC) + timedelta(hours=3)

    post = await schedule_social_post(
        db_session, project, "reddit", {"reddit": {"subreddit": "python", "title": "Hi"}}, publish_at
    )

    assert post.provider == "reddit"
    assert post.status == "pending"
    assert post.attempts == 0
    assert _naive(post.next_attempt_at) == _naive(publish_at)
    assert _naive(post.publish_scheduled_at) == _naive(publish_at)


@pytest.mark.asyncio
async def test_schedule_defaults_to_now(db_session, project):
    before = datetime.now(UTC)

    post = await schedule_social_post(db_session, project, "x", {"base": {"text": "Hello"}})

    assert _naive(post.next_attempt_at) >= _naive(before)


@pytest.mark.asyncio
async def test_schedule_rejects_unknown_provider(db_session, project):
    with pytest.raises(ValueError):
        await schedule_social_post(db_session, project, "myspace", {"base": {"text": "Hello"}})


@pytest.mark.asyncio
async def test_schedule_requires_some_content(db_session, project):
    with pytest.raises(ValueError, match="base content"):
        await schedule_social_post(db_session, project, "x", {"reddit": {"title": "Wrong one"}})
