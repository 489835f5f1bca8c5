"""
Unit tests for the table-backed delivery queues (in-memory SQLite).

Covers:
- Due-task scanning: status filter, time filter, ordering, secret join
- Guarded state updates that never touch terminal rows
- Due and daily counts
"""

from datetime import UTC, datetime, timedelta

import pytest

from core.domain.delivery import (
    AttemptResult,
    DeliveryStatus,
    ErrorKind,
    TaskKind,
    TaskTransition,
)
from infrastructure.database.models import SocialPost, WebhookDelivery
from services.delivery_queue import SocialPostQueue, WebhookDeliveryQueue, _TableQueue


def _naive(value: datetime) -> datetime:
    """SQLite hands back naive UTC datetimes."""
    return value.replace(tzinfo=None) if value.tzinfo else value


@pytest.fixture
def now():
    return datetime.now(UTC) + timedelta(seconds=1)


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_due_tasks_selects_pending_and_retry_scheduled(db_session, make_delivery, now):
    pending = await make_delivery()
    retrying = await make_delivery(status="retry_scheduled", attempts=1)
    await make_delivery(status="succeeded", attempts=1)
    await make_delivery(status="failed", attempts=3)

    tasks = await WebhookDeliveryQueue(db_session).due_tasks(now)

    assert {t.id for t in tasks} == {pending.id, retrying.id}


@pytest.mark.asyncio
async def test_due_tasks_skips_future_and_unscheduled(db_session, make_delivery, now):
    due = await make_delivery()
    await make_delivery(next_retry_at=now + timedelta(minutes=5))
    await make_delivery(next_retry_at=None)

    tasks = await WebhookDeliveryQueue(db_session).due_tasks(now)

    assert [t.id for t in tasks] == [due.id]


@pytest.mark.asyncio
async def test_due_tasks_ordered_by_next_attempt_then_id(db_session, make_delivery, now):
    later = await make_delivery(next_retry_at=now - timedelta(seconds=10))
    earliest = await make_delivery(next_retry_at=now - timedelta(minutes=10))
    tie_a = await make_delivery(next_retry_at=now - timedelta(minutes=1))
    tie_b = await make_delivery(next_retry_at=now - timedelta(minutes=1))

    tasks = await WebhookDeliveryQueue(db_session).due_tasks(now)

    assert [t.id for t in tasks] == [earliest.id, tie_a.id, tie_b.id, later.id]


@pytest.mark.asyncio
async def test_webhook_task_snapshot_carries_secret_and_payload(
    db_session, make_delivery, project, now
):
    delivery = await make_delivery(attempts=1, status="retry_scheduled")

    (task,) = await WebhookDeliveryQueue(db_session).due_tasks(now)

    assert task.kind == TaskKind.WEBHOOK
    assert task.target == project.webhook_url
    assert task.payload == delivery.request_payload
    assert task.secret == "whsec_test"
    assert task.event_type == "article.published"
    assert task.attempts_made == 1
    assert task.status == DeliveryStatus.RETRY_SCHEDULED


@pytest.mark.asyncio
async def test_count_due_matches_scan(db_session, make_delivery, now):
    await make_delivery()
    await make_delivery()
    await make_delivery(status="succeeded")

    queue = WebhookDeliveryQueue(db_session)

    assert await queue.count_due(now) == 2 == len(await queue.due_tasks(now))


@pytest.mark.asyncio
async def test_queues_filter_on_mapped_next_attempt_columns(db_session, now):
    webhooks = WebhookDeliveryQueue(db_session)
    posts = SocialPostQueue(db_session)

    assert webhooks.next_column is WebhookDelivery.next_retry_at
    assert posts.next_column is SocialPost.next_attempt_at
    assert await webhooks.count_due(now) == 0
    assert await posts.count_due(now) == 0
    assert await posts.due_tasks(now) == []


def test_queue_without_transition_mapping_cannot_be_built():
    class PartialQueue(_TableQueue):
        model = SocialPost
        next_field = "next_attempt_at"

        async def due_tasks(self, now):
            return []

    with pytest.raises(TypeError, match="_values_for"):
        PartialQueue(None)


@pytest.mark.asyncio
async def test_social_queue_scans_next_attempt_at(db_session, make_social_post, now):
    due = await make_social_post(provider="reddit")
    await make_social_post(next_attempt_at=now + timedelta(hours=1))

    tasks = await SocialPostQueue(db_session).due_tasks(now)

    assert len(tasks) == 1
    assert tasks[0].id == due.id
    assert tasks[0].kind == TaskKind.SOCIAL_POST
    assert tasks[0].target == "reddit"
    assert tasks[0].payload == {"base": {"text": "Hello from Contentbot"}}


# ---------------------------------------------------------------------------
# Applying transitions
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_apply_retry_scheduled_records_outcome(db_session, make_delivery, now):
    delivery = await make_delivery()
    next_at = now + timedelta(seconds=60)
    transition = TaskTransition(
        task_id=delivery.id,
        status=DeliveryStatus.RETRY_SCHEDULED,
        attempts_made=1,
        at=now,
        next_attempt_at=next_at,
        backoff_seconds=60,
        error_message="HTTP 503: Service Unavailable",
        result=AttemptResult(
            ok=False,
            duration_ms=12,
            http_status=503,
            response_body="down",
            error_message="HTTP 503: Service Unavailable",
            error_kind=ErrorKind.HTTP,
        ),
    )

    assert await WebhookDeliveryQueue(db_session).apply(transition) is True

    await db_session.refresh(delivery)
    assert delivery.status == "retry_scheduled"
    assert delivery.attempts == 1
    assert _naive(delivery.next_retry_at) == _naive(next_at)
    assert delivery.retry_backoff_seconds == 60
    assert delivery.response_status == 503
    assert delivery.response_body == "down"
    assert delivery.delivery_time_ms == 12
    assert delivery.error_message == "HTTP 503: Service Unavailable"


@pytest.mark.asyncio
async def test_apply_success_clears_retry_state(db_session, make_delivery, now):
    delivery = await make_delivery(
        status="retry_scheduled", attempts=1, error_message="HTTP 500: Internal Server Error"
    )
    transition = TaskTransition(
        task_id=delivery.id,
        status=DeliveryStatus.SUCCEEDED,
        attempts_made=2,
        at=now,
        result=AttemptResult(ok=True, duration_ms=8, http_status=200, response_body="ok"),
    )

    await WebhookDeliveryQueue(db_session).apply(transition)

    await db_session.refresh(delivery)
    assert delivery.status == "succeeded"
    assert delivery.next_retry_at is None
    assert delivery.error_message is None
    assert _naive(delivery.delivered_at) == _naive(now)


@pytest.mark.asyncio
async def test_apply_never_touches_terminal_rows(db_session, make_delivery, now):
    delivery = await make_delivery(status="succeeded", attempts=1)
    transition = TaskTransition(
        task_id=delivery.id,
        status=DeliveryStatus.FAILED,
        attempts_made=2,
        at=now,
        error_message="late failure",
    )

    assert await WebhookDeliveryQueue(db_session).apply(transition) is False

    await db_session.refresh(delivery)
    assert delivery.status == "succeeded"
    assert delivery.attempts == 1


@pytest.mark.asyncio
async def test_apply_missing_row_returns_false(db_session, project, now):
    transition = TaskTransition(
        task_id=9999, status=DeliveryStatus.FAILED, attempts_made=1, at=now
    )

    assert await WebhookDeliveryQueue(db_session).apply(transition) is False


@pytest.mark.asyncio
async def test_social_apply_success_stores_platform_id(db_session, make_social_post, now):
    post = await make_social_post()
    transition = TaskTransition(
        task_id=post.id,
        status=DeliveryStatus.SUCCEEDED,
        attempts_made=1,
        at=now,
        result=AttemptResult(ok=True, duration_ms=30, external_id="1789"),
    )

    await SocialPostQueue(db_session).apply(transition)

    await db_session.refresh(post)
    assert post.status == "succeeded"
    assert post.platform_post_id == "1789"
    assert post.next_attempt_at is None
    assert _naive(post.published_at) == _naive(now)


@pytest.mark.asyncio
async def test_count_since_counts_todays_outcomes(db_session, make_social_post, now):
    await make_social_post(status="succeeded", published_at=now)
    await make_social_post(status="succeeded", published_at=now - timedelta(days=2))
    await make_social_post(status="failed", failed_at=now)

    queue = SocialPostQueue(db_session)
    since = now - timedelta(hours=1)

    assert await queue.count_since(DeliveryStatus.SUCCEEDED, SocialPost.published_at, since) == 1
    assert await queue.count_since(DeliveryStatus.FAILED, SocialPost.failed_at, since) == 1
