"""
Webhook producers.

Queue deliveries for project events and send one-off test webhooks.
Queued deliveries are due immediately and picked up by the next
webhook-retries pass.
"""

import json
import logging
from datetime import UTC, datetime
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from adapters.webhooks import WebhookSender
from core.domain.delivery import AttemptResult, DeliveryStatus, DeliveryTask, TaskKind
from infrastructure.config import settings
from infrastructure.database.models.project import Project
from infrastructure.database.models.webhook import WebhookDelivery

logger = logging.getLogger(__name__)

ARTICLE_PUBLISHED = "article.published"
WEBHOOK_TEST = "webhook.test"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


async def enqueue_webhook(
    db: AsyncSession,
    project: Project,
    event_type: str,
    payload: dict[str, Any],
    article_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Optional[WebhookDelivery]:
    """
    Create a pending delivery for *event_type*.

    Returns:
        The new delivery, or None when the project has no enabled webhook
        subscribed to the event
    """
    if not project.accepts_event(event_type):
        logger.debug(f"No webhook configured for project {project.id} and event {event_type}")
        return None

    delivery = WebhookDelivery(
        user_id=project.user_id,
        project_id=project.id,
        article_id=article_id,
        webhook_url=project.webhook_url,
        event_type=event_type,
        request_payload=json.dumps(payload, default=str),
        status=DeliveryStatus.PENDING.value,
        attempts=0,
        max_attempts=settings.default_max_attempts,
        next_retry_at=now or datetime.now(UTC),
    )
    db.add(delivery)
    await db.commit()
    await db.refresh(delivery)

    logger.info(f"Queued {event_type} webhook {delivery.id} for project {project.id}")
    return delivery


def build_article_payload(article: dict[str, Any]) -> dict[str, Any]:
    """Shape an article record into the ``article.published`` body."""
    return {
        "id": article.get("id"),
        "title": article.get("title"),
        "slug": article.get("slug"),
        "description": article.get("description") or article.get("meta_description"),
        "content": article.get("content") or "",
        "keywords": article.get("keywords") if isinstance(article.get("keywords"), list) else [],
        "targetAudience": article.get("target_audience"),
        "metaDescription": article.get("meta_description"),
        "estimatedReadTime": article.get("estimated_read_time"),
        "seoScore": article.get("seo_score"),
        "coverImageUrl": article.get("cover_image_url"),
        "coverImageAlt": article.get("cover_image_alt"),
        "publishedAt": _iso(article.get("published_at")),
        "sources": article.get("sources") or [],
        "internalLinks": article.get("internal_links") or [],
        "factCheckReport": article.get("fact_check_report"),
        "relatedArticles": article.get("related_articles") or [],
        "createdAt": _iso(article.get("created_at")),
        "updatedAt": _iso(article.get("updated_at")),
    }


async def enqueue_article_published(
    db: AsyncSession,
    project: Project,
    article: dict[str, Any],
) -> Optional[WebhookDelivery]:
    """Queue the ``article.published`` webhook for a freshly published article."""
    if not article.get("id") or not article.get("title"):
        logger.warning(f"Article {article.get('id')} missing id or title, cannot deliver webhook")
        return None

    return await enqueue_webhook(
        db,
        project,
        ARTICLE_PUBLISHED,
        build_article_payload(article),
        article_id=article["id"],
    )


async def send_test_webhook(
    project: Project,
    webhook_url: str,
    webhook_secret: Optional[str] = None,
    sender: Optional[WebhookSender] = None,
) -> AttemptResult:
    """
    Send a signed ``webhook.test`` event right away.

    Nothing is queued or persisted; the attempt result is returned as-is.
    """
    payload = {
        "event": WEBHOOK_TEST,
        "timestamp": datetime.now(UTC).isoformat(),
        "data": {
            "message": "This is a test webhook from Contentbot",
            "userId": project.user_id,
            "projectId": project.id,
        },
    }
    task = DeliveryTask(
        id=0,
        kind=TaskKind.WEBHOOK,
        target=webhook_url,
        payload=json.dumps(payload),
        max_attempts=1,
        project_id=project.id,
        user_id=project.user_id,
        event_type=WEBHOOK_TEST,
        secret=webhook_secret,
    )

    result = await (sender or WebhookSender()).attempt(task)
    if not result.ok:
        logger.info(f"Test webhook for project {project.id} failed: {result.error_message}")
    return result
