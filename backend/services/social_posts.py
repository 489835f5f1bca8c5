"""
Scheduling of social posts.

A scheduled post is a pending delivery task whose first attempt is due at
its publish time.
"""

import logging
from datetime import UTC, datetime
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from adapters.social import SocialPlatform
from core.domain.delivery import DeliveryStatus
from infrastructure.config import settings
from infrastructure.database.models.project import Project
from infrastructure.database.models.social import SocialPost

logger = logging.getLogger(__name__)


async def schedule_social_post(
    db: AsyncSession,
    project: Project,
    provider: SocialPlatform | str,
    payload: dict[str, Any],
    publish_at: Optional[datetime] = None,
) -> SocialPost:
    """
    Queue a post for *provider*.

    Args:
        db: Database session
        project: Owning project
        provider: "reddit" or "x"
        payload: ``{"base": {"text": ...}, "reddit": {...}, "x": {...}}``
        publish_at: When to publish; now if omitted

    Raises:
        ValueError: If the provider is unknown or the payload has no content
    """
    platform = SocialPlatform(provider)
    if not payload.get("base") and not payload.get(platform.value):
        raise ValueError("Payload must contain base content or a provider override")

    publish_at = publish_at or datetime.now(UTC)
    post = SocialPost(
        project_id=project.id,
        user_id=project.user_id,
        provider=platform.value,
        payload=payload,
        status=DeliveryStatus.PENDING.value,
        attempts=0,
        max_attempts=settings.default_max_attempts,
        publish_scheduled_at=publish_at,
        next_attempt_at=publish_at,
    )
    db.add(post)
    await db.commit()
    await db.refresh(post)

    logger.info(f"Scheduled {platform.value} post {post.id} for {publish_at.isoformat()}")
    return post
