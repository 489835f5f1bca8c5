"""
Service layer: delivery queues, the batch coordinator and producers.
"""

from services.delivery_scheduler import (
    BatchCoordinator,
    run_social_publishing,
    run_webhook_retries,
    social_publishing_status,
)
from services.pacing import RequestPacer
from services.social_posts import schedule_social_post
from services.webhook_dispatch import (
    enqueue_article_published,
    enqueue_webhook,
    send_test_webhook,
)

__all__ = [
    "BatchCoordinator",
    "RequestPacer",
    "run_webhook_retries",
    "run_social_publishing",
    "social_publishing_status",
    "enqueue_webhook",
    "enqueue_article_published",
    "send_test_webhook",
    "schedule_social_post",
]
