"""
API request and response schemas.
"""

from .cron import CronRunResponse, SocialQueueStatus, SocialQueueStatusResponse
from .webhook import (
    WebhookDeliveryListResponse,
    WebhookDeliveryResponse,
    WebhookTestRequest,
    WebhookTestResponse,
)

__all__ = [
    "CronRunResponse",
    "SocialQueueStatus",
    "SocialQueueStatusResponse",
    "WebhookTestRequest",
    "WebhookTestResponse",
    "WebhookDeliveryResponse",
    "WebhookDeliveryListResponse",
]
