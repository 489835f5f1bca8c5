"""
Webhook settings API schemas.
"""

import ipaddress
from datetime import datetime
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WebhookTestRequest(BaseModel):
    """Request to send a test event to a webhook URL."""

    model_config = ConfigDict(populate_by_name=True)

    project_id: int = Field(..., alias="projectId", gt=0)
    webhook_url: str = Field(..., alias="webhookUrl", max_length=2048)
    webhook_secret: str | None = Field(None, alias="webhookSecret", max_length=255)

    @field_validator("webhook_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("webhookUrl must be an absolute http(s) URL")

        host = (parsed.hostname or "").rstrip(".")
        if not host or host == "localhost" or host.endswith(".localhost"):
            raise ValueError("webhookUrl must point to a public host")
        try:
            address = ipaddress.ip_address(host)
        except ValueError:
            return v
        if not address.is_global:
            raise ValueError("webhookUrl must point to a public host")
        return v


class WebhookTestResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    response_time: int | None = Field(None, alias="responseTime")
    error: str | None = None


class WebhookDeliveryResponse(BaseModel):
    """One webhook delivery with its latest attempt outcome."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    event_type: str = Field(..., alias="eventType")
    webhook_url: str = Field(..., alias="webhookUrl")
    status: str
    attempts: int
    max_attempts: int = Field(..., alias="maxAttempts")
    next_retry_at: datetime | None = Field(None, alias="nextRetryAt")
    response_status: int | None = Field(None, alias="responseStatus")
    delivery_time_ms: int | None = Field(None, alias="deliveryTimeMs")
    error_message: str | None = Field(None, alias="errorMessage")
    created_at: datetime = Field(..., alias="createdAt")
    delivered_at: datetime | None = Field(None, alias="deliveredAt")
    failed_at: datetime | None = Field(None, alias="failedAt")


class WebhookDeliveryListResponse(BaseModel):
    deliveries: list[WebhookDeliveryResponse]
    total: int
