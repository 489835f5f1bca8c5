"""
Cron trigger API schemas.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CronRunResponse(BaseModel):
    """Outcome of one batch pass."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    processed_count: int = Field(0, alias="processedCount")
    success_count: int = Field(0, alias="successCount")
    failed_count: int = Field(0, alias="failedCount", description="Tasks that reached failed")
    error: str | None = None


class SocialQueueStatus(BaseModel):
    """Snapshot of the social post queue."""

    model_config = ConfigDict(populate_by_name=True)

    due_for_publishing: int = Field(..., alias="dueForPublishing")
    published_today: int = Field(..., alias="publishedToday")
    failed_today: int = Field(..., alias="failedToday")
    timestamp: datetime


class SocialQueueStatusResponse(BaseModel):
    success: bool
    data: SocialQueueStatus | None = None
    error: str | None = None
