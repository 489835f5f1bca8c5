"""
Cron trigger endpoints.

An external scheduler calls these on a fixed cadence; each call runs one
batch pass over the due tasks and reports the counts.
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import verify_cron_secret
from api.schemas.cron import CronRunResponse, SocialQueueStatus, SocialQueueStatusResponse
from core.domain.delivery import BatchResult
from infrastructure.database import get_db
from services.delivery_scheduler import (
    run_social_publishing,
    run_webhook_retries,
    social_publishing_status,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/cron",
    tags=["Cron"],
    dependencies=[Depends(verify_cron_secret)],
)


def _run_response(batch: BatchResult) -> CronRunResponse:
    return CronRunResponse(
        success=True,
        processed_count=batch.processed,
        success_count=batch.succeeded,
        failed_count=batch.failed,
    )


def _failure_response(message: str) -> JSONResponse:
    body = CronRunResponse(success=False, error=message)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


@router.post("/webhook-retries", response_model=CronRunResponse, response_model_exclude_none=True)
async def webhook_retries(db: AsyncSession = Depends(get_db)):
    """Retry every webhook delivery whose next attempt is due."""
    try:
        batch = await run_webhook_retries(db)
    except Exception as e:
        logger.error(f"Webhook retry pass failed: {e}", exc_info=True)
        return _failure_response("Failed to process webhook retries")

    return _run_response(batch)


@router.post(
    "/publish-social-posts", response_model=CronRunResponse, response_model_exclude_none=True
)
async def publish_social_posts(db: AsyncSession = Depends(get_db)):
    """Publish every social post whose next attempt is due."""
    try:
        batch = await run_social_publishing(db)
    except Exception as e:
        logger.error(f"Social publishing pass failed: {e}", exc_info=True)
        return _failure_response("Failed to process social posts")

    return _run_response(batch)


@router.get(
    "/publish-social-posts",
    response_model=SocialQueueStatusResponse,
    response_model_exclude_none=True,
)
async def social_posts_status(db: AsyncSession = Depends(get_db)):
    """Due count plus today's publish totals."""
    try:
        snapshot = await social_publishing_status(db)
    except Exception as e:
        logger.error(f"Social queue status failed: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Failed to get status"},
        )

    return SocialQueueStatusResponse(success=True, data=SocialQueueStatus(**snapshot))
