"""
Webhook settings endpoints: send a test event, list recent deliveries.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import verify_api_key
from api.middleware.rate_limit import get_rate_limit, limiter
from api.schemas.webhook import (
    WebhookDeliveryListResponse,
    WebhookDeliveryResponse,
    WebhookTestRequest,
    WebhookTestResponse,
)
from infrastructure.database import get_db
from infrastructure.database.models.project import Project
from infrastructure.database.models.webhook import WebhookDelivery
from services.webhook_dispatch import send_test_webhook

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Webhooks"], dependencies=[Depends(verify_api_key)])

DELIVERY_LIST_LIMIT = 50


async def _get_project(db: AsyncSession, project_id: int) -> Project:
    project = await db.get(Project, project_id)
    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found",
        )
    return project


@router.post(
    "/webhooks/test",
    response_model=WebhookTestResponse,
    response_model_exclude_none=True,
)
@limiter.limit(get_rate_limit("webhook_test"))
async def test_webhook(
    request: Request,
    body: WebhookTestRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Send a signed ``webhook.test`` event to the given URL and report how it went.

    HTTP errors from the destination are reported in the body, not as an
    error status.
    """
    project = await _get_project(db, body.project_id)

    result = await send_test_webhook(project, body.webhook_url, body.webhook_secret)
    return WebhookTestResponse(
        success=result.ok,
        response_time=result.duration_ms,
        error=None if result.ok else result.error_message,
    )


@router.get(
    "/projects/{project_id}/webhook-deliveries",
    response_model=WebhookDeliveryListResponse,
)
async def list_webhook_deliveries(
    project_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Most recent deliveries for a project, newest first."""
    await _get_project(db, project_id)

    total = (
        await db.execute(
            select(func.count())
            .select_from(WebhookDelivery)
            .where(WebhookDelivery.project_id == project_id)
        )
    ).scalar_one()

    result = await db.execute(
        select(WebhookDelivery)
        .where(WebhookDelivery.project_id == project_id)
        .order_by(WebhookDelivery.created_at.desc(), WebhookDelivery.id.desc())
        .limit(DELIVERY_LIST_LIMIT)
    )
    deliveries = result.scalars().all()

    return WebhookDeliveryListResponse(
        deliveries=[WebhookDeliveryResponse.model_validate(d) for d in deliveries],
        total=total,
    )
