"""
Health probes.

``/health/ready`` also reports how many webhook deliveries and social posts
are waiting, so a growing backlog shows up next to database status.
"""

import asyncio
import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.config import settings
from infrastructure.database import get_db
from services.delivery_queue import SocialPostQueue, WebhookDeliveryQueue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health")

DB_PROBE_TIMEOUT = 5.0


async def _database_ok(db: AsyncSession) -> bool:
    try:
        await asyncio.wait_for(db.execute(text("SELECT 1")), timeout=DB_PROBE_TIMEOUT)
    except TimeoutError:
        logger.error("Database probe timed out after %ss", DB_PROBE_TIMEOUT)
        return False
    except Exception as e:
        logger.error("Database probe failed: %s", e)
        return False
    return True


@router.get("")
async def health():
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/live")
async def live():
    return {"alive": True}


@router.get("/db")
async def database(db: AsyncSession = Depends(get_db)):
    ok = await _database_ok(db)
    return {
        "status": "healthy" if ok else "degraded",
        "database": "connected" if ok else "unavailable",
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/ready")
async def ready(db: AsyncSession = Depends(get_db)):
    """Ready when the database answers; includes the due-task backlog."""
    if not await _database_ok(db):
        return JSONResponse(
            status_code=503,
            content={"ready": False, "database": "unavailable"},
        )

    now = datetime.now(UTC)
    return {
        "ready": True,
        "database": "ok",
        "backlog": {
            "webhookDeliveries": await WebhookDeliveryQueue(db).count_due(now),
            "socialPosts": await SocialPostQueue(db).count_due(now),
        },
    }
