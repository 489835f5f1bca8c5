"""HTTP routes, mounted under /api/v1 by main.py."""

from fastapi import APIRouter

from .cron import router as cron_router
from .health import router as health_router
from .webhooks import router as webhooks_router

api_router = APIRouter()

api_router.include_router(health_router, tags=["Health"])
api_router.include_router(cron_router)
api_router.include_router(webhooks_router)
