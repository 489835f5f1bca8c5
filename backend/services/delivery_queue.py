"""
Durable delivery queues backed by the webhook_deliveries and social_posts tables.

The table is the queue: a task is due when it is non-terminal and its next
attempt time has passed. State changes are written with a guarded UPDATE so
a row that already reached a terminal status is never touched again.
"""

import logging
from abc import abstractmethod
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.domain.delivery import (
    DUE_STATUSES,
    DeliveryStatus,
    DeliveryTask,
    TaskKind,
    TaskTransition,
)
from core.interfaces.repositories import DeliveryQueue
from infrastructure.database.models.project import Project
from infrastructure.database.models.social import SocialPost
from infrastructure.database.models.webhook import WebhookDelivery

logger = logging.getLogger(__name__)

_DUE_VALUES = [s.value for s in DUE_STATUSES]


class _TableQueue(DeliveryQueue):
    """Shared scan/persist logic; subclasses map rows and transitions."""

    model: Any
    next_field: str

    def __init__(self, db: AsyncSession):
        self.db = db
        self.next_column = getattr(self.model, self.next_field)

    def _due_clause(self, now: datetime):
        return (
            self.model.status.in_(_DUE_VALUES),
            self.next_column.is_not(None),
            self.next_column <= now,
        )

    async def count_due(self, now: datetime) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(self.model).where(*self._due_clause(now))
        )
        return result.scalar_one()

    async def count_since(self, status: DeliveryStatus, column: Any, since: datetime) -> int:
        """Count rows in *status* whose *column* timestamp is at or after *since*."""
        result = await self.db.execute(
            select(func.count())
            .select_from(self.model)
            .where(self.model.status == status.value, column >= since)
        )
        return result.scalar_one()

    async def apply(self, transition: TaskTransition) -> bool:
        values = self._values_for(transition)
        stmt = (
            update(self.model)
            .where(self.model.id == transition.task_id, self.model.status.in_(_DUE_VALUES))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        if result.rowcount != 1:
            logger.warning(
                "Skipped update for %s %s: row missing or already terminal",
                self.model.__tablename__,
                transition.task_id,
            )
            return False
        return True

    @abstractmethod
    def _values_for(self, transition: TaskTransition) -> dict[str, Any]:
        """Column values written for *transition*."""


class WebhookDeliveryQueue(_TableQueue):
    """Queue over ``webhook_deliveries``; attaches each project's signing secret."""

    model = WebhookDelivery
    next_field = "next_retry_at"

    async def due_tasks(self, now: datetime) -> list[DeliveryTask]:
        stmt = (
            select(WebhookDelivery, Project.webhook_secret)
            .join(Project, Project.id == WebhookDelivery.project_id, isouter=True)
            .where(*self._due_clause(now))
            .order_by(WebhookDelivery.next_retry_at, WebhookDelivery.id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)

        return [
            DeliveryTask(
                id=delivery.id,
                kind=TaskKind.WEBHOOK,
                target=delivery.webhook_url,
                payload=delivery.request_payload,
                attempts_made=delivery.attempts,
                max_attempts=delivery.max_attempts,
                status=delivery.status,
                next_attempt_at=delivery.next_retry_at,
                project_id=delivery.project_id,
                user_id=delivery.user_id,
                event_type=delivery.event_type,
                secret=secret,
            )
            for delivery, secret in result.all()
        ]

    def _values_for(self, transition: TaskTransition) -> dict[str, Any]:
        values: dict[str, Any] = {
            "status": transition.status.value,
            "attempts": transition.attempts_made,
            "next_retry_at": transition.next_attempt_at,
            "retry_backoff_seconds": transition.backoff_seconds,
            "error_message": transition.error_message,
        }

        result = transition.result
        if result is not None:
            values.update(
                response_status=result.http_status,
                response_body=result.response_body,
                delivery_time_ms=result.duration_ms,
                error_details=result.error_details,
            )

        if transition.status == DeliveryStatus.SUCCEEDED:
            values["delivered_at"] = transition.at
            values["error_details"] = None
        elif transition.status == DeliveryStatus.FAILED:
            values["failed_at"] = transition.at

        return values


class SocialPostQueue(_TableQueue):
    """Queue over ``social_posts``."""

    model = SocialPost
    next_field = "next_attempt_at"

    async def due_tasks(self, now: datetime) -> list[DeliveryTask]:
        stmt = (
            select(SocialPost)
            .where(*self._due_clause(now))
            .order_by(SocialPost.next_attempt_at, SocialPost.id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)

        return [
            DeliveryTask(
                id=post.id,
                kind=TaskKind.SOCIAL_POST,
                target=post.provider,
                payload=post.payload,
                attempts_made=post.attempts,
                max_attempts=post.max_attempts,
                status=post.status,
                next_attempt_at=post.next_attempt_at,
                project_id=post.project_id,
                user_id=post.user_id,
            )
            for post in result.scalars().all()
        ]

    def _values_for(self, transition: TaskTransition) -> dict[str, Any]:
        values: dict[str, Any] = {
            "status": transition.status.value,
            "attempts": transition.attempts_made,
            "next_attempt_at": transition.next_attempt_at,
            "error_message": transition.error_message,
        }

        result = transition.result
        if result is not None:
            values.update(
                last_http_status=result.http_status,
                delivery_time_ms=result.duration_ms,
            )
            if result.external_id:
                values["platform_post_id"] = result.external_id

        if transition.status == DeliveryStatus.SUCCEEDED:
            values["published_at"] = transition.at
        elif transition.status == DeliveryStatus.FAILED:
            values["failed_at"] = transition.at

        return values
