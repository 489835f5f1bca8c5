"""
Delivery Retry Scheduler.

Each cron trigger runs one batch pass: scan the queue for due tasks, make
one delivery attempt per task, and persist the resulting state before
moving on. All retry state lives on the task row, so a pass that dies
halfway leaves the remaining tasks for the next trigger.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, time
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from adapters.webhooks import WebhookSender
from core.domain.delivery import (
    AttemptResult,
    BatchResult,
    DeliveryStatus,
    DeliveryTask,
    ErrorKind,
    TaskTransition,
)
from core.interfaces.repositories import DeliveryQueue
from core.interfaces.services import DeliveryExecutor
from core.retry_policy import RetryPolicy
from infrastructure.config.settings import settings
from infrastructure.database.models.social import SocialPost
from services.delivery_queue import SocialPostQueue, WebhookDeliveryQueue
from services.pacing import RequestPacer
from services.social_publisher import SocialPostPublisher

logger = logging.getLogger(__name__)

MAX_ATTEMPTS_EXCEEDED = "Maximum retry attempts exceeded"


def utc_now() -> datetime:
    return datetime.now(UTC)


class BatchCoordinator:
    """
    Runs Dispatch, Outcome and Persist for every due task, one at a time.

    Errors inside a task's attempt or persist step are contained to that
    task. Only a failure to scan the queue propagates to the caller.
    """

    def __init__(
        self,
        queue: DeliveryQueue,
        executor: DeliveryExecutor,
        policy: Optional[RetryPolicy] = None,
        pacer: Optional[RequestPacer] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.queue = queue
        self.executor = executor
        self.policy = policy or RetryPolicy(
            base_delay=settings.retry_base_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
        )
        self.pacer = pacer
        self._clock = clock

    async def run(self) -> BatchResult:
        """Process the full due set once."""
        batch = BatchResult()
        tasks = await self.queue.due_tasks(self._clock())

        if not tasks:
            logger.debug("No tasks due")
            return batch

        logger.info(f"Found {len(tasks)} tasks due for delivery")
        if self.pacer:
            self.pacer.reset()

        for task in tasks:
            if self.pacer:
                await self.pacer.wait()

            batch.processed += 1
            transition = await self.process(task)

            try:
                applied = await self.queue.apply(transition)
            except Exception as e:
                logger.error(
                    f"Failed to persist state for task {task.id}: {e}",
                    exc_info=True,
                    extra={"task_id": task.id, "task_kind": task.kind.value},
                )
                batch.persist_errors += 1
                batch.errors.append(f"Task {task.id}: could not save state")
                continue

            if applied:
                batch.record(transition)
                if transition.status == DeliveryStatus.FAILED and transition.error_message:
                    batch.errors.append(f"Task {task.id}: {transition.error_message}")

        logger.info(
            f"Batch complete: {batch.processed} processed, {batch.succeeded} succeeded, "
            f"{batch.retry_scheduled} rescheduled, {batch.failed} failed"
        )
        return batch

    async def process(self, task: DeliveryTask) -> TaskTransition:
        """Attempt *task* once and decide its next state. Never raises."""
        log_extra = {"task_id": task.id, "task_kind": task.kind.value}

        if task.is_exhausted:
            logger.warning(f"Task {task.id} already used {task.attempts_made} attempts", extra=log_extra)
            return TaskTransition(
                task_id=task.id,
                status=DeliveryStatus.FAILED,
                attempts_made=task.attempts_made,
                at=self._clock(),
                error_message=MAX_ATTEMPTS_EXCEEDED,
            )

        try:
            result = await self.executor.attempt(task)
        except Exception as e:
            logger.error(f"Executor raised for task {task.id}: {e}", exc_info=True, extra=log_extra)
            result = AttemptResult(
                ok=False,
                error_message=str(e) or type(e).__name__,
                error_kind=ErrorKind.UNKNOWN,
            )

        attempts_made = task.attempts_made + 1
        now = self._clock()
        log_extra["attempt"] = attempts_made

        if result.ok:
            logger.info(f"Task {task.id} delivered on attempt {attempts_made}", extra=log_extra)
            return TaskTransition(
                task_id=task.id,
                status=DeliveryStatus.SUCCEEDED,
                attempts_made=attempts_made,
                at=now,
                result=result,
            )

        retryable = self.policy.should_retry(result.error_kind, result.http_status)
        if retryable and attempts_made < task.max_attempts:
            next_attempt_at, delay = self.policy.next_attempt_at(now, attempts_made)
            logger.info(
                f"Task {task.id} failed ({result.error_message}), retrying in {delay}s",
                extra=log_extra,
            )
            return TaskTransition(
                task_id=task.id,
                status=DeliveryStatus.RETRY_SCHEDULED,
                attempts_made=attempts_made,
                at=now,
                next_attempt_at=next_attempt_at,
                backoff_seconds=delay,
                error_message=result.error_message,
                result=result,
            )

        logger.warning(
            f"Task {task.id} failed permanently after {attempts_made} attempts: "
            f"{result.error_message}",
            extra=log_extra,
        )
        return TaskTransition(
            task_id=task.id,
            status=DeliveryStatus.FAILED,
            attempts_made=attempts_made,
            at=now,
            error_message=result.error_message,
            result=result,
        )


async def run_webhook_retries(
    db: AsyncSession,
    executor: Optional[DeliveryExecutor] = None,
    clock: Callable[[], datetime] = utc_now,
) -> BatchResult:
    """One pass over due webhook deliveries."""
    coordinator = BatchCoordinator(
        queue=WebhookDeliveryQueue(db),
        executor=executor or WebhookSender(),
        clock=clock,
    )
    return await coordinator.run()


async def run_social_publishing(
    db: AsyncSession,
    executor: Optional[DeliveryExecutor] = None,
    pacer: Optional[RequestPacer] = None,
    clock: Callable[[], datetime] = utc_now,
) -> BatchResult:
    """One pass over due social posts, paced between provider calls."""
    coordinator = BatchCoordinator(
        queue=SocialPostQueue(db),
        executor=executor or SocialPostPublisher(db),
        pacer=pacer or RequestPacer(settings.social_post_pacing_ms),
        clock=clock,
    )
    return await coordinator.run()


async def social_publishing_status(
    db: AsyncSession,
    clock: Callable[[], datetime] = utc_now,
) -> dict:
    """Due count plus today's published and failed totals."""
    now = clock()
    start_of_day = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
    queue = SocialPostQueue(db)

    return {
        "due_for_publishing": await queue.count_due(now),
        "published_today": await queue.count_since(
            DeliveryStatus.SUCCEEDED, SocialPost.published_at, start_of_day
        ),
        "failed_today": await queue.count_since(
            DeliveryStatus.FAILED, SocialPost.failed_at, start_of_day
        ),
        "timestamp": now,
    }
