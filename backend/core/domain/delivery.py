"""Delivery domain entities shared by the webhook and social-post schedulers."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class DeliveryStatus(str, Enum):
    """Lifecycle of a delivery task."""
    PENDING = "pending"
    RETRY_SCHEDULED = "retry_scheduled"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({DeliveryStatus.SUCCEEDED, DeliveryStatus.FAILED})
DUE_STATUSES = frozenset({DeliveryStatus.PENDING, DeliveryStatus.RETRY_SCHEDULED})


class ErrorKind(str, Enum):
    """How a failed attempt failed."""
    HTTP = "http"            # Response received with a non-success status
    TIMEOUT = "timeout"      # No response within the attempt timeout
    NETWORK = "network"      # DNS failure, refused connection, bad URL
    PERMANENT = "permanent"  # Local misconfiguration that no retry can fix
    UNKNOWN = "unknown"


class TaskKind(str, Enum):
    """Which queue a task came from."""
    WEBHOOK = "webhook"
    SOCIAL_POST = "social_post"


@dataclass
class DeliveryTask:
    """
    Snapshot of one queued unit of outbound work.

    ``payload`` is the serialized JSON string for webhooks and the stored
    payload dict for social posts. ``target`` is the destination URL for
    webhooks and the provider name for social posts.
    """

    id: int
    kind: TaskKind
    target: str
    payload: Any
    attempts_made: int = 0
    max_attempts: int = 3
    status: DeliveryStatus = DeliveryStatus.PENDING
    next_attempt_at: Optional[datetime] = None

    # Collaborator data attached by the scanner
    project_id: Optional[int] = None
    user_id: Optional[str] = None
    event_type: Optional[str] = None
    secret: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.kind, str):
            self.kind = TaskKind(self.kind)
        if isinstance(self.status, str):
            self.status = DeliveryStatus(self.status)

    @property
    def is_exhausted(self) -> bool:
        return self.attempts_made >= self.max_attempts


@dataclass
class AttemptResult:
    """Outcome of a single delivery attempt."""

    ok: bool
    duration_ms: int = 0
    http_status: Optional[int] = None
    response_body: Optional[str] = None
    error_message: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    error_details: Optional[dict] = None

    # Identifier assigned by the destination (e.g. a tweet id)
    external_id: Optional[str] = None


@dataclass
class TaskTransition:
    """The state a task moves to after one pass; written in a single update."""

    task_id: int
    status: DeliveryStatus
    attempts_made: int
    at: datetime
    next_attempt_at: Optional[datetime] = None
    backoff_seconds: Optional[int] = None
    error_message: Optional[str] = None
    result: Optional[AttemptResult] = None


@dataclass
class BatchResult:
    """Counts accumulated over one batch pass."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    retry_scheduled: int = 0
    persist_errors: int = 0
    errors: list[str] = field(default_factory=list)

    def record(self, transition: TaskTransition) -> None:
        if transition.status == DeliveryStatus.SUCCEEDED:
            self.succeeded += 1
        elif transition.status == DeliveryStatus.FAILED:
            self.failed += 1
        elif transition.status == DeliveryStatus.RETRY_SCHEDULED:
            self.retry_scheduled += 1
