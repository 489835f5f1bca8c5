# Domain Entities
# Pure business objects with no external dependencies
from .delivery import (
    DUE_STATUSES,
    TERMINAL_STATUSES,
    AttemptResult,
    BatchResult,
    DeliveryStatus,
    DeliveryTask,
    ErrorKind,
    TaskKind,
    TaskTransition,
)

__all__ = [
    "DeliveryStatus",
    "DeliveryTask",
    "AttemptResult",
    "TaskTransition",
    "BatchResult",
    "ErrorKind",
    "TaskKind",
    "DUE_STATUSES",
    "TERMINAL_STATUSES",
]
