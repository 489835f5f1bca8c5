"""Repository interfaces for data access."""

from abc import ABC, abstractmethod
from datetime import datetime

from ..domain.delivery import DeliveryTask, TaskTransition


class DeliveryQueue(ABC):
    """Durable queue of delivery tasks, scanned by due time."""

    @abstractmethod
    async def due_tasks(self, now: datetime) -> list[DeliveryTask]:
        """Non-terminal tasks whose next attempt time is at or before *now*."""
        ...

    @abstractmethod
    async def count_due(self, now: datetime) -> int:
        """Number of tasks ``due_tasks`` would return."""
        ...

    @abstractmethod
    async def apply(self, transition: TaskTransition) -> bool:
        """
        Persist one task's new state atomically.

        Returns False when the row is missing or already terminal.
        """
        ...
