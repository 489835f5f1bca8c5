"""Service interfaces for external integrations."""

from abc import ABC, abstractmethod

from ..domain.delivery import AttemptResult, DeliveryTask


class DeliveryExecutor(ABC):
    """Performs one outbound delivery attempt for a task."""

    @abstractmethod
    async def attempt(self, task: DeliveryTask) -> AttemptResult:
        """
        Try to deliver *task* once.

        Transport failures are reported through the result, never raised.
        """
        ...
