# Interfaces (Abstract Contracts)
# Adapters implement these interfaces
from .repositories import DeliveryQueue
from .services import DeliveryExecutor

__all__ = [
    "DeliveryQueue",
    "DeliveryExecutor",
]
