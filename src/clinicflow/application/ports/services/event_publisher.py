"""
Domain event publisher interface.
"""

from abc import ABC, abstractmethod
from typing import Any


class EventPublisher(ABC):
    """Abstract publisher for domain events (queue changes, status changes)."""

    @abstractmethod
    async def publish(self, event: Any) -> None:
        pass
