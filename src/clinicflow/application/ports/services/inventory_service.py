"""
Inventory collaborator interface.
"""

from abc import ABC, abstractmethod
from enum import Enum


class StockDecrementResult(str, Enum):
    OK = "ok"
    INSUFFICIENT_STOCK = "insufficient_stock"


class InventoryService(ABC):
    """Abstract service for dispensed-medication stock bookkeeping."""

    @abstractmethod
    async def decrement_stock(self, item_name: str, quantity: int) -> StockDecrementResult:
        """
        Decrement stock of ``item_name`` by ``quantity``.

        Returns INSUFFICIENT_STOCK when the item cannot cover the quantity.
        Transport problems raise InventoryServiceError.
        """
        pass
