"""Service ports for external collaborators."""

from .audit_service import AuditService
from .event_publisher import EventPublisher
from .inventory_service import InventoryService, StockDecrementResult

__all__ = ["AuditService", "EventPublisher", "InventoryService", "StockDecrementResult"]
