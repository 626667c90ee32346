"""
Audit collaborator interface.
"""

from abc import ABC, abstractmethod

from clinicflow.domain.value_objects.actor import Actor


class AuditService(ABC):
    """Abstract sink receiving one record per workflow transition."""

    @abstractmethod
    async def record(
        self,
        event_type: str,
        actor: Actor,
        target_type: str,
        target_id: str,
        description: str,
    ) -> None:
        pass
