"""Fire-and-forget dispatch of audit records and domain events."""

import asyncio
import logging
from typing import Any, Optional, Set

from clinicflow.application.ports.services.audit_service import AuditService
from clinicflow.application.ports.services.event_publisher import EventPublisher
from clinicflow.domain.value_objects.actor import Actor

logger = logging.getLogger("clinicflow")


class SideEffectDispatcher:
    """Sends audit records in the background and publishes events without failing the caller.

    Audit writes are scheduled as tasks and never awaited by the workflow;
    ``flush()`` lets shutdown code and tests wait for the ones in flight.
    """

    def __init__(self, audit: AuditService, publisher: Optional[EventPublisher] = None):
        self._audit = audit
        self._publisher = publisher
        self._pending: Set[asyncio.Task] = set()

    def audit(
        self,
        event_type: str,
        actor: Actor,
        target_type: str,
        target_id: str,
        description: str,
    ) -> None:
        task = asyncio.get_running_loop().create_task(
            self._record(event_type, actor, target_type, target_id, description)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _record(
        self,
        event_type: str,
        actor: Actor,
        target_type: str,
        target_id: str,
        description: str,
    ) -> None:
        try:
            await self._audit.record(event_type, actor, target_type, target_id, description)
        except Exception as e:
            logger.warning(
                "Audit write failed event=%s target=%s/%s: %s",
                event_type,
                target_type,
                target_id,
                e,
                exc_info=True,
            )

    async def publish(self, event: Any) -> None:
        if self._publisher is None:
            return
        try:
            await self._publisher.publish(event)
        except Exception as e:
            logger.warning("Event publish failed for %s: %s", type(event).__name__, e, exc_info=True)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def flush(self) -> None:
        """Wait for in-flight audit writes."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
