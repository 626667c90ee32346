"""Audit sink writing structured JSON audit lines.

Persistence of the audit trail is owned by the log pipeline; this adapter
only emits one line per workflow transition on the ``clinicflow.audit`` logger.
"""

import json
import logging
from datetime import datetime, timezone

from clinicflow.application.ports.services.audit_service import AuditService
from clinicflow.domain.value_objects.actor import Actor

logger = logging.getLogger("clinicflow.audit")


class LogAuditService(AuditService):
    async def record(
        self,
        event_type: str,
        actor: Actor,
        target_type: str,
        target_id: str,
        description: str,
    ) -> None:
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "event": event_type,
            "actor_id": actor.user_id,
            "actor_role": actor.role.value,
            "target_type": target_type,
            "target_id": target_id,
            "description": description,
        }
        logger.info("AUDIT %s", json.dumps(entry, ensure_ascii=False))
