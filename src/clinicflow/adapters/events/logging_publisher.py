"""Event publisher that records domain events on the application log.

Dashboards learn about changes by polling, so events only need to be
observable, not delivered.
"""

import logging
from dataclasses import asdict, is_dataclass
from typing import Any

from clinicflow.application.ports.services.event_publisher import EventPublisher

logger = logging.getLogger("clinicflow.events")


class LoggingEventPublisher(EventPublisher):
    async def publish(self, event: Any) -> None:
        payload = asdict(event) if is_dataclass(event) else {"event": repr(event)}
        logger.info("EVENT %s %s", type(event).__name__, payload)
