"""Transition audit trail entries shared by the workflow entities."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class StatusChange:
    """One attributed status change (or corrective amendment)."""

    from_status: Optional[str]
    to_status: str
    actor_id: str
    at: datetime
    reason: Optional[str] = None
