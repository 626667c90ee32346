"""Embedded status-history entry shared by the workflow documents."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class StatusChangeMongo(BaseModel):
    """One attributed transition, kept for audit reconstruction."""
    from_status: Optional[str] = Field(None, description="Status before the change (None on creation)")
    to_status: str = Field(..., description="Status after the change")
    actor_id: str = Field(..., description="User that caused the change")
    at: datetime = Field(..., description="When the change happened (UTC)")
    reason: Optional[str] = Field(None, description="Reason or amendment note")
