"""MongoDB Beanie model for doctor availability records."""

from datetime import datetime
from typing import Optional

import pymongo
from beanie import Document
from pydantic import Field
from pymongo import IndexModel


class DoctorStatusMongo(Document):
    """One availability record per doctor."""

    doctor_id: str = Field(..., description="Doctor ID")
    status: str = Field(default="offline", description="offline, online or busy")
    login_time: Optional[datetime] = None
    logout_time: Optional[datetime] = None
    last_activity: Optional[datetime] = None
    current_patient_id: Optional[str] = None
    current_session_id: Optional[str] = None
    updated_at: datetime = Field(..., description="Last status change (UTC)")
    version: int = Field(default=0, description="Incremented on every status write")

    class Settings:
        name = "doctor_status"
        indexes = [
            IndexModel([("doctor_id", pymongo.ASCENDING)], unique=True),
            [("status", 1), ("last_activity", 1)],
        ]
