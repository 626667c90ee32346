"""MongoDB Beanie model for scheduled appointments."""

from datetime import datetime
from typing import List, Optional

import pymongo
from beanie import Document
from pydantic import Field
from pymongo import IndexModel

from .history_m import StatusChangeMongo


class AppointmentMongo(Document):
    """MongoDB model for an appointment.

    Date and time are clinic-local strings so range queries sort lexically.
    """

    appointment_id: str = Field(..., description="Appointment ID")
    patient_id: str = Field(..., description="Patient reference")
    doctor_id: Optional[str] = Field(None, description="Assigned doctor (may be deferred)")
    appointment_date: str = Field(..., description="Clinic-local date, YYYY-MM-DD")
    appointment_time: str = Field(..., description="Clinic-local time, HH:MM")
    duration_minutes: int = Field(default=30)
    appointment_type: str = Field(default="consultation")
    status: str = Field(default="Scheduled")
    notes: str = Field(default="")
    rejection_reason: Optional[str] = None
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    prescription: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: datetime = Field(..., description="Creation time (UTC)")
    updated_at: datetime = Field(..., description="Last change (UTC)")
    status_history: List[StatusChangeMongo] = Field(default_factory=list)
    # doctor|date|time while open, None afterwards (partial unique index)
    slot_key: Optional[str] = Field(None)

    class Settings:
        name = "appointments"
        indexes = [
            IndexModel([("appointment_id", pymongo.ASCENDING)], unique=True),
            IndexModel(
                [("slot_key", pymongo.ASCENDING)],
                unique=True,
                partialFilterExpression={"slot_key": {"$type": "string"}},
                name="one_open_appointment_per_doctor_slot",
            ),
            [("doctor_id", 1), ("appointment_date", 1), ("status", 1)],
            [("status", 1), ("appointment_date", 1)],
            [("patient_id", 1), ("appointment_date", -1)],
        ]
