"""
MongoDB Beanie model for check-in sessions.
"""

from datetime import datetime
from typing import Dict, List, Optional

import pymongo
from beanie import Document
from pydantic import BaseModel, Field
from pymongo import IndexModel

from .history_m import StatusChangeMongo


class VitalSignsMongo(BaseModel):
    """Embedded vitals payload."""
    temperature: Optional[float] = None
    heart_rate: Optional[int] = None
    systolic_bp: Optional[int] = None
    diastolic_bp: Optional[int] = None
    respiratory_rate: Optional[int] = None
    oxygen_saturation: Optional[float] = None
    weight: Optional[float] = None
    height: Optional[float] = None
    units: Dict[str, str] = Field(default_factory=dict)
    clinical_notes: Optional[str] = None


class ClinicalNotesMongo(BaseModel):
    chief_complaint: str = ""
    diagnosis: str = ""
    treatment_plan: str = ""


class PrescriptionItemMongo(BaseModel):
    medication_name: str
    dosage: str = ""
    frequency: str = ""
    duration: str = ""
    quantity: int = 0


class CheckInSessionMongo(Document):
    """MongoDB model for a check-in session."""
    session_id: str = Field(..., description="Check-in session ID")
    patient_id: str = Field(..., description="Patient reference")
    appointment_id: Optional[str] = Field(None, description="Appointment reference, if any")
    service_type: str = Field(..., description="Clinical service category")
    priority: str = Field(default="Normal", description="Normal, High, Urgent, Emergency")
    status: str = Field(default="waiting", description="Check-in workflow status")
    check_in_method: str = Field(default="staff-assisted")
    checked_in_at: datetime = Field(..., description="Check-in time (UTC)")
    clinic_date: str = Field(..., description="Clinic-local calendar day, YYYY-MM-DD")
    # patient|clinic_date while non-terminal, None afterwards (partial unique index)
    active_day_key: Optional[str] = Field(None)

    vital_signs_collected: bool = Field(default=False)
    vital_signs: Optional[VitalSignsMongo] = None
    vitals_recorded_at: Optional[datetime] = None
    vitals_recorded_by: Optional[str] = None

    assigned_doctor_id: Optional[str] = None
    queued_at: Optional[datetime] = None
    notified_by: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    clinical_notes: Optional[ClinicalNotesMongo] = None
    prescriptions: List[PrescriptionItemMongo] = Field(default_factory=list)
    notes: Optional[str] = None

    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None

    created_by: Optional[str] = None
    created_at: datetime = Field(..., description="Creation time (UTC)")
    updated_at: datetime = Field(..., description="Last change (UTC)")
    status_history: List[StatusChangeMongo] = Field(default_factory=list)

    class Settings:
        name = "checkin_sessions"
        indexes = [
            IndexModel([("session_id", pymongo.ASCENDING)], unique=True),
            IndexModel(
                [("active_day_key", pymongo.ASCENDING)],
                unique=True,
                partialFilterExpression={"active_day_key": {"$type": "string"}},
                name="one_active_session_per_patient_day",
            ),
            [("clinic_date", 1), ("status", 1)],
            [("patient_id", 1), ("status", 1), ("completed_at", -1)],
        ]
