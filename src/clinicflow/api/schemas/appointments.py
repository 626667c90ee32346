"""Schemas for scheduled appointments."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ...core.utils.datetime_utils import parse_hhmm
from ...domain.entities.appointment import (
    DEFAULT_DURATION_MINUTES,
    MAX_DURATION_MINUTES,
    MIN_DURATION_MINUTES,
    Appointment,
)
from ...domain.enums.workflow import AppointmentType
from .common import StatusChangeSchema


class CreateAppointmentRequest(BaseModel):
    patient_id: str = Field(..., min_length=1)
    appointment_date: date = Field(..., description="Clinic-local date (YYYY-MM-DD)")
    appointment_time: str = Field(..., description="Clinic-local time (HH:MM, 24h)")
    appointment_type: AppointmentType = AppointmentType.CONSULTATION
    duration_minutes: int = Field(
        DEFAULT_DURATION_MINUTES, ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES
    )
    doctor_id: Optional[str] = None
    notes: str = Field("", max_length=2000)

    @field_validator("appointment_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        parse_hhmm(v)
        return v


class ReasonRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Reason cannot be empty")
        return v.strip()


class CompleteAppointmentRequest(BaseModel):
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    prescription: Optional[str] = None


class AssignDoctorRequest(BaseModel):
    doctor_id: str = Field(..., min_length=1)


class AppointmentSchema(BaseModel):
    appointment_id: str
    patient_id: str
    appointment_date: date
    appointment_time: str
    appointment_type: str
    duration_minutes: int
    doctor_id: Optional[str] = None
    notes: str = ""
    status: str
    rejection_reason: Optional[str] = None
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    prescription: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    status_history: List[StatusChangeSchema] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, appointment: Appointment) -> "AppointmentSchema":
        return cls(
            appointment_id=str(appointment.appointment_id),
            patient_id=appointment.patient_id,
            appointment_date=appointment.appointment_date,
            appointment_time=appointment.appointment_time,
            appointment_type=appointment.appointment_type.value,
            duration_minutes=appointment.duration_minutes,
            doctor_id=appointment.doctor_id,
            notes=appointment.notes,
            status=appointment.status.value,
            rejection_reason=appointment.rejection_reason,
            diagnosis=appointment.diagnosis,
            treatment=appointment.treatment,
            prescription=appointment.prescription,
            completed_at=appointment.completed_at,
            created_at=appointment.created_at,
            updated_at=appointment.updated_at,
            status_history=[StatusChangeSchema.from_domain(c) for c in appointment.status_history],
        )
