"""Schemas for doctor availability."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ...domain.entities.doctor_status import DoctorStatusRecord


class DoctorSessionRequest(BaseModel):
    doctor_id: Optional[str] = Field(None, description="Defaults to the calling doctor")


class DoctorStatusSchema(BaseModel):
    doctor_id: str
    status: str
    login_time: Optional[datetime] = None
    logout_time: Optional[datetime] = None
    last_activity: Optional[datetime] = None
    current_patient_id: Optional[str] = None
    current_session_id: Optional[str] = None

    @classmethod
    def from_domain(cls, record: DoctorStatusRecord) -> "DoctorStatusSchema":
        return cls(
            doctor_id=record.doctor_id,
            status=record.status.value,
            login_time=record.login_time,
            logout_time=record.logout_time,
            last_activity=record.last_activity,
            current_patient_id=record.current_patient_id,
            current_session_id=record.current_session_id,
        )


class HeartbeatSchema(BaseModel):
    doctor_id: str
    active: bool
