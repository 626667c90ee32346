"""
Schemas for check-in sessions and the doctor queue.
"""

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from ...application.use_cases.queue_projector import QueueEntry, QueueSummary
from ...domain.entities.checkin_session import (
    CheckInSession,
    ClinicalNotes,
    PrescriptionItem,
    VitalSigns,
)
from ...domain.enums.workflow import CheckInMethod, Priority
from .common import StatusChangeSchema


# ============================================================================
# REQUESTS
# ============================================================================


class CheckInRequest(BaseModel):
    patient_id: str = Field(..., min_length=1, description="Patient ID")
    service_type: str = Field(..., min_length=1, description="Requested service")
    priority: Priority = Field(Priority.NORMAL, description="Triage priority")
    check_in_method: CheckInMethod = Field(CheckInMethod.STAFF_ASSISTED, description="Front desk or kiosk")
    appointment_id: Optional[str] = Field(None, description="Linked appointment, if any")
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("patient_id", "service_type")
    @classmethod
    def strip_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Field cannot be empty")
        return v.strip()


class VitalSignsSchema(BaseModel):
    temperature: Optional[float] = Field(None, ge=25, le=45)
    heart_rate: Optional[int] = Field(None, ge=20, le=250)
    systolic_bp: Optional[int] = Field(None, ge=50, le=260)
    diastolic_bp: Optional[int] = Field(None, ge=30, le=160)
    respiratory_rate: Optional[int] = Field(None, ge=4, le=60)
    oxygen_saturation: Optional[float] = Field(None, ge=50, le=100)
    weight: Optional[float] = Field(None, gt=0)
    height: Optional[float] = Field(None, gt=0)
    units: Dict[str, str] = Field(default_factory=dict)
    clinical_notes: Optional[str] = None

    def to_domain(self) -> VitalSigns:
        return VitalSigns(**self.model_dump())


class ClinicalNotesSchema(BaseModel):
    chief_complaint: str = ""
    diagnosis: str = ""
    treatment_plan: str = ""

    def to_domain(self) -> ClinicalNotes:
        return ClinicalNotes(
            chief_complaint=self.chief_complaint,
            diagnosis=self.diagnosis,
            treatment_plan=self.treatment_plan,
        )


class PrescriptionItemSchema(BaseModel):
    medication_name: str = Field(..., min_length=1)
    dosage: str = ""
    frequency: str = ""
    duration: str = ""
    quantity: int = Field(0, ge=0)

    def to_domain(self) -> PrescriptionItem:
        return PrescriptionItem(**self.model_dump())


class CancelCheckInRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class StartConsultationRequest(BaseModel):
    doctor_id: Optional[str] = Field(None, description="Defaults to the calling doctor")


class CompleteConsultationRequest(BaseModel):
    clinical_notes: ClinicalNotesSchema = Field(default_factory=ClinicalNotesSchema)
    prescriptions: List[PrescriptionItemSchema] = Field(default_factory=list)


class AmendNotesRequest(BaseModel):
    clinical_notes: Optional[ClinicalNotesSchema] = None
    prescriptions: Optional[List[PrescriptionItemSchema]] = None
    notes: Optional[str] = None


# ============================================================================
# RESPONSES
# ============================================================================


class CheckInSessionSchema(BaseModel):
    session_id: str
    patient_id: str
    service_type: str
    clinic_date: date
    priority: str
    check_in_method: str
    appointment_id: Optional[str] = None
    status: str
    checked_in_at: datetime
    vital_signs_collected: bool
    vital_signs: Optional[VitalSignsSchema] = None
    vitals_recorded_at: Optional[datetime] = None
    vitals_recorded_by: Optional[str] = None
    assigned_doctor_id: Optional[str] = None
    queued_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    clinical_notes: Optional[ClinicalNotesSchema] = None
    prescriptions: List[PrescriptionItemSchema] = Field(default_factory=list)
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    status_history: List[StatusChangeSchema] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, session: CheckInSession) -> "CheckInSessionSchema":
        return cls(
            session_id=str(session.session_id),
            patient_id=session.patient_id,
            service_type=session.service_type,
            clinic_date=session.clinic_date,
            priority=session.priority.value,
            check_in_method=session.check_in_method.value,
            appointment_id=session.appointment_id,
            status=session.status.value,
            checked_in_at=session.checked_in_at,
            vital_signs_collected=session.vital_signs_collected,
            vital_signs=(
                VitalSignsSchema.model_construct(**session.vital_signs.to_dict())
                if session.vital_signs
                else None
            ),
            vitals_recorded_at=session.vitals_recorded_at,
            vitals_recorded_by=session.vitals_recorded_by,
            assigned_doctor_id=session.assigned_doctor_id,
            queued_at=session.queued_at,
            started_at=session.started_at,
            completed_at=session.completed_at,
            clinical_notes=(
                ClinicalNotesSchema(
                    chief_complaint=session.clinical_notes.chief_complaint,
                    diagnosis=session.clinical_notes.diagnosis,
                    treatment_plan=session.clinical_notes.treatment_plan,
                )
                if session.clinical_notes
                else None
            ),
            prescriptions=[
                PrescriptionItemSchema(
                    medication_name=p.medication_name,
                    dosage=p.dosage,
                    frequency=p.frequency,
                    duration=p.duration,
                    quantity=p.quantity,
                )
                for p in session.prescriptions
            ],
            notes=session.notes,
            cancellation_reason=session.cancellation_reason,
            status_history=[StatusChangeSchema.from_domain(c) for c in session.status_history],
        )


class QueueEntrySchema(BaseModel):
    position: int
    waiting_minutes: int
    session: CheckInSessionSchema

    @classmethod
    def from_domain(cls, entry: QueueEntry) -> "QueueEntrySchema":
        return cls(
            position=entry.position,
            waiting_minutes=entry.waiting_minutes,
            session=CheckInSessionSchema.from_domain(entry.session),
        )


class QueueSummarySchema(BaseModel):
    total: int
    waiting: int
    vitals_collected: int
    doctor_notified: int
    in_progress: int
    completed: int
    no_show: int
    cancelled: int

    @classmethod
    def from_domain(cls, summary: QueueSummary) -> "QueueSummarySchema":
        return cls(**summary.__dict__)


class CompletionSchema(BaseModel):
    session: CheckInSessionSchema
    stock_warnings: List[str] = Field(default_factory=list)
