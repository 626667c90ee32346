"""Check-in session domain entity.

One patient's journey through a single clinical visit, from front-desk
arrival to the end of the consultation. All status changes go through
``_transition`` so the transition table below is the only place that decides
what is legal.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, FrozenSet, List, Optional

from ...core.utils.datetime_utils import utcnow
from ..enums.workflow import CheckInMethod, CheckInStatus, Priority
from ..errors import InvalidTransitionError, MissingVitalsError
from ..value_objects.checkin_id import CheckInId
from .history import StatusChange

_ENTITY = "check-in session"

CHECKIN_TRANSITIONS: Dict[CheckInStatus, FrozenSet[CheckInStatus]] = {
    CheckInStatus.WAITING: frozenset(
        {CheckInStatus.VITALS_COLLECTED, CheckInStatus.NO_SHOW, CheckInStatus.CANCELLED}
    ),
    CheckInStatus.VITALS_COLLECTED: frozenset(
        {CheckInStatus.DOCTOR_NOTIFIED, CheckInStatus.NO_SHOW, CheckInStatus.CANCELLED}
    ),
    CheckInStatus.DOCTOR_NOTIFIED: frozenset(
        {CheckInStatus.IN_PROGRESS, CheckInStatus.NO_SHOW, CheckInStatus.CANCELLED}
    ),
    CheckInStatus.IN_PROGRESS: frozenset(
        {CheckInStatus.COMPLETED, CheckInStatus.NO_SHOW, CheckInStatus.CANCELLED}
    ),
    CheckInStatus.COMPLETED: frozenset(),
    CheckInStatus.NO_SHOW: frozenset(),
    CheckInStatus.CANCELLED: frozenset(),
}

# Statuses in which clinical notes may still be corrected
AMENDABLE_STATUSES = (CheckInStatus.IN_PROGRESS, CheckInStatus.COMPLETED)


@dataclass
class VitalSigns:
    """Vitals captured by the nurse before the doctor is notified."""

    temperature: Optional[float] = None
    heart_rate: Optional[int] = None
    systolic_bp: Optional[int] = None
    diastolic_bp: Optional[int] = None
    respiratory_rate: Optional[int] = None
    oxygen_saturation: Optional[float] = None
    weight: Optional[float] = None
    height: Optional[float] = None
    units: Dict[str, str] = field(default_factory=dict)
    clinical_notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "heart_rate": self.heart_rate,
            "systolic_bp": self.systolic_bp,
            "diastolic_bp": self.diastolic_bp,
            "respiratory_rate": self.respiratory_rate,
            "oxygen_saturation": self.oxygen_saturation,
            "weight": self.weight,
            "height": self.height,
            "units": dict(self.units),
            "clinical_notes": self.clinical_notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VitalSigns":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class ClinicalNotes:
    """Free-text consultation notes."""

    chief_complaint: str = ""
    diagnosis: str = ""
    treatment_plan: str = ""


@dataclass
class PrescriptionItem:
    """One prescribed medication line."""

    medication_name: str
    dosage: str = ""
    frequency: str = ""
    duration: str = ""
    quantity: int = 0

    def __post_init__(self) -> None:
        if not self.medication_name or not self.medication_name.strip():
            raise ValueError("Prescription medication name cannot be empty")
        if self.quantity < 0:
            raise ValueError("Prescription quantity cannot be negative")


@dataclass
class CheckInSession:
    """Check-in session domain entity."""

    session_id: CheckInId
    patient_id: str
    service_type: str
    clinic_date: date
    priority: Priority = Priority.NORMAL
    check_in_method: CheckInMethod = CheckInMethod.STAFF_ASSISTED
    appointment_id: Optional[str] = None
    status: CheckInStatus = CheckInStatus.WAITING
    checked_in_at: datetime = field(default_factory=utcnow)

    vital_signs_collected: bool = False
    vital_signs: Optional[VitalSigns] = None
    vitals_recorded_at: Optional[datetime] = None
    vitals_recorded_by: Optional[str] = None

    assigned_doctor_id: Optional[str] = None
    queued_at: Optional[datetime] = None
    notified_by: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    clinical_notes: Optional[ClinicalNotes] = None
    prescriptions: List[PrescriptionItem] = field(default_factory=list)
    notes: Optional[str] = None

    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None

    created_by: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    status_history: List[StatusChange] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.patient_id or not self.patient_id.strip():
            raise ValueError("Check-in session requires a patient id")
        if not self.service_type or not self.service_type.strip():
            raise ValueError("Check-in session requires a service type")
        self.service_type = self.service_type.strip()

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def active_day_key(self) -> Optional[str]:
        """Uniqueness key for the one-active-session-per-day rule; None once terminal."""
        if self.is_terminal:
            return None
        return f"{self.patient_id}|{self.clinic_date.isoformat()}"

    def can_transition_to(self, target: CheckInStatus) -> bool:
        return target in CHECKIN_TRANSITIONS[self.status]

    def _refuse(self, action: str, expected: Optional[CheckInStatus] = None) -> InvalidTransitionError:
        if self.is_terminal:
            reason = f"Check-in session '{self.session_id}' is already {self.status.value}"
        elif expected is not None:
            reason = (
                f"Cannot {action} check-in session '{self.session_id}': it is "
                f"{self.status.value}, expected {expected.value}"
            )
        else:
            reason = None
        return InvalidTransitionError(
            _ENTITY, str(self.session_id), self.status.value, action, reason=reason
        )

    def _transition(
        self,
        target: CheckInStatus,
        actor_id: str,
        action: str,
        at: datetime,
        reason: Optional[str] = None,
        expected: Optional[CheckInStatus] = None,
    ) -> None:
        if not self.can_transition_to(target):
            raise self._refuse(action, expected)
        self.status_history.append(
            StatusChange(
                from_status=self.status.value,
                to_status=target.value,
                actor_id=actor_id,
                at=at,
                reason=reason,
            )
        )
        self.status = target
        self.updated_at = at

    def open(self, actor_id: str, at: Optional[datetime] = None) -> None:
        """Record the creating check-in in the audit trail."""
        at = at or utcnow()
        self.created_by = actor_id
        self.status_history.append(
            StatusChange(from_status=None, to_status=self.status.value, actor_id=actor_id, at=at)
        )

    def record_vitals(self, vitals: VitalSigns, actor_id: str, at: Optional[datetime] = None) -> None:
        at = at or utcnow()
        self._transition(
            CheckInStatus.VITALS_COLLECTED, actor_id, "record vitals for", at,
            expected=CheckInStatus.WAITING,
        )
        self.vital_signs_collected = True
        self.vital_signs = vitals
        self.vitals_recorded_at = at
        self.vitals_recorded_by = actor_id

    def notify_doctor(self, actor_id: str, at: Optional[datetime] = None) -> None:
        at = at or utcnow()
        if not self.is_terminal and not self.vital_signs_collected:
            raise MissingVitalsError(str(self.session_id), self.status.value)
        self._transition(
            CheckInStatus.DOCTOR_NOTIFIED, actor_id, "notify doctor for", at,
            expected=CheckInStatus.VITALS_COLLECTED,
        )
        self.queued_at = at
        self.notified_by = actor_id

    def start(self, doctor_id: str, actor_id: str, at: Optional[datetime] = None) -> None:
        at = at or utcnow()
        self._transition(
            CheckInStatus.IN_PROGRESS, actor_id, "start", at,
            expected=CheckInStatus.DOCTOR_NOTIFIED,
        )
        self.assigned_doctor_id = doctor_id
        self.started_at = at

    def complete(
        self,
        clinical_notes: ClinicalNotes,
        prescriptions: List[PrescriptionItem],
        actor_id: str,
        at: Optional[datetime] = None,
    ) -> None:
        at = at or utcnow()
        self._transition(
            CheckInStatus.COMPLETED, actor_id, "complete", at,
            expected=CheckInStatus.IN_PROGRESS,
        )
        self.clinical_notes = clinical_notes
        self.prescriptions = list(prescriptions)
        self.completed_at = at

    def mark_no_show(self, actor_id: str, at: Optional[datetime] = None) -> None:
        at = at or utcnow()
        self._transition(CheckInStatus.NO_SHOW, actor_id, "mark no-show", at)

    def cancel(self, actor_id: str, reason: Optional[str] = None, at: Optional[datetime] = None) -> None:
        at = at or utcnow()
        self._transition(CheckInStatus.CANCELLED, actor_id, "cancel", at, reason=reason)
        self.cancelled_at = at
        self.cancelled_by = actor_id
        self.cancellation_reason = reason

    def amend_notes(
        self,
        actor_id: str,
        clinical_notes: Optional[ClinicalNotes] = None,
        prescriptions: Optional[List[PrescriptionItem]] = None,
        notes: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> None:
        """Corrective edit of notes/prescriptions; logged in history, status unchanged."""
        if self.status not in AMENDABLE_STATUSES:
            raise InvalidTransitionError(
                _ENTITY,
                str(self.session_id),
                self.status.value,
                "amend notes for",
                reason=(
                    f"Notes for check-in session '{self.session_id}' can only be amended "
                    f"during or after the consultation (currently {self.status.value})"
                ),
            )
        at = at or utcnow()
        changed = []
        if clinical_notes is not None:
            self.clinical_notes = clinical_notes
            changed.append("clinical notes")
        if prescriptions is not None:
            self.prescriptions = list(prescriptions)
            changed.append("prescriptions")
        if notes is not None:
            self.notes = notes
            changed.append("notes")
        if not changed:
            return
        self.status_history.append(
            StatusChange(
                from_status=self.status.value,
                to_status=self.status.value,
                actor_id=actor_id,
                at=at,
                reason="amended " + ", ".join(changed),
            )
        )
        self.updated_at = at

    def waiting_minutes(self, now: Optional[datetime] = None) -> int:
        """Minutes since the patient joined the doctor queue (or checked in)."""
        now = now or utcnow()
        since = self.queued_at or self.checked_in_at
        return max(0, int((now - since).total_seconds() // 60))
