"""Scheduled appointment domain entity.

Date and time are clinic-local wall clock values; the overdue check compares
them against clinic-local "now", never UTC.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, FrozenSet, List, Optional

from ...core.utils.datetime_utils import parse_hhmm, utcnow
from ..enums.workflow import AppointmentStatus, AppointmentType
from ..errors import InvalidTransitionError
from ..value_objects.appointment_id import AppointmentId
from .history import StatusChange

_ENTITY = "appointment"

MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 240
DEFAULT_DURATION_MINUTES = 30

APPOINTMENT_TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset(
        {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.NO_SHOW,
            AppointmentStatus.CANCELLED,
        }
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}


@dataclass
class Appointment:
    """Appointment domain entity."""

    appointment_id: AppointmentId
    patient_id: str
    appointment_date: date
    appointment_time: str
    appointment_type: AppointmentType = AppointmentType.CONSULTATION
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    doctor_id: Optional[str] = None
    notes: str = ""
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    rejection_reason: Optional[str] = None
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    prescription: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    status_history: List[StatusChange] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.patient_id:
            raise ValueError("Appointment requires a patient id")
        parse_hhmm(self.appointment_time)
        if not MIN_DURATION_MINUTES <= self.duration_minutes <= MAX_DURATION_MINUTES:
            raise ValueError(
                f"Appointment duration must be between {MIN_DURATION_MINUTES} "
                f"and {MAX_DURATION_MINUTES} minutes"
            )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def starts_at(self) -> datetime:
        """Clinic-local start (naive)."""
        return datetime.combine(self.appointment_date, parse_hhmm(self.appointment_time))

    @property
    def ends_at(self) -> datetime:
        return self.starts_at + timedelta(minutes=self.duration_minutes)

    @property
    def slot_key(self) -> Optional[str]:
        """doctor|date|time while open with a doctor assigned; None otherwise."""
        if self.is_terminal or not self.doctor_id:
            return None
        return f"{self.doctor_id}|{self.appointment_date.isoformat()}|{self.appointment_time}"

    def overlaps(self, other: "Appointment") -> bool:
        return self.starts_at < other.ends_at and other.starts_at < self.ends_at

    def is_overdue(self, now_local: datetime) -> bool:
        """Open and its start is at or before ``now_local`` (clinic wall clock)."""
        return not self.is_terminal and self.starts_at <= now_local

    def _transition(
        self,
        target: AppointmentStatus,
        actor_id: str,
        action: str,
        at: datetime,
        reason: Optional[str] = None,
    ) -> None:
        if target not in APPOINTMENT_TRANSITIONS[self.status]:
            if self.is_terminal:
                message = f"Appointment '{self.appointment_id}' is already {self.status.value.lower()}"
            else:
                message = (
                    f"Cannot {action} appointment '{self.appointment_id}' while it is "
                    f"{self.status.value.lower()}"
                )
            raise InvalidTransitionError(
                _ENTITY, str(self.appointment_id), self.status.value, action, reason=message
            )
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
        at = at or utcnow()
        self.created_by = actor_id
        self.status_history.append(
            StatusChange(from_status=None, to_status=self.status.value, actor_id=actor_id, at=at)
        )

    def accept(self, actor_id: str, at: Optional[datetime] = None) -> None:
        self._transition(AppointmentStatus.CONFIRMED, actor_id, "accept", at or utcnow())

    def reject(self, reason: str, actor_id: str, at: Optional[datetime] = None) -> None:
        if not reason or not reason.strip():
            raise ValueError("A reason is required to reject an appointment")
        self._transition(AppointmentStatus.CANCELLED, actor_id, "reject", at or utcnow(), reason=reason)
        self.rejection_reason = reason

    def cancel(self, reason: str, actor_id: str, at: Optional[datetime] = None) -> None:
        if not reason or not reason.strip():
            raise ValueError("A reason is required to cancel an appointment")
        self._transition(AppointmentStatus.CANCELLED, actor_id, "cancel", at or utcnow(), reason=reason)
        self.rejection_reason = reason

    def complete(
        self,
        actor_id: str,
        diagnosis: Optional[str] = None,
        treatment: Optional[str] = None,
        prescription: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> None:
        at = at or utcnow()
        self._transition(AppointmentStatus.COMPLETED, actor_id, "complete", at)
        self.diagnosis = diagnosis
        self.treatment = treatment
        self.prescription = prescription
        self.completed_at = at

    def mark_no_show(self, actor_id: str, at: Optional[datetime] = None) -> None:
        self._transition(
            AppointmentStatus.NO_SHOW, actor_id, "mark no-show", at or utcnow(),
            reason="appointment time passed without attendance",
        )

    def assign_doctor(self, doctor_id: str, actor_id: str, at: Optional[datetime] = None) -> None:
        if self.is_terminal:
            raise InvalidTransitionError(
                _ENTITY,
                str(self.appointment_id),
                self.status.value,
                "assign a doctor to",
                reason=f"Appointment '{self.appointment_id}' is already {self.status.value.lower()}",
            )
        at = at or utcnow()
        self.status_history.append(
            StatusChange(
                from_status=self.status.value,
                to_status=self.status.value,
                actor_id=actor_id,
                at=at,
                reason=f"assigned doctor {doctor_id}",
            )
        )
        self.doctor_id = doctor_id
        self.updated_at = at
