"""Domain events emitted by the workflow services."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ...core.utils.datetime_utils import utcnow


@dataclass(frozen=True)
class QueueChanged:
    """A check-in session changed in a way that affects queue projections."""

    session_id: str
    patient_id: str
    status: str
    previous_status: Optional[str]
    actor_id: str
    occurred_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class DoctorStatusChanged:
    doctor_id: str
    status: str
    previous_status: Optional[str]
    actor_id: str
    occurred_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class AppointmentStatusChanged:
    appointment_id: str
    patient_id: str
    status: str
    previous_status: Optional[str]
    actor_id: str
    occurred_at: datetime = field(default_factory=utcnow)
