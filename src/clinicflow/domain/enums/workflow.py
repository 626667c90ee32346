"""
Status and category enums for check-in sessions, doctors and appointments.

Values are the printable strings persisted in the store and shown on the
dashboard.
"""

from enum import Enum


class CheckInStatus(str, Enum):
    """Check-in session states, in workflow order."""
    WAITING = "waiting"
    VITALS_COLLECTED = "vitals-collected"
    DOCTOR_NOTIFIED = "doctor-notified"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    NO_SHOW = "no-show"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_CHECKIN_STATUSES


TERMINAL_CHECKIN_STATUSES = frozenset(
    {CheckInStatus.COMPLETED, CheckInStatus.NO_SHOW, CheckInStatus.CANCELLED}
)

# Sessions visible in the doctor-facing queue
QUEUE_STATUSES = (CheckInStatus.DOCTOR_NOTIFIED, CheckInStatus.IN_PROGRESS)


class Priority(str, Enum):
    """Triage priority; higher rank is seen first."""
    NORMAL = "Normal"
    HIGH = "High"
    URGENT = "Urgent"
    EMERGENCY = "Emergency"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.NORMAL: 0,
    Priority.HIGH: 1,
    Priority.URGENT: 2,
    Priority.EMERGENCY: 3,
}


class CheckInMethod(str, Enum):
    STAFF_ASSISTED = "staff-assisted"
    SELF_SERVICE = "self-service"


class DoctorStatus(str, Enum):
    """Doctor availability states."""
    OFFLINE = "offline"
    ONLINE = "online"
    BUSY = "busy"

    @property
    def is_active(self) -> bool:
        return self in (DoctorStatus.ONLINE, DoctorStatus.BUSY)


class AppointmentStatus(str, Enum):
    """Scheduled appointment states."""
    SCHEDULED = "Scheduled"
    CONFIRMED = "Confirmed"
    COMPLETED = "Completed"
    NO_SHOW = "No Show"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            AppointmentStatus.COMPLETED,
            AppointmentStatus.NO_SHOW,
            AppointmentStatus.CANCELLED,
        )


OPEN_APPOINTMENT_STATUSES = (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED)


class AppointmentType(str, Enum):
    CONSULTATION = "consultation"
    FOLLOW_UP = "follow-up"
    CHECKUP = "checkup"
    EMERGENCY = "emergency"
    DENTAL = "dental"


class ActorRole(str, Enum):
    """Roles supplied by the identity layer."""
    ADMIN = "admin"
    STAFF = "staff"
    NURSE = "nurse"
    DOCTOR = "doctor"
    PATIENT = "patient"
    SYSTEM = "system"
