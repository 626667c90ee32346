"""Domain entities for the clinic workflow."""

from .appointment import Appointment
from .checkin_session import CheckInSession, ClinicalNotes, PrescriptionItem, VitalSigns
from .doctor_status import DoctorStatusRecord
from .history import StatusChange

__all__ = [
    "Appointment",
    "CheckInSession",
    "ClinicalNotes",
    "DoctorStatusRecord",
    "PrescriptionItem",
    "StatusChange",
    "VitalSigns",
]
