"""Beanie documents registered with init_beanie."""

from .appointment_m import AppointmentMongo
from .checkin_m import CheckInSessionMongo
from .doctor_booking_m import DoctorBookingMongo
from .doctor_status_m import DoctorStatusMongo

DOCUMENT_MODELS = [CheckInSessionMongo, DoctorStatusMongo, AppointmentMongo, DoctorBookingMongo]

__all__ = [
    "AppointmentMongo",
    "CheckInSessionMongo",
    "DoctorBookingMongo",
    "DoctorStatusMongo",
    "DOCUMENT_MODELS",
]
