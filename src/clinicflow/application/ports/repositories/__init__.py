"""Repository ports (Session Store Gateway)."""

from .appointment_repo import AppointmentRepository
from .checkin_repo import CheckInRepository
from .doctor_status_repo import DoctorStatusRepository

__all__ = ["AppointmentRepository", "CheckInRepository", "DoctorStatusRepository"]
