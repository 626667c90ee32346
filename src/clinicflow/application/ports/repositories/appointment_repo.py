"""
Appointment repository interface.
"""

from datetime import date
from typing import List, Optional, Sequence

from clinicflow.domain.entities.appointment import Appointment
from clinicflow.domain.enums.workflow import AppointmentStatus


class AppointmentRepository:
    """Repository interface for scheduled appointments."""

    async def create(self, appointment: Appointment) -> Appointment:
        """Insert an appointment.

        Raises ``SlotConflictError`` if the doctor already has an open
        appointment starting at the same date and time.
        """
        raise NotImplementedError

    async def find_by_id(self, appointment_id: str) -> Optional[Appointment]:
        raise NotImplementedError

    async def find_by_patient(self, patient_id: str) -> List[Appointment]:
        """Appointments for a patient, most recent date first."""
        raise NotImplementedError

    async def find_by_date_range(
        self,
        start: date,
        end: date,
        doctor_id: Optional[str] = None,
        statuses: Optional[Sequence[AppointmentStatus]] = None,
    ) -> List[Appointment]:
        """Appointments with start <= date <= end, ordered by date and time."""
        raise NotImplementedError

    async def find_open_up_to(self, day: date) -> List[Appointment]:
        """Scheduled/Confirmed appointments dated on or before ``day``."""
        raise NotImplementedError

    async def save_if_status(self, appointment: Appointment, expected_status: AppointmentStatus) -> bool:
        """Persist only if the stored status still equals ``expected_status``.

        Raises ``SlotConflictError`` like ``create`` when the write would give
        the doctor two open appointments at the same start.
        """
        raise NotImplementedError

    async def delete(self, appointment_id: str) -> None:
        raise NotImplementedError

    async def get_booking_version(self, doctor_id: str) -> int:
        """Current booking version for ``doctor_id``; 0 if it was never booked."""
        raise NotImplementedError

    async def bump_booking_version(self, doctor_id: str, expected_version: int) -> bool:
        """Increment the booking version only if it still equals ``expected_version``."""
        raise NotImplementedError
