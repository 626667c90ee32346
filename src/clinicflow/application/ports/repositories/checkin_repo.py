"""
Check-in session repository interface.
"""

from datetime import date
from typing import List, Optional, Sequence

from clinicflow.domain.entities.checkin_session import CheckInSession
from clinicflow.domain.enums.workflow import CheckInStatus


class CheckInRepository:
    """Repository interface for check-in sessions."""

    async def create(self, session: CheckInSession) -> CheckInSession:
        """Insert a new session.

        Raises DuplicateActiveSessionError if the patient already has a
        non-terminal session on the same clinic day.
        """
        raise NotImplementedError

    async def find_by_id(self, session_id: str) -> Optional[CheckInSession]:
        """Find a session by ID."""
        raise NotImplementedError

    async def find_active_for_patient(self, patient_id: str, clinic_date: date) -> Optional[CheckInSession]:
        """Find the patient's non-terminal session on a clinic day, if any."""
        raise NotImplementedError

    async def find_by_clinic_date(
        self, clinic_date: date, statuses: Optional[Sequence[CheckInStatus]] = None
    ) -> List[CheckInSession]:
        """All sessions of a clinic day, oldest check-in first, optionally filtered by status."""
        raise NotImplementedError

    async def find_history(self, patient_id: str, limit: int = 50) -> List[CheckInSession]:
        """Completed sessions for a patient, newest first."""
        raise NotImplementedError

    async def save_if_status(self, session: CheckInSession, expected_status: CheckInStatus) -> bool:
        """
        Conditionally persist ``session``.

        Writes only if the stored status still equals ``expected_status``.
        Returns True when the write happened, False when another writer
        got there first.
        """
        raise NotImplementedError
