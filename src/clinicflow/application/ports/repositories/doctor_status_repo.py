"""
Doctor status repository interface.
"""

from datetime import datetime
from typing import List, Optional

from clinicflow.domain.entities.doctor_status import DoctorStatusRecord


class DoctorStatusRepository:
    """Repository interface for doctor availability records."""

    async def find_by_doctor_id(self, doctor_id: str) -> Optional[DoctorStatusRecord]:
        raise NotImplementedError

    async def find_all(self) -> List[DoctorStatusRecord]:
        raise NotImplementedError

    async def find_stale(self, cutoff: datetime) -> List[DoctorStatusRecord]:
        """Online/busy records whose last activity is older than ``cutoff``."""
        raise NotImplementedError

    async def upsert(self, record: DoctorStatusRecord) -> DoctorStatusRecord:
        """Create or replace the doctor's record unconditionally (login/logout)."""
        raise NotImplementedError

    async def save_if_version(self, record: DoctorStatusRecord, expected_version: int) -> bool:
        """
        Persist only if the stored version still equals ``expected_version``.

        On success the stored and in-memory version become expected_version + 1.
        """
        raise NotImplementedError

    async def touch(self, doctor_id: str, at: datetime) -> bool:
        """Set last_activity while online/busy. Returns False if the doctor is not active."""
        raise NotImplementedError

    async def mark_offline_if_stale(self, doctor_id: str, cutoff: datetime, at: datetime) -> bool:
        """
        Atomically force an active record offline.

        Applies only while the record is still online/busy with last_activity
        older than ``cutoff``; a heartbeat landing first makes this a no-op.
        """
        raise NotImplementedError
