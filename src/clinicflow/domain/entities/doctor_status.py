"""Doctor availability record."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ...core.utils.datetime_utils import utcnow
from ..enums.workflow import DoctorStatus
from ..errors import NotOnlineError


@dataclass
class DoctorStatusRecord:
    """One record per doctor.

    busy always carries the patient being seen; online and offline never do.
    """

    doctor_id: str
    status: DoctorStatus = DoctorStatus.OFFLINE
    login_time: Optional[datetime] = None
    logout_time: Optional[datetime] = None
    last_activity: Optional[datetime] = None
    current_patient_id: Optional[str] = None
    current_session_id: Optional[str] = None
    updated_at: datetime = field(default_factory=utcnow)
    # Bumped by the store on every status write; basis for conditional saves
    version: int = 0

    def __post_init__(self) -> None:
        if not self.doctor_id:
            raise ValueError("Doctor status requires a doctor id")
        self.check_invariant()

    def check_invariant(self) -> None:
        if self.status == DoctorStatus.BUSY and not self.current_patient_id:
            raise ValueError(f"Doctor '{self.doctor_id}' is busy without a current patient")
        if self.status != DoctorStatus.BUSY and self.current_patient_id:
            raise ValueError(
                f"Doctor '{self.doctor_id}' is {self.status.value} but still has a current patient"
            )

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    def _clear_patient(self) -> None:
        self.current_patient_id = None
        self.current_session_id = None

    def _require_active(self) -> None:
        if not self.is_active:
            raise NotOnlineError(self.doctor_id, self.status.value)

    def go_online(self, at: Optional[datetime] = None) -> None:
        """Login: fresh online session."""
        at = at or utcnow()
        self.status = DoctorStatus.ONLINE
        self.login_time = at
        self.last_activity = at
        self.logout_time = None
        self._clear_patient()
        self.updated_at = at

    def go_busy(self, patient_id: str, session_id: Optional[str] = None, at: Optional[datetime] = None) -> None:
        if not patient_id:
            raise ValueError("A busy doctor needs a current patient")
        self._require_active()
        at = at or utcnow()
        self.status = DoctorStatus.BUSY
        self.current_patient_id = patient_id
        self.current_session_id = session_id
        self.last_activity = at
        self.updated_at = at

    def go_available(self, at: Optional[datetime] = None) -> None:
        self._require_active()
        at = at or utcnow()
        self.status = DoctorStatus.ONLINE
        self._clear_patient()
        self.last_activity = at
        self.updated_at = at

    def go_offline(self, at: Optional[datetime] = None) -> None:
        at = at or utcnow()
        self.status = DoctorStatus.OFFLINE
        self.logout_time = at
        self._clear_patient()
        self.updated_at = at

    def touch(self, at: Optional[datetime] = None) -> None:
        # Liveness only; updated_at tracks status changes for conditional writes
        self.last_activity = at or utcnow()

    def is_stale(self, cutoff: datetime) -> bool:
        """Active and not heard from since before ``cutoff``."""
        if not self.is_active:
            return False
        return self.last_activity is None or self.last_activity < cutoff
