"""Queue Projector: read-only views derived from check-in sessions.

Nothing is cached; every call re-reads the store so concurrent viewers never
diverge.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from clinicflow.application.ports.repositories.checkin_repo import CheckInRepository
from clinicflow.core.utils.datetime_utils import clinic_date_of, utcnow
from clinicflow.domain.entities.checkin_session import CheckInSession
from clinicflow.domain.enums.workflow import QUEUE_STATUSES, CheckInStatus


@dataclass
class QueueEntry:
    position: int
    session: CheckInSession
    waiting_minutes: int


@dataclass
class QueueSummary:
    total: int = 0
    waiting: int = 0
    vitals_collected: int = 0
    doctor_notified: int = 0
    in_progress: int = 0
    completed: int = 0
    no_show: int = 0
    cancelled: int = 0


def _queue_key(session: CheckInSession):
    # Priority descending, then FIFO on queue time
    return (
        -session.priority.rank,
        session.queued_at or session.checked_in_at,
        session.checked_in_at,
        str(session.session_id),
    )


def order_queue(sessions: Iterable[CheckInSession]) -> List[CheckInSession]:
    """Doctor-facing order of doctor-notified / in-progress sessions."""
    return sorted((s for s in sessions if s.status in QUEUE_STATUSES), key=_queue_key)


def summarize(sessions: Iterable[CheckInSession]) -> QueueSummary:
    """Dashboard counts; ``waiting`` covers everyone not yet with a doctor."""
    summary = QueueSummary()
    for session in sessions:
        summary.total += 1
        status = session.status
        if status in (CheckInStatus.WAITING, CheckInStatus.VITALS_COLLECTED, CheckInStatus.DOCTOR_NOTIFIED):
            summary.waiting += 1
        if status == CheckInStatus.VITALS_COLLECTED:
            summary.vitals_collected += 1
        elif status == CheckInStatus.DOCTOR_NOTIFIED:
            summary.doctor_notified += 1
        elif status == CheckInStatus.IN_PROGRESS:
            summary.in_progress += 1
        elif status == CheckInStatus.COMPLETED:
            summary.completed += 1
        elif status == CheckInStatus.NO_SHOW:
            summary.no_show += 1
        elif status == CheckInStatus.CANCELLED:
            summary.cancelled += 1
    return summary


class QueueProjector:
    """Store-backed projections for the doctor queue and today's checkups."""

    def __init__(self, checkin_repository: CheckInRepository, tz_name: Optional[str] = None):
        self._repository = checkin_repository
        self._tz_name = tz_name

    async def doctor_queue(self, doctor_id: Optional[str] = None, now: Optional[datetime] = None) -> List[QueueEntry]:
        """Today's queue; with ``doctor_id``, only unassigned sessions and that doctor's own."""
        now = now or utcnow()
        sessions = await self._repository.find_by_clinic_date(
            clinic_date_of(now, self._tz_name), statuses=QUEUE_STATUSES
        )
        if doctor_id is not None:
            sessions = [s for s in sessions if s.assigned_doctor_id in (None, doctor_id)]
        return [
            QueueEntry(position=i, session=s, waiting_minutes=s.waiting_minutes(now))
            for i, s in enumerate(order_queue(sessions), start=1)
        ]

    async def todays_checkups(self, now: Optional[datetime] = None) -> List[CheckInSession]:
        """Every session of the current clinic day, any status, in check-in order."""
        now = now or utcnow()
        sessions = await self._repository.find_by_clinic_date(clinic_date_of(now, self._tz_name))
        return sorted(sessions, key=lambda s: s.checked_in_at)

    async def summary(self, now: Optional[datetime] = None) -> QueueSummary:
        return summarize(await self.todays_checkups(now))
