"""Doctor Availability Tracker.

Liveness is pessimistic: a doctor is considered gone unless a heartbeat says
otherwise, and the staleness sweep forces silent doctors offline.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from clinicflow.application.ports.repositories.doctor_status_repo import DoctorStatusRepository
from clinicflow.application.use_cases.authorization import require_self_or_role
from clinicflow.application.use_cases.side_effects import SideEffectDispatcher
from clinicflow.core.utils.datetime_utils import utcnow
from clinicflow.domain.entities.doctor_status import DoctorStatusRecord
from clinicflow.domain.enums.workflow import ActorRole, DoctorStatus
from clinicflow.domain.errors import NotOnlineError, StaleViewError
from clinicflow.domain.events import DoctorStatusChanged
from clinicflow.domain.value_objects.actor import Actor

logger = logging.getLogger("clinicflow")

_TARGET = "doctor_status"


class DoctorAvailabilityTracker:
    """Drives DoctorStatusRecord through login, busy/available and logout."""

    # Conditional-write attempts before giving up on a contended record
    MAX_WRITE_ATTEMPTS = 3

    def __init__(self, repository: DoctorStatusRepository, dispatcher: SideEffectDispatcher):
        self._repository = repository
        self._dispatcher = dispatcher

    async def on_login(self, doctor_id: str, actor: Optional[Actor] = None) -> DoctorStatusRecord:
        """Upsert the doctor to online, ending whatever session was recorded before."""
        actor = actor or Actor(user_id=doctor_id, role=ActorRole.DOCTOR)
        require_self_or_role(actor, doctor_id, "log in", ActorRole.ADMIN, ActorRole.SYSTEM)

        record = await self._repository.find_by_doctor_id(doctor_id)
        previous = record.status.value if record else None
        if record is None:
            record = DoctorStatusRecord(doctor_id=doctor_id)
        record.go_online(utcnow())
        record = await self._repository.upsert(record)

        logger.info("[DoctorTracker] Doctor %s logged in (was %s)", doctor_id, previous)
        await self._announce(record, previous, actor, "DOCTOR_LOGIN", "Doctor logged in")
        return record

    async def on_logout(self, doctor_id: str, actor: Optional[Actor] = None) -> Optional[DoctorStatusRecord]:
        """Set offline. Returns None when the doctor never logged in."""
        actor = actor or Actor(user_id=doctor_id, role=ActorRole.DOCTOR)
        require_self_or_role(actor, doctor_id, "log out", ActorRole.ADMIN, ActorRole.SYSTEM)

        record = await self._repository.find_by_doctor_id(doctor_id)
        if record is None:
            return None
        previous = record.status.value
        record.go_offline(utcnow())
        record = await self._repository.upsert(record)

        logger.info("[DoctorTracker] Doctor %s logged out (was %s)", doctor_id, previous)
        await self._announce(record, previous, actor, "DOCTOR_LOGOUT", "Doctor logged out")
        return record

    async def heartbeat(self, doctor_id: str) -> bool:
        """Refresh last activity. Returns whether the doctor is currently online/busy."""
        return await self._repository.touch(doctor_id, utcnow())

    async def set_busy(
        self,
        doctor_id: str,
        patient_id: str,
        session_id: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> DoctorStatusRecord:
        actor = actor or Actor.system()
        record, previous = await self._apply(
            doctor_id, "mark busy", lambda r: r.go_busy(patient_id, session_id, utcnow())
        )
        await self._announce(
            record, previous, actor, "DOCTOR_BUSY", f"Doctor started consultation with patient {patient_id}"
        )
        return record

    async def set_available(
        self,
        doctor_id: str,
        session_id: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> DoctorStatusRecord:
        """Back to online.

        When ``session_id`` is given and the doctor is busy with a different
        session, the record is left as is.
        """
        actor = actor or Actor.system()

        def mutate(record: DoctorStatusRecord) -> None:
            if (
                session_id is not None
                and record.status == DoctorStatus.BUSY
                and record.current_session_id not in (None, session_id)
            ):
                return
            record.go_available(utcnow())

        record, previous = await self._apply(doctor_id, "mark available", mutate)
        if record.status.value != previous:
            await self._announce(record, previous, actor, "DOCTOR_AVAILABLE", "Doctor finished consultation")
        return record

    async def sweep_stale(self, threshold_seconds: int, now: Optional[datetime] = None) -> List[str]:
        """Force offline every online/busy doctor silent for longer than the threshold.

        Returns the doctor ids that were transitioned. Idempotent; records
        whose last activity is within the threshold are never touched.
        """
        now = now or utcnow()
        cutoff = now - timedelta(seconds=threshold_seconds)
        candidates = await self._repository.find_stale(cutoff)
        swept: List[str] = []

        for record in candidates:
            try:
                changed = await self._repository.mark_offline_if_stale(record.doctor_id, cutoff, now)
            except Exception as e:
                logger.error(
                    "[StaleSweeper] Failed to force doctor=%s offline: %s", record.doctor_id, e, exc_info=True
                )
                continue
            if not changed:
                continue
            swept.append(record.doctor_id)
            logger.info(
                "[StaleSweeper] Doctor %s forced offline (status=%s last_activity=%s cutoff=%s)",
                record.doctor_id,
                record.status.value,
                record.last_activity,
                cutoff,
            )
            self._dispatcher.audit(
                "DOCTOR_STALE_OFFLINE",
                Actor.system(),
                _TARGET,
                record.doctor_id,
                f"No heartbeat for more than {threshold_seconds}s",
            )
            await self._dispatcher.publish(
                DoctorStatusChanged(
                    doctor_id=record.doctor_id,
                    status=DoctorStatus.OFFLINE.value,
                    previous_status=record.status.value,
                    actor_id=Actor.system().user_id,
                )
            )
        return swept

    async def get_status(self, doctor_id: str) -> DoctorStatusRecord:
        """Current record, or an offline placeholder for doctors never seen."""
        record = await self._repository.find_by_doctor_id(doctor_id)
        return record or DoctorStatusRecord(doctor_id=doctor_id)

    async def list_statuses(self) -> List[DoctorStatusRecord]:
        return await self._repository.find_all()

    async def _apply(
        self,
        doctor_id: str,
        action: str,
        mutate: Callable[[DoctorStatusRecord], None],
    ):
        last_status = DoctorStatus.OFFLINE.value
        for attempt in range(1, self.MAX_WRITE_ATTEMPTS + 1):
            record = await self._repository.find_by_doctor_id(doctor_id)
            if record is None:
                raise NotOnlineError(doctor_id, DoctorStatus.OFFLINE.value)
            previous = record.status.value
            last_status = previous
            expected_version = record.version
            mutate(record)
            if await self._repository.save_if_version(record, expected_version):
                return record, previous
            logger.info(
                "[DoctorTracker] Concurrent update on doctor=%s during %s (attempt %d)",
                doctor_id,
                action,
                attempt,
            )
        raise StaleViewError("doctor status", doctor_id, last_status, action)

    async def _announce(
        self,
        record: DoctorStatusRecord,
        previous: Optional[str],
        actor: Actor,
        event_type: str,
        description: str,
    ) -> None:
        self._dispatcher.audit(event_type, actor, _TARGET, record.doctor_id, description)
        await self._dispatcher.publish(
            DoctorStatusChanged(
                doctor_id=record.doctor_id,
                status=record.status.value,
                previous_status=previous,
                actor_id=actor.user_id,
            )
        )
