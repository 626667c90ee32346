"""Check-in Session workflow.

Every operation re-reads the session, applies the transition in memory and
writes it back conditioned on the status that was read. Losing that race
surfaces as a stale-view InvalidTransitionError instead of a retry.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from clinicflow.application.ports.repositories.checkin_repo import CheckInRepository
from clinicflow.application.ports.services.inventory_service import (
    InventoryService,
    StockDecrementResult,
)
from clinicflow.application.use_cases.authorization import (
    CARE_TEAM_ROLES,
    CLINICIAN_ROLES,
    FRONT_DESK_ROLES,
    require_role,
)
from clinicflow.application.use_cases.doctor_availability import DoctorAvailabilityTracker
from clinicflow.application.use_cases.side_effects import SideEffectDispatcher
from clinicflow.core.utils.datetime_utils import clinic_date_of, to_clinic_local, utcnow
from clinicflow.domain.entities.checkin_session import (
    CheckInSession,
    ClinicalNotes,
    PrescriptionItem,
    VitalSigns,
)
from clinicflow.domain.enums.workflow import (
    ActorRole,
    CheckInMethod,
    CheckInStatus,
    Priority,
)
from clinicflow.domain.errors import (
    CheckInSessionNotFoundError,
    DomainError,
    DuplicateActiveSessionError,
    ForbiddenActionError,
    NotOnlineError,
    StaleViewError,
)
from clinicflow.domain.events import QueueChanged
from clinicflow.domain.value_objects.actor import Actor
from clinicflow.domain.value_objects.checkin_id import CheckInId

logger = logging.getLogger("clinicflow")

_TARGET = "checkin_session"


@dataclass
class CheckInCompletion:
    """Completed session plus any inventory problems hit while dispensing."""

    session: CheckInSession
    stock_warnings: List[str] = field(default_factory=list)


class CheckInWorkflow:
    """Use cases driving a CheckInSession from arrival to consultation end."""

    def __init__(
        self,
        checkin_repository: CheckInRepository,
        tracker: DoctorAvailabilityTracker,
        dispatcher: SideEffectDispatcher,
        inventory: Optional[InventoryService] = None,
        tz_name: Optional[str] = None,
    ):
        self._repository = checkin_repository
        self._tracker = tracker
        self._dispatcher = dispatcher
        self._inventory = inventory
        self._tz_name = tz_name

    async def check_in(
        self,
        actor: Actor,
        patient_id: str,
        service_type: str,
        priority: Priority = Priority.NORMAL,
        method: CheckInMethod = CheckInMethod.STAFF_ASSISTED,
        appointment_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> CheckInSession:
        if actor.role == ActorRole.PATIENT:
            # Kiosk check-in: patients may only check themselves in
            if method != CheckInMethod.SELF_SERVICE or actor.user_id != patient_id:
                raise ForbiddenActionError(
                    "check in",
                    actor.role.value,
                    reason="Patients can only self-check-in for themselves",
                )
        else:
            require_role(actor, "check in patients", *FRONT_DESK_ROLES)

        now = utcnow()
        clinic_day = clinic_date_of(now, self._tz_name)
        existing = await self._repository.find_active_for_patient(patient_id, clinic_day)
        if existing is not None:
            raise DuplicateActiveSessionError(patient_id, str(existing.session_id))

        session = CheckInSession(
            session_id=CheckInId.generate(to_clinic_local(now, self._tz_name)),
            patient_id=patient_id,
            service_type=service_type,
            clinic_date=clinic_day,
            priority=priority,
            check_in_method=method,
            appointment_id=appointment_id,
            notes=notes,
            checked_in_at=now,
            created_at=now,
            updated_at=now,
        )
        session.open(actor.user_id, now)
        session = await self._repository.create(session)

        logger.info(
            "Patient %s checked in session=%s priority=%s method=%s",
            patient_id,
            session.session_id,
            session.priority.value,
            session.check_in_method.value,
        )
        await self._announce(session, None, actor, "CHECKIN_CREATED", f"Checked in for {session.service_type}")
        return session

    async def record_vitals(self, actor: Actor, session_id: str, vitals: VitalSigns) -> CheckInSession:
        require_role(actor, "record vital signs", *CARE_TEAM_ROLES)
        session = await self._load(session_id)
        previous = session.status
        session.record_vitals(vitals, actor.user_id)
        await self._commit(session, previous, "record vitals for")
        await self._announce(session, previous, actor, "VITALS_RECORDED", "Vital signs recorded")
        return session

    async def notify_doctor(self, actor: Actor, session_id: str) -> CheckInSession:
        require_role(actor, "notify the doctor", *CARE_TEAM_ROLES)
        session = await self._load(session_id)
        previous = session.status
        session.notify_doctor(actor.user_id)
        await self._commit(session, previous, "notify doctor for")
        await self._announce(session, previous, actor, "DOCTOR_NOTIFIED", "Patient queued for the doctor")
        return session

    async def start(self, actor: Actor, session_id: str, doctor_id: str) -> CheckInSession:
        require_role(actor, "start a consultation", *CLINICIAN_ROLES)
        if actor.role == ActorRole.DOCTOR and actor.user_id != doctor_id:
            raise ForbiddenActionError(
                "start a consultation",
                actor.role.value,
                reason="Doctors can only start consultations for themselves",
            )

        session = await self._load(session_id)
        previous = session.status
        # Validates the transition before anything else is consulted
        session.start(doctor_id, actor.user_id)

        doctor = await self._tracker.get_status(doctor_id)
        if not doctor.is_active:
            raise NotOnlineError(doctor_id, doctor.status.value)

        await self._commit(session, previous, "start")

        try:
            await self._tracker.set_busy(doctor_id, session.patient_id, str(session.session_id), actor)
        except (NotOnlineError, StaleViewError) as e:
            # Session already started; availability is corrected by the next login or sweep
            logger.warning(
                "Consultation %s started but doctor %s could not be marked busy: %s",
                session.session_id,
                doctor_id,
                e.message,
            )

        await self._announce(session, previous, actor, "CONSULTATION_STARTED", f"Consultation started by {doctor_id}")
        return session

    async def complete(
        self,
        actor: Actor,
        session_id: str,
        clinical_notes: ClinicalNotes,
        prescriptions: Optional[List[PrescriptionItem]] = None,
    ) -> CheckInCompletion:
        require_role(actor, "complete a consultation", *CLINICIAN_ROLES)
        prescriptions = prescriptions or []

        session = await self._load(session_id)
        if (
            actor.role == ActorRole.DOCTOR
            and session.assigned_doctor_id
            and session.assigned_doctor_id != actor.user_id
        ):
            raise ForbiddenActionError(
                "complete a consultation",
                actor.role.value,
                reason=f"Consultation {session_id} belongs to doctor {session.assigned_doctor_id}",
            )
        previous = session.status
        session.complete(clinical_notes, prescriptions, actor.user_id)
        await self._commit(session, previous, "complete")

        if session.assigned_doctor_id:
            await self._release_doctor(session, actor)

        stock_warnings = await self._dispense(session)
        await self._announce(session, previous, actor, "CONSULTATION_COMPLETED", "Consultation completed")
        return CheckInCompletion(session=session, stock_warnings=stock_warnings)

    async def mark_no_show(self, actor: Actor, session_id: str) -> CheckInSession:
        require_role(actor, "mark a no-show", *CARE_TEAM_ROLES)
        session = await self._load(session_id)
        previous = session.status
        session.mark_no_show(actor.user_id)
        await self._commit(session, previous, "mark no-show")
        if previous == CheckInStatus.IN_PROGRESS and session.assigned_doctor_id:
            await self._release_doctor(session, actor)
        await self._announce(session, previous, actor, "CHECKIN_NO_SHOW", "Patient marked as no-show")
        return session

    async def cancel(self, actor: Actor, session_id: str, reason: Optional[str] = None) -> CheckInSession:
        require_role(actor, "cancel a check-in", *CARE_TEAM_ROLES)
        session = await self._load(session_id)
        previous = session.status
        session.cancel(actor.user_id, reason)
        await self._commit(session, previous, "cancel")
        if previous == CheckInStatus.IN_PROGRESS and session.assigned_doctor_id:
            await self._release_doctor(session, actor)
        await self._announce(
            session, previous, actor, "CHECKIN_CANCELLED", f"Check-in cancelled: {reason or 'no reason given'}"
        )
        return session

    async def amend_notes(
        self,
        actor: Actor,
        session_id: str,
        clinical_notes: Optional[ClinicalNotes] = None,
        prescriptions: Optional[List[PrescriptionItem]] = None,
        notes: Optional[str] = None,
    ) -> CheckInSession:
        if clinical_notes is not None or prescriptions is not None:
            require_role(actor, "amend clinical notes", *CLINICIAN_ROLES)
        else:
            require_role(actor, "amend check-in notes", *CARE_TEAM_ROLES)

        session = await self._load(session_id)
        status = session.status
        session.amend_notes(actor.user_id, clinical_notes, prescriptions, notes)
        await self._commit(session, status, "amend notes for")
        self._dispatcher.audit(
            "CHECKIN_NOTES_AMENDED", actor, _TARGET, str(session.session_id), "Notes amended"
        )
        return session

    async def get_session(self, session_id: str) -> CheckInSession:
        return await self._load(session_id)

    async def patient_history(self, patient_id: str, limit: int = 50) -> List[CheckInSession]:
        return await self._repository.find_history(patient_id, limit=limit)

    async def _load(self, session_id: str) -> CheckInSession:
        session = await self._repository.find_by_id(session_id)
        if session is None:
            raise CheckInSessionNotFoundError(session_id)
        return session

    async def _commit(self, session: CheckInSession, expected: CheckInStatus, action: str) -> None:
        if not await self._repository.save_if_status(session, expected):
            raise StaleViewError("check-in session", str(session.session_id), expected.value, action)

    async def _release_doctor(self, session: CheckInSession, actor: Actor) -> None:
        try:
            await self._tracker.set_available(
                session.assigned_doctor_id, str(session.session_id), actor
            )
        except DomainError as e:
            logger.warning(
                "Doctor %s not returned to online after session %s: %s",
                session.assigned_doctor_id,
                session.session_id,
                e.message,
            )

    async def _dispense(self, session: CheckInSession) -> List[str]:
        """Decrement stock per prescribed item; failures never undo the completion."""
        warnings: List[str] = []
        if self._inventory is None:
            return warnings

        for item in session.prescriptions:
            if item.quantity <= 0:
                continue
            try:
                result = await self._inventory.decrement_stock(item.medication_name, item.quantity)
            except Exception as e:
                logger.error(
                    "Inventory decrement failed session=%s item=%s qty=%d: %s",
                    session.session_id,
                    item.medication_name,
                    item.quantity,
                    e,
                    exc_info=True,
                )
                warnings.append(f"Stock for {item.medication_name} could not be updated")
                continue
            if result == StockDecrementResult.INSUFFICIENT_STOCK:
                logger.warning(
                    "Insufficient stock session=%s item=%s qty=%d",
                    session.session_id,
                    item.medication_name,
                    item.quantity,
                )
                warnings.append(f"Insufficient stock for {item.medication_name}")
        return warnings

    async def _announce(
        self,
        session: CheckInSession,
        previous: Optional[CheckInStatus],
        actor: Actor,
        event_type: str,
        description: str,
    ) -> None:
        self._dispatcher.audit(event_type, actor, _TARGET, str(session.session_id), description)
        await self._dispatcher.publish(
            QueueChanged(
                session_id=str(session.session_id),
                patient_id=session.patient_id,
                status=session.status.value,
                previous_status=previous.value if previous else None,
                actor_id=actor.user_id,
            )
        )
