"""Appointment Lifecycle Manager.

Dates and times are clinic-local wall clock. ``sweep_overdue`` compares them
with clinic-local "now" so appointments near midnight are not misjudged by a
UTC offset.
"""

import copy
import logging
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Callable, List, Optional

from clinicflow.application.ports.repositories.appointment_repo import AppointmentRepository
from clinicflow.application.use_cases.authorization import (
    CARE_TEAM_ROLES,
    FRONT_DESK_ROLES,
    require_role,
)
from clinicflow.application.use_cases.side_effects import SideEffectDispatcher
from clinicflow.core.utils.datetime_utils import clinic_now, to_clinic_local, utcnow
from clinicflow.domain.entities.appointment import DEFAULT_DURATION_MINUTES, Appointment
from clinicflow.domain.enums.workflow import (
    OPEN_APPOINTMENT_STATUSES,
    ActorRole,
    AppointmentStatus,
    AppointmentType,
)
from clinicflow.domain.errors import (
    AppointmentNotFoundError,
    ForbiddenActionError,
    InvalidTransitionError,
    SlotConflictError,
    StaleViewError,
)
from clinicflow.domain.events import AppointmentStatusChanged
from clinicflow.domain.value_objects.actor import Actor
from clinicflow.domain.value_objects.appointment_id import AppointmentId

logger = logging.getLogger("clinicflow")

_TARGET = "appointment"

# Compare-and-set rounds before a booking gives up under heavy contention
_BOOKING_ATTEMPTS = 5


class AppointmentLifecycleManager:
    """Use cases for scheduled appointments."""

    def __init__(
        self,
        appointment_repository: AppointmentRepository,
        dispatcher: SideEffectDispatcher,
        tz_name: Optional[str] = None,
    ):
        self._repository = appointment_repository
        self._dispatcher = dispatcher
        self._tz_name = tz_name

    async def create(
        self,
        actor: Actor,
        patient_id: str,
        appointment_date: date,
        appointment_time: str,
        appointment_type: AppointmentType = AppointmentType.CONSULTATION,
        notes: str = "",
        doctor_id: Optional[str] = None,
        duration_minutes: int = DEFAULT_DURATION_MINUTES,
    ) -> Appointment:
        if actor.role == ActorRole.PATIENT:
            if actor.user_id != patient_id:
                raise ForbiddenActionError(
                    "book an appointment",
                    actor.role.value,
                    reason="Patients can only book appointments for themselves",
                )
        else:
            require_role(actor, "book appointments", *CARE_TEAM_ROLES)

        now = utcnow()
        appointment = Appointment(
            appointment_id=AppointmentId.generate(to_clinic_local(now, self._tz_name)),
            patient_id=patient_id,
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            appointment_type=appointment_type,
            duration_minutes=duration_minutes,
            doctor_id=doctor_id,
            notes=notes or "",
            created_at=now,
            updated_at=now,
        )
        appointment.open(actor.user_id, now)
        if doctor_id:
            appointment_id = str(appointment.appointment_id)
            await self._book_slot(
                appointment,
                doctor_id,
                write=lambda: self._repository.create(appointment),
                undo=lambda: self._repository.delete(appointment_id),
            )
        else:
            appointment = await self._repository.create(appointment)
        logger.info(
            "Appointment %s created patient=%s doctor=%s at %s %s",
            appointment.appointment_id,
            patient_id,
            doctor_id,
            appointment.appointment_date,
            appointment.appointment_time,
        )
        await self._announce(appointment, None, actor, "APPOINTMENT_CREATED", "Appointment scheduled")
        return appointment

    async def accept(self, actor: Actor, appointment_id: str) -> Appointment:
        appointment = await self._load(appointment_id)
        self._require_owner(actor, appointment, "accept")
        previous = appointment.status
        appointment.accept(actor.user_id)
        await self._commit(appointment, previous, "accept")
        await self._announce(appointment, previous, actor, "APPOINTMENT_CONFIRMED", "Patient accepted the appointment")
        return appointment

    async def reject(self, actor: Actor, appointment_id: str, reason: str) -> Appointment:
        appointment = await self._load(appointment_id)
        self._require_owner(actor, appointment, "reject")
        previous = appointment.status
        appointment.reject(reason, actor.user_id)
        await self._commit(appointment, previous, "reject")
        await self._announce(
            appointment, previous, actor, "APPOINTMENT_REJECTED", f"Patient rejected the appointment: {reason}"
        )
        return appointment

    async def cancel(self, actor: Actor, appointment_id: str, reason: str) -> Appointment:
        require_role(actor, "cancel appointments", *FRONT_DESK_ROLES)
        appointment = await self._load(appointment_id)
        previous = appointment.status
        appointment.cancel(reason, actor.user_id)
        await self._commit(appointment, previous, "cancel")
        await self._announce(
            appointment, previous, actor, "APPOINTMENT_CANCELLED", f"Appointment cancelled: {reason}"
        )
        return appointment

    async def complete(
        self,
        actor: Actor,
        appointment_id: str,
        diagnosis: Optional[str] = None,
        treatment: Optional[str] = None,
        prescription: Optional[str] = None,
    ) -> Appointment:
        """Staff or the owning patient; allowed from Scheduled as well as Confirmed."""
        appointment = await self._load(appointment_id)
        if actor.role == ActorRole.PATIENT:
            self._require_owner(actor, appointment, "complete")
        else:
            require_role(actor, "complete appointments", *CARE_TEAM_ROLES)
        previous = appointment.status
        appointment.complete(actor.user_id, diagnosis, treatment, prescription)
        await self._commit(appointment, previous, "complete")
        await self._announce(appointment, previous, actor, "APPOINTMENT_COMPLETED", "Appointment completed")
        return appointment

    async def assign_doctor(self, actor: Actor, appointment_id: str, doctor_id: str) -> Appointment:
        require_role(actor, "assign doctors", *FRONT_DESK_ROLES)
        appointment = await self._load(appointment_id)
        original = copy.deepcopy(appointment)
        status = appointment.status
        appointment.assign_doctor(doctor_id, actor.user_id)

        async def undo() -> None:
            if not await self._repository.save_if_status(original, status):
                logger.warning(
                    "Could not revert doctor assignment of appointment %s: it changed concurrently",
                    appointment_id,
                )

        await self._book_slot(
            appointment,
            doctor_id,
            write=lambda: self._commit(appointment, status, "assign a doctor to"),
            undo=undo,
        )
        self._dispatcher.audit(
            "APPOINTMENT_DOCTOR_ASSIGNED",
            actor,
            _TARGET,
            str(appointment.appointment_id),
            f"Assigned to doctor {doctor_id}",
        )
        return appointment

    async def get(self, appointment_id: str) -> Appointment:
        return await self._load(appointment_id)

    async def list_for_date(self, day: date, doctor_id: Optional[str] = None) -> List[Appointment]:
        return await self._repository.find_by_date_range(day, day, doctor_id=doctor_id)

    async def list_for_patient(self, actor: Actor, patient_id: str) -> List[Appointment]:
        if actor.role == ActorRole.PATIENT and actor.user_id != patient_id:
            raise ForbiddenActionError(
                "view appointments",
                actor.role.value,
                reason="Patients can only view their own appointments",
            )
        return await self._repository.find_by_patient(patient_id)

    async def sweep_overdue(self, now: Optional[datetime] = None) -> List[str]:
        """Mark every open appointment whose start is at or before ``now`` as No Show.

        A naive ``now`` is clinic-local wall clock; an aware one is converted.
        Returns the ids transitioned by this call. Safe to run repeatedly and
        from several processes: a lost conditional write is simply skipped.
        """
        now_local = self._clinic_wall_clock(now)
        system = Actor.system()
        candidates = await self._repository.find_open_up_to(now_local.date())
        marked: List[str] = []

        for appointment in candidates:
            if not appointment.is_overdue(now_local):
                continue
            previous = appointment.status
            try:
                appointment.mark_no_show(system.user_id)
            except InvalidTransitionError:
                continue
            try:
                written = await self._repository.save_if_status(appointment, previous)
            except Exception as e:
                logger.error(
                    "[OverdueSweeper] Failed to mark appointment=%s no-show: %s",
                    appointment.appointment_id,
                    e,
                    exc_info=True,
                )
                continue
            if not written:
                logger.info(
                    "[OverdueSweeper] Appointment %s changed concurrently, skipped",
                    appointment.appointment_id,
                )
                continue
            marked.append(str(appointment.appointment_id))
            logger.info(
                "[OverdueSweeper] Appointment %s (%s %s) marked No Show",
                appointment.appointment_id,
                appointment.appointment_date,
                appointment.appointment_time,
            )
            await self._announce(
                appointment, previous, system, "APPOINTMENT_NO_SHOW", "Appointment time passed without attendance"
            )
        return marked

    def _clinic_wall_clock(self, now: Optional[datetime]) -> datetime:
        if now is None:
            return clinic_now(self._tz_name)
        if now.tzinfo is not None:
            return to_clinic_local(now, self._tz_name)
        return now

    async def _book_slot(
        self,
        appointment: Appointment,
        doctor_id: str,
        write: Callable[[], Awaitable[Any]],
        undo: Callable[[], Awaitable[Any]],
    ) -> None:
        """Run ``write`` only if ``doctor_id`` keeps no overlapping open appointment.

        The doctor's booking version is read before the overlap check and
        compare-and-set after the write. A lost compare-and-set means another
        booking for the same doctor landed in between; its appointment is
        already stored, so repeating the check sees it. On conflict ``undo``
        reverts the write before ``SlotConflictError`` propagates.
        """
        version = await self._repository.get_booking_version(doctor_id)
        await self._ensure_slot_free(appointment, doctor_id)
        await write()

        for _ in range(_BOOKING_ATTEMPTS):
            if await self._repository.bump_booking_version(doctor_id, version):
                return
            version = await self._repository.get_booking_version(doctor_id)
            try:
                await self._ensure_slot_free(appointment, doctor_id)
            except SlotConflictError:
                logger.info(
                    "Concurrent booking took doctor=%s at %s %s; reverting appointment %s",
                    doctor_id,
                    appointment.appointment_date,
                    appointment.appointment_time,
                    appointment.appointment_id,
                )
                await undo()
                raise

        await undo()
        raise StaleViewError(_TARGET, str(appointment.appointment_id), appointment.status.value, "book a slot for")

    async def _ensure_slot_free(self, appointment: Appointment, doctor_id: str) -> None:
        # Previous day included for appointments running past midnight
        day = appointment.appointment_date
        others = await self._repository.find_by_date_range(
            day - timedelta(days=1), day, doctor_id=doctor_id, statuses=OPEN_APPOINTMENT_STATUSES
        )
        for other in others:
            if other.appointment_id == appointment.appointment_id:
                continue
            if appointment.overlaps(other):
                raise SlotConflictError(
                    doctor_id,
                    appointment.appointment_date.isoformat(),
                    appointment.appointment_time,
                    str(other.appointment_id),
                )

    def _require_owner(self, actor: Actor, appointment: Appointment, action: str) -> None:
        if actor.role != ActorRole.PATIENT or actor.user_id != appointment.patient_id:
            raise ForbiddenActionError(
                action,
                actor.role.value,
                reason=f"Only the patient who owns appointment '{appointment.appointment_id}' may {action} it",
            )

    async def _load(self, appointment_id: str) -> Appointment:
        appointment = await self._repository.find_by_id(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(appointment_id)
        return appointment

    async def _commit(self, appointment: Appointment, expected: AppointmentStatus, action: str) -> None:
        if not await self._repository.save_if_status(appointment, expected):
            raise StaleViewError("appointment", str(appointment.appointment_id), expected.value, action)

    async def _announce(
        self,
        appointment: Appointment,
        previous: Optional[AppointmentStatus],
        actor: Actor,
        event_type: str,
        description: str,
    ) -> None:
        self._dispatcher.audit(event_type, actor, _TARGET, str(appointment.appointment_id), description)
        await self._dispatcher.publish(
            AppointmentStatusChanged(
                appointment_id=str(appointment.appointment_id),
                patient_id=appointment.patient_id,
                status=appointment.status.value,
                previous_status=previous.value if previous else None,
                actor_id=actor.user_id,
            )
        )
