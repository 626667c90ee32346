"""
Appointment lifecycle tests: booking, patient decisions, completion and the overdue sweep.
"""

import asyncio
from datetime import date, datetime, timezone

import pytest

from clinicflow.application.use_cases.appointment_lifecycle import AppointmentLifecycleManager
from clinicflow.application.use_cases.side_effects import SideEffectDispatcher
from clinicflow.domain.enums.workflow import ActorRole, AppointmentStatus
from clinicflow.domain.errors import (
    AppointmentNotFoundError,
    ForbiddenActionError,
    InvalidTransitionError,
    SlotConflictError,
)
from clinicflow.domain.value_objects.actor import Actor

from fakes import InMemoryAppointmentRepository, RecordingAuditService, RecordingPublisher

STAFF = Actor("STAFF-1", ActorRole.STAFF)
PATIENT = Actor("P-100", ActorRole.PATIENT)
OTHER_PATIENT = Actor("P-200", ActorRole.PATIENT)
DAY = date(2030, 1, 15)


@pytest.fixture
def repository():
    return InMemoryAppointmentRepository()


@pytest.fixture
def audit():
    return RecordingAuditService()


@pytest.fixture
def manager(repository, audit):
    return AppointmentLifecycleManager(
        repository, SideEffectDispatcher(audit, RecordingPublisher()), tz_name="Asia/Manila"
    )


async def book(manager, time="09:00", day=DAY, doctor_id=None, duration=30, patient_id="P-100"):
    return await manager.create(
        STAFF,
        patient_id=patient_id,
        appointment_date=day,
        appointment_time=time,
        doctor_id=doctor_id,
        duration_minutes=duration,
    )


@pytest.mark.asyncio
async def test_new_appointment_is_scheduled(manager):
    appointment = await book(manager)

    assert appointment.status == AppointmentStatus.SCHEDULED
    assert appointment.created_by == "STAFF-1"
    assert str(appointment.appointment_id).startswith("APT-")
    assert appointment.status_history[0].to_status == "Scheduled"


@pytest.mark.asyncio
async def test_passed_appointment_is_swept_to_no_show(manager, audit):
    appointment = await book(manager, "09:00")

    marked = await manager.sweep_overdue(now=datetime(2030, 1, 15, 9, 1))

    assert marked == [str(appointment.appointment_id)]
    stored = await manager.get(str(appointment.appointment_id))
    assert stored.status == AppointmentStatus.NO_SHOW
    assert stored.status_history[-1].actor_id == "system"
    await manager._dispatcher.flush()
    assert "APPOINTMENT_NO_SHOW" in audit.event_types()


@pytest.mark.asyncio
async def test_start_time_equal_to_now_counts_as_overdue(manager):
    appointment = await book(manager, "09:00")
    assert await manager.sweep_overdue(now=datetime(2030, 1, 15, 9, 0)) == [str(appointment.appointment_id)]


@pytest.mark.asyncio
async def test_future_appointment_is_not_swept(manager):
    later = await book(manager, "09:30")
    tomorrow = await book(manager, "08:00", day=date(2030, 1, 16))

    assert await manager.sweep_overdue(now=datetime(2030, 1, 15, 9, 1)) == []
    assert (await manager.get(str(later.appointment_id))).status == AppointmentStatus.SCHEDULED
    assert (await manager.get(str(tomorrow.appointment_id))).status == AppointmentStatus.SCHEDULED


@pytest.mark.asyncio
async def test_aware_now_is_judged_on_clinic_wall_clock(manager):
    # 23:30 UTC on the 15th is 07:30 on the 16th in Manila
    early = await book(manager, "07:00", day=date(2030, 1, 16))
    later = await book(manager, "08:00", day=date(2030, 1, 16))

    marked = await manager.sweep_overdue(now=datetime(2030, 1, 15, 23, 30, tzinfo=timezone.utc))

    assert marked == [str(early.appointment_id)]
    assert (await manager.get(str(later.appointment_id))).status == AppointmentStatus.SCHEDULED


@pytest.mark.asyncio
async def test_sweep_leaves_terminal_appointments_alone(manager):
    cancelled = await book(manager, "08:00")
    await manager.cancel(STAFF, str(cancelled.appointment_id), "Doctor unavailable")
    completed = await book(manager, "08:30")
    await manager.complete(STAFF, str(completed.appointment_id), diagnosis="Healthy")
    confirmed = await book(manager, "08:45")
    await manager.accept(PATIENT, str(confirmed.appointment_id))

    marked = await manager.sweep_overdue(now=datetime(2030, 1, 15, 12, 0))

    assert marked == [str(confirmed.appointment_id)]
    assert (await manager.get(str(cancelled.appointment_id))).status == AppointmentStatus.CANCELLED
    assert (await manager.get(str(completed.appointment_id))).status == AppointmentStatus.COMPLETED
    assert await manager.sweep_overdue(now=datetime(2030, 1, 15, 12, 0)) == []


@pytest.mark.asyncio
async def test_only_owner_can_accept_or_reject(manager):
    appointment = await book(manager)
    aid = str(appointment.appointment_id)

    with pytest.raises(ForbiddenActionError):
        await manager.accept(OTHER_PATIENT, aid)
    with pytest.raises(ForbiddenActionError):
        await manager.accept(STAFF, aid)

    accepted = await manager.accept(PATIENT, aid)
    assert accepted.status == AppointmentStatus.CONFIRMED


@pytest.mark.asyncio
async def test_reject_requires_reason_and_records_it(manager):
    appointment = await book(manager)
    aid = str(appointment.appointment_id)

    with pytest.raises(ValueError):
        await manager.reject(PATIENT, aid, "  ")

    rejected = await manager.reject(PATIENT, aid, "Schedule conflict")
    assert rejected.status == AppointmentStatus.CANCELLED
    assert rejected.rejection_reason == "Schedule conflict"


@pytest.mark.asyncio
async def test_accept_after_cancel_is_rejected(manager):
    appointment = await book(manager)
    aid = str(appointment.appointment_id)
    await manager.cancel(STAFF, aid, "Clinic closed")

    with pytest.raises(InvalidTransitionError) as exc_info:
        await manager.accept(PATIENT, aid)
    assert "already cancelled" in exc_info.value.message


@pytest.mark.asyncio
async def test_complete_directly_from_scheduled(manager):
    appointment = await book(manager)
    completed = await manager.complete(
        STAFF, str(appointment.appointment_id), diagnosis="Flu", treatment="Rest", prescription="Paracetamol"
    )
    assert completed.status == AppointmentStatus.COMPLETED
    assert completed.completed_at is not None


@pytest.mark.asyncio
async def test_completing_twice_fails(manager):
    appointment = await book(manager)
    aid = str(appointment.appointment_id)
    await manager.complete(STAFF, aid)

    with pytest.raises(InvalidTransitionError):
        await manager.complete(STAFF, aid)


@pytest.mark.asyncio
async def test_notes_survive_assignment_and_completion(manager):
    appointment = await manager.create(
        STAFF,
        patient_id="P-100",
        appointment_date=DAY,
        appointment_time="10:00",
        notes="Bring previous lab results",
    )
    aid = str(appointment.appointment_id)

    await manager.assign_doctor(STAFF, aid, "DR-1")
    completed = await manager.complete(STAFF, aid, diagnosis="Normal labs")

    assert completed.doctor_id == "DR-1"
    assert completed.notes == "Bring previous lab results"
    assert completed.diagnosis == "Normal labs"


@pytest.mark.asyncio
async def test_overlapping_slot_for_same_doctor_is_rejected(manager):
    first = await book(manager, "10:00", doctor_id="DR-1", duration=30)

    with pytest.raises(SlotConflictError) as exc_info:
        await book(manager, "10:15", doctor_id="DR-1", patient_id="P-200")
    assert exc_info.value.details["conflicting_appointment_id"] == str(first.appointment_id)

    back_to_back = await book(manager, "10:30", doctor_id="DR-1", patient_id="P-200")
    assert back_to_back.status == AppointmentStatus.SCHEDULED
    other_doctor = await book(manager, "10:15", doctor_id="DR-2", patient_id="P-300")
    assert other_doctor.doctor_id == "DR-2"


@pytest.mark.asyncio
async def test_cancelled_appointment_frees_the_slot(manager):
    first = await book(manager, "10:00", doctor_id="DR-1")
    await manager.cancel(STAFF, str(first.appointment_id), "Patient request")

    again = await book(manager, "10:00", doctor_id="DR-1", patient_id="P-200")
    assert again.status == AppointmentStatus.SCHEDULED


@pytest.mark.asyncio
async def test_assigning_busy_doctor_conflicts(manager):
    await book(manager, "10:00", doctor_id="DR-1")
    unassigned = await book(manager, "10:10", patient_id="P-200")

    with pytest.raises(SlotConflictError):
        await manager.assign_doctor(STAFF, str(unassigned.appointment_id), "DR-1")
    stored = await manager.get(str(unassigned.appointment_id))
    assert stored.doctor_id is None


def split_outcomes(results):
    booked = [r for r in results if not isinstance(r, BaseException)]
    conflicts = [r for r in results if isinstance(r, SlotConflictError)]
    return booked, conflicts


async def open_for(repository, doctor_id):
    return [
        a
        for a in await repository.find_by_date_range(DAY, DAY, doctor_id=doctor_id)
        if a.status in (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED)
    ]


@pytest.mark.asyncio
async def test_concurrent_bookings_of_one_slot_admit_one(manager, repository):
    results = await asyncio.gather(
        book(manager, "09:00", doctor_id="DR-1"),
        book(manager, "09:00", doctor_id="DR-1", patient_id="P-200"),
        return_exceptions=True,
    )

    booked, conflicts = split_outcomes(results)
    assert len(booked) == 1
    assert len(conflicts) == 1
    assert [a.appointment_id for a in await open_for(repository, "DR-1")] == [booked[0].appointment_id]


@pytest.mark.asyncio
async def test_concurrent_overlapping_bookings_admit_one(manager, repository):
    results = await asyncio.gather(
        book(manager, "09:00", doctor_id="DR-1"),
        book(manager, "09:15", doctor_id="DR-1", patient_id="P-200"),
        book(manager, "09:00", doctor_id="DR-2", patient_id="P-300"),
        return_exceptions=True,
    )

    booked, conflicts = split_outcomes(results)
    assert len(booked) == 2
    assert len(conflicts) == 1
    assert len(await open_for(repository, "DR-1")) == 1
    assert len(await open_for(repository, "DR-2")) == 1
    # the losing booking leaves nothing behind
    assert len(repository.appointments) == 2


@pytest.mark.asyncio
async def test_concurrent_assignments_to_overlapping_slots_admit_one(manager, repository):
    first = await book(manager, "10:00")
    second = await book(manager, "10:10", patient_id="P-200")

    results = await asyncio.gather(
        manager.assign_doctor(STAFF, str(first.appointment_id), "DR-1"),
        manager.assign_doctor(STAFF, str(second.appointment_id), "DR-1"),
        return_exceptions=True,
    )

    booked, conflicts = split_outcomes(results)
    assert len(booked) == 1
    assert len(conflicts) == 1
    assigned = await open_for(repository, "DR-1")
    assert [a.appointment_id for a in assigned] == [booked[0].appointment_id]
    loser = first if booked[0].appointment_id == second.appointment_id else second
    assert (await manager.get(str(loser.appointment_id))).doctor_id is None


@pytest.mark.asyncio
async def test_patient_books_only_for_themselves(manager):
    own = await manager.create(PATIENT, "P-100", DAY, "11:00")
    assert own.created_by == "P-100"

    with pytest.raises(ForbiddenActionError):
        await manager.create(PATIENT, "P-200", DAY, "11:00")
    with pytest.raises(ForbiddenActionError):
        await manager.list_for_patient(PATIENT, "P-200")

    assert [a.appointment_id for a in await manager.list_for_patient(PATIENT, "P-100")] == [own.appointment_id]


@pytest.mark.asyncio
async def test_unknown_appointment_is_not_found(manager):
    with pytest.raises(AppointmentNotFoundError):
        await manager.get("APT-20300115-ZZZZZ")


@pytest.mark.asyncio
async def test_list_for_date_filters_by_doctor(manager):
    await book(manager, "09:00", doctor_id="DR-1")
    await book(manager, "09:00", doctor_id="DR-2", patient_id="P-200")
    await book(manager, "09:00", day=date(2030, 1, 16), doctor_id="DR-1", patient_id="P-300")

    assert len(await manager.list_for_date(DAY)) == 2
    only_dr1 = await manager.list_for_date(DAY, doctor_id="DR-1")
    assert [a.doctor_id for a in only_dr1] == ["DR-1"]
