"""
Background sweeper loop tests.
"""

import asyncio
from datetime import date, timedelta

import pytest

from clinicflow.application.use_cases.appointment_lifecycle import AppointmentLifecycleManager
from clinicflow.application.use_cases.doctor_availability import DoctorAvailabilityTracker
from clinicflow.application.use_cases.side_effects import SideEffectDispatcher
from clinicflow.core.config import reset_settings
from clinicflow.core.utils.datetime_utils import utcnow
from clinicflow.domain.enums.workflow import ActorRole, AppointmentStatus, DoctorStatus
from clinicflow.domain.value_objects.actor import Actor
from clinicflow.workers.sweepers import (
    _sweep_overdue_once,
    _sweep_stale_once,
    run_appointment_overdue_sweeper_forever,
    run_doctor_stale_sweeper_forever,
)

from fakes import (
    InMemoryAppointmentRepository,
    InMemoryDoctorStatusRepository,
    RecordingAuditService,
    online_doctor,
)


def make_tracker(repository):
    return DoctorAvailabilityTracker(repository, SideEffectDispatcher(RecordingAuditService()))


async def drain(steps=50):
    for _ in range(steps):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_stale_sweep_once_counts_swept_doctors():
    repository = InMemoryDoctorStatusRepository()
    repository.records["DR-1"] = online_doctor("DR-1", utcnow() - timedelta(minutes=30))
    repository.records["DR-2"] = online_doctor("DR-2", utcnow())

    assert await _sweep_stale_once(make_tracker(repository), 300) == 1
    assert repository.records["DR-1"].status == DoctorStatus.OFFLINE
    assert repository.records["DR-2"].status == DoctorStatus.ONLINE


@pytest.mark.asyncio
async def test_overdue_sweep_once_counts_marked_appointments():
    repository = InMemoryAppointmentRepository()
    manager = AppointmentLifecycleManager(repository, SideEffectDispatcher(RecordingAuditService()))
    past = await manager.create(Actor("STAFF-1", ActorRole.STAFF), "P-100", date(2020, 5, 1), "09:00")
    await manager.create(Actor("STAFF-1", ActorRole.STAFF), "P-200", date(2099, 5, 1), "09:00")

    assert await _sweep_overdue_once(manager) == 1
    assert repository.appointments[str(past.appointment_id)].status == AppointmentStatus.NO_SHOW


@pytest.mark.asyncio
async def test_disabled_sweepers_return_immediately(monkeypatch):
    monkeypatch.setenv("SWEEPER_DOCTOR_STALE_ENABLED", "false")
    monkeypatch.setenv("SWEEPER_APPOINTMENT_OVERDUE_ENABLED", "false")
    reset_settings()

    await asyncio.wait_for(run_doctor_stale_sweeper_forever(make_tracker(InMemoryDoctorStatusRepository())), 1)
    await asyncio.wait_for(run_appointment_overdue_sweeper_forever(), 1)


@pytest.mark.asyncio
async def test_enabled_stale_sweeper_runs_until_cancelled(monkeypatch):
    monkeypatch.setenv("SWEEPER_DOCTOR_STALE_ENABLED", "true")
    reset_settings()
    repository = InMemoryDoctorStatusRepository()
    repository.records["DR-1"] = online_doctor("DR-1", utcnow() - timedelta(hours=1))

    task = asyncio.create_task(run_doctor_stale_sweeper_forever(make_tracker(repository)))
    await drain()
    assert repository.records["DR-1"].status == DoctorStatus.OFFLINE
    assert not task.done()

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_sweep_errors_do_not_stop_the_loop(monkeypatch):
    monkeypatch.setenv("SWEEPER_DOCTOR_STALE_ENABLED", "true")
    reset_settings()

    class BrokenRepository(InMemoryDoctorStatusRepository):
        async def find_stale(self, cutoff):
            raise RuntimeError("store unavailable")

    task = asyncio.create_task(run_doctor_stale_sweeper_forever(make_tracker(BrokenRepository())))
    await drain()
    assert not task.done()

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
