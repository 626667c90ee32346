"""
Doctor availability tracker tests: login/logout, busy/available and the stale sweep.
"""

from datetime import timedelta

import pytest

from clinicflow.application.use_cases.doctor_availability import DoctorAvailabilityTracker
from clinicflow.application.use_cases.side_effects import SideEffectDispatcher
from clinicflow.core.utils.datetime_utils import utcnow
from clinicflow.domain.enums.workflow import ActorRole, DoctorStatus
from clinicflow.domain.errors import ForbiddenActionError, NotOnlineError
from clinicflow.domain.value_objects.actor import Actor

from fakes import (
    InMemoryDoctorStatusRepository,
    RecordingAuditService,
    RecordingPublisher,
    online_doctor,
)


@pytest.fixture
def repository():
    return InMemoryDoctorStatusRepository()


@pytest.fixture
def audit():
    return RecordingAuditService()


@pytest.fixture
def tracker(repository, audit):
    return DoctorAvailabilityTracker(repository, SideEffectDispatcher(audit, RecordingPublisher()))


@pytest.mark.asyncio
async def test_login_creates_online_record(tracker):
    record = await tracker.on_login("DR-1")

    assert record.status == DoctorStatus.ONLINE
    assert record.login_time is not None
    assert record.last_activity == record.login_time
    assert record.current_patient_id is None


@pytest.mark.asyncio
async def test_login_ends_previous_busy_session(tracker):
    await tracker.on_login("DR-1")
    await tracker.set_busy("DR-1", "P-100", "CHK-1")

    record = await tracker.on_login("DR-1")
    assert record.status == DoctorStatus.ONLINE
    assert record.current_patient_id is None
    assert record.current_session_id is None


@pytest.mark.asyncio
async def test_logout_sets_offline(tracker):
    await tracker.on_login("DR-1")
    record = await tracker.on_logout("DR-1")

    assert record.status == DoctorStatus.OFFLINE
    assert record.logout_time is not None


@pytest.mark.asyncio
async def test_logout_of_unknown_doctor_is_noop(tracker):
    assert await tracker.on_logout("DR-9") is None


@pytest.mark.asyncio
async def test_only_the_doctor_or_admin_can_log_in(tracker):
    with pytest.raises(ForbiddenActionError):
        await tracker.on_login("DR-1", Actor("DR-2", ActorRole.DOCTOR))

    record = await tracker.on_login("DR-1", Actor("ADMIN-1", ActorRole.ADMIN))
    assert record.status == DoctorStatus.ONLINE


@pytest.mark.asyncio
async def test_unknown_doctor_reads_as_offline_placeholder(tracker, repository):
    record = await tracker.get_status("DR-7")
    assert record.status == DoctorStatus.OFFLINE
    assert record.login_time is None
    assert "DR-7" not in repository.records


@pytest.mark.asyncio
async def test_heartbeat_reports_whether_online(tracker, repository):
    assert await tracker.heartbeat("DR-1") is False

    await tracker.on_login("DR-1")
    before = repository.records["DR-1"].last_activity
    assert await tracker.heartbeat("DR-1") is True
    assert repository.records["DR-1"].last_activity >= before

    await tracker.on_logout("DR-1")
    assert await tracker.heartbeat("DR-1") is False


@pytest.mark.asyncio
async def test_busy_requires_online(tracker):
    with pytest.raises(NotOnlineError):
        await tracker.set_busy("DR-1", "P-100")

    await tracker.on_login("DR-1")
    await tracker.on_logout("DR-1")
    with pytest.raises(NotOnlineError):
        await tracker.set_busy("DR-1", "P-100")


@pytest.mark.asyncio
async def test_busy_then_available(tracker):
    await tracker.on_login("DR-1")

    record = await tracker.set_busy("DR-1", "P-100", "CHK-1")
    assert record.status == DoctorStatus.BUSY
    assert record.current_patient_id == "P-100"

    record = await tracker.set_available("DR-1", "CHK-1")
    assert record.status == DoctorStatus.ONLINE
    assert record.current_patient_id is None


@pytest.mark.asyncio
async def test_available_for_other_session_leaves_doctor_busy(tracker):
    await tracker.on_login("DR-1")
    await tracker.set_busy("DR-1", "P-200", "CHK-2")

    record = await tracker.set_available("DR-1", "CHK-1")
    assert record.status == DoctorStatus.BUSY
    assert record.current_session_id == "CHK-2"


@pytest.mark.asyncio
async def test_silent_doctor_is_swept_offline(tracker, repository, audit):
    await tracker.on_login("DR-1")
    login = repository.records["DR-1"].last_activity

    swept = await tracker.sweep_stale(300, now=login + timedelta(seconds=301))

    assert swept == ["DR-1"]
    assert repository.records["DR-1"].status == DoctorStatus.OFFLINE
    await tracker._dispatcher.flush()
    assert "DOCTOR_STALE_OFFLINE" in audit.event_types()


@pytest.mark.asyncio
async def test_busy_doctor_is_swept_and_loses_patient(tracker, repository):
    await tracker.on_login("DR-1")
    await tracker.set_busy("DR-1", "P-100", "CHK-1")
    last = repository.records["DR-1"].last_activity

    assert await tracker.sweep_stale(300, now=last + timedelta(minutes=10)) == ["DR-1"]
    record = repository.records["DR-1"]
    assert record.status == DoctorStatus.OFFLINE
    assert record.current_patient_id is None


@pytest.mark.asyncio
async def test_activity_exactly_at_cutoff_is_not_stale(tracker, repository):
    at = utcnow()
    repository.records["DR-1"] = online_doctor("DR-1", at)

    assert await tracker.sweep_stale(300, now=at + timedelta(seconds=300)) == []
    assert repository.records["DR-1"].status == DoctorStatus.ONLINE


@pytest.mark.asyncio
async def test_sweep_is_idempotent(tracker, repository):
    at = utcnow() - timedelta(hours=1)
    repository.records["DR-1"] = online_doctor("DR-1", at)
    repository.records["DR-2"] = online_doctor("DR-2", utcnow())

    first = await tracker.sweep_stale(300)
    second = await tracker.sweep_stale(300)

    assert first == ["DR-1"]
    assert second == []
    assert repository.records["DR-2"].status == DoctorStatus.ONLINE


@pytest.mark.asyncio
async def test_heartbeat_keeps_doctor_from_being_swept(tracker, repository):
    repository.records["DR-1"] = online_doctor("DR-1", utcnow() - timedelta(minutes=10))
    assert await tracker.heartbeat("DR-1") is True

    assert await tracker.sweep_stale(300) == []
