"""
In-memory implementations of the repository and collaborator ports.

Every call yields to the event loop once so concurrent coroutines interleave
the way they would against a real store. Conditional writes compare and set
without yielding, like a single Mongo update.
"""

import asyncio
import copy
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence

from clinicflow.application.ports.repositories.appointment_repo import AppointmentRepository
from clinicflow.application.ports.repositories.checkin_repo import CheckInRepository
from clinicflow.application.ports.repositories.doctor_status_repo import DoctorStatusRepository
from clinicflow.application.ports.services.audit_service import AuditService
from clinicflow.application.ports.services.event_publisher import EventPublisher
from clinicflow.application.ports.services.inventory_service import (
    InventoryService,
    StockDecrementResult,
)
from clinicflow.core.exceptions import InventoryServiceError
from clinicflow.domain.entities.appointment import Appointment
from clinicflow.domain.entities.checkin_session import CheckInSession
from clinicflow.domain.entities.doctor_status import DoctorStatusRecord
from clinicflow.domain.enums.workflow import (
    OPEN_APPOINTMENT_STATUSES,
    AppointmentStatus,
    CheckInStatus,
)
from clinicflow.domain.errors import DuplicateActiveSessionError, SlotConflictError


class InMemoryCheckInRepository(CheckInRepository):
    def __init__(self):
        self.sessions: Dict[str, CheckInSession] = {}

    async def create(self, session: CheckInSession) -> CheckInSession:
        await asyncio.sleep(0)
        key = session.active_day_key
        if key is not None:
            for stored in self.sessions.values():
                if stored.active_day_key == key:
                    raise DuplicateActiveSessionError(session.patient_id, str(stored.session_id))
        self.sessions[str(session.session_id)] = copy.deepcopy(session)
        return session

    async def find_by_id(self, session_id: str) -> Optional[CheckInSession]:
        await asyncio.sleep(0)
        stored = self.sessions.get(session_id)
        return copy.deepcopy(stored) if stored else None

    async def find_active_for_patient(self, patient_id: str, clinic_date: date) -> Optional[CheckInSession]:
        await asyncio.sleep(0)
        for stored in self.sessions.values():
            if stored.patient_id == patient_id and stored.clinic_date == clinic_date and not stored.is_terminal:
                return copy.deepcopy(stored)
        return None

    async def find_by_clinic_date(
        self, clinic_date: date, statuses: Optional[Sequence[CheckInStatus]] = None
    ) -> List[CheckInSession]:
        await asyncio.sleep(0)
        found = [
            copy.deepcopy(s)
            for s in self.sessions.values()
            if s.clinic_date == clinic_date and (not statuses or s.status in statuses)
        ]
        return sorted(found, key=lambda s: s.checked_in_at)

    async def find_history(self, patient_id: str, limit: int = 50) -> List[CheckInSession]:
        await asyncio.sleep(0)
        found = [
            copy.deepcopy(s)
            for s in self.sessions.values()
            if s.patient_id == patient_id and s.status == CheckInStatus.COMPLETED
        ]
        found.sort(key=lambda s: s.completed_at, reverse=True)
        return found[:limit]

    async def save_if_status(self, session: CheckInSession, expected_status: CheckInStatus) -> bool:
        await asyncio.sleep(0)
        stored = self.sessions.get(str(session.session_id))
        if stored is None or stored.status != expected_status:
            return False
        self.sessions[str(session.session_id)] = copy.deepcopy(session)
        return True


class InMemoryDoctorStatusRepository(DoctorStatusRepository):
    def __init__(self):
        self.records: Dict[str, DoctorStatusRecord] = {}

    async def find_by_doctor_id(self, doctor_id: str) -> Optional[DoctorStatusRecord]:
        await asyncio.sleep(0)
        stored = self.records.get(doctor_id)
        return copy.deepcopy(stored) if stored else None

    async def find_all(self) -> List[DoctorStatusRecord]:
        await asyncio.sleep(0)
        return [copy.deepcopy(self.records[k]) for k in sorted(self.records)]

    async def find_stale(self, cutoff: datetime) -> List[DoctorStatusRecord]:
        await asyncio.sleep(0)
        return [copy.deepcopy(r) for r in self.records.values() if r.is_stale(cutoff)]

    async def upsert(self, record: DoctorStatusRecord) -> DoctorStatusRecord:
        await asyncio.sleep(0)
        stored = self.records.get(record.doctor_id)
        record.version = (stored.version if stored else 0) + 1
        self.records[record.doctor_id] = copy.deepcopy(record)
        return record

    async def save_if_version(self, record: DoctorStatusRecord, expected_version: int) -> bool:
        await asyncio.sleep(0)
        stored = self.records.get(record.doctor_id)
        if stored is None or stored.version != expected_version:
            return False
        record.version = expected_version + 1
        self.records[record.doctor_id] = copy.deepcopy(record)
        return True

    async def touch(self, doctor_id: str, at: datetime) -> bool:
        await asyncio.sleep(0)
        stored = self.records.get(doctor_id)
        if stored is None or not stored.is_active:
            return False
        stored.touch(at)
        return True

    async def mark_offline_if_stale(self, doctor_id: str, cutoff: datetime, at: datetime) -> bool:
        await asyncio.sleep(0)
        stored = self.records.get(doctor_id)
        if stored is None or not stored.is_stale(cutoff):
            return False
        stored.go_offline(at)
        stored.version += 1
        return True


class InMemoryAppointmentRepository(AppointmentRepository):
    def __init__(self):
        self.appointments: Dict[str, Appointment] = {}
        self.booking_versions: Dict[str, int] = {}

    def _sorted(self, items):
        return sorted(items, key=lambda a: (a.appointment_date, a.appointment_time))

    def _check_slot_free(self, appointment: Appointment) -> None:
        key = appointment.slot_key
        if key is None:
            return
        for stored in self.appointments.values():
            if stored.appointment_id != appointment.appointment_id and stored.slot_key == key:
                raise SlotConflictError(
                    appointment.doctor_id,
                    appointment.appointment_date.isoformat(),
                    appointment.appointment_time,
                    str(stored.appointment_id),
                )

    async def create(self, appointment: Appointment) -> Appointment:
        await asyncio.sleep(0)
        self._check_slot_free(appointment)
        self.appointments[str(appointment.appointment_id)] = copy.deepcopy(appointment)
        return appointment

    async def find_by_id(self, appointment_id: str) -> Optional[Appointment]:
        await asyncio.sleep(0)
        stored = self.appointments.get(appointment_id)
        return copy.deepcopy(stored) if stored else None

    async def find_by_patient(self, patient_id: str) -> List[Appointment]:
        await asyncio.sleep(0)
        found = [copy.deepcopy(a) for a in self.appointments.values() if a.patient_id == patient_id]
        return list(reversed(self._sorted(found)))

    async def find_by_date_range(
        self,
        start: date,
        end: date,
        doctor_id: Optional[str] = None,
        statuses: Optional[Sequence[AppointmentStatus]] = None,
    ) -> List[Appointment]:
        await asyncio.sleep(0)
        found = [
            copy.deepcopy(a)
            for a in self.appointments.values()
            if start <= a.appointment_date <= end
            and (doctor_id is None or a.doctor_id == doctor_id)
            and (not statuses or a.status in statuses)
        ]
        return self._sorted(found)

    async def find_open_up_to(self, day: date) -> List[Appointment]:
        await asyncio.sleep(0)
        found = [
            copy.deepcopy(a)
            for a in self.appointments.values()
            if a.status in OPEN_APPOINTMENT_STATUSES and a.appointment_date <= day
        ]
        return self._sorted(found)

    async def save_if_status(self, appointment: Appointment, expected_status: AppointmentStatus) -> bool:
        await asyncio.sleep(0)
        stored = self.appointments.get(str(appointment.appointment_id))
        if stored is None or stored.status != expected_status:
            return False
        self._check_slot_free(appointment)
        self.appointments[str(appointment.appointment_id)] = copy.deepcopy(appointment)
        return True

    async def delete(self, appointment_id: str) -> None:
        await asyncio.sleep(0)
        self.appointments.pop(appointment_id, None)

    async def get_booking_version(self, doctor_id: str) -> int:
        await asyncio.sleep(0)
        return self.booking_versions.get(doctor_id, 0)

    async def bump_booking_version(self, doctor_id: str, expected_version: int) -> bool:
        await asyncio.sleep(0)
        if self.booking_versions.get(doctor_id, 0) != expected_version:
            return False
        self.booking_versions[doctor_id] = expected_version + 1
        return True


class RecordingAuditService(AuditService):
    def __init__(self, fail: bool = False):
        self.records = []
        self.fail = fail

    async def record(self, event_type, actor, target_type, target_id, description) -> None:
        await asyncio.sleep(0)
        if self.fail:
            raise RuntimeError("audit store unavailable")
        self.records.append((event_type, actor.user_id, target_type, target_id, description))

    def event_types(self) -> List[str]:
        return [r[0] for r in self.records]


class RecordingPublisher(EventPublisher):
    def __init__(self, fail: bool = False):
        self.events = []
        self.fail = fail

    async def publish(self, event) -> None:
        if self.fail:
            raise RuntimeError("publisher down")
        self.events.append(event)


class FakeInventory(InventoryService):
    """Stock levels per item; items in ``broken`` raise a transport error."""

    def __init__(self, stock: Optional[Dict[str, int]] = None, broken: Sequence[str] = ()):
        self.stock = dict(stock or {})
        self.broken = set(broken)
        self.calls = []

    async def decrement_stock(self, item_name: str, quantity: int) -> StockDecrementResult:
        await asyncio.sleep(0)
        self.calls.append((item_name, quantity))
        if item_name in self.broken:
            raise InventoryServiceError(f"inventory unreachable for {item_name}")
        if self.stock.get(item_name, 0) < quantity:
            return StockDecrementResult.INSUFFICIENT_STOCK
        self.stock[item_name] -= quantity
        return StockDecrementResult.OK


def online_doctor(doctor_id: str, at: datetime) -> DoctorStatusRecord:
    record = DoctorStatusRecord(doctor_id=doctor_id)
    record.go_online(at)
    return record


