"""
MongoDB implementation of AppointmentRepository.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from pymongo.errors import DuplicateKeyError

from clinicflow.application.ports.repositories.appointment_repo import AppointmentRepository
from clinicflow.core.utils.datetime_utils import format_day, parse_day, utcnow
from clinicflow.domain.entities.appointment import Appointment
from clinicflow.domain.enums.workflow import (
    OPEN_APPOINTMENT_STATUSES,
    AppointmentStatus,
    AppointmentType,
)
from clinicflow.domain.errors import SlotConflictError
from clinicflow.domain.value_objects.appointment_id import AppointmentId

from ..models.appointment_m import AppointmentMongo
from ..models.doctor_booking_m import DoctorBookingMongo
from .history_mapping import history_to_domain, history_to_mongo

logger = logging.getLogger("clinicflow")

_CHRONOLOGICAL = [("appointment_date", 1), ("appointment_time", 1)]


class MongoAppointmentRepository(AppointmentRepository):
    """MongoDB implementation of AppointmentRepository."""

    async def create(self, appointment: Appointment) -> Appointment:
        """Insert an appointment; the partial unique index rejects a second open one in the same slot."""
        try:
            await self._domain_to_mongo(appointment).insert()
        except DuplicateKeyError:
            raise await self._slot_conflict(appointment)
        return appointment

    async def find_by_id(self, appointment_id: str) -> Optional[Appointment]:
        appointment_mongo = await AppointmentMongo.find_one(
            AppointmentMongo.appointment_id == appointment_id
        )
        if not appointment_mongo:
            return None
        return self._mongo_to_domain(appointment_mongo)

    async def find_by_patient(self, patient_id: str) -> List[Appointment]:
        appointments = await AppointmentMongo.find(
            AppointmentMongo.patient_id == patient_id
        ).sort([("appointment_date", -1), ("appointment_time", -1)]).to_list()
        return [self._mongo_to_domain(a) for a in appointments]

    async def find_by_date_range(
        self,
        start: date,
        end: date,
        doctor_id: Optional[str] = None,
        statuses: Optional[Sequence[AppointmentStatus]] = None,
    ) -> List[Appointment]:
        query: Dict[str, Any] = {
            "appointment_date": {"$gte": format_day(start), "$lte": format_day(end)}
        }
        if doctor_id is not None:
            query["doctor_id"] = doctor_id
        if statuses:
            query["status"] = {"$in": [s.value for s in statuses]}
        appointments = await AppointmentMongo.find(query).sort(_CHRONOLOGICAL).to_list()
        return [self._mongo_to_domain(a) for a in appointments]

    async def find_open_up_to(self, day: date) -> List[Appointment]:
        appointments = await AppointmentMongo.find(
            {
                "status": {"$in": [s.value for s in OPEN_APPOINTMENT_STATUSES]},
                "appointment_date": {"$lte": format_day(day)},
            }
        ).sort(_CHRONOLOGICAL).to_list()
        return [self._mongo_to_domain(a) for a in appointments]

    async def save_if_status(self, appointment: Appointment, expected_status: AppointmentStatus) -> bool:
        fields = self._domain_to_mongo(appointment).model_dump(exclude={"id", "revision_id"})
        fields.pop("appointment_id", None)
        try:
            result = await AppointmentMongo.get_motor_collection().update_one(
                {"appointment_id": str(appointment.appointment_id), "status": expected_status.value},
                {"$set": fields},
            )
        except DuplicateKeyError:
            raise await self._slot_conflict(appointment)
        return result.matched_count == 1

    async def delete(self, appointment_id: str) -> None:
        await AppointmentMongo.get_motor_collection().delete_one({"appointment_id": appointment_id})

    async def get_booking_version(self, doctor_id: str) -> int:
        booking = await DoctorBookingMongo.find_one(DoctorBookingMongo.doctor_id == doctor_id)
        return booking.version if booking else 0

    async def bump_booking_version(self, doctor_id: str, expected_version: int) -> bool:
        collection = DoctorBookingMongo.get_motor_collection()
        if expected_version == 0:
            try:
                await collection.insert_one({"doctor_id": doctor_id, "version": 1, "updated_at": utcnow()})
            except DuplicateKeyError:
                return False
            return True
        result = await collection.update_one(
            {"doctor_id": doctor_id, "version": expected_version},
            {"$inc": {"version": 1}, "$set": {"updated_at": utcnow()}},
        )
        return result.matched_count == 1

    async def _slot_conflict(self, appointment: Appointment) -> SlotConflictError:
        holder = await AppointmentMongo.find_one({"slot_key": appointment.slot_key})
        logger.info(
            "Concurrent booking rejected for doctor=%s slot=%s %s",
            appointment.doctor_id,
            appointment.appointment_date,
            appointment.appointment_time,
        )
        return SlotConflictError(
            appointment.doctor_id or "",
            format_day(appointment.appointment_date),
            appointment.appointment_time,
            holder.appointment_id if holder else "unknown",
        )

    def _domain_to_mongo(self, appointment: Appointment) -> AppointmentMongo:
        return AppointmentMongo(
            appointment_id=str(appointment.appointment_id),
            patient_id=appointment.patient_id,
            doctor_id=appointment.doctor_id,
            appointment_date=format_day(appointment.appointment_date),
            appointment_time=appointment.appointment_time,
            duration_minutes=appointment.duration_minutes,
            appointment_type=appointment.appointment_type.value,
            status=appointment.status.value,
            notes=appointment.notes,
            rejection_reason=appointment.rejection_reason,
            diagnosis=appointment.diagnosis,
            treatment=appointment.treatment,
            prescription=appointment.prescription,
            completed_at=appointment.completed_at,
            created_by=appointment.created_by,
            created_at=appointment.created_at,
            updated_at=appointment.updated_at,
            status_history=history_to_mongo(appointment.status_history),
            slot_key=appointment.slot_key,
        )

    def _mongo_to_domain(self, appointment_mongo: AppointmentMongo) -> Appointment:
        return Appointment(
            appointment_id=AppointmentId(appointment_mongo.appointment_id),
            patient_id=appointment_mongo.patient_id,
            appointment_date=parse_day(appointment_mongo.appointment_date),
            appointment_time=appointment_mongo.appointment_time,
            appointment_type=AppointmentType(appointment_mongo.appointment_type),
            duration_minutes=appointment_mongo.duration_minutes,
            doctor_id=appointment_mongo.doctor_id,
            notes=appointment_mongo.notes,
            status=AppointmentStatus(appointment_mongo.status),
            rejection_reason=appointment_mongo.rejection_reason,
            diagnosis=appointment_mongo.diagnosis,
            treatment=appointment_mongo.treatment,
            prescription=appointment_mongo.prescription,
            completed_at=appointment_mongo.completed_at,
            created_by=appointment_mongo.created_by,
            created_at=appointment_mongo.created_at,
            updated_at=appointment_mongo.updated_at,
            status_history=history_to_domain(appointment_mongo.status_history),
        )
