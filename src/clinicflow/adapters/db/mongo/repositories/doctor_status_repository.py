"""
MongoDB implementation of DoctorStatusRepository.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument

from clinicflow.application.ports.repositories.doctor_status_repo import DoctorStatusRepository
from clinicflow.domain.entities.doctor_status import DoctorStatusRecord
from clinicflow.domain.enums.workflow import DoctorStatus

from ..models.doctor_status_m import DoctorStatusMongo

_ACTIVE = [DoctorStatus.ONLINE.value, DoctorStatus.BUSY.value]


def _stale_clause(cutoff: datetime) -> Dict[str, Any]:
    return {"$or": [{"last_activity": {"$lt": cutoff}}, {"last_activity": None}]}


class MongoDoctorStatusRepository(DoctorStatusRepository):
    """MongoDB implementation of DoctorStatusRepository."""

    async def find_by_doctor_id(self, doctor_id: str) -> Optional[DoctorStatusRecord]:
        record_mongo = await DoctorStatusMongo.find_one(DoctorStatusMongo.doctor_id == doctor_id)
        if not record_mongo:
            return None
        return self._mongo_to_domain(record_mongo)

    async def find_all(self) -> List[DoctorStatusRecord]:
        records = await DoctorStatusMongo.find_all().sort([("doctor_id", 1)]).to_list()
        return [self._mongo_to_domain(r) for r in records]

    async def find_stale(self, cutoff: datetime) -> List[DoctorStatusRecord]:
        records = await DoctorStatusMongo.find(
            {"status": {"$in": _ACTIVE}, **_stale_clause(cutoff)}
        ).to_list()
        return [self._mongo_to_domain(r) for r in records]

    async def upsert(self, record: DoctorStatusRecord) -> DoctorStatusRecord:
        fields = self._to_fields(record)
        doc = await DoctorStatusMongo.get_motor_collection().find_one_and_update(
            {"doctor_id": record.doctor_id},
            {"$set": fields, "$inc": {"version": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        record.version = doc["version"]
        return record

    async def save_if_version(self, record: DoctorStatusRecord, expected_version: int) -> bool:
        fields = self._to_fields(record)
        fields["version"] = expected_version + 1
        result = await DoctorStatusMongo.get_motor_collection().update_one(
            {"doctor_id": record.doctor_id, "version": expected_version},
            {"$set": fields},
        )
        if result.matched_count == 1:
            record.version = expected_version + 1
            return True
        return False

    async def touch(self, doctor_id: str, at: datetime) -> bool:
        result = await DoctorStatusMongo.get_motor_collection().update_one(
            {"doctor_id": doctor_id, "status": {"$in": _ACTIVE}},
            {"$set": {"last_activity": at}},
        )
        return result.matched_count == 1

    async def mark_offline_if_stale(self, doctor_id: str, cutoff: datetime, at: datetime) -> bool:
        result = await DoctorStatusMongo.get_motor_collection().update_one(
            {"doctor_id": doctor_id, "status": {"$in": _ACTIVE}, **_stale_clause(cutoff)},
            {
                "$set": {
                    "status": DoctorStatus.OFFLINE.value,
                    "logout_time": at,
                    "current_patient_id": None,
                    "current_session_id": None,
                    "updated_at": at,
                },
                "$inc": {"version": 1},
            },
        )
        return result.modified_count == 1

    def _to_fields(self, record: DoctorStatusRecord) -> Dict[str, Any]:
        return {
            "doctor_id": record.doctor_id,
            "status": record.status.value,
            "login_time": record.login_time,
            "logout_time": record.logout_time,
            "last_activity": record.last_activity,
            "current_patient_id": record.current_patient_id,
            "current_session_id": record.current_session_id,
            "updated_at": record.updated_at,
        }

    def _mongo_to_domain(self, record_mongo: DoctorStatusMongo) -> DoctorStatusRecord:
        return DoctorStatusRecord(
            doctor_id=record_mongo.doctor_id,
            status=DoctorStatus(record_mongo.status),
            login_time=record_mongo.login_time,
            logout_time=record_mongo.logout_time,
            last_activity=record_mongo.last_activity,
            current_patient_id=record_mongo.current_patient_id,
            current_session_id=record_mongo.current_session_id,
            updated_at=record_mongo.updated_at,
            version=record_mongo.version,
        )
