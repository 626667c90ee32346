"""
MongoDB implementation of CheckInRepository.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from pymongo.errors import DuplicateKeyError

from clinicflow.application.ports.repositories.checkin_repo import CheckInRepository
from clinicflow.core.utils.datetime_utils import format_day, parse_day
from clinicflow.domain.entities.checkin_session import (
    CheckInSession,
    ClinicalNotes,
    PrescriptionItem,
    VitalSigns,
)
from clinicflow.domain.enums.workflow import (
    TERMINAL_CHECKIN_STATUSES,
    CheckInMethod,
    CheckInStatus,
    Priority,
)
from clinicflow.domain.errors import DuplicateActiveSessionError
from clinicflow.domain.value_objects.checkin_id import CheckInId

from ..models.checkin_m import (
    CheckInSessionMongo,
    ClinicalNotesMongo,
    PrescriptionItemMongo,
    VitalSignsMongo,
)
from .history_mapping import history_to_domain, history_to_mongo

logger = logging.getLogger("clinicflow")

_TERMINAL_VALUES = [s.value for s in TERMINAL_CHECKIN_STATUSES]


class MongoCheckInRepository(CheckInRepository):
    """MongoDB implementation of CheckInRepository."""

    async def create(self, session: CheckInSession) -> CheckInSession:
        """Insert a session; the partial unique index backs the one-active-per-day rule."""
        session_mongo = self._domain_to_mongo(session)
        try:
            await session_mongo.insert()
        except DuplicateKeyError:
            existing = await self.find_active_for_patient(session.patient_id, session.clinic_date)
            logger.info(
                "Concurrent check-in rejected for patient=%s day=%s",
                session.patient_id,
                session.clinic_date,
            )
            raise DuplicateActiveSessionError(
                session.patient_id, str(existing.session_id) if existing else None
            )
        return session

    async def find_by_id(self, session_id: str) -> Optional[CheckInSession]:
        session_mongo = await CheckInSessionMongo.find_one(
            CheckInSessionMongo.session_id == session_id
        )
        if not session_mongo:
            return None
        return self._mongo_to_domain(session_mongo)

    async def find_active_for_patient(self, patient_id: str, clinic_date: date) -> Optional[CheckInSession]:
        session_mongo = await CheckInSessionMongo.find_one(
            {
                "patient_id": patient_id,
                "clinic_date": format_day(clinic_date),
                "status": {"$nin": _TERMINAL_VALUES},
            }
        )
        if not session_mongo:
            return None
        return self._mongo_to_domain(session_mongo)

    async def find_by_clinic_date(
        self, clinic_date: date, statuses: Optional[Sequence[CheckInStatus]] = None
    ) -> List[CheckInSession]:
        query: Dict[str, Any] = {"clinic_date": format_day(clinic_date)}
        if statuses:
            query["status"] = {"$in": [s.value for s in statuses]}
        sessions_mongo = await CheckInSessionMongo.find(query).sort([("checked_in_at", 1)]).to_list()
        return [self._mongo_to_domain(s) for s in sessions_mongo]

    async def find_history(self, patient_id: str, limit: int = 50) -> List[CheckInSession]:
        sessions_mongo = await CheckInSessionMongo.find(
            {"patient_id": patient_id, "status": CheckInStatus.COMPLETED.value}
        ).sort([("completed_at", -1)]).limit(limit).to_list()
        return [self._mongo_to_domain(s) for s in sessions_mongo]

    async def save_if_status(self, session: CheckInSession, expected_status: CheckInStatus) -> bool:
        """Conditional write: matched only while the stored status is still ``expected_status``."""
        fields = self._to_fields(session)
        fields.pop("session_id", None)
        try:
            result = await CheckInSessionMongo.get_motor_collection().update_one(
                {"session_id": str(session.session_id), "status": expected_status.value},
                {"$set": fields},
            )
        except DuplicateKeyError:
            # Only reachable if a terminal session is revived, which the state machine forbids
            raise DuplicateActiveSessionError(session.patient_id)
        return result.matched_count == 1

    def _to_fields(self, session: CheckInSession) -> Dict[str, Any]:
        return self._domain_to_mongo(session).model_dump(exclude={"id", "revision_id"})

    def _domain_to_mongo(self, session: CheckInSession) -> CheckInSessionMongo:
        """Convert domain entity to MongoDB model."""
        vitals = None
        if session.vital_signs is not None:
            vitals = VitalSignsMongo(**session.vital_signs.to_dict())
        notes = None
        if session.clinical_notes is not None:
            notes = ClinicalNotesMongo(
                chief_complaint=session.clinical_notes.chief_complaint,
                diagnosis=session.clinical_notes.diagnosis,
                treatment_plan=session.clinical_notes.treatment_plan,
            )
        return CheckInSessionMongo(
            session_id=str(session.session_id),
            patient_id=session.patient_id,
            appointment_id=session.appointment_id,
            service_type=session.service_type,
            priority=session.priority.value,
            status=session.status.value,
            check_in_method=session.check_in_method.value,
            checked_in_at=session.checked_in_at,
            clinic_date=format_day(session.clinic_date),
            active_day_key=session.active_day_key,
            vital_signs_collected=session.vital_signs_collected,
            vital_signs=vitals,
            vitals_recorded_at=session.vitals_recorded_at,
            vitals_recorded_by=session.vitals_recorded_by,
            assigned_doctor_id=session.assigned_doctor_id,
            queued_at=session.queued_at,
            notified_by=session.notified_by,
            started_at=session.started_at,
            completed_at=session.completed_at,
            clinical_notes=notes,
            prescriptions=[
                PrescriptionItemMongo(
                    medication_name=p.medication_name,
                    dosage=p.dosage,
                    frequency=p.frequency,
                    duration=p.duration,
                    quantity=p.quantity,
                )
                for p in session.prescriptions
            ],
            notes=session.notes,
            cancelled_at=session.cancelled_at,
            cancelled_by=session.cancelled_by,
            cancellation_reason=session.cancellation_reason,
            created_by=session.created_by,
            created_at=session.created_at,
            updated_at=session.updated_at,
            status_history=history_to_mongo(session.status_history),
        )

    def _mongo_to_domain(self, session_mongo: CheckInSessionMongo) -> CheckInSession:
        """Convert MongoDB model to domain entity."""
        vitals = None
        if session_mongo.vital_signs is not None:
            vitals = VitalSigns.from_dict(session_mongo.vital_signs.model_dump())
        notes = None
        if session_mongo.clinical_notes is not None:
            notes = ClinicalNotes(**session_mongo.clinical_notes.model_dump())
        return CheckInSession(
            session_id=CheckInId(session_mongo.session_id),
            patient_id=session_mongo.patient_id,
            service_type=session_mongo.service_type,
            clinic_date=parse_day(session_mongo.clinic_date),
            priority=Priority(session_mongo.priority),
            check_in_method=CheckInMethod(session_mongo.check_in_method),
            appointment_id=session_mongo.appointment_id,
            status=CheckInStatus(session_mongo.status),
            checked_in_at=session_mongo.checked_in_at,
            vital_signs_collected=session_mongo.vital_signs_collected,
            vital_signs=vitals,
            vitals_recorded_at=session_mongo.vitals_recorded_at,
            vitals_recorded_by=session_mongo.vitals_recorded_by,
            assigned_doctor_id=session_mongo.assigned_doctor_id,
            queued_at=session_mongo.queued_at,
            notified_by=session_mongo.notified_by,
            started_at=session_mongo.started_at,
            completed_at=session_mongo.completed_at,
            clinical_notes=notes,
            prescriptions=[PrescriptionItem(**p.model_dump()) for p in session_mongo.prescriptions],
            notes=session_mongo.notes,
            cancelled_at=session_mongo.cancelled_at,
            cancelled_by=session_mongo.cancelled_by,
            cancellation_reason=session_mongo.cancellation_reason,
            created_by=session_mongo.created_by,
            created_at=session_mongo.created_at,
            updated_at=session_mongo.updated_at,
            status_history=history_to_domain(session_mongo.status_history),
        )
