"""FastAPI dependency providers.

Repositories and services are process-wide singletons; tests replace them
through ``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request

from ..adapters.audit.log_audit_service import LogAuditService
from ..adapters.db.mongo.repositories.appointment_repository import MongoAppointmentRepository
from ..adapters.db.mongo.repositories.checkin_repository import MongoCheckInRepository
from ..adapters.db.mongo.repositories.doctor_status_repository import MongoDoctorStatusRepository
from ..adapters.events.logging_publisher import LoggingEventPublisher
from ..adapters.external.inventory_client import HttpInventoryService
from ..application.ports.repositories.appointment_repo import AppointmentRepository
from ..application.ports.repositories.checkin_repo import CheckInRepository
from ..application.ports.repositories.doctor_status_repo import DoctorStatusRepository
from ..application.ports.services.inventory_service import InventoryService
from ..application.use_cases.appointment_lifecycle import AppointmentLifecycleManager
from ..application.use_cases.checkin_workflow import CheckInWorkflow
from ..application.use_cases.doctor_availability import DoctorAvailabilityTracker
from ..application.use_cases.queue_projector import QueueProjector
from ..application.use_cases.side_effects import SideEffectDispatcher
from ..core.config import get_settings
from ..domain.value_objects.actor import Actor


@lru_cache()
def get_checkin_repository() -> CheckInRepository:
    return MongoCheckInRepository()


@lru_cache()
def get_doctor_status_repository() -> DoctorStatusRepository:
    return MongoDoctorStatusRepository()


@lru_cache()
def get_appointment_repository() -> AppointmentRepository:
    return MongoAppointmentRepository()


@lru_cache()
def get_dispatcher() -> SideEffectDispatcher:
    """Shared dispatcher so shutdown can flush pending audit writes."""
    return SideEffectDispatcher(LogAuditService(), LoggingEventPublisher())


@lru_cache()
def get_inventory_service() -> Optional[InventoryService]:
    """HTTP inventory client, or None when no inventory service is configured."""
    if not get_settings().inventory.base_url:
        return None
    return HttpInventoryService()


def get_doctor_tracker(
    repository: Annotated[DoctorStatusRepository, Depends(get_doctor_status_repository)],
    dispatcher: Annotated[SideEffectDispatcher, Depends(get_dispatcher)],
) -> DoctorAvailabilityTracker:
    return DoctorAvailabilityTracker(repository, dispatcher)


def get_checkin_workflow(
    repository: Annotated[CheckInRepository, Depends(get_checkin_repository)],
    tracker: Annotated[DoctorAvailabilityTracker, Depends(get_doctor_tracker)],
    dispatcher: Annotated[SideEffectDispatcher, Depends(get_dispatcher)],
    inventory: Annotated[Optional[InventoryService], Depends(get_inventory_service)],
) -> CheckInWorkflow:
    return CheckInWorkflow(repository, tracker, dispatcher, inventory=inventory)


def get_queue_projector(
    repository: Annotated[CheckInRepository, Depends(get_checkin_repository)],
) -> QueueProjector:
    return QueueProjector(repository)


def get_appointment_manager(
    repository: Annotated[AppointmentRepository, Depends(get_appointment_repository)],
    dispatcher: Annotated[SideEffectDispatcher, Depends(get_dispatcher)],
) -> AppointmentLifecycleManager:
    return AppointmentLifecycleManager(repository, dispatcher)


def get_current_actor(request: Request) -> Actor:
    """
    Authenticated caller, as resolved by the authentication middleware.
    """
    actor = getattr(request.state, "actor", None)
    if actor is None:
        # Should not happen while the authentication middleware is installed
        raise HTTPException(status_code=401, detail="User not authenticated")
    return actor


# Dependency annotations for FastAPI
CheckInWorkflowDep = Annotated[CheckInWorkflow, Depends(get_checkin_workflow)]
DoctorTrackerDep = Annotated[DoctorAvailabilityTracker, Depends(get_doctor_tracker)]
QueueProjectorDep = Annotated[QueueProjector, Depends(get_queue_projector)]
AppointmentManagerDep = Annotated[AppointmentLifecycleManager, Depends(get_appointment_manager)]
CurrentActorDep = Annotated[Actor, Depends(get_current_actor)]
