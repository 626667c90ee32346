"""Scheduled appointment endpoints."""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Query, Request, status

from ...application.use_cases.authorization import require_role
from ...domain.enums.workflow import ActorRole
from ...domain.errors import ForbiddenActionError
from ..deps import AppointmentManagerDep, CurrentActorDep
from ..schemas.appointments import (
    AppointmentSchema,
    AssignDoctorRequest,
    CompleteAppointmentRequest,
    CreateAppointmentRequest,
    ReasonRequest,
)
from ..schemas.common import ApiResponse, ErrorResponse, SweepResult
from ..utils.responses import ok

router = APIRouter(prefix="/appointments", tags=["Appointments"])
logger = logging.getLogger("clinicflow")

_ERRORS = {
    403: {"model": ErrorResponse, "description": "Role not allowed"},
    404: {"model": ErrorResponse, "description": "Appointment not found"},
    409: {"model": ErrorResponse, "description": "Invalid transition or slot conflict"},
}


@router.post(
    "/",
    response_model=ApiResponse[AppointmentSchema],
    status_code=status.HTTP_201_CREATED,
    responses=_ERRORS,
)
async def create_appointment(
    request: Request,
    body: CreateAppointmentRequest,
    manager: AppointmentManagerDep,
    actor: CurrentActorDep,
):
    appointment = await manager.create(
        actor,
        patient_id=body.patient_id,
        appointment_date=body.appointment_date,
        appointment_time=body.appointment_time,
        appointment_type=body.appointment_type,
        notes=body.notes,
        doctor_id=body.doctor_id,
        duration_minutes=body.duration_minutes,
    )
    return ok(request, data=AppointmentSchema.from_domain(appointment), message="Appointment scheduled")


@router.get("/", response_model=ApiResponse[List[AppointmentSchema]])
async def list_appointments(
    request: Request,
    manager: AppointmentManagerDep,
    actor: CurrentActorDep,
    day: date = Query(..., alias="date", description="Clinic-local date (YYYY-MM-DD)"),
    doctor_id: Optional[str] = Query(None),
):
    require_role(
        actor, "list appointments", ActorRole.ADMIN, ActorRole.STAFF, ActorRole.NURSE, ActorRole.DOCTOR
    )
    appointments = await manager.list_for_date(day, doctor_id=doctor_id)
    return ok(request, data=[AppointmentSchema.from_domain(a) for a in appointments], message="OK")


@router.post("/maintenance/sweep-overdue", response_model=ApiResponse[SweepResult])
async def sweep_overdue(request: Request, manager: AppointmentManagerDep, actor: CurrentActorDep):
    """Admin trigger for the overdue sweep normally run in the background."""
    require_role(actor, "run maintenance sweeps", ActorRole.ADMIN, ActorRole.SYSTEM)
    marked = await manager.sweep_overdue()
    return ok(request, data=SweepResult(count=len(marked), ids=marked), message="OK")


@router.get("/patient/{patient_id}", response_model=ApiResponse[List[AppointmentSchema]], responses=_ERRORS)
async def patient_appointments(
    request: Request,
    patient_id: str,
    manager: AppointmentManagerDep,
    actor: CurrentActorDep,
):
    appointments = await manager.list_for_patient(actor, patient_id)
    return ok(request, data=[AppointmentSchema.from_domain(a) for a in appointments], message="OK")


@router.get("/{appointment_id}", response_model=ApiResponse[AppointmentSchema], responses=_ERRORS)
async def get_appointment(
    request: Request,
    appointment_id: str,
    manager: AppointmentManagerDep,
    actor: CurrentActorDep,
):
    appointment = await manager.get(appointment_id)
    if actor.role == ActorRole.PATIENT and actor.user_id != appointment.patient_id:
        raise ForbiddenActionError(
            "view appointments",
            actor.role.value,
            reason="Patients can only view their own appointments",
        )
    return ok(request, data=AppointmentSchema.from_domain(appointment), message="OK")


@router.post("/{appointment_id}/accept", response_model=ApiResponse[AppointmentSchema], responses=_ERRORS)
async def accept_appointment(
    request: Request,
    appointment_id: str,
    manager: AppointmentManagerDep,
    actor: CurrentActorDep,
):
    appointment = await manager.accept(actor, appointment_id)
    return ok(request, data=AppointmentSchema.from_domain(appointment), message="Appointment confirmed")


@router.post("/{appointment_id}/reject", response_model=ApiResponse[AppointmentSchema], responses=_ERRORS)
async def reject_appointment(
    request: Request,
    appointment_id: str,
    body: ReasonRequest,
    manager: AppointmentManagerDep,
    actor: CurrentActorDep,
):
    appointment = await manager.reject(actor, appointment_id, body.reason)
    return ok(request, data=AppointmentSchema.from_domain(appointment), message="Appointment rejected")


@router.post("/{appointment_id}/cancel", response_model=ApiResponse[AppointmentSchema], responses=_ERRORS)
async def cancel_appointment(
    request: Request,
    appointment_id: str,
    body: ReasonRequest,
    manager: AppointmentManagerDep,
    actor: CurrentActorDep,
):
    appointment = await manager.cancel(actor, appointment_id, body.reason)
    return ok(request, data=AppointmentSchema.from_domain(appointment), message="Appointment cancelled")


@router.post("/{appointment_id}/complete", response_model=ApiResponse[AppointmentSchema], responses=_ERRORS)
async def complete_appointment(
    request: Request,
    appointment_id: str,
    manager: AppointmentManagerDep,
    actor: CurrentActorDep,
    body: CompleteAppointmentRequest = CompleteAppointmentRequest(),
):
    appointment = await manager.complete(
        actor, appointment_id, diagnosis=body.diagnosis, treatment=body.treatment, prescription=body.prescription
    )
    return ok(request, data=AppointmentSchema.from_domain(appointment), message="Appointment completed")


@router.patch("/{appointment_id}/doctor", response_model=ApiResponse[AppointmentSchema], responses=_ERRORS)
async def assign_doctor(
    request: Request,
    appointment_id: str,
    body: AssignDoctorRequest,
    manager: AppointmentManagerDep,
    actor: CurrentActorDep,
):
    appointment = await manager.assign_doctor(actor, appointment_id, body.doctor_id)
    return ok(request, data=AppointmentSchema.from_domain(appointment), message="Doctor assigned")
