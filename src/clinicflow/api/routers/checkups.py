"""Front-desk and nurse endpoints for check-in sessions."""

import logging
from typing import List

from fastapi import APIRouter, Query, Request, status

from ...application.use_cases.authorization import CARE_TEAM_ROLES, require_self_or_role
from ..deps import CheckInWorkflowDep, CurrentActorDep, QueueProjectorDep
from ..schemas.checkups import (
    AmendNotesRequest,
    CancelCheckInRequest,
    CheckInRequest,
    CheckInSessionSchema,
    QueueSummarySchema,
    VitalSignsSchema,
)
from ..schemas.common import ApiResponse, ErrorResponse
from ..utils.responses import ok

router = APIRouter(prefix="/checkups", tags=["Check-ups"])
logger = logging.getLogger("clinicflow")

_ERRORS = {
    403: {"model": ErrorResponse, "description": "Role not allowed"},
    404: {"model": ErrorResponse, "description": "Session not found"},
    409: {"model": ErrorResponse, "description": "Invalid transition"},
}


@router.post(
    "/check-in",
    response_model=ApiResponse[CheckInSessionSchema],
    status_code=status.HTTP_201_CREATED,
    responses=_ERRORS,
)
async def check_in(
    request: Request,
    body: CheckInRequest,
    workflow: CheckInWorkflowDep,
    actor: CurrentActorDep,
):
    """
    Open a check-in session for a patient arriving today.

    Rejected with 409 while the patient already has an open session today.
    """
    session = await workflow.check_in(
        actor,
        patient_id=body.patient_id,
        service_type=body.service_type,
        priority=body.priority,
        method=body.check_in_method,
        appointment_id=body.appointment_id,
        notes=body.notes,
    )
    return ok(request, data=CheckInSessionSchema.from_domain(session), message="Patient checked in")


@router.get("/today", response_model=ApiResponse[List[CheckInSessionSchema]])
async def todays_checkups(request: Request, projector: QueueProjectorDep, actor: CurrentActorDep):
    sessions = await projector.todays_checkups()
    return ok(request, data=[CheckInSessionSchema.from_domain(s) for s in sessions], message="OK")


@router.get("/stats/today", response_model=ApiResponse[QueueSummarySchema])
async def todays_stats(request: Request, projector: QueueProjectorDep, actor: CurrentActorDep):
    summary = await projector.summary()
    return ok(request, data=QueueSummarySchema.from_domain(summary), message="OK")


@router.get("/history/{patient_id}", response_model=ApiResponse[List[CheckInSessionSchema]], responses=_ERRORS)
async def patient_history(
    request: Request,
    patient_id: str,
    workflow: CheckInWorkflowDep,
    actor: CurrentActorDep,
    limit: int = Query(50, ge=1, le=200),
):
    """Past sessions of one patient, newest first."""
    require_self_or_role(actor, patient_id, "view check-in history", *CARE_TEAM_ROLES)
    sessions = await workflow.patient_history(patient_id, limit=limit)
    return ok(request, data=[CheckInSessionSchema.from_domain(s) for s in sessions], message="OK")


@router.get("/{session_id}", response_model=ApiResponse[CheckInSessionSchema], responses=_ERRORS)
async def get_session(request: Request, session_id: str, workflow: CheckInWorkflowDep, actor: CurrentActorDep):
    session = await workflow.get_session(session_id)
    require_self_or_role(actor, session.patient_id, "view check-in session", *CARE_TEAM_ROLES)
    return ok(request, data=CheckInSessionSchema.from_domain(session), message="OK")


@router.post("/{session_id}/vital-signs", response_model=ApiResponse[CheckInSessionSchema], responses=_ERRORS)
async def record_vitals(
    request: Request,
    session_id: str,
    body: VitalSignsSchema,
    workflow: CheckInWorkflowDep,
    actor: CurrentActorDep,
):
    session = await workflow.record_vitals(actor, session_id, body.to_domain())
    return ok(request, data=CheckInSessionSchema.from_domain(session), message="Vital signs recorded")


@router.post("/{session_id}/notify-doctor", response_model=ApiResponse[CheckInSessionSchema], responses=_ERRORS)
async def notify_doctor(request: Request, session_id: str, workflow: CheckInWorkflowDep, actor: CurrentActorDep):
    session = await workflow.notify_doctor(actor, session_id)
    return ok(request, data=CheckInSessionSchema.from_domain(session), message="Doctor notified")


@router.post("/{session_id}/no-show", response_model=ApiResponse[CheckInSessionSchema], responses=_ERRORS)
async def mark_no_show(request: Request, session_id: str, workflow: CheckInWorkflowDep, actor: CurrentActorDep):
    session = await workflow.mark_no_show(actor, session_id)
    return ok(request, data=CheckInSessionSchema.from_domain(session), message="Marked as no-show")


@router.post("/{session_id}/cancel", response_model=ApiResponse[CheckInSessionSchema], responses=_ERRORS)
async def cancel_checkin(
    request: Request,
    session_id: str,
    workflow: CheckInWorkflowDep,
    actor: CurrentActorDep,
    body: CancelCheckInRequest = CancelCheckInRequest(),
):
    session = await workflow.cancel(actor, session_id, body.reason)
    return ok(request, data=CheckInSessionSchema.from_domain(session), message="Check-in cancelled")


@router.patch("/{session_id}/notes", response_model=ApiResponse[CheckInSessionSchema], responses=_ERRORS)
async def amend_notes(
    request: Request,
    session_id: str,
    body: AmendNotesRequest,
    workflow: CheckInWorkflowDep,
    actor: CurrentActorDep,
):
    """Correct notes or prescriptions during or after the consultation."""
    session = await workflow.amend_notes(
        actor,
        session_id,
        clinical_notes=body.clinical_notes.to_domain() if body.clinical_notes else None,
        prescriptions=(
            [p.to_domain() for p in body.prescriptions] if body.prescriptions is not None else None
        ),
        notes=body.notes,
    )
    return ok(request, data=CheckInSessionSchema.from_domain(session), message="Notes updated")
