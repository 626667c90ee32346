"""Doctor-facing queue: who is next, start and complete consultations."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Query, Request

from ...domain.enums.workflow import ActorRole
from ..deps import CheckInWorkflowDep, CurrentActorDep, QueueProjectorDep
from ..errors import ValidationError
from ..schemas.checkups import (
    CheckInSessionSchema,
    CompleteConsultationRequest,
    CompletionSchema,
    QueueEntrySchema,
    QueueSummarySchema,
    StartConsultationRequest,
)
from ..schemas.common import ApiResponse, ErrorResponse
from ..utils.responses import ok

router = APIRouter(prefix="/doctor-queue", tags=["Doctor Queue"])
logger = logging.getLogger("clinicflow")

_ERRORS = {
    403: {"model": ErrorResponse, "description": "Role not allowed"},
    404: {"model": ErrorResponse, "description": "Session not found"},
    409: {"model": ErrorResponse, "description": "Invalid transition or doctor offline"},
}


@router.get("/", response_model=ApiResponse[List[QueueEntrySchema]])
async def get_queue(
    request: Request,
    projector: QueueProjectorDep,
    actor: CurrentActorDep,
    doctor_id: Optional[str] = Query(None, description="Only unassigned sessions and this doctor's own"),
):
    """
    Today's doctor queue, highest priority first then first come first served.

    Doctors see their own view by default.
    """
    if doctor_id is None and actor.role == ActorRole.DOCTOR:
        doctor_id = actor.user_id
    entries = await projector.doctor_queue(doctor_id=doctor_id)
    return ok(request, data=[QueueEntrySchema.from_domain(e) for e in entries], message="OK")


@router.get("/stats", response_model=ApiResponse[QueueSummarySchema])
async def queue_stats(request: Request, projector: QueueProjectorDep, actor: CurrentActorDep):
    summary = await projector.summary()
    return ok(request, data=QueueSummarySchema.from_domain(summary), message="OK")


@router.post("/{session_id}/start", response_model=ApiResponse[CheckInSessionSchema], responses=_ERRORS)
async def start_consultation(
    request: Request,
    session_id: str,
    workflow: CheckInWorkflowDep,
    actor: CurrentActorDep,
    body: StartConsultationRequest = StartConsultationRequest(),
):
    doctor_id = body.doctor_id or (actor.user_id if actor.role == ActorRole.DOCTOR else None)
    if not doctor_id:
        raise ValidationError("doctor_id is required when starting on behalf of a doctor")
    session = await workflow.start(actor, session_id, doctor_id)
    return ok(request, data=CheckInSessionSchema.from_domain(session), message="Consultation started")


@router.post("/{session_id}/complete", response_model=ApiResponse[CompletionSchema], responses=_ERRORS)
async def complete_consultation(
    request: Request,
    session_id: str,
    body: CompleteConsultationRequest,
    workflow: CheckInWorkflowDep,
    actor: CurrentActorDep,
):
    """
    Finish the consultation.

    Stock problems while dispensing are reported as warnings; the session
    stays completed.
    """
    completion = await workflow.complete(
        actor,
        session_id,
        body.clinical_notes.to_domain(),
        [p.to_domain() for p in body.prescriptions],
    )
    message = "Consultation completed"
    if completion.stock_warnings:
        message = "Consultation completed with inventory warnings"
    return ok(
        request,
        data=CompletionSchema(
            session=CheckInSessionSchema.from_domain(completion.session),
            stock_warnings=completion.stock_warnings,
        ),
        message=message,
    )
