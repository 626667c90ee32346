"""Doctor login/logout, heartbeat and availability."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Query, Request

from ...application.use_cases.authorization import require_role, require_self_or_role
from ...core.config import get_settings
from ...domain.enums.workflow import ActorRole
from ..deps import CurrentActorDep, DoctorTrackerDep
from ..errors import ValidationError
from ..schemas.common import ApiResponse, SweepResult
from ..schemas.doctors import DoctorSessionRequest, DoctorStatusSchema, HeartbeatSchema
from ..utils.responses import ok

router = APIRouter(prefix="/doctor-sessions", tags=["Doctor Sessions"])
logger = logging.getLogger("clinicflow")


def _target_doctor(actor, body: DoctorSessionRequest) -> str:
    doctor_id = body.doctor_id or (actor.user_id if actor.role == ActorRole.DOCTOR else None)
    if not doctor_id:
        raise ValidationError("doctor_id is required")
    return doctor_id


@router.get("/all", response_model=ApiResponse[List[DoctorStatusSchema]])
async def all_doctor_statuses(request: Request, tracker: DoctorTrackerDep, actor: CurrentActorDep):
    records = await tracker.list_statuses()
    return ok(request, data=[DoctorStatusSchema.from_domain(r) for r in records], message="OK")


@router.get("/status/{doctor_id}", response_model=ApiResponse[DoctorStatusSchema])
async def doctor_status(request: Request, doctor_id: str, tracker: DoctorTrackerDep, actor: CurrentActorDep):
    record = await tracker.get_status(doctor_id)
    return ok(request, data=DoctorStatusSchema.from_domain(record), message="OK")


@router.post("/login", response_model=ApiResponse[DoctorStatusSchema])
async def login(
    request: Request,
    tracker: DoctorTrackerDep,
    actor: CurrentActorDep,
    body: DoctorSessionRequest = DoctorSessionRequest(),
):
    record = await tracker.on_login(_target_doctor(actor, body), actor)
    return ok(request, data=DoctorStatusSchema.from_domain(record), message="Doctor is online")


@router.post("/logout", response_model=ApiResponse[DoctorStatusSchema])
async def logout(
    request: Request,
    tracker: DoctorTrackerDep,
    actor: CurrentActorDep,
    body: DoctorSessionRequest = DoctorSessionRequest(),
):
    doctor_id = _target_doctor(actor, body)
    record = await tracker.on_logout(doctor_id, actor)
    if record is None:
        record = await tracker.get_status(doctor_id)
    return ok(request, data=DoctorStatusSchema.from_domain(record), message="Doctor is offline")


@router.post("/heartbeat", response_model=ApiResponse[HeartbeatSchema])
async def heartbeat(
    request: Request,
    tracker: DoctorTrackerDep,
    actor: CurrentActorDep,
    body: DoctorSessionRequest = DoctorSessionRequest(),
):
    """Keep the doctor's session alive; ``active`` is false once swept offline."""
    doctor_id = _target_doctor(actor, body)
    require_self_or_role(actor, doctor_id, "send heartbeats", ActorRole.ADMIN, ActorRole.SYSTEM)
    active = await tracker.heartbeat(doctor_id)
    return ok(request, data=HeartbeatSchema(doctor_id=doctor_id, active=active), message="OK")


@router.post("/maintenance/sweep-stale", response_model=ApiResponse[SweepResult])
async def sweep_stale(
    request: Request,
    tracker: DoctorTrackerDep,
    actor: CurrentActorDep,
    threshold_seconds: Optional[int] = Query(None, ge=1, description="Defaults to SWEEPER_DOCTOR_STALE_THRESHOLD_SECONDS"),
):
    """Admin trigger for the staleness sweep normally run in the background."""
    require_role(actor, "run maintenance sweeps", ActorRole.ADMIN, ActorRole.SYSTEM)
    threshold = threshold_seconds or get_settings().sweeper.doctor_stale_threshold_seconds
    swept = await tracker.sweep_stale(threshold)
    return ok(request, data=SweepResult(count=len(swept), ids=swept), message="OK")
