"""
Health check endpoints.
"""

from datetime import datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel

from ... import __version__
from ...core.config import get_settings
from ...core.utils.datetime_utils import utcnow
from ..schemas.common import ApiResponse
from ..utils.responses import ok

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    timestamp: datetime
    version: str
    service: str


@router.get("/", response_model=ApiResponse[HealthResponse])
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns the current status of the service.
    """
    return ok(request, data=HealthResponse(
        status="healthy",
        timestamp=utcnow(),
        version=__version__,
        service=get_settings().app_name,
    ), message="OK")


@router.get("/ready", response_model=ApiResponse[dict])
async def readiness_check(request: Request):
    """
    Readiness check endpoint.

    Pings MongoDB; the service is degraded without it.
    """
    from motor.motor_asyncio import AsyncIOMotorClient

    settings = get_settings()
    checks = {}
    all_ok = True

    client = AsyncIOMotorClient(settings.database.uri, serverSelectionTimeoutMS=5000)
    try:
        await client.admin.command("ping")
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {str(e)[:50]}"
        all_ok = False
    finally:
        client.close()

    checks["inventory"] = "configured" if settings.inventory.base_url else "not_configured"
    checks["doctor_stale_sweeper"] = "enabled" if settings.sweeper.doctor_stale_enabled else "disabled"
    checks["appointment_overdue_sweeper"] = (
        "enabled" if settings.sweeper.appointment_overdue_enabled else "disabled"
    )

    return ok(request, data={
        "status": "ready" if all_ok else "degraded",
        "timestamp": utcnow(),
        "checks": checks,
    }, message="OK" if all_ok else "Some services unavailable")


@router.get("/live", response_model=ApiResponse[dict])
async def liveness_check(request: Request):
    """
    Liveness check endpoint.
    """
    return ok(request, data={"status": "alive", "timestamp": utcnow()}, message="OK")
