import asyncio
import logging
from typing import Optional

from clinicflow.adapters.audit.log_audit_service import LogAuditService
from clinicflow.adapters.db.mongo.repositories.appointment_repository import MongoAppointmentRepository
from clinicflow.adapters.db.mongo.repositories.doctor_status_repository import MongoDoctorStatusRepository
from clinicflow.adapters.events.logging_publisher import LoggingEventPublisher
from clinicflow.application.use_cases.appointment_lifecycle import AppointmentLifecycleManager
from clinicflow.application.use_cases.doctor_availability import DoctorAvailabilityTracker
from clinicflow.application.use_cases.side_effects import SideEffectDispatcher
from clinicflow.core.config import get_settings

logger = logging.getLogger("clinicflow")


def _default_dispatcher() -> SideEffectDispatcher:
    return SideEffectDispatcher(LogAuditService(), LoggingEventPublisher())


async def _sweep_stale_once(tracker: DoctorAvailabilityTracker, threshold_seconds: int) -> int:
    """
    Perform a single sweep forcing silent doctors offline.
    """
    swept = await tracker.sweep_stale(threshold_seconds)
    if swept:
        logger.info("[StaleSweeper] Forced %d doctor(s) offline: %s", len(swept), ", ".join(swept))
    return len(swept)


async def _sweep_overdue_once(manager: AppointmentLifecycleManager) -> int:
    """
    Perform a single sweep marking past appointments as No Show.
    """
    marked = await manager.sweep_overdue()
    if marked:
        logger.info("[OverdueSweeper] Marked %d appointment(s) No Show: %s", len(marked), ", ".join(marked))
    return len(marked)


async def run_doctor_stale_sweeper_forever(tracker: Optional[DoctorAvailabilityTracker] = None) -> None:
    """
    Run the doctor staleness sweep in a loop, controlled by environment settings.
    """
    settings = get_settings()
    if not settings.sweeper.doctor_stale_enabled:
        logger.info("[StaleSweeper] Disabled via SWEEPER_DOCTOR_STALE_ENABLED")
        return

    interval = max(30, settings.sweeper.doctor_stale_interval_seconds)
    threshold = settings.sweeper.doctor_stale_threshold_seconds
    if tracker is None:
        tracker = DoctorAvailabilityTracker(MongoDoctorStatusRepository(), _default_dispatcher())

    logger.info("[StaleSweeper] Starting (interval=%ss, threshold=%ss)", interval, threshold)

    while True:
        try:
            await _sweep_stale_once(tracker, threshold)
        except Exception as e:
            logger.error("[StaleSweeper] Error during sweep: %s", e, exc_info=True)
        await asyncio.sleep(interval)


async def run_appointment_overdue_sweeper_forever(manager: Optional[AppointmentLifecycleManager] = None) -> None:
    """
    Run the overdue appointment sweep in a loop, controlled by environment settings.
    """
    settings = get_settings()
    if not settings.sweeper.appointment_overdue_enabled:
        logger.info("[OverdueSweeper] Disabled via SWEEPER_APPOINTMENT_OVERDUE_ENABLED")
        return

    interval = max(30, settings.sweeper.appointment_overdue_interval_seconds)
    if manager is None:
        manager = AppointmentLifecycleManager(MongoAppointmentRepository(), _default_dispatcher())

    logger.info("[OverdueSweeper] Starting (interval=%ss, timezone=%s)", interval, settings.clinic.timezone)

    while True:
        try:
            await _sweep_overdue_once(manager)
        except Exception as e:
            logger.error("[OverdueSweeper] Error during sweep: %s", e, exc_info=True)
        await asyncio.sleep(interval)
