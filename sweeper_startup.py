import asyncio
import logging
import signal
from typing import Optional

from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from clinicflow.adapters.db.mongo.models import DOCUMENT_MODELS
from clinicflow.core.config import get_settings
from clinicflow.core.structured_logger import configure_logging
from clinicflow.workers.sweepers import (
    run_appointment_overdue_sweeper_forever,
    run_doctor_stale_sweeper_forever,
)

logger = logging.getLogger("clinicflow")


async def _init_db(settings) -> Optional[AsyncIOMotorClient]:
    """Initialize MongoDB connection for the sweepers."""
    client = AsyncIOMotorClient(
        settings.database.uri,
        serverSelectionTimeoutMS=settings.database.server_selection_timeout_ms,
    )
    await init_beanie(database=client[settings.database.db_name], document_models=DOCUMENT_MODELS)
    return client


async def main() -> None:
    """
    Entry point for the doctor-staleness and appointment-overdue sweepers.

    Intended to run as its own process next to the API workers:
        PYTHONPATH=./src python3 sweeper_startup.py
    """
    settings = get_settings()
    configure_logging(settings.logging.level, settings.logging.format, settings.logging.file_path)

    if not (settings.sweeper.doctor_stale_enabled or settings.sweeper.appointment_overdue_enabled):
        logger.info(
            "All sweepers are disabled. Set SWEEPER_DOCTOR_STALE_ENABLED=true and/or "
            "SWEEPER_APPOINTMENT_OVERDUE_ENABLED=true to enable."
        )
        return

    logger.info(
        "Starting sweepers: doctor_stale=%s (every %ss, threshold %ss) appointment_overdue=%s (every %ss)",
        settings.sweeper.doctor_stale_enabled,
        settings.sweeper.doctor_stale_interval_seconds,
        settings.sweeper.doctor_stale_threshold_seconds,
        settings.sweeper.appointment_overdue_enabled,
        settings.sweeper.appointment_overdue_interval_seconds,
    )

    client = await _init_db(settings)

    # Graceful shutdown via signals
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Shutdown signal received for sweepers, stopping gracefully")
        stop_event.set()

    loop = asyncio.get_running_loop()
    if hasattr(signal, "SIGTERM"):
        loop.add_signal_handler(signal.SIGTERM, _signal_handler)
    if hasattr(signal, "SIGINT"):
        loop.add_signal_handler(signal.SIGINT, _signal_handler)

    tasks = [
        asyncio.create_task(run_doctor_stale_sweeper_forever()),
        asyncio.create_task(run_appointment_overdue_sweeper_forever()),
    ]
    try:
        await stop_event.wait()
    finally:
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                logger.info("Sweeper task cancelled.")
        if client:
            client.close()
            logger.info("Sweeper MongoDB client closed.")


if __name__ == "__main__":
    # Allow running as: PYTHONPATH=./src python3 sweeper_startup.py
    asyncio.run(main())
