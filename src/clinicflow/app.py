"""
FastAPI application factory and main app configuration.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.deps import (
    get_appointment_manager,
    get_appointment_repository,
    get_dispatcher,
    get_doctor_status_repository,
    get_doctor_tracker,
)
from .api.errors import APIError, domain_error_status
from .api.routers import appointments, checkups, doctor_queue, doctor_sessions, health
from .api.schemas.common import ErrorResponse
from .core.config import get_settings
from .core.structured_logger import configure_logging, get_logger
from .domain.errors import DomainError
from .middleware.auth_middleware import AuthenticationMiddleware
from .workers.sweepers import (
    run_appointment_overdue_sweeper_forever,
    run_doctor_stale_sweeper_forever,
)

logger = logging.getLogger("clinicflow")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()
    configure_logging(settings.logging.level, settings.logging.format, settings.logging.file_path)
    startup_log = get_logger("clinicflow.startup")
    startup_log.info(
        f"Starting {settings.app_name} v{settings.app_version}",
        environment=settings.app_env,
        debug=settings.debug,
        timezone=settings.clinic.timezone,
    )

    from beanie import init_beanie
    from motor.motor_asyncio import AsyncIOMotorClient

    from .adapters.db.mongo.models import DOCUMENT_MODELS

    try:
        client = AsyncIOMotorClient(
            settings.database.uri,
            serverSelectionTimeoutMS=settings.database.server_selection_timeout_ms,
        )
        await init_beanie(database=client[settings.database.db_name], document_models=DOCUMENT_MODELS)
        startup_log.info("Database connection established", db_name=settings.database.db_name)
    except Exception as e:
        logger.error("Database connection failed: %s", e, exc_info=True)
        raise

    # In-process sweepers; production may run sweeper_startup.py instead
    sweeper_tasks = []
    if settings.sweeper.doctor_stale_enabled:
        tracker = get_doctor_tracker(get_doctor_status_repository(), get_dispatcher())
        sweeper_tasks.append(asyncio.create_task(run_doctor_stale_sweeper_forever(tracker)))
    if settings.sweeper.appointment_overdue_enabled:
        manager = get_appointment_manager(get_appointment_repository(), get_dispatcher())
        sweeper_tasks.append(asyncio.create_task(run_appointment_overdue_sweeper_forever(manager)))
    if sweeper_tasks:
        startup_log.info("Background sweepers started", count=len(sweeper_tasks))

    yield

    logger.info("Shutting down %s", settings.app_name)
    for task in sweeper_tasks:
        task.cancel()
    for task in sweeper_tasks:
        try:
            await task
        except asyncio.CancelledError:
            pass

    await get_dispatcher().flush()
    client.close()
    logger.info("MongoDB client closed")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="ClinicFlow",
        description="Clinical workflow and queue synchronization engine",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    allow_methods = list({m.upper() for m in settings.cors.allowed_methods} | {"PATCH", "OPTIONS"})
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.allowed_origins,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=allow_methods,
        allow_headers=settings.cors.allowed_headers or ["*"],
        max_age=600,
    )
    app.add_middleware(AuthenticationMiddleware)

    app.include_router(health.router)
    app.include_router(checkups.router)
    app.include_router(doctor_queue.router)
    app.include_router(doctor_sessions.router)
    app.include_router(appointments.router)

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        req_id = getattr(request.state, "request_id", None)
        status_code = domain_error_status(exc)
        logger.info(
            "DomainError %s (%s) on %s %s: %s | request_id=%s",
            exc.error_code,
            status_code,
            request.method,
            request.url.path,
            exc.message,
            req_id,
        )
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=exc.error_code or "DOMAIN_ERROR",
                message=exc.message,
                request_id=req_id or "",
                details=exc.details,
            ).model_dump(),
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        req_id = getattr(request.state, "request_id", None)
        return JSONResponse(
            status_code=422,
            content=ErrorResponse(
                error="VALIDATION_ERROR",
                message=str(exc),
                request_id=req_id or "",
                details={},
            ).model_dump(),
        )

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        req_id = getattr(request.state, "request_id", None)
        logger.error("APIError: %s (%s) %s | request_id=%s", exc.code, exc.http_status, exc.message, req_id)
        return JSONResponse(
            status_code=exc.http_status,
            content=ErrorResponse(
                error=exc.code,
                message=exc.message,
                request_id=req_id or "",
                details=exc.details or {},
            ).model_dump(),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        req_id = getattr(request.state, "request_id", None)
        error_details = exc.errors()
        logger.warning(
            "ValidationError on %s %s: %s | request_id=%s", request.method, request.url.path, error_details, req_id
        )

        error_messages = []
        for error in error_details:
            loc = " -> ".join(str(x) for x in error.get("loc", []))
            error_messages.append(f"{loc}: {error.get('msg', 'Validation error')}")

        return JSONResponse(
            status_code=422,
            content=ErrorResponse(
                error="INVALID_INPUT",
                message=f"Input validation failed: {'; '.join(error_messages)}",
                request_id=req_id or "",
                details={"errors": [str(e) for e in error_details], "path": request.url.path},
            ).model_dump(),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        req_id = getattr(request.state, "request_id", None)
        logger.error(
            "Unhandled error on %s %s | request_id=%s", request.method, request.url.path, req_id, exc_info=exc
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="INTERNAL_ERROR",
                message="An unexpected error occurred",
                request_id=req_id or "",
                details={},
            ).model_dump(),
        )

    return app


# Create app instance
app = create_app()


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "ClinicFlow",
        "version": __version__,
        "status": "running",
        "docs": "/docs",
    }
