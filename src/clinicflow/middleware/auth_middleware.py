"""
Authentication middleware - resolves the acting user before request processing.

Public endpoints (health checks, docs) are excluded from authentication.
"""
import logging
import uuid

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ..api.utils.responses import fail
from ..core.auth import get_auth_service

logger = logging.getLogger(__name__)


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """
    Middleware to enforce authentication on workflow endpoints.

    Sets ``request.state.actor`` and ``request.state.request_id``.
    """

    PUBLIC_PATHS = {
        "/",
        "/favicon.ico",
        "/docs",
        "/redoc",
        "/openapi.json",
        "/health",
        "/health/live",
        "/health/ready",
    }

    PUBLIC_PATH_PREFIXES = {
        "/docs",
        "/redoc",
    }

    def is_public_endpoint(self, path: str) -> bool:
        """Check if endpoint is public and doesn't require authentication."""
        normalized_path = path.rstrip("/") or "/"

        if normalized_path in self.PUBLIC_PATHS:
            return True

        for prefix in self.PUBLIC_PATH_PREFIXES:
            if path.startswith(prefix + "/"):
                return True

        return False

    async def dispatch(self, request: Request, call_next):
        request.state.request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        if request.method == "OPTIONS" or self.is_public_endpoint(request.url.path):
            return await call_next(request)

        auth_service = get_auth_service()
        api_key = request.headers.get("X-API-Key")
        auth_header = request.headers.get("Authorization")

        try:
            actor = auth_service.get_actor_from_request(api_key=api_key, auth_header=auth_header)
        except HTTPException as e:
            logger.warning(
                "Authentication failed for %s %s: %s (IP: %s)",
                request.method,
                request.url.path,
                e.detail,
                request.client.host if request.client else "unknown",
            )
            body = fail(
                request,
                error="UNAUTHORIZED",
                message="Authentication required for this endpoint",
                details={
                    "path": request.url.path,
                    "method": request.method,
                    "hint": "Provide X-API-Key header or Authorization Bearer token",
                },
            )
            return JSONResponse(
                status_code=401,
                content=body.model_dump(),
                headers={"WWW-Authenticate": "Bearer"},
            )

        request.state.actor = actor
        request.state.user_id = actor.user_id
        logger.debug("Authenticated %s (%s) accessing %s", actor.user_id, actor.role.value, request.url.path)
        return await call_next(request)
