"""API-layer errors and domain error → HTTP status mapping."""

from typing import Optional

from ..domain.errors import DomainError


class APIError(Exception):
    def __init__(self, code: str, message: str, http_status: int = 400, details: Optional[dict] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.details = details


class ValidationError(APIError):
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("INVALID_INPUT", message, 422, details)


class NotFoundError(APIError):
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("NOT_FOUND", message, 404, details)


class ForbiddenError(APIError):
    def __init__(self, message: str = "Forbidden", details: Optional[dict] = None):
        super().__init__("FORBIDDEN", message, 403, details)


DOMAIN_ERROR_STATUS = {
    "CHECKIN_SESSION_NOT_FOUND": 404,
    "APPOINTMENT_NOT_FOUND": 404,
    "FORBIDDEN_ACTION": 403,
    "DUPLICATE_ACTIVE_SESSION": 409,
    "INVALID_TRANSITION": 409,
    "SLOT_CONFLICT": 409,
    "NOT_ONLINE": 409,
}


def domain_error_status(error: DomainError) -> int:
    return DOMAIN_ERROR_STATUS.get(error.error_code or "", 400)
