"""
Infrastructure exceptions for ClinicFlow.

Domain rule violations live in ``clinicflow.domain.errors``; these cover
outbound collaborator failures.
"""

from typing import Any, Dict, Optional


class ClinicFlowException(Exception):
    """Base exception class for ClinicFlow infrastructure errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ExternalServiceError(ClinicFlowException):
    """Raised when there's an external service error."""

    def __init__(
        self, service: str, message: str, details: Optional[Dict[str, Any]] = None
    ) -> None:
        self.service = service
        full_message = f"{service} service error: {message}"
        super().__init__(full_message, "EXTERNAL_SERVICE_ERROR", details)


class InventoryServiceError(ExternalServiceError):
    """Raised when the inventory service cannot be reached or answers unexpectedly."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("Inventory", message, details)


class SyncFetchError(ExternalServiceError):
    """Raised by the dashboard API client when a request fails.

    ``status`` is the HTTP status when the server answered, None for
    transport failures.
    """

    # Client-side statuses that may succeed if sent again
    RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})

    def __init__(
        self, message: str, status: Optional[int] = None, details: Optional[Dict[str, Any]] = None
    ) -> None:
        self.status = status
        super().__init__("Dashboard API", message, details)

    @property
    def is_rejection(self) -> bool:
        """The server refused the request itself; sending it again cannot help."""
        return (
            self.status is not None
            and 400 <= self.status < 500
            and self.status not in self.RETRYABLE_CLIENT_STATUSES
        )
