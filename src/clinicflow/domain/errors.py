"""
Domain-specific error types for workflow rule violations.
"""

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base domain error."""

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


class DuplicateActiveSessionError(DomainError):
    """Patient already has a non-terminal check-in session today."""

    def __init__(self, patient_id: str, existing_session_id: Optional[str] = None) -> None:
        message = f"Patient '{patient_id}' is already checked in today"
        super().__init__(
            message,
            "DUPLICATE_ACTIVE_SESSION",
            {"patient_id": patient_id, "existing_session_id": existing_session_id},
        )


class InvalidTransitionError(DomainError):
    """Requested transition is not allowed from the entity's current status."""

    def __init__(
        self,
        entity: str,
        entity_id: str,
        current_status: str,
        action: str,
        reason: Optional[str] = None,
    ) -> None:
        message = reason or f"Cannot {action} {entity} '{entity_id}': it is {current_status}"
        super().__init__(
            message,
            "INVALID_TRANSITION",
            {
                "entity": entity,
                "entity_id": entity_id,
                "current_status": current_status,
                "action": action,
            },
        )


class StaleViewError(InvalidTransitionError):
    """A concurrent writer changed the entity between read and conditional write."""

    def __init__(self, entity: str, entity_id: str, expected_status: str, action: str) -> None:
        super().__init__(
            entity,
            entity_id,
            expected_status,
            action,
            reason=(
                f"Cannot {action} {entity} '{entity_id}': it was changed by someone else "
                f"(no longer {expected_status}). Refresh and try again."
            ),
        )


class SlotConflictError(DomainError):
    """Doctor already has an overlapping open appointment."""

    def __init__(self, doctor_id: str, appointment_date: str, appointment_time: str, conflicting_id: str) -> None:
        message = (
            f"Doctor '{doctor_id}' already has appointment '{conflicting_id}' "
            f"overlapping {appointment_date} {appointment_time}"
        )
        super().__init__(
            message,
            "SLOT_CONFLICT",
            {
                "doctor_id": doctor_id,
                "appointment_date": appointment_date,
                "appointment_time": appointment_time,
                "conflicting_appointment_id": conflicting_id,
            },
        )


class NotOnlineError(DomainError):
    """Doctor must be online or busy for this operation."""

    def __init__(self, doctor_id: str, current_status: str) -> None:
        message = f"Doctor '{doctor_id}' is not online (currently {current_status})"
        super().__init__(
            message, "NOT_ONLINE", {"doctor_id": doctor_id, "current_status": current_status}
        )


class ForbiddenActionError(DomainError):
    """Actor's role does not allow the operation."""

    def __init__(self, action: str, role: str, reason: Optional[str] = None) -> None:
        message = reason or f"Role '{role}' may not {action}"
        super().__init__(message, "FORBIDDEN_ACTION", {"action": action, "role": role})


class CheckInSessionNotFoundError(DomainError):
    """Check-in session not found."""

    def __init__(self, session_id: str) -> None:
        message = f"Check-in session '{session_id}' not found"
        super().__init__(message, "CHECKIN_SESSION_NOT_FOUND", {"session_id": session_id})


class AppointmentNotFoundError(DomainError):
    """Appointment not found."""

    def __init__(self, appointment_id: str) -> None:
        message = f"Appointment '{appointment_id}' not found"
        super().__init__(message, "APPOINTMENT_NOT_FOUND", {"appointment_id": appointment_id})


class MissingVitalsError(InvalidTransitionError):
    """Doctor notification attempted before vitals were recorded."""

    def __init__(self, session_id: str, current_status: str) -> None:
        super().__init__(
            "check-in session",
            session_id,
            current_status,
            "notify doctor for",
            reason=f"Vital signs must be recorded before notifying the doctor for session '{session_id}'",
        )
