"""Value objects for the workflow domain."""

from .actor import Actor
from .appointment_id import AppointmentId
from .checkin_id import CheckInId

__all__ = ["Actor", "AppointmentId", "CheckInId"]
