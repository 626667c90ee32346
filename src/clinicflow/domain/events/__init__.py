"""
Domain events package.
"""

from .workflow_events import AppointmentStatusChanged, DoctorStatusChanged, QueueChanged

__all__ = [
    "QueueChanged",
    "DoctorStatusChanged",
    "AppointmentStatusChanged",
]
