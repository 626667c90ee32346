"""
Appointment ID value object.
Format: APT-YYYYMMDD-XXXXX
"""

import re
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"


@dataclass(frozen=True)
class AppointmentId:
    """Immutable appointment identifier."""

    value: str

    def __post_init__(self) -> None:
        if not self.value or not isinstance(self.value, str):
            raise ValueError("Appointment ID must be a non-empty string")
        if not re.match(r"^APT-\d{8}-[A-Z0-9]{5}$", self.value):
            raise ValueError("Appointment ID must follow format: APT-YYYYMMDD-XXXXX")

    def __str__(self) -> str:
        return self.value

    @classmethod
    def generate(cls, date: Optional[datetime] = None) -> "AppointmentId":
        """Generate a new appointment ID stamped with the creation date."""
        if date is None:
            date = datetime.now()
        suffix = "".join(secrets.choice(_ALPHABET) for _ in range(5))
        return cls(f"APT-{date.strftime('%Y%m%d')}-{suffix}")
