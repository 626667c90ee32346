"""
Check-in session ID value object.
Format: CHK-YYYYMMDD-XXXXXXXX (hex suffix)
"""

import re
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class CheckInId:
    """Immutable check-in session identifier."""

    value: str

    def __post_init__(self) -> None:
        if not self.value or not isinstance(self.value, str):
            raise ValueError("Check-in ID must be a non-empty string")
        if not re.match(r"^CHK-\d{8}-[0-9A-F]{8}$", self.value):
            raise ValueError("Check-in ID must follow format: CHK-YYYYMMDD-XXXXXXXX")

    def __str__(self) -> str:
        return self.value

    @classmethod
    def generate(cls, date: Optional[datetime] = None) -> "CheckInId":
        """Generate a new check-in ID."""
        if date is None:
            date = datetime.now()
        return cls(f"CHK-{date.strftime('%Y%m%d')}-{secrets.token_hex(4).upper()}")
