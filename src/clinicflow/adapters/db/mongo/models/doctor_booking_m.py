"""MongoDB Beanie model for per-doctor booking versions."""

from datetime import datetime

import pymongo
from beanie import Document
from pydantic import Field
from pymongo import IndexModel


class DoctorBookingMongo(Document):
    """Counter bumped after every slot booked for a doctor.

    Bookings read the version before their overlap check and compare-and-set
    it after writing, so two overlapping bookings cannot both succeed.
    """

    doctor_id: str = Field(..., description="Doctor ID")
    version: int = Field(default=0)
    updated_at: datetime = Field(..., description="Last booking (UTC)")

    class Settings:
        name = "doctor_bookings"
        indexes = [
            IndexModel([("doctor_id", pymongo.ASCENDING)], unique=True),
        ]
