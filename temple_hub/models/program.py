"""
Program, session and attendance models.
"""

from enum import Enum
from typing import Optional

from pydantic import Field

from temple_hub.models.base import CamelModel


class ProgramRequest(CamelModel):
    name: Optional[str] = Field(None, max_length=120)
    description: Optional[str] = Field(None, max_length=2000)
    min_age: Optional[int] = Field(None, ge=0)
    max_age: Optional[int] = Field(None, ge=0)
    photo: Optional[str] = None
    temple: Optional[str] = None


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"


class MarkAttendanceRequest(CamelModel):
    program_id: Optional[str] = None
    participant_id: Optional[str] = None
    date: Optional[str] = None
    level: Optional[int] = None
    status: AttendanceStatus = AttendanceStatus.PRESENT


# Seeded on first run and by scripts/seed_db.py
DEFAULT_PROGRAMS = [
    {
        "name": "Little Vaishnavas",
        "description": "A spiritual education program for young children to learn about "
                       "Krishna consciousness and Vedic culture.",
        "minAge": 5,
        "maxAge": 12,
    },
    {
        "name": "Srijan",
        "description": "A creative development program focusing on character building, "
                       "spiritual growth, and cultural activities.",
        "minAge": 13,
        "maxAge": 18,
    },
]
