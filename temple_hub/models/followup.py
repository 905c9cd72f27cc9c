"""
Follow-up call models.
"""

from enum import Enum
from typing import List, Optional

from pydantic import Field

from temple_hub.models.base import CamelModel


class FollowUpStatus(str, Enum):
    """
    Outcome of a follow-up call.

    One vocabulary covers both program and outreach call lists. Labels used
    by the older program lists and by the outreach sheets are accepted on
    input through ``parse``:

        pending      <- "Not Called"
        coming       <- "Coming", "done"
        may-come     <- "May Come", "Not Sure"
        not-coming   <- "Not Coming", "not-interested"
        no-response  <- "Not Answered"
    """
    PENDING = "pending"
    COMING = "coming"
    MAY_COME = "may-come"
    NOT_COMING = "not-coming"
    NO_RESPONSE = "no-response"

    @classmethod
    def parse(cls, value: str) -> "FollowUpStatus":
        key = str(value).strip().lower()
        try:
            return cls(key)
        except ValueError:
            pass
        if key in LEGACY_STATUS_LABELS:
            return LEGACY_STATUS_LABELS[key]
        raise ValueError(f"Unknown follow-up status: {value}")


LEGACY_STATUS_LABELS = {
    "not called": FollowUpStatus.PENDING,
    "coming": FollowUpStatus.COMING,
    "done": FollowUpStatus.COMING,
    "may come": FollowUpStatus.MAY_COME,
    "not sure": FollowUpStatus.MAY_COME,
    "not coming": FollowUpStatus.NOT_COMING,
    "not-interested": FollowUpStatus.NOT_COMING,
    "not answered": FollowUpStatus.NO_RESPONSE,
}


class TargetType(str, Enum):
    USER = "user"
    OUTREACH = "outreach"


class AssignmentMode(str, Enum):
    AUTO = "auto"
    EQUAL = "equal"
    MANUAL = "manual"


class ContactRef(CamelModel):
    id: str
    type: str


class CreateFollowUpsRequest(CamelModel):
    contacts: List[ContactRef] = Field(default_factory=list)
    program_id: Optional[str] = None
    program_date: Optional[str] = None
    assigned_to: Optional[str] = None


class BulkAssignRequest(CamelModel):
    contacts: List[ContactRef] = Field(default_factory=list)
    program_id: Optional[str] = None
    program_date: Optional[str] = None
    assignment_mode: AssignmentMode = AssignmentMode.AUTO
    volunteers: List[str] = Field(default_factory=list)


class CreateForDateRequest(CamelModel):
    program_date: Optional[str] = None
    program_id: Optional[str] = None


class FollowUpUpdateRequest(CamelModel):
    status: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=2000)
    remarks: Optional[str] = Field(None, max_length=2000)
    channel: Optional[str] = None


class OutreachFollowUpUpdateRequest(CamelModel):
    contact_id: Optional[str] = None
    follow_up_date: Optional[str] = None
    status: Optional[str] = None
    remarks: Optional[str] = Field(None, max_length=2000)
