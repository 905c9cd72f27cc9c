"""
Outreach contact models.
"""

from enum import Enum
from typing import List, Optional

from pydantic import Field

from temple_hub.models.base import CamelModel


class PaidStatus(str, Enum):
    PAID = "Paid"
    UNPAID = "Unpaid"
    PARTIALLY_PAID = "Partially Paid"
    SPONSORED = "Sponsored"


class OutreachContactRequest(CamelModel):
    """Public outreach registration form (also used for edits)."""
    name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    profession: Optional[str] = None
    mother_tongue: Optional[str] = None
    current_location: Optional[str] = None
    registered_by: Optional[str] = None
    number_of_rounds: Optional[int] = Field(None, ge=0)
    branch: Optional[str] = None
    paid_status: Optional[PaidStatus] = None
    under_which_admin: Optional[str] = None
    comment: Optional[str] = Field(None, max_length=1000)


REQUIRED_OUTREACH_FIELDS = (
    "name", "phone", "profession", "registered_by", "branch", "paid_status", "under_which_admin",
)


class OutreachAssignRequest(CamelModel):
    admin_name: Optional[str] = None
    volunteer_ids: List[str] = Field(default_factory=list)
    follow_up_date: Optional[str] = None
