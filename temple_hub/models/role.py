"""
Role change request models.

A role change targets either an existing account or an outreach contact that
is promoted into an account. The body shape selects the variant:

    {"userId": "...", "newRole": "participant"}      -> RoleChangeByUser
    {"outreachId": "...", "newRole": "participant"}  -> RoleChangeByOutreach
"""

from typing import Union

from temple_hub.models.base import StrictCamelModel


class RoleChangeByUser(StrictCamelModel):
    user_id: str
    new_role: str


class RoleChangeByOutreach(StrictCamelModel):
    outreach_id: str
    new_role: str


RoleChangeRequest = Union[RoleChangeByUser, RoleChangeByOutreach]
