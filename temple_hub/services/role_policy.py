"""
Rank-based role policy.

    admin(4) > volunteer(3) > participant(2) > guest(1) > outreach(0)

An actor may only act on accounts ranked strictly below them, and a
volunteer may never hand out the volunteer or admin role.
"""

from typing import Union

from temple_hub.models.user import Role

ROLE_RANK = {
    Role.ADMIN: 4,
    Role.VOLUNTEER: 3,
    Role.PARTICIPANT: 2,
    Role.GUEST: 1,
    Role.OUTREACH: 0,
}

RoleLike = Union[Role, str]


def rank(role: RoleLike) -> int:
    return ROLE_RANK[Role(role)]


def can_change(actor_role: RoleLike, target_role: RoleLike, new_role: RoleLike) -> bool:
    """Whether ``actor_role`` may move an account from ``target_role`` to ``new_role``."""
    actor_role = Role(actor_role)
    new_role = Role(new_role)

    if rank(target_role) >= rank(actor_role):
        return False

    if actor_role == Role.VOLUNTEER and new_role in (Role.VOLUNTEER, Role.ADMIN):
        return False

    return True


def can_edit(actor_id: str, actor_role: RoleLike, target_id: str, target_role: RoleLike) -> bool:
    """
    Profile edit permission.

    Anyone may edit their own profile. Admins edit anyone; volunteers edit
    participants, guests and outreach-sourced accounts; nobody else edits
    other people.
    """
    if actor_id == target_id:
        return True

    actor_role = Role(actor_role)
    if actor_role == Role.ADMIN:
        return True
    if actor_role == Role.VOLUNTEER:
        return Role(target_role) in (Role.PARTICIPANT, Role.GUEST, Role.OUTREACH)
    return False
