"""
Role Service - apply role changes and promote outreach contacts to accounts.
"""

from typing import Dict, Optional, Tuple
import logging

from temple_hub.core.errors import PermissionDenied, ValidationFailed
from temple_hub.core.session import SessionContext
from temple_hub.models.role import RoleChangeByOutreach, RoleChangeByUser, RoleChangeRequest
from temple_hub.models.user import ASSIGNABLE_ROLES, AccountStatus, Role
from temple_hub.services.outreach_service import OutreachService, get_outreach_service
from temple_hub.services.role_policy import can_change
from temple_hub.services.user_service import UserService, get_user_service

logger = logging.getLogger(__name__)


def parse_assignable_role(value: str) -> Role:
    try:
        role = Role(value)
    except ValueError:
        raise ValidationFailed("Invalid role", details=f"newRole must be one of: "
                               f"{', '.join(r.value for r in ASSIGNABLE_ROLES)}")
    if role not in ASSIGNABLE_ROLES:
        raise ValidationFailed("Invalid role", details="outreach is not an assignable role")
    return role


class RoleService:

    def __init__(self, users: Optional[UserService] = None, outreach: Optional[OutreachService] = None):
        self.users = users or get_user_service()
        self.outreach = outreach or get_outreach_service()

    def change_role(self, request: RoleChangeRequest, actor: SessionContext) -> Tuple[str, Dict]:
        """
        Apply a role change.

        Returns:
            (message, account) where account is the updated or created user
        """
        new_role = parse_assignable_role(request.new_role)

        if isinstance(request, RoleChangeByUser):
            return self._change_user_role(request.user_id, new_role, actor)
        if isinstance(request, RoleChangeByOutreach):
            return self._promote_outreach(request.outreach_id, new_role, actor)
        raise ValidationFailed("Either userId or outreachId required")

    def _apply(self, user: Dict, new_role: Role, actor: SessionContext) -> Dict:
        update = {"role": new_role.value, "handledBy": actor.user_id}
        if not user.get("registeredBy"):
            update["registeredBy"] = actor.user_id
        return self.users.update_fields(user["id"], update)

    def _change_user_role(self, user_id: str, new_role: Role, actor: SessionContext) -> Tuple[str, Dict]:
        user = self.users.require_user(user_id)
        current = user.get("role") or Role.GUEST.value

        if not can_change(actor.role, current, new_role):
            raise PermissionDenied("Not allowed to change this role")

        updated = self._apply(user, new_role, actor)
        logger.info(f"Role of {user_id} changed {current} -> {new_role.value} by {actor.user_id}")
        return f"Role updated successfully to {new_role.value}", updated

    def _promote_outreach(self, outreach_id: str, new_role: Role, actor: SessionContext) -> Tuple[str, Dict]:
        contact = self.outreach.require_contact(outreach_id)
        existing = self.users.get_user_by_phone(contact.get("phone"))

        if existing:
            if not can_change(actor.role, existing.get("role") or Role.GUEST.value, new_role):
                raise PermissionDenied("Not allowed to change this user")
            updated = self._apply(existing, new_role, actor)
            self.outreach.delete_contact(outreach_id)
            logger.info(f"Outreach {outreach_id} merged into user {existing['id']} as {new_role.value}")
            return f"Merged outreach contact, user upgraded to {new_role.value}", updated

        if not can_change(actor.role, Role.OUTREACH, new_role):
            raise PermissionDenied("Not allowed")

        created = self.users.create_account({
            "name": contact.get("name"),
            "phone": contact.get("phone"),
            "profession": contact.get("profession"),
            "homeTown": contact.get("currentLocation"),
            "numberOfRounds": contact.get("numberOfRounds"),
            "role": new_role.value,
            "status": AccountStatus.PENDING.value,
            "handledBy": actor.user_id,
            "registeredBy": actor.user_id,
            "source": "outreach",
            "sourceOutreachId": outreach_id,
        })
        self.outreach.delete_contact(outreach_id)
        logger.info(f"Outreach {outreach_id} promoted to new user {created['id']} as {new_role.value}")
        return f"Outreach contact converted to {new_role.value}", created


_role_service = None


def get_role_service() -> RoleService:
    """Get or create RoleService singleton instance."""
    global _role_service
    if _role_service is None:
        _role_service = RoleService()
    return _role_service
