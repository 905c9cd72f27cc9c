"""
Role change endpoint.
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from pydantic import TypeAdapter, ValidationError

from temple_hub.core.errors import ValidationFailed
from temple_hub.core.session import SessionContext, require_roles
from temple_hub.models.role import RoleChangeRequest
from temple_hub.models.user import Role, public_user
from temple_hub.services.role_service import get_role_service

router = APIRouter(prefix="/api/roles", tags=["Roles"])

_role_change_adapter = TypeAdapter(RoleChangeRequest)


def parse_role_change(body: Any) -> RoleChangeRequest:
    if not isinstance(body, dict):
        raise ValidationFailed("Request body must be a JSON object")
    if not body.get("newRole"):
        raise ValidationFailed("newRole is required")
    try:
        return _role_change_adapter.validate_python(body)
    except ValidationError:
        raise ValidationFailed("Either userId or outreachId required")


@router.post("/change")
async def change_role(
    body: Dict[str, Any] = Body(...),
    session: SessionContext = Depends(require_roles(Role.ADMIN, Role.VOLUNTEER)),
):
    """
    Change an account's role, or promote an outreach contact.

    Body is either ``{"userId", "newRole"}`` or ``{"outreachId", "newRole"}``.
    """
    request = parse_role_change(body)
    message, user = get_role_service().change_role(request, session)
    return {"message": message, "user": public_user(user)}
