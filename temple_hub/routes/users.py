"""
User management endpoints: staff-created accounts, listings, profile edits
and attendance history.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from temple_hub.core.errors import ValidationFailed
from temple_hub.core.session import SessionContext, get_session_context, require_roles
from temple_hub.models.user import Role, StaffCreateUserRequest, UserUpdateRequest, public_user
from temple_hub.services.attendance_service import get_attendance_service
from temple_hub.services.user_service import get_user_service

router = APIRouter(prefix="/api", tags=["Users"])

admin_only = require_roles(Role.ADMIN)
staff = require_roles(Role.ADMIN, Role.VOLUNTEER)


@router.post("/participants/create", status_code=status.HTTP_201_CREATED)
async def create_participant(request: StaffCreateUserRequest, session: SessionContext = Depends(staff)):
    """Register a participant on their behalf; they claim the account through signup."""
    user = get_user_service().create_staff_user(request, Role.PARTICIPANT, session)
    return {"message": "Participant created", "user": public_user(user)}


@router.get("/participants/search")
async def search_participant(
    phone: Optional[str] = Query(None),
    program_id: Optional[str] = Query(None, alias="programId"),
    session: SessionContext = Depends(staff),
):
    user = get_user_service().search_by_phone(phone, program_id)
    return {"user": public_user(user)}


@router.post("/volunteers/create", status_code=status.HTTP_201_CREATED)
async def create_volunteer(request: StaffCreateUserRequest, session: SessionContext = Depends(admin_only)):
    user = get_user_service().create_staff_user(request, Role.VOLUNTEER, session)
    return {"message": "Volunteer created", "user": public_user(user)}


@router.get("/users/by-role")
async def users_by_role(
    role: Optional[str] = Query(None),
    program_id: Optional[str] = Query(None, alias="programId"),
    session: SessionContext = Depends(staff),
):
    try:
        wanted = Role(role)
    except ValueError:
        raise ValidationFailed("Invalid role", details=role)
    users = get_user_service().list_by_role(wanted, program_id)
    return {"users": [public_user(u) for u in users]}


@router.get("/users/{user_id}")
async def get_user(user_id: str, session: SessionContext = Depends(get_session_context)):
    return {"user": public_user(get_user_service().require_user(user_id))}


@router.patch("/users/{user_id}/update")
@router.put("/users/{user_id}/update")
async def update_user(user_id: str, request: UserUpdateRequest, session: SessionContext = Depends(get_session_context)):
    """Edit a profile; who may edit whom follows the role hierarchy."""
    user = get_user_service().update_user(user_id, request, session)
    return {"message": "User updated", "user": public_user(user)}


@router.delete("/users/{user_id}")
async def delete_user(user_id: str, session: SessionContext = Depends(admin_only)):
    get_user_service().delete_user(user_id)
    return {"message": "User deleted"}


@router.get("/users/{user_id}/attendance-history")
async def attendance_history(user_id: str, session: SessionContext = Depends(get_session_context)):
    return get_attendance_service().history(user_id, session)
