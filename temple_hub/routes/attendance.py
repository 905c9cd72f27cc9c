"""
Attendance marking.
"""

from fastapi import APIRouter, Depends, Response, status

from temple_hub.core.session import SessionContext, require_roles
from temple_hub.models.program import MarkAttendanceRequest
from temple_hub.models.user import Role
from temple_hub.services.attendance_service import get_attendance_service

router = APIRouter(prefix="/api/attendance", tags=["Attendance"])


@router.post("/mark")
async def mark_attendance(
    request: MarkAttendanceRequest,
    response: Response,
    session: SessionContext = Depends(require_roles(Role.ADMIN, Role.VOLUNTEER)),
):
    record, created = get_attendance_service().mark(request)
    if created:
        response.status_code = status.HTTP_201_CREATED
    return {"message": "Attendance marked" if created else "Attendance updated", "attendance": record}
