"""
Follow-up call list endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from temple_hub.core.session import SessionContext, require_roles
from temple_hub.models.followup import (
    BulkAssignRequest,
    CreateFollowUpsRequest,
    CreateForDateRequest,
    FollowUpUpdateRequest,
)
from temple_hub.models.user import Role
from temple_hub.services.followup_service import get_followup_service

router = APIRouter(prefix="/api/followups", tags=["Follow-ups"])

staff = require_roles(Role.ADMIN, Role.VOLUNTEER)
admin_only = require_roles(Role.ADMIN)


@router.get("")
async def list_followups(
    assigned_to: Optional[str] = Query(None, alias="assignedTo"),
    my_followups: bool = Query(False, alias="myFollowUps"),
    status_filter: Optional[str] = Query(None, alias="status"),
    program_date: Optional[str] = Query(None, alias="programDate"),
    program_id: Optional[str] = Query(None, alias="programId"),
    session: SessionContext = Depends(staff),
):
    followups = get_followup_service().list_followups(
        session,
        assigned_to=assigned_to,
        my_followups=my_followups,
        status=status_filter,
        program_date=program_date,
        program_id=program_id,
    )
    return {"followUps": followups}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_followups(request: CreateFollowUpsRequest, session: SessionContext = Depends(staff)):
    """Create a manual list; every contact goes to ``assignedTo`` (default: caller)."""
    result = get_followup_service().create_followups(
        [c.model_dump() for c in request.contacts],
        request.program_date,
        session,
        assigned_to=request.assigned_to,
        program_id=request.program_id,
    )
    return {
        "message": f"Created {result.created_count} follow-ups",
        "created": result.created_count,
        "followUps": result.created,
        "errors": result.error_entries(),
    }


@router.post("/bulk-assign")
async def bulk_assign(request: BulkAssignRequest, session: SessionContext = Depends(admin_only)):
    """
    Spread contacts over volunteers round-robin.

    ``assignmentMode``: ``auto`` (all active volunteers), ``manual`` (the
    listed ``volunteers``) or ``equal`` (least loaded for the date first).
    """
    result = get_followup_service().bulk_assign(
        [c.model_dump() for c in request.contacts],
        request.program_date,
        request.assignment_mode,
        request.volunteers,
        session,
        program_id=request.program_id,
    )
    return {
        "success": True,
        "message": f"Assigned {result.created_count} follow-ups",
        "created": result.created_count,
        "distribution": result.distribution,
        "errors": result.error_entries(),
    }


@router.post("/create-for-date")
async def create_for_date(request: CreateForDateRequest, session: SessionContext = Depends(staff)):
    summary = get_followup_service().create_for_date(request.program_date, session, program_id=request.program_id)
    return {"success": True, "message": f"Created {summary['followUpsCreated']} follow-ups", **summary}


@router.get("/volunteers-stats")
async def volunteers_stats(
    program_date: Optional[str] = Query(None, alias="programDate"),
    session: SessionContext = Depends(admin_only),
):
    return {"success": True, **get_followup_service().volunteer_stats(program_date)}


@router.delete("/delete-for-date")
async def delete_for_date(
    program_date: Optional[str] = Query(None, alias="programDate"),
    day: Optional[str] = Query(None, alias="date"),
    program_id: Optional[str] = Query(None, alias="programId"),
    session: SessionContext = Depends(staff),
):
    counts = get_followup_service().delete_for_date(program_date or day, session, program_id=program_id)
    return {"success": True, "message": f"Deleted {counts['followUpsDeleted']} follow-ups", **counts}


@router.get("/contacts")
async def contacts(session: SessionContext = Depends(staff)):
    """Everyone who can be put on a call list."""
    return get_followup_service().contacts()


@router.patch("/{followup_id}/update")
async def update_followup(
    followup_id: str,
    request: FollowUpUpdateRequest,
    session: SessionContext = Depends(staff),
):
    followup = get_followup_service().update(
        followup_id,
        session,
        status=request.status,
        notes=request.notes or request.remarks,
        channel=request.channel,
    )
    return {"message": "Follow-up updated", "followUp": followup}


@router.delete("/{followup_id}/update")
async def delete_followup(followup_id: str, session: SessionContext = Depends(admin_only)):
    get_followup_service().soft_delete(followup_id, session)
    return {"message": "Follow-up deleted"}
