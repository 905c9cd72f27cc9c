"""
Outreach contacts and their call lists.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from temple_hub.core.errors import AuthenticationFailed
from temple_hub.core.session import SessionContext, get_session_context, require_roles
from temple_hub.models.followup import OutreachFollowUpUpdateRequest
from temple_hub.models.outreach import OutreachAssignRequest, OutreachContactRequest
from temple_hub.models.user import Role
from temple_hub.services.followup_service import get_followup_service
from temple_hub.services.outreach_service import get_outreach_service

router = APIRouter(prefix="/api/outreach", tags=["Outreach"])

staff = require_roles(Role.ADMIN, Role.VOLUNTEER)


def optional_session(request: Request) -> Optional[SessionContext]:
    try:
        return get_session_context(request)
    except AuthenticationFailed:
        return None


@router.get("")
async def list_contacts(session: SessionContext = Depends(staff)):
    return {"contacts": get_outreach_service().list_contacts()}


@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_contact(
    request: OutreachContactRequest,
    session: Optional[SessionContext] = Depends(optional_session),
):
    """Public registration form; staff submissions record who added the contact."""
    contact = get_outreach_service().create_contact(request, added_by=session.user_id if session else None)
    return {"message": "Outreach contact created", "contact": contact}


@router.post("/followups/assign")
async def assign_outreach_followups(request: OutreachAssignRequest, session: SessionContext = Depends(staff)):
    result = get_followup_service().assign_outreach(
        request.admin_name, request.volunteer_ids, request.follow_up_date, session
    )
    return {
        "success": True,
        "message": f"Assigned {result.created_count} contacts",
        "created": result.created_count,
        "distribution": result.distribution,
        "errors": result.error_entries(),
    }


@router.get("/followups/by-admin")
async def outreach_followups_by_admin(
    admin_name: Optional[str] = Query(None, alias="adminName"),
    day: Optional[str] = Query(None, alias="date"),
    session: SessionContext = Depends(staff),
):
    return get_followup_service().outreach_by_admin(admin_name, day, session)


@router.patch("/followups/update")
async def update_outreach_followup(
    request: OutreachFollowUpUpdateRequest,
    session: SessionContext = Depends(staff),
):
    followup = get_followup_service().update_outreach_followup(
        request.contact_id, request.follow_up_date, session, status=request.status, remarks=request.remarks
    )
    return {"message": "Follow-up updated", "followUp": followup}


@router.get("/followups/volunteers-by-admin")
async def volunteers_by_admin(
    admin_name: Optional[str] = Query(None, alias="adminName"),
    session: SessionContext = Depends(staff),
):
    return {"volunteers": get_followup_service().volunteers_by_admin(admin_name)}


@router.get("/followups/volunteers-by-programs")
async def volunteers_by_programs(
    programs: Optional[str] = Query(None, description="Comma separated program ids"),
    session: SessionContext = Depends(staff),
):
    program_ids = [p.strip() for p in (programs or "").split(",") if p.strip()]
    return {"volunteers": get_followup_service().volunteers_by_programs(program_ids)}


@router.get("/{contact_id}")
async def get_contact(contact_id: str, session: SessionContext = Depends(staff)):
    return {"contact": get_outreach_service().require_contact(contact_id)}


@router.patch("/{contact_id}/update")
async def update_contact(
    contact_id: str,
    request: OutreachContactRequest,
    session: SessionContext = Depends(staff),
):
    contact = get_outreach_service().update_contact(contact_id, request)
    return {"message": "Outreach contact updated", "contact": contact}


@router.delete("/{contact_id}")
async def delete_contact(contact_id: str, session: SessionContext = Depends(staff)):
    get_outreach_service().delete_contact(contact_id)
    return {"message": "Outreach contact deleted"}
