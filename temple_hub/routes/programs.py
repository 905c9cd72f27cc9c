"""
Program and session endpoints.
"""

from fastapi import APIRouter, Depends, status

from temple_hub.core.session import SessionContext, require_roles
from temple_hub.models.program import ProgramRequest
from temple_hub.models.user import Role
from temple_hub.services.program_service import get_program_service

router = APIRouter(prefix="/api/programs", tags=["Programs"])

admin_only = require_roles(Role.ADMIN)
staff = require_roles(Role.ADMIN, Role.VOLUNTEER)
members = require_roles(Role.ADMIN, Role.VOLUNTEER, Role.PARTICIPANT)


@router.get("")
async def list_programs(session: SessionContext = Depends(members)):
    """Admins see every program; volunteers and participants see their own."""
    return {"programs": get_program_service().list_programs(session)}


@router.get("/all")
async def all_programs():
    """Public program list for signup and outreach forms."""
    return {"programs": get_program_service().public_programs()}


@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_program(request: ProgramRequest, session: SessionContext = Depends(admin_only)):
    program = get_program_service().create_program(request, session)
    return {"message": "Program created", "program": program}


@router.post("/seed")
async def seed_programs(session: SessionContext = Depends(admin_only)):
    programs, created = get_program_service().seed_defaults()
    message = "Default programs created" if created else "Programs already exist"
    return {"message": message, "programs": programs}


@router.get("/{program_id}")
async def get_program(program_id: str, session: SessionContext = Depends(members)):
    return {"program": get_program_service().program_detail(program_id)}


@router.put("/{program_id}")
async def update_program(program_id: str, request: ProgramRequest, session: SessionContext = Depends(admin_only)):
    program = get_program_service().update_program(program_id, request, session)
    return {"message": "Program updated", "program": program}


@router.delete("/{program_id}")
async def delete_program(program_id: str, session: SessionContext = Depends(admin_only)):
    counts = get_program_service().delete_program(program_id, session)
    return {"message": "Program deleted", **counts}


@router.get("/{program_id}/sessions")
async def list_sessions(program_id: str, session: SessionContext = Depends(staff)):
    service = get_program_service()
    service.require_program(program_id)
    return {"sessions": service.list_sessions(program_id)}


@router.get("/{program_id}/sessions/{session_id}")
async def session_detail(program_id: str, session_id: str, session: SessionContext = Depends(staff)):
    return get_program_service().session_detail(program_id, session_id)
