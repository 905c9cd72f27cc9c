"""
Program Service - programs and their dated sessions.

A session exists for every date a program has a follow-up list; sessions
are created on demand (when a list is created or when sessions are listed)
and keyed by program and calendar date.
"""

from firebase_admin import firestore
from google.api_core.exceptions import AlreadyExists
from temple_hub.config.firebase import get_db
from temple_hub.core.errors import Conflict, NotFound, PermissionDenied, ValidationFailed
from temple_hub.core.session import SessionContext
from temple_hub.models.program import DEFAULT_PROGRAMS, AttendanceStatus, ProgramRequest
from temple_hub.models.user import Role, public_user
from temple_hub.services.user_service import UserService, get_user_service, newest_first
from temple_hub.utils.firestore_helpers import normalize_date, snapshot_to_dict, utc_now, where_filter
from typing import Dict, List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TOPIC = "Session"
DEFAULT_SPEAKER = "To be updated"

PROGRAM_FIELDS = ("name", "description", "minAge", "maxAge", "photo", "temple")


def session_id_for(program_id: str, session_date: str) -> str:
    return f"{program_id}_{session_date}"


class ProgramService:

    COLLECTION = "programs"
    SESSIONS = "sessions"
    FOLLOWUPS = "followups"
    ATTENDANCE = "attendance"

    def __init__(self, db=None, users: Optional[UserService] = None):
        self.db = db if db is not None else get_db()
        self.users = users or get_user_service()

    def _programs(self):
        return self.db.collection(self.COLLECTION)

    # ------------------------------------------------------------------
    # Programs
    # ------------------------------------------------------------------

    def get_program(self, program_id: str) -> Optional[Dict]:
        if not program_id:
            return None
        return snapshot_to_dict(self._programs().document(program_id).get())

    def require_program(self, program_id: str) -> Dict:
        program = self.get_program(program_id)
        if program is None:
            raise NotFound("Program not found")
        return program

    def get_program_by_name(self, name: str) -> Optional[Dict]:
        docs = list(where_filter(self._programs(), "name", "==", name).limit(1).stream())
        return snapshot_to_dict(docs[0]) if docs else None

    def program_detail(self, program_id: str) -> Dict:
        """Program with its creator resolved to ``{id, name, email}``."""
        program = self.require_program(program_id)
        return self._with_creator(program)

    def _with_creator(self, program: Dict) -> Dict:
        creator_id = program.get("createdBy")
        creator = self.users.get_user(creator_id) if creator_id else None
        if creator:
            program["createdBy"] = {"id": creator["id"], "name": creator.get("name"), "email": creator.get("email")}
        return program

    def create_program(self, request: ProgramRequest, actor: Optional[SessionContext]) -> Dict:
        if not request.name:
            raise ValidationFailed("Program name is required")
        if self.get_program_by_name(request.name):
            raise Conflict("Program with this name already exists")

        data = request.model_dump(by_alias=True, exclude_none=True)
        if actor is not None:
            data["createdBy"] = actor.user_id
        data["createdAt"] = firestore.SERVER_TIMESTAMP
        data["updatedAt"] = firestore.SERVER_TIMESTAMP

        ref = self._programs().document()
        ref.set(data)
        logger.info(f"Program created: {ref.id} ({request.name})")
        return self.require_program(ref.id)

    def update_program(self, program_id: str, request: ProgramRequest, actor: SessionContext) -> Dict:
        program = self.require_program(program_id)
        if program.get("createdBy") != actor.user_id:
            raise PermissionDenied("You can only edit programs you created")
        if not request.name:
            raise ValidationFailed("Program name is required")

        if request.name != program.get("name"):
            other = self.get_program_by_name(request.name)
            if other and other["id"] != program_id:
                raise Conflict("Program with this name already exists")

        data = request.model_dump(by_alias=True)
        update = {field: data.get(field) for field in PROGRAM_FIELDS}
        update["updatedAt"] = firestore.SERVER_TIMESTAMP
        self._programs().document(program_id).update(update)
        logger.info(f"Program updated: {program_id}")
        return self.require_program(program_id)

    def list_programs(self, session: SessionContext) -> List[Dict]:
        """All programs for admins; enrolled programs for everyone else."""
        if session.is_admin:
            programs = [snapshot_to_dict(doc) for doc in self._programs().stream()]
        else:
            user = self.users.get_user(session.user_id) or {}
            programs = [p for p in (self.get_program(pid) for pid in user.get("programs") or []) if p]
        return [self._with_creator(p) for p in newest_first(programs)]

    def public_programs(self) -> List[Dict]:
        programs = newest_first(snapshot_to_dict(doc) for doc in self._programs().stream())
        return [{"id": p["id"], "name": p.get("name"), "temple": p.get("temple")} for p in programs]

    def programs_created_by(self, user_id: str) -> List[Dict]:
        query = where_filter(self._programs(), "createdBy", "==", user_id)
        return [snapshot_to_dict(doc) for doc in query.stream()]

    def delete_program(self, program_id: str, actor: SessionContext) -> Dict[str, int]:
        """
        Delete a program and detach everything that refers to it.

        Accounts lose the program from their list; its follow-ups and
        sessions are soft-deleted.
        """
        self.require_program(program_id)

        users_updated = self.users.remove_program(program_id)

        followups_deleted = 0
        query = where_filter(self.db.collection(self.FOLLOWUPS), "program", "==", program_id)
        for doc in query.stream():
            if doc.to_dict().get("isDeleted"):
                continue
            doc.reference.update({
                "isDeleted": True,
                "deletedAt": utc_now(),
                "deletedBy": actor.user_id,
            })
            followups_deleted += 1

        sessions_deleted = 0
        for session in self._sessions_for(program_id):
            self.db.collection(self.SESSIONS).document(session["id"]).update({"isDeleted": True})
            sessions_deleted += 1

        self._programs().document(program_id).delete()
        logger.info(
            f"Program {program_id} deleted: {users_updated} users detached, "
            f"{followups_deleted} follow-ups and {sessions_deleted} sessions removed"
        )
        return {
            "usersUpdated": users_updated,
            "followUpsDeleted": followups_deleted,
            "sessionsDeleted": sessions_deleted,
        }

    def seed_defaults(self) -> Tuple[List[Dict], bool]:
        """
        Create the default programs unless any of them already exists.

        Returns:
            (programs, created)
        """
        existing = [p for p in (self.get_program_by_name(d["name"]) for d in DEFAULT_PROGRAMS) if p]
        if existing:
            return existing, False

        created = []
        for default in DEFAULT_PROGRAMS:
            created.append(self.create_program(ProgramRequest(**default), actor=None))
        return created, True

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def _sessions_for(self, program_id: str) -> List[Dict]:
        query = where_filter(self.db.collection(self.SESSIONS), "programId", "==", program_id)
        sessions = [snapshot_to_dict(doc) for doc in query.stream()]
        return [s for s in sessions if not s.get("isDeleted")]

    def ensure_session(self, program_id: str, session_date: str, created_by: Optional[str] = None) -> Dict:
        """Get or create the session of ``program_id`` on ``session_date``."""
        session_date = normalize_date(session_date)
        ref = self.db.collection(self.SESSIONS).document(session_id_for(program_id, session_date))
        data = {
            "programId": program_id,
            "sessionDate": session_date,
            "sessionTopic": DEFAULT_SESSION_TOPIC,
            "speakerName": DEFAULT_SPEAKER,
            "isDeleted": False,
            "createdAt": firestore.SERVER_TIMESTAMP,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        }
        if created_by:
            data["createdBy"] = created_by

        try:
            ref.create(data)
            logger.info(f"Session created for program {program_id} on {session_date}")
        except AlreadyExists:
            existing = snapshot_to_dict(ref.get()) or {}
            if existing.get("isDeleted"):
                ref.update({"isDeleted": False, "updatedAt": firestore.SERVER_TIMESTAMP})
        return snapshot_to_dict(ref.get())

    def soft_delete_session(self, program_id: str, session_date: str) -> int:
        ref = self.db.collection(self.SESSIONS).document(session_id_for(program_id, normalize_date(session_date)))
        session = snapshot_to_dict(ref.get())
        if session is None or session.get("isDeleted"):
            return 0
        ref.update({"isDeleted": True, "updatedAt": firestore.SERVER_TIMESTAMP})
        return 1

    def list_sessions(self, program_id: str) -> List[Dict]:
        """
        Sessions of a program, most recent first.

        Any date with live follow-ups but no session gets one created first.
        """
        query = where_filter(self.db.collection(self.FOLLOWUPS), "program", "==", program_id)
        followup_dates = {
            data.get("programDate")
            for data in (doc.to_dict() for doc in query.stream())
            if not data.get("isDeleted") and data.get("programDate")
        }
        existing_dates = {s.get("sessionDate") for s in self._sessions_for(program_id)}
        for session_date in sorted(followup_dates - existing_dates):
            self.ensure_session(program_id, session_date)

        return sorted(self._sessions_for(program_id), key=lambda s: s.get("sessionDate") or "", reverse=True)

    def session_detail(self, program_id: str, session_id: str) -> Dict:
        """Session plus the program's volunteers and participants split by attendance."""
        session = snapshot_to_dict(self.db.collection(self.SESSIONS).document(session_id).get())
        if session is None or session.get("isDeleted") or session.get("programId") != program_id:
            raise NotFound("Session not found")

        members = self.users.members_of_program(program_id, (Role.VOLUNTEER, Role.PARTICIPANT))

        query = where_filter(self.db.collection(self.ATTENDANCE), "programId", "==", program_id)
        present_ids = {
            record.get("participantId")
            for record in (doc.to_dict() for doc in query.stream())
            if record.get("date") == session.get("sessionDate")
            and record.get("status", AttendanceStatus.PRESENT.value) == AttendanceStatus.PRESENT.value
        }

        summary = [_member_summary(m) for m in members]
        return {
            "session": session,
            "presentUsers": [m for m in summary if m["id"] in present_ids],
            "absentUsers": [m for m in summary if m["id"] not in present_ids],
        }


def _member_summary(user: Dict) -> Dict:
    user = public_user(user)
    return {key: user.get(key) for key in ("id", "name", "email", "phone", "role")}


_program_service = None


def get_program_service() -> ProgramService:
    """Get or create ProgramService singleton instance."""
    global _program_service
    if _program_service is None:
        _program_service = ProgramService()
    return _program_service
