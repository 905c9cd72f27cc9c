"""
Attendance Service - mark attendance and summarize a person's history.
"""

from temple_hub.config.firebase import get_db
from temple_hub.core.errors import NotFound, PermissionDenied, ValidationFailed
from temple_hub.core.session import SessionContext
from temple_hub.models.program import AttendanceStatus, MarkAttendanceRequest
from temple_hub.services.program_service import ProgramService, get_program_service
from temple_hub.services.user_service import UserService, get_user_service
from temple_hub.utils.firestore_helpers import normalize_date, snapshot_to_dict, utc_now, where_filter
from typing import Dict, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

RECENT_SESSIONS = 10


def attendance_id_for(program_id: str, participant_id: str, day: str) -> str:
    return f"{program_id}_{participant_id}_{day}"


class AttendanceService:

    COLLECTION = "attendance"

    def __init__(self, db=None, users: Optional[UserService] = None, programs: Optional[ProgramService] = None):
        self.db = db if db is not None else get_db()
        self.users = users or get_user_service()
        self.programs = programs or get_program_service()

    def mark(self, request: MarkAttendanceRequest) -> Tuple[Dict, bool]:
        """
        Record attendance for one participant on one program date.

        Marking the same participant twice for a date updates the record.

        Returns:
            (attendance record, created)
        """
        if not request.program_id or not request.participant_id or not request.date or request.level is None:
            raise ValidationFailed("Program, participant, date, and level are required")
        try:
            day = normalize_date(request.date)
        except ValueError:
            raise ValidationFailed("Invalid date", details=request.date)

        self.programs.require_program(request.program_id)
        if self.users.get_user(request.participant_id) is None:
            raise NotFound("Participant not found")

        ref = self.db.collection(self.COLLECTION).document(
            attendance_id_for(request.program_id, request.participant_id, day)
        )
        created = not ref.get().exists
        ref.set({
            "programId": request.program_id,
            "participantId": request.participant_id,
            "date": day,
            "level": request.level,
            "status": AttendanceStatus(request.status).value,
            "markedAt": utc_now(),
        }, merge=True)

        logger.info(
            f"Attendance {'marked' if created else 'updated'}: {request.participant_id} "
            f"in {request.program_id} on {day} ({request.status.value})"
        )
        return snapshot_to_dict(ref.get()), created

    def history(self, user_id: str, actor: SessionContext) -> Dict:
        """
        Attendance summary for charts: sessions attended per month and per
        program, plus the ten most recent records.
        """
        if actor.user_id != user_id and not actor.is_admin:
            raise PermissionDenied()

        query = where_filter(self.db.collection(self.COLLECTION), "participantId", "==", user_id)
        records = sorted(
            (doc.to_dict() for doc in query.stream()),
            key=lambda r: r.get("date") or "",
        )

        program_names: Dict[str, str] = {}

        def program_name(program_id):
            if program_id not in program_names:
                program = self.programs.get_program(program_id)
                program_names[program_id] = program.get("name") if program else "Unknown"
            return program_names[program_id]

        by_month: Dict[str, int] = {}
        by_program: Dict[str, int] = {}
        recent = []
        attended = 0
        for record in records:
            status = record.get("status") or AttendanceStatus.PRESENT.value
            name = program_name(record.get("programId"))
            recent.append({"date": record.get("date"), "program": name, "status": status})
            if status != AttendanceStatus.PRESENT.value:
                continue
            attended += 1
            month = (record.get("date") or "")[:7]
            by_month[month] = by_month.get(month, 0) + 1
            by_program[name] = by_program.get(name, 0) + 1

        return {
            "totalSessions": attended,
            "totalRecords": len(records),
            "monthlyData": [{"month": m, "sessions": n} for m, n in sorted(by_month.items())],
            "programData": [{"name": p, "sessions": n} for p, n in by_program.items()],
            "recentSessions": list(reversed(recent[-RECENT_SESSIONS:])),
        }


_attendance_service = None


def get_attendance_service() -> AttendanceService:
    """Get or create AttendanceService singleton instance."""
    global _attendance_service
    if _attendance_service is None:
        _attendance_service = AttendanceService()
    return _attendance_service
