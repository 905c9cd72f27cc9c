"""
Follow-up Service - call lists for program dates and outreach contacts.

Each follow-up is stored under an id derived from (targetType, targetId,
programDate) and written with a create-if-absent call, so the store itself
guarantees at most one follow-up per contact and date. A soft-deleted
follow-up is moved to a fresh id before its slot is reused.
"""

from datetime import date, timedelta
from google.api_core.exceptions import AlreadyExists
from temple_hub.config.firebase import get_db
from temple_hub.core.errors import DuplicateFollowUp, NotFound, PermissionDenied, ValidationFailed
from temple_hub.core.session import SessionContext
from temple_hub.models.followup import AssignmentMode, FollowUpStatus, TargetType
from temple_hub.models.user import Role
from temple_hub.services.outreach_service import OutreachService, get_outreach_service
from temple_hub.services.program_service import ProgramService, get_program_service
from temple_hub.services.scheduler import AssignmentResult, assign_round_robin, order_by_workload
from temple_hub.services.user_service import UserService, get_user_service
from temple_hub.utils.firestore_helpers import normalize_date, snapshot_to_dict, to_datetime, utc_now, where_filter
from typing import Dict, Iterable, List, Mapping, Optional, Sequence
import logging

logger = logging.getLogger(__name__)

# Lists created within this many days before a date keep their volunteer
CONSISTENCY_WINDOW_DAYS = 7

DEFAULT_CHANNEL = "phone"


def followup_id_for(target_type: str, target_id: str, program_date: str) -> str:
    return f"{target_type}_{target_id}_{program_date}"


def parse_program_date(value: Optional[str]) -> str:
    if not value:
        raise ValidationFailed("Program date is required")
    try:
        return normalize_date(value)
    except ValueError:
        raise ValidationFailed("Invalid program date", details=str(value))


def parse_status(value: str) -> FollowUpStatus:
    try:
        return FollowUpStatus.parse(value)
    except ValueError:
        allowed = ", ".join(s.value for s in FollowUpStatus)
        raise ValidationFailed("Invalid status", details=f"status must be one of: {allowed}")


class FollowUpService:

    COLLECTION = "followups"

    def __init__(self, db=None, users: Optional[UserService] = None,
                 outreach: Optional[OutreachService] = None, programs: Optional[ProgramService] = None):
        self.db = db if db is not None else get_db()
        self.users = users or get_user_service()
        self.outreach = outreach or get_outreach_service()
        self.programs = programs or get_program_service()

    def _collection(self):
        return self.db.collection(self.COLLECTION)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def get_followup(self, followup_id: str) -> Optional[Dict]:
        return snapshot_to_dict(self._collection().document(followup_id).get())

    def require_live_followup(self, followup_id: str) -> Dict:
        record = self.get_followup(followup_id)
        if record is None or record.get("isDeleted"):
            raise NotFound("Follow-up not found")
        return record

    def create_followup(self, target_type: TargetType, target_id: str, program_date: str,
                        assigned_to: str, created_by: str, program_id: Optional[str] = None) -> Dict:
        """
        Create the follow-up for a contact and date.

        Raises:
            DuplicateFollowUp: a live follow-up already exists for that slot
        """
        target_type = TargetType(target_type)
        slot_id = followup_id_for(target_type.value, target_id, program_date)
        ref = self._collection().document(slot_id)
        now = utc_now()
        data = {
            "targetType": target_type.value,
            "targetId": target_id,
            "assignedTo": assigned_to,
            "createdBy": created_by,
            "programDate": program_date,
            "status": FollowUpStatus.PENDING.value,
            "channel": DEFAULT_CHANNEL,
            "notes": "",
            "isDeleted": False,
            "createdAt": now,
            "updatedAt": now,
        }
        if program_id:
            data["program"] = program_id

        try:
            ref.create(data)
        except AlreadyExists:
            if not self._archive_if_deleted(ref):
                raise DuplicateFollowUp()
            try:
                ref.create(data)
            except AlreadyExists:
                raise DuplicateFollowUp()

        data["id"] = slot_id
        return data

    def _archive_if_deleted(self, ref) -> bool:
        """Move a soft-deleted follow-up out of its slot. False if the slot is live."""
        existing = ref.get()
        if not existing.exists:
            return True
        data = existing.to_dict() or {}
        if not data.get("isDeleted"):
            return False

        archive_ref = self._collection().document()
        data["archivedFrom"] = ref.id
        archive_ref.set(data)
        ref.delete()
        logger.debug(f"Archived deleted follow-up {ref.id} as {archive_ref.id}")
        return True

    def live_followups(self, program_date: Optional[str] = None, **filters) -> List[Dict]:
        query = where_filter(self._collection(), "isDeleted", "==", False)
        if program_date:
            query = where_filter(query, "programDate", "==", program_date)
        for field_name, value in filters.items():
            if value is not None:
                query = where_filter(query, field_name, "==", value)
        return [snapshot_to_dict(doc) for doc in query.stream()]

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _validate_contact(self, contact: Mapping) -> Optional[str]:
        contact_id = contact.get("id")
        contact_type = contact.get("type")
        if not contact_id:
            return "Contact id is required"
        if contact_type == TargetType.USER.value:
            return None if self.users.get_user(contact_id) else "User not found"
        if contact_type == TargetType.OUTREACH.value:
            return None if self.outreach.get_contact(contact_id) else "Outreach contact not found"
        return "Invalid contact type"

    def _run(self, contacts: Sequence[Mapping], volunteer_ids: Sequence[str], program_date: str,
             actor: SessionContext, program_id: Optional[str] = None,
             preassigned: Optional[Mapping[str, str]] = None) -> AssignmentResult:
        def create(contact: Mapping, volunteer_id: str) -> Dict:
            return self.create_followup(
                TargetType(contact["type"]), contact["id"], program_date,
                assigned_to=volunteer_id, created_by=actor.user_id, program_id=program_id,
            )

        return assign_round_robin(contacts, volunteer_ids, create,
                                  validate=self._validate_contact, preassigned=preassigned)

    def workload(self, program_date: str) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for record in self.live_followups(program_date):
            assignee = record.get("assignedTo")
            counts[assignee] = counts.get(assignee, 0) + 1
        return counts

    def _eligible_ids(self) -> List[str]:
        return [v["id"] for v in self.users.eligible_volunteers()]

    def select_volunteers(self, mode: AssignmentMode, requested: Sequence[str], program_date: str) -> List[str]:
        """
        Rotation order for a bulk assignment.

        auto    every eligible volunteer, oldest account first
        manual  the requested ids that are eligible, in the requested order;
                an empty request falls back to auto
        equal   every eligible volunteer, least loaded on that date first
        """
        eligible = self._eligible_ids()
        mode = AssignmentMode(mode)
        if mode == AssignmentMode.MANUAL and requested:
            allowed = set(eligible)
            seen = set()
            volunteers = []
            for vid in requested:
                if vid in allowed and vid not in seen:
                    volunteers.append(vid)
                    seen.add(vid)
            return volunteers
        if mode == AssignmentMode.EQUAL:
            return order_by_workload(eligible, self.workload(program_date))
        return eligible

    def bulk_assign(self, contacts: Sequence[Mapping], program_date: Optional[str], mode: AssignmentMode,
                    volunteers: Sequence[str], actor: SessionContext,
                    program_id: Optional[str] = None) -> AssignmentResult:
        if not contacts:
            raise ValidationFailed("Contacts array is required and must not be empty")
        program_date = parse_program_date(program_date)

        volunteer_ids = self.select_volunteers(mode, volunteers, program_date)
        if not volunteer_ids:
            raise ValidationFailed("No active volunteers available for assignment")

        result = self._run(contacts, volunteer_ids, program_date, actor, program_id)
        if program_id and result.created:
            self.programs.ensure_session(program_id, program_date, created_by=actor.user_id)
        return result

    def create_followups(self, contacts: Sequence[Mapping], program_date: Optional[str], actor: SessionContext,
                         assigned_to: Optional[str] = None, program_id: Optional[str] = None) -> AssignmentResult:
        """Manual list: every contact goes to one volunteer (the caller by default)."""
        if not contacts:
            raise ValidationFailed("Contacts array is required and must not be empty")
        program_date = parse_program_date(program_date)
        return self._run(contacts, [assigned_to or actor.user_id], program_date, actor, program_id)

    def _previous_assignments(self, program_date: str) -> Dict[str, str]:
        """Contact id -> volunteer from lists in the week before ``program_date``."""
        day = date.fromisoformat(program_date)
        previous = []
        # One equality query per day keeps this off composite indexes
        for offset in range(CONSISTENCY_WINDOW_DAYS, 0, -1):
            previous.extend(self.live_followups((day - timedelta(days=offset)).isoformat()))
        previous.sort(key=lambda r: (r.get("programDate") or "", to_datetime(r.get("createdAt")) or utc_now()))

        assignments = {}
        for record in previous:
            assignments[record.get("targetId")] = record.get("assignedTo")
        return assignments

    def all_contacts(self) -> List[Dict]:
        """Active participants and guests followed by every outreach contact."""
        people = self.users.list_by_roles((Role.PARTICIPANT, Role.GUEST), active_only=True)
        contacts = [{"id": u["id"], "type": TargetType.USER.value, "name": u.get("name")} for u in people]
        contacts.extend(
            {"id": c["id"], "type": TargetType.OUTREACH.value, "name": c.get("name")}
            for c in self.outreach.list_contacts()
        )
        return contacts

    def create_for_date(self, program_date: Optional[str], actor: SessionContext,
                        program_id: Optional[str] = None) -> Dict:
        program_date = parse_program_date(program_date)
        if program_id:
            self.programs.require_program(program_id)

        volunteers = self.users.eligible_volunteers()
        if not volunteers:
            raise ValidationFailed("No active volunteers available. Please add volunteers first.")
        volunteer_ids = [v["id"] for v in volunteers]

        contacts = self.all_contacts()
        if not contacts:
            raise ValidationFailed("No contacts found. Please add participants or outreach contacts first.")

        # Keep last week's volunteer only while they are still eligible
        eligible = set(volunteer_ids)
        preassigned = {
            cid: vid for cid, vid in self._previous_assignments(program_date).items() if vid in eligible
        }

        result = self._run(contacts, volunteer_ids, program_date, actor, program_id, preassigned)

        session = None
        if program_id:
            session = self.programs.ensure_session(program_id, program_date, created_by=actor.user_id)

        names = {v["id"]: v.get("name") for v in volunteers}
        return {
            "programDate": program_date,
            "totalContacts": len(contacts),
            "followUpsCreated": result.created_count,
            "volunteers": len(volunteer_ids),
            "distribution": {vid: n for vid, n in result.distribution.items() if n},
            "volunteerNames": names,
            "consistency": {
                "existingPeople": result.kept_previous,
                "newPeople": result.created_count - result.kept_previous,
            },
            "sessionId": session["id"] if session else None,
            "errors": result.error_entries(),
        }

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def update(self, followup_id: str, actor: SessionContext, status: Optional[str] = None,
               notes: Optional[str] = None, channel: Optional[str] = None) -> Dict:
        """
        Record a call outcome.

        Only the assigned volunteer or an admin may update. Notes are
        appended as ``[timestamp] text`` lines, never replaced.
        """
        record = self.require_live_followup(followup_id)
        if not actor.is_admin and record.get("assignedTo") != actor.user_id:
            raise PermissionDenied("Only the assigned volunteer or an admin can update this follow-up")

        now = utc_now()
        update: Dict = {"calledBy": actor.user_id, "calledAt": now, "updatedAt": now}
        if status:
            update["status"] = parse_status(status).value
        if channel:
            update["channel"] = channel
        if notes and notes.strip():
            line = f"[{now.strftime('%Y-%m-%d %H:%M')}] {notes.strip()}"
            existing = record.get("notes") or ""
            update["notes"] = f"{existing}\n{line}" if existing else line

        self._collection().document(followup_id).update(update)
        logger.info(f"Follow-up {followup_id} updated by {actor.user_id}: {sorted(update)}")
        return self.require_live_followup(followup_id)

    def soft_delete(self, followup_id: str, actor: SessionContext) -> None:
        self.require_live_followup(followup_id)
        self._collection().document(followup_id).update({
            "isDeleted": True,
            "deletedAt": utc_now(),
            "deletedBy": actor.user_id,
        })
        logger.info(f"Follow-up {followup_id} deleted by {actor.user_id}")

    def delete_for_date(self, program_date: Optional[str], actor: SessionContext,
                        program_id: Optional[str] = None) -> Dict[str, int]:
        """Soft-delete a whole list, and its session when the list belongs to a program."""
        program_date = parse_program_date(program_date)
        records = self.live_followups(program_date, program=program_id)

        now = utc_now()
        for record in records:
            self._collection().document(record["id"]).update({
                "isDeleted": True,
                "deletedAt": now,
                "deletedBy": actor.user_id,
            })

        sessions_deleted = self.programs.soft_delete_session(program_id, program_date) if program_id else 0
        logger.info(f"Deleted {len(records)} follow-ups for {program_date} (program={program_id})")
        return {"followUpsDeleted": len(records), "sessionsDeleted": sessions_deleted}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _resolve(self, records: Iterable[Dict]) -> List[Dict]:
        users: Dict[str, Optional[Dict]] = {}
        contacts: Dict[str, Optional[Dict]] = {}

        def user(uid):
            if uid and uid not in users:
                users[uid] = self.users.get_user(uid)
            return users.get(uid)

        def brief(uid):
            u = user(uid)
            return {"id": u["id"], "name": u.get("name"), "email": u.get("email"), "phone": u.get("phone")} if u else None

        resolved = []
        for record in records:
            item = dict(record)
            target_id = record.get("targetId")
            if record.get("targetType") == TargetType.USER.value:
                u = user(target_id)
                item["contact"] = {
                    key: u.get(key) for key in ("id", "name", "email", "phone", "role", "profession", "homeTown")
                } if u else None
            else:
                if target_id not in contacts:
                    contacts[target_id] = self.outreach.get_contact(target_id)
                c = contacts[target_id]
                item["contact"] = {
                    key: c.get(key) for key in ("id", "name", "phone", "currentLocation", "branch", "underWhichAdmin")
                } if c else None
            item["assignee"] = brief(record.get("assignedTo"))
            resolved.append(item)
        return resolved

    def list_followups(self, actor: SessionContext, assigned_to: Optional[str] = None, my_followups: bool = False,
                       status: Optional[str] = None, program_date: Optional[str] = None,
                       program_id: Optional[str] = None) -> List[Dict]:
        if my_followups:
            assigned_to = actor.user_id
        status_value = parse_status(status).value if status else None
        date_value = parse_program_date(program_date) if program_date else None

        records = self.live_followups(date_value, assignedTo=assigned_to, status=status_value, program=program_id)
        records.sort(key=lambda r: to_datetime(r.get("createdAt")) or utc_now(), reverse=True)
        records.sort(key=lambda r: r.get("programDate") or "", reverse=True)
        return self._resolve(records)

    def volunteer_stats(self, program_date: Optional[str] = None) -> Dict:
        date_value = parse_program_date(program_date) if program_date else None
        volunteers = self.users.eligible_volunteers()

        by_volunteer: Dict[str, Dict[str, int]] = {
            v["id"]: {s.value: 0 for s in FollowUpStatus} for v in volunteers
        }
        for record in self.live_followups(date_value):
            counts = by_volunteer.get(record.get("assignedTo"))
            if counts is None:
                continue
            try:
                status = FollowUpStatus.parse(record.get("status") or FollowUpStatus.PENDING.value)
            except ValueError:
                status = FollowUpStatus.PENDING
            counts[status.value] += 1

        stats = []
        for volunteer in volunteers:
            counts = by_volunteer[volunteer["id"]]
            total = sum(counts.values())
            stats.append({
                "volunteerId": volunteer["id"],
                "name": volunteer.get("name"),
                "email": volunteer.get("email"),
                "phone": volunteer.get("phone"),
                "workload": {
                    "total": total,
                    "pending": counts[FollowUpStatus.PENDING.value],
                    "coming": counts[FollowUpStatus.COMING.value],
                    "mayCome": counts[FollowUpStatus.MAY_COME.value],
                    "notComing": counts[FollowUpStatus.NOT_COMING.value],
                    "noResponse": counts[FollowUpStatus.NO_RESPONSE.value],
                },
                "completionRate": round(counts[FollowUpStatus.COMING.value] * 100 / total) if total else 0,
            })

        stats.sort(key=lambda s: s["workload"]["pending"], reverse=True)
        return {
            "data": stats,
            "summary": {
                "totalVolunteers": len(volunteers),
                "totalFollowUps": sum(s["workload"]["total"] for s in stats),
                "totalPending": sum(s["workload"]["pending"] for s in stats),
                "totalComing": sum(s["workload"]["coming"] for s in stats),
            },
        }

    def contacts(self) -> Dict[str, List[Dict]]:
        """People that can be put on a call list, grouped for the assignment screen."""
        def person(u: Dict) -> Dict:
            return {
                "id": u["id"], "name": u.get("name"), "email": u.get("email"), "phone": u.get("phone"),
                "type": TargetType.USER.value, "role": u.get("role"),
                "profession": u.get("profession"), "homeTown": u.get("homeTown"),
            }

        participants = self.users.list_by_roles((Role.PARTICIPANT,), active_only=True)
        members = self.users.list_by_roles((Role.PARTICIPANT, Role.VOLUNTEER), active_only=True)
        outreach = [
            {
                "id": c["id"], "name": c.get("name"), "phone": c.get("phone"),
                "type": TargetType.OUTREACH.value, "currentLocation": c.get("currentLocation"),
                "comment": c.get("comment"), "addedBy": c.get("addedBy"),
            }
            for c in self.outreach.list_contacts()
        ]
        return {
            "participants": [person(u) for u in participants],
            "users": [person(u) for u in members],
            "outreachContacts": outreach,
        }

    # ------------------------------------------------------------------
    # Outreach call lists
    # ------------------------------------------------------------------

    def assign_outreach(self, admin_name: Optional[str], volunteer_ids: Sequence[str],
                        follow_up_date: Optional[str], actor: SessionContext) -> AssignmentResult:
        """Spread the contacts filed under ``admin_name`` over the chosen volunteers."""
        if not admin_name or not volunteer_ids or not follow_up_date:
            raise ValidationFailed("Admin name, volunteer IDs, and follow-up date are required")
        program_date = parse_program_date(follow_up_date)

        volunteers = self.select_volunteers(AssignmentMode.MANUAL, volunteer_ids, program_date)
        if not volunteers:
            raise ValidationFailed("No active volunteers available for assignment")

        contacts = [
            {"id": c["id"], "type": TargetType.OUTREACH.value}
            for c in self.outreach.contacts_under_admin(admin_name)
        ]
        if not contacts:
            return AssignmentResult(distribution={vid: 0 for vid in volunteers})
        return self._run(contacts, volunteers, program_date, actor)

    def outreach_by_admin(self, admin_name: Optional[str], follow_up_date: Optional[str],
                          actor: SessionContext) -> Dict:
        if not admin_name and actor.is_admin:
            admin_name = actor.name
        if not admin_name:
            raise ValidationFailed("Admin name is required")
        if not follow_up_date:
            raise ValidationFailed("Date is required")
        program_date = parse_program_date(follow_up_date)

        contacts = list(reversed(self.outreach.contacts_under_admin(admin_name)))
        listed = []
        for contact in contacts:
            record = self.get_followup(followup_id_for(TargetType.OUTREACH.value, contact["id"], program_date))
            if record is None or record.get("isDeleted"):
                continue
            resolved = self._resolve([record])[0]
            called_by = self.users.get_user(record.get("calledBy")) if record.get("calledBy") else None
            listed.append({
                **contact,
                "assignedVolunteer": resolved["assignee"],
                "followup": {
                    "id": record["id"],
                    "status": record.get("status"),
                    "notes": record.get("notes"),
                    "calledBy": {"id": called_by["id"], "name": called_by.get("name")} if called_by else None,
                    "calledAt": record.get("calledAt"),
                },
            })
        return {"contacts": listed, "adminName": admin_name}

    def update_outreach_followup(self, contact_id: Optional[str], follow_up_date: Optional[str],
                                 actor: SessionContext, status: Optional[str] = None,
                                 remarks: Optional[str] = None) -> Dict:
        if not contact_id:
            raise ValidationFailed("Contact ID is required")
        if not follow_up_date:
            raise ValidationFailed("Follow-up date is required")
        program_date = parse_program_date(follow_up_date)

        followup_id = followup_id_for(TargetType.OUTREACH.value, contact_id, program_date)
        record = self.get_followup(followup_id)
        if record is None or record.get("isDeleted"):
            raise NotFound("Follow-up not found for this date. Please create a list first.")
        return self.update(followup_id, actor, status=status, notes=remarks)

    def volunteers_by_admin(self, admin_name: Optional[str]) -> List[Dict]:
        """Volunteers enrolled in any program created by the named admin."""
        if not admin_name:
            raise ValidationFailed("Admin name is required")
        admin = next(
            (u for u in self.users.list_by_role(Role.ADMIN) if u.get("name") == admin_name),
            None,
        )
        if admin is None:
            raise NotFound("Admin not found")

        program_ids = {p["id"] for p in self.programs.programs_created_by(admin["id"])}
        return [
            {"id": u["id"], "name": u.get("name"), "email": u.get("email")}
            for u in self.users.list_by_role(Role.VOLUNTEER)
            if program_ids.intersection(u.get("programs") or [])
        ]

    def volunteers_by_programs(self, program_ids: Sequence[str]) -> List[Dict]:
        if not program_ids:
            raise ValidationFailed("Programs parameter is required")
        return [
            {"id": u["id"], "name": u.get("name"), "email": u.get("email")}
            for u in self.users.volunteers_in_programs(list(program_ids))
        ]


_followup_service = None


def get_followup_service() -> FollowUpService:
    """Get or create FollowUpService singleton instance."""
    global _followup_service
    if _followup_service is None:
        _followup_service = FollowUpService()
    return _followup_service
