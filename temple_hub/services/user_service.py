"""
User Service - Manage accounts in Firestore.
"""

from firebase_admin import firestore
from temple_hub.config.firebase import get_db
from temple_hub.core.errors import Conflict, NotFound, PermissionDenied, ValidationFailed
from temple_hub.core.session import SessionContext
from temple_hub.models.user import (
    AccountStatus,
    Role,
    StaffCreateUserRequest,
    UserUpdateRequest,
)
from temple_hub.services.role_policy import can_change, can_edit
from temple_hub.utils.firestore_helpers import snapshot_to_dict, to_datetime, where_filter
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional
import logging

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def normalize_email(email: Optional[str]) -> Optional[str]:
    if email is None:
        return None
    email = email.strip().lower()
    return email or None


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    if phone is None:
        return None
    phone = phone.strip()
    return phone or None


def is_active(user: Dict) -> bool:
    """Only verified accounts count as active."""
    return user.get("status") == AccountStatus.ACTIVE.value and bool(user.get("isActive"))


def newest_first(records: Iterable[Dict], field: str = "createdAt") -> List[Dict]:
    return sorted(records, key=lambda r: to_datetime(r.get(field)) or _EPOCH, reverse=True)


class UserService:
    """
    Service for account management in Firestore.
    """

    COLLECTION = "users"

    def __init__(self, db=None):
        self.db = db if db is not None else get_db()

    def _collection(self):
        return self.db.collection(self.COLLECTION)

    def get_user(self, user_id: str) -> Optional[Dict]:
        if not user_id:
            return None
        return snapshot_to_dict(self._collection().document(user_id).get())

    def require_user(self, user_id: str) -> Dict:
        user = self.get_user(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def get_user_by_email(self, email: Optional[str]) -> Optional[Dict]:
        email = normalize_email(email)
        if not email:
            return None
        return self._first(where_filter(self._collection(), "email", "==", email))

    def get_user_by_phone(self, phone: Optional[str]) -> Optional[Dict]:
        phone = normalize_phone(phone)
        if not phone:
            return None
        return self._first(where_filter(self._collection(), "phone", "==", phone))

    def _first(self, query) -> Optional[Dict]:
        docs = list(query.limit(1).stream())
        return snapshot_to_dict(docs[0]) if docs else None

    def create_account(self, data: Dict) -> Dict:
        """
        Insert a new account document.

        ``data`` uses stored (camelCase) field names. Email and phone are
        normalized; status defaults to a credential-less placeholder.
        """
        record = {key: value for key, value in data.items() if value is not None}
        record["email"] = normalize_email(data.get("email"))
        record["phone"] = normalize_phone(data.get("phone"))
        record.setdefault("status", AccountStatus.PENDING.value)
        record["isActive"] = record["status"] == AccountStatus.ACTIVE.value
        record.setdefault("programs", [])
        record["createdAt"] = firestore.SERVER_TIMESTAMP
        record["updatedAt"] = firestore.SERVER_TIMESTAMP

        user_ref = self._collection().document()
        user_ref.set(record)
        logger.info(f"User created: {user_ref.id} (role={record.get('role')}, status={record['status']})")
        return self.require_user(user_ref.id)

    def update_fields(self, user_id: str, update_data: Dict) -> Dict:
        """Write ``update_data`` onto the account and return the fresh document."""
        update_data = dict(update_data)
        update_data["updatedAt"] = firestore.SERVER_TIMESTAMP
        self._collection().document(user_id).update(update_data)
        return self.require_user(user_id)

    def create_staff_user(self, request: StaffCreateUserRequest, role: Role, actor: SessionContext) -> Dict:
        """
        Create a participant or volunteer record on someone's behalf.

        The record has no credentials; the person claims it later through
        signup with the same email or phone.
        """
        if not request.name or not request.email:
            raise ValidationFailed("Name and email are required")

        if self.get_user_by_email(request.email):
            raise Conflict("A user with this email already exists")
        if request.phone and self.get_user_by_phone(request.phone):
            raise Conflict("A user with this phone number already exists")

        data = request.model_dump(by_alias=True, exclude_none=True)
        data.update({
            "role": role.value,
            "status": AccountStatus.PENDING.value,
            "registeredBy": request.registered_by or actor.user_id,
            "handledBy": request.handled_by or actor.user_id,
        })
        return self.create_account(data)

    def update_user(self, user_id: str, request: UserUpdateRequest, actor: SessionContext) -> Dict:
        target = self.require_user(user_id)
        target_role = target.get("role") or Role.GUEST.value

        if not can_edit(actor.user_id, actor.role, user_id, target_role):
            raise PermissionDenied("Not allowed to edit this user")

        update_data = request.model_dump(by_alias=True, exclude_unset=True)
        new_role = update_data.pop("role", None)

        if new_role is not None and Role(new_role).value != target_role:
            if not can_change(actor.role, target_role, new_role):
                raise PermissionDenied("Not allowed to change this role")
            update_data["role"] = Role(new_role).value

        if "email" in update_data:
            update_data["email"] = normalize_email(update_data["email"])
            other = self.get_user_by_email(update_data["email"])
            if other and other["id"] != user_id:
                raise Conflict("A user with this email already exists")
        if "phone" in update_data:
            update_data["phone"] = normalize_phone(update_data["phone"])
            other = self.get_user_by_phone(update_data["phone"])
            if other and other["id"] != user_id:
                raise Conflict("A user with this phone number already exists")

        if not update_data:
            return target

        logger.info(f"User {user_id} updated by {actor.user_id}: {sorted(update_data)}")
        return self.update_fields(user_id, update_data)

    def list_by_role(self, role: Role, program_id: Optional[str] = None) -> List[Dict]:
        query = where_filter(self._collection(), "role", "==", Role(role).value)
        users = [snapshot_to_dict(doc) for doc in query.stream()]
        if program_id:
            users = [u for u in users if program_id in (u.get("programs") or [])]
        return newest_first(users)

    def list_by_roles(self, roles: Iterable[Role], active_only: bool = False) -> List[Dict]:
        users = []
        for role in roles:
            users.extend(self.list_by_role(role))
        if active_only:
            users = [u for u in users if is_active(u)]
        return users

    def eligible_volunteers(self) -> List[Dict]:
        """Active volunteers and admins, oldest account first."""
        staff = self.list_by_roles((Role.VOLUNTEER, Role.ADMIN), active_only=True)
        return list(reversed(newest_first(staff)))

    def search_by_phone(self, phone: Optional[str], program_id: Optional[str] = None) -> Dict:
        """Find a participant or volunteer by phone, optionally enrolled in ``program_id``."""
        if not normalize_phone(phone):
            raise ValidationFailed("Phone number is required")

        user = self.get_user_by_phone(phone)
        if user is None or user.get("role") not in (Role.PARTICIPANT.value, Role.VOLUNTEER.value):
            raise NotFound("Volunteer or participant not found")
        if program_id and program_id not in (user.get("programs") or []):
            raise NotFound("Volunteer or participant not found")
        return user

    def volunteers_in_programs(self, program_ids: List[str]) -> List[Dict]:
        wanted = set(program_ids)
        staff = self.list_by_roles((Role.VOLUNTEER, Role.ADMIN), active_only=True)
        return [u for u in staff if wanted.intersection(u.get("programs") or [])]

    def members_of_program(self, program_id: str, roles: Iterable[Role]) -> List[Dict]:
        query = where_filter(self._collection(), "programs", "array_contains", program_id)
        allowed = {Role(r).value for r in roles}
        return [u for u in (snapshot_to_dict(doc) for doc in query.stream()) if u.get("role") in allowed]

    def remove_program(self, program_id: str) -> int:
        """Drop ``program_id`` from every account's programs list."""
        query = where_filter(self._collection(), "programs", "array_contains", program_id)
        count = 0
        for doc in query.stream():
            programs = [p for p in (doc.to_dict().get("programs") or []) if p != program_id]
            doc.reference.update({"programs": programs, "updatedAt": firestore.SERVER_TIMESTAMP})
            count += 1
        return count

    def delete_user(self, user_id: str) -> None:
        self.require_user(user_id)
        self._collection().document(user_id).delete()
        logger.info(f"User deleted: {user_id}")


# Global service instance (singleton pattern)
_user_service = None


def get_user_service() -> UserService:
    """Get or create UserService singleton instance."""
    global _user_service
    if _user_service is None:
        _user_service = UserService()
    return _user_service
