"""
Outreach Service - contacts collected by the public outreach form.

A contact lives here until it is promoted into an account through a role
change, at which point the record is deleted.
"""

from firebase_admin import firestore
from pydantic.alias_generators import to_camel
from temple_hub.config.firebase import get_db
from temple_hub.core.errors import NotFound, ValidationFailed
from temple_hub.models.outreach import OutreachContactRequest, REQUIRED_OUTREACH_FIELDS
from temple_hub.services.user_service import newest_first, normalize_phone
from temple_hub.utils.firestore_helpers import snapshot_to_dict, where_filter
from typing import Dict, List, Optional, Sequence
import logging

logger = logging.getLogger(__name__)


class OutreachService:

    COLLECTION = "outreach"

    def __init__(self, db=None):
        self.db = db if db is not None else get_db()

    def _collection(self):
        return self.db.collection(self.COLLECTION)

    def _validated_payload(self, request: OutreachContactRequest, required: Sequence[str],
                           partial: bool = False) -> Dict:
        missing = [field for field in required if getattr(request, field) in (None, "")]
        if missing:
            raise ValidationFailed("Missing required fields", details=", ".join(to_camel(f) for f in missing))

        data = request.model_dump(by_alias=True, mode="json", exclude_unset=partial)
        data["phone"] = normalize_phone(data.get("phone"))
        if not partial or "numberOfRounds" in data:
            data["numberOfRounds"] = data.get("numberOfRounds") or 0
        return data

    def create_contact(self, request: OutreachContactRequest, added_by: Optional[str] = None) -> Dict:
        data = self._validated_payload(request, REQUIRED_OUTREACH_FIELDS)
        data = {key: value for key, value in data.items() if value is not None}
        if added_by:
            data["addedBy"] = added_by
        data["createdAt"] = firestore.SERVER_TIMESTAMP
        data["updatedAt"] = firestore.SERVER_TIMESTAMP

        ref = self._collection().document()
        ref.set(data)
        logger.info(f"Outreach contact created: {ref.id} (admin={data.get('underWhichAdmin')})")
        return self.require_contact(ref.id)

    def list_contacts(self) -> List[Dict]:
        return newest_first(snapshot_to_dict(doc) for doc in self._collection().stream())

    def get_contact(self, contact_id: str) -> Optional[Dict]:
        if not contact_id:
            return None
        return snapshot_to_dict(self._collection().document(contact_id).get())

    def require_contact(self, contact_id: str) -> Dict:
        contact = self.get_contact(contact_id)
        if contact is None:
            raise NotFound("Outreach contact not found")
        return contact

    def update_contact(self, contact_id: str, request: OutreachContactRequest) -> Dict:
        # The admin a contact is filed under may be cleared on edit; fields left
        # out of the body keep their stored value
        required = [f for f in REQUIRED_OUTREACH_FIELDS if f != "under_which_admin"]
        data = self._validated_payload(request, required, partial=True)
        self.require_contact(contact_id)

        data["updatedAt"] = firestore.SERVER_TIMESTAMP
        self._collection().document(contact_id).update(data)
        logger.info(f"Outreach contact updated: {contact_id}")
        return self.require_contact(contact_id)

    def delete_contact(self, contact_id: str) -> None:
        self.require_contact(contact_id)
        self._collection().document(contact_id).delete()
        logger.info(f"Outreach contact deleted: {contact_id}")

    def contacts_under_admin(self, admin_name: str) -> List[Dict]:
        """Contacts filed under ``admin_name``, oldest registration first."""
        query = where_filter(self._collection(), "underWhichAdmin", "==", admin_name)
        contacts = [snapshot_to_dict(doc) for doc in query.stream()]
        return list(reversed(newest_first(contacts)))


_outreach_service = None


def get_outreach_service() -> OutreachService:
    """Get or create OutreachService singleton instance."""
    global _outreach_service
    if _outreach_service is None:
        _outreach_service = OutreachService()
    return _outreach_service
