"""
Round-robin assignment of follow-up calls to volunteers.

Volunteer selection depends only on how many contacts were assigned so far.
A contact that is rejected (invalid, or already on the list for that date)
is reported and does not consume a rotation slot, so N assigned contacts
over M volunteers always give each volunteer floor(N/M) or ceil(N/M), with
the earlier volunteers taking the extra ones.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence
import logging

from temple_hub.core.errors import TempleHubError

logger = logging.getLogger(__name__)


@dataclass
class AssignmentResult:
    created: List[Dict] = field(default_factory=list)
    errors: List[Dict] = field(default_factory=list)
    distribution: Dict[str, int] = field(default_factory=dict)
    kept_previous: int = 0

    @property
    def created_count(self) -> int:
        return len(self.created)

    def error_entries(self) -> Optional[List[Dict]]:
        return self.errors or None


Validator = Callable[[Mapping], Optional[str]]
Creator = Callable[[Mapping, str], Dict]


def assign_round_robin(
    contacts: Sequence[Mapping],
    volunteer_ids: Sequence[str],
    create: Creator,
    validate: Optional[Validator] = None,
    preassigned: Optional[Mapping[str, str]] = None,
) -> AssignmentResult:
    """
    Assign each contact to one volunteer.

    Args:
        contacts: mappings with at least ``id`` and ``type``
        volunteer_ids: rotation order
        create: persists one assignment; raises a TempleHubError (for
            example DuplicateFollowUp) when the contact cannot be assigned
        validate: returns an error message for contacts that must be skipped
        preassigned: contact id -> volunteer id kept from an earlier list;
            these do not take a rotation slot

    Returns:
        AssignmentResult with created records, per-contact errors and the
        number of records per volunteer
    """
    if not volunteer_ids:
        raise ValueError("At least one volunteer is required")

    preassigned = preassigned or {}
    result = AssignmentResult(distribution={vid: 0 for vid in volunteer_ids})
    index = 0

    for contact in contacts:
        contact_id = contact.get("id")
        problem = validate(contact) if validate else None
        if problem:
            result.errors.append({"contactId": contact_id, "error": problem})
            continue

        kept = preassigned.get(contact_id)
        volunteer_id = kept or volunteer_ids[index % len(volunteer_ids)]

        try:
            record = create(contact, volunteer_id)
        except TempleHubError as e:
            result.errors.append({"contactId": contact_id, "error": e.message})
            continue

        result.created.append(record)
        result.distribution[volunteer_id] = result.distribution.get(volunteer_id, 0) + 1
        if kept:
            result.kept_previous += 1
        else:
            index += 1

    logger.info(
        f"Round-robin assigned {result.created_count} of {len(contacts)} contacts "
        f"to {len(volunteer_ids)} volunteers ({len(result.errors)} skipped)"
    )
    return result


def order_by_workload(volunteer_ids: Sequence[str], workload: Mapping[str, int]) -> List[str]:
    """Least loaded first; ties keep the given order."""
    position = {vid: i for i, vid in enumerate(volunteer_ids)}
    return sorted(volunteer_ids, key=lambda vid: (workload.get(vid, 0), position[vid]))
