import pytest

from conftest import session_for
from temple_hub.core.errors import DuplicateFollowUp, NotFound, PermissionDenied, ValidationFailed
from temple_hub.models.followup import AssignmentMode, FollowUpStatus, TargetType
from temple_hub.models.outreach import OutreachContactRequest
from temple_hub.models.program import ProgramRequest
from temple_hub.models.user import AccountStatus, Role
from temple_hub.services.followup_service import FollowUpService, followup_id_for
from temple_hub.services.outreach_service import OutreachService
from temple_hub.services.program_service import ProgramService
from temple_hub.services.scheduler import assign_round_robin, order_by_workload

DAY = "2025-03-09"


def record_creator(rejected=()):
    created = []

    def create(contact, volunteer_id):
        if contact["id"] in rejected:
            raise DuplicateFollowUp()
        record = {"targetId": contact["id"], "assignedTo": volunteer_id}
        created.append(record)
        return record

    return create, created


class TestRoundRobin:

    def test_five_contacts_over_two_volunteers(self):
        create, created = record_creator()
        contacts = [{"id": f"c{i}", "type": "user"} for i in range(1, 6)]

        result = assign_round_robin(contacts, ["v1", "v2"], create)

        assert [r["assignedTo"] for r in created] == ["v1", "v2", "v1", "v2", "v1"]
        assert result.distribution == {"v1": 3, "v2": 2}
        assert result.errors == []

    @pytest.mark.parametrize("n,m", [(1, 3), (7, 3), (9, 3), (10, 4), (2, 5)])
    def test_spread_differs_by_at_most_one(self, n, m):
        create, _ = record_creator()
        volunteers = [f"v{i}" for i in range(m)]

        result = assign_round_robin([{"id": f"c{i}", "type": "user"} for i in range(n)], volunteers, create)

        counts = [result.distribution[v] for v in volunteers]
        assert sum(counts) == n
        assert max(counts) - min(counts) <= 1
        assert counts == sorted(counts, reverse=True)

    def test_rejected_contacts_do_not_advance_rotation(self):
        create, created = record_creator(rejected={"c2"})
        contacts = [
            {"id": "c1", "type": "user"},
            {"id": "c2", "type": "user"},
            {"id": None, "type": "user"},
            {"id": "c3", "type": "user"},
        ]

        result = assign_round_robin(
            contacts, ["v1", "v2"], create,
            validate=lambda c: None if c.get("id") else "Contact id is required",
        )

        assert [r["assignedTo"] for r in created] == ["v1", "v2"]
        assert result.errors == [
            {"contactId": "c2", "error": DuplicateFollowUp.message},
            {"contactId": None, "error": "Contact id is required"},
        ]
        assert result.created_count == 2

    def test_preassigned_contacts_keep_volunteer_without_taking_a_slot(self):
        create, created = record_creator()
        contacts = [{"id": c, "type": "user"} for c in ("c1", "c2", "c3")]

        result = assign_round_robin(contacts, ["v1", "v2"], create, preassigned={"c1": "v2"})

        assert [r["assignedTo"] for r in created] == ["v2", "v1", "v2"]
        assert result.kept_previous == 1

    def test_requires_volunteers(self):
        with pytest.raises(ValueError):
            assign_round_robin([{"id": "c1", "type": "user"}], [], record_creator()[0])

    def test_order_by_workload_is_stable(self):
        assert order_by_workload(["a", "b", "c", "d"], {"a": 2, "c": 1}) == ["b", "d", "c", "a"]


@pytest.fixture
def outreach(db):
    return OutreachService(db)


@pytest.fixture
def programs(db, users):
    return ProgramService(db, users=users)


@pytest.fixture
def followups(db, users, outreach, programs):
    return FollowUpService(db, users=users, outreach=outreach, programs=programs)


@pytest.fixture
def admin(make_user):
    return make_user(Role.ADMIN, name="Admin 1")


@pytest.fixture
def team(make_user):
    return [make_user(Role.VOLUNTEER, name=f"Volunteer {i}") for i in (1, 2)]


def participants(make_user, n):
    return [make_user(Role.PARTICIPANT) for _ in range(n)]


def refs(people):
    return [{"id": p["id"], "type": "user"} for p in people]


def add_contact(outreach, name, admin_name="Admin 1", phone=None):
    return outreach.create_contact(OutreachContactRequest(
        name=name, phone=phone or f"9{abs(hash(name)) % 10 ** 9:09d}", profession="Student",
        registered_by="Desk", branch="Main", paid_status="Unpaid", under_which_admin=admin_name,
    ))


def test_bulk_assign_manual(followups, admin, team, make_user):
    people = participants(make_user, 5)
    v1, v2 = team

    result = followups.bulk_assign(refs(people), DAY, AssignmentMode.MANUAL,
                                   [v1["id"], v2["id"]], session_for(admin))

    assert result.distribution == {v1["id"]: 3, v2["id"]: 2}
    stored = followups.get_followup(followup_id_for("user", people[0]["id"], DAY))
    assert stored["assignedTo"] == v1["id"]
    assert stored["status"] == FollowUpStatus.PENDING.value
    assert stored["createdBy"] == admin["id"]
    assert stored["isDeleted"] is False


def test_manual_mode_drops_ineligible_volunteers(followups, admin, team, make_user):
    inactive = make_user(Role.VOLUNTEER, status=AccountStatus.REGISTERED)
    guest = make_user(Role.GUEST)
    people = participants(make_user, 2)

    result = followups.bulk_assign(refs(people), DAY, AssignmentMode.MANUAL,
                                   [inactive["id"], guest["id"], team[1]["id"]], session_for(admin))

    assert result.distribution == {team[1]["id"]: 2}


def test_manual_mode_without_eligible_volunteers(followups, admin, make_user):
    guest = make_user(Role.GUEST)

    with pytest.raises(ValidationFailed):
        followups.bulk_assign(refs(participants(make_user, 1)), DAY, AssignmentMode.MANUAL,
                              [guest["id"]], session_for(admin))


def test_manual_mode_without_selection_rotates_like_auto(followups, admin, team, make_user):
    result = followups.bulk_assign(refs(participants(make_user, 3)), DAY, AssignmentMode.MANUAL, [],
                                   session_for(admin))

    assert set(result.distribution) == {admin["id"], team[0]["id"], team[1]["id"]}
    assert result.created_count == 3


def test_bulk_assign_requires_contacts(followups, admin, team):
    with pytest.raises(ValidationFailed):
        followups.bulk_assign([], DAY, AssignmentMode.AUTO, [], session_for(admin))


def test_auto_mode_uses_every_eligible_volunteer(followups, admin, team, make_user):
    result = followups.bulk_assign(refs(participants(make_user, 6)), DAY, AssignmentMode.AUTO, [],
                                   session_for(admin))

    assert set(result.distribution) == {admin["id"], team[0]["id"], team[1]["id"]}
    assert sorted(result.distribution.values()) == [2, 2, 2]


def test_equal_mode_starts_with_least_loaded(followups, admin, team, make_user):
    v1, v2 = team
    followups.bulk_assign(refs(participants(make_user, 2)), DAY, AssignmentMode.MANUAL,
                          [v1["id"], admin["id"]], session_for(admin))

    order = followups.select_volunteers(AssignmentMode.EQUAL, [], DAY)

    assert order[0] == v2["id"]


def test_duplicates_are_reported_and_skip_rotation(followups, admin, team, make_user):
    v1, v2 = team
    people = participants(make_user, 3)
    followups.bulk_assign(refs(people[:1]), DAY, AssignmentMode.MANUAL, [v2["id"]], session_for(admin))

    result = followups.bulk_assign(refs(people), DAY, AssignmentMode.MANUAL,
                                   [v1["id"], v2["id"]], session_for(admin))

    assert result.distribution == {v1["id"]: 1, v2["id"]: 1}
    assert result.errors == [{"contactId": people[0]["id"], "error": DuplicateFollowUp.message}]
    assert len(followups.live_followups(DAY)) == 3


def test_invalid_contacts_are_reported(followups, admin, team):
    result = followups.bulk_assign(
        [{"id": "ghost", "type": "user"}, {"id": "x", "type": "alien"}],
        DAY, AssignmentMode.AUTO, [], session_for(admin),
    )

    assert result.created_count == 0
    assert [e["error"] for e in result.errors] == ["User not found", "Invalid contact type"]


def test_soft_deleted_slot_can_be_reused(followups, admin, team, make_user):
    person = participants(make_user, 1)
    slot = followup_id_for("user", person[0]["id"], DAY)
    followups.bulk_assign(refs(person), DAY, AssignmentMode.MANUAL, [team[0]["id"]], session_for(admin))
    followups.soft_delete(slot, session_for(admin))

    result = followups.bulk_assign(refs(person), DAY, AssignmentMode.MANUAL, [team[1]["id"]], session_for(admin))

    assert result.created_count == 1
    assert followups.get_followup(slot)["assignedTo"] == team[1]["id"]
    archived = [d.to_dict() for d in followups._collection().stream() if d.id != slot]
    assert len(archived) == 1
    assert archived[0]["archivedFrom"] == slot
    assert archived[0]["isDeleted"] is True


def test_create_followup_rejects_live_duplicate(followups, admin, make_user):
    person = participants(make_user, 1)[0]
    followups.create_followup(TargetType.USER, person["id"], DAY, admin["id"], admin["id"])

    with pytest.raises(DuplicateFollowUp):
        followups.create_followup(TargetType.USER, person["id"], DAY, admin["id"], admin["id"])


def test_update_appends_notes(followups, admin, team, make_user):
    person = participants(make_user, 1)
    followups.bulk_assign(refs(person), DAY, AssignmentMode.MANUAL, [team[0]["id"]], session_for(admin))
    slot = followup_id_for("user", person[0]["id"], DAY)

    followups.update(slot, session_for(team[0]), status="May Come", notes="Call back Sunday")
    record = followups.update(slot, session_for(team[0]), status="coming", notes="Confirmed")

    assert record["status"] == FollowUpStatus.COMING.value
    lines = record["notes"].split("\n")
    assert len(lines) == 2
    assert lines[0].startswith("[") and lines[0].endswith("Call back Sunday")
    assert lines[1].endswith("Confirmed")
    assert record["calledBy"] == team[0]["id"]


def test_only_assignee_or_admin_updates(followups, admin, team, make_user):
    person = participants(make_user, 1)
    followups.bulk_assign(refs(person), DAY, AssignmentMode.MANUAL, [team[0]["id"]], session_for(admin))
    slot = followup_id_for("user", person[0]["id"], DAY)

    with pytest.raises(PermissionDenied):
        followups.update(slot, session_for(team[1]), status="coming")
    followups.update(slot, session_for(admin), status="not-coming")
    with pytest.raises(ValidationFailed):
        followups.update(slot, session_for(admin), status="maybe later")


def test_volunteer_stats(followups, admin, team, make_user):
    v1, v2 = team
    people = participants(make_user, 3)
    followups.bulk_assign(refs(people), DAY, AssignmentMode.MANUAL, [v1["id"], v2["id"]], session_for(admin))
    followups.update(followup_id_for("user", people[0]["id"], DAY), session_for(v1), status="coming")

    stats = followups.volunteer_stats(DAY)

    by_id = {s["volunteerId"]: s for s in stats["data"]}
    assert by_id[v1["id"]]["workload"]["total"] == 2
    assert by_id[v1["id"]]["workload"]["coming"] == 1
    assert by_id[v1["id"]]["completionRate"] == 50
    assert by_id[v2["id"]]["workload"]["pending"] == 1
    assert stats["summary"]["totalFollowUps"] == 3
    assert stats["summary"]["totalComing"] == 1
    pending = [s["workload"]["pending"] for s in stats["data"]]
    assert pending == sorted(pending, reverse=True)


def test_create_for_date_keeps_last_weeks_volunteer(followups, admin, team, make_user, outreach, programs):
    people = participants(make_user, 2)
    add_contact(outreach, "Walk-in")
    program = programs.create_program(ProgramRequest(name="Srijan"), session_for(admin))
    actor = session_for(admin)

    first = followups.create_for_date("2025-03-02", actor, program_id=program["id"])
    assert first["followUpsCreated"] == 3
    assert first["sessionId"] == f"{program['id']}_2025-03-02"

    previous = {r["targetId"]: r["assignedTo"] for r in followups.live_followups("2025-03-02")}
    second = followups.create_for_date(DAY, actor, program_id=program["id"])

    assert second["consistency"] == {"existingPeople": 3, "newPeople": 0}
    current = {r["targetId"]: r["assignedTo"] for r in followups.live_followups(DAY)}
    assert current == previous
    assert people[0]["id"] in current


def test_create_for_date_reports_duplicates(followups, admin, team, make_user):
    participants(make_user, 2)
    actor = session_for(admin)
    followups.create_for_date(DAY, actor)

    again = followups.create_for_date(DAY, actor)

    assert again["followUpsCreated"] == 0
    assert len(again["errors"]) == 2


def test_delete_for_date(followups, admin, team, make_user, programs):
    program = programs.create_program(ProgramRequest(name="Little Vaishnavas"), session_for(admin))
    people = participants(make_user, 2)
    followups.bulk_assign(refs(people), DAY, AssignmentMode.AUTO, [], session_for(admin), program_id=program["id"])
    assert len(programs.list_sessions(program["id"])) == 1

    counts = followups.delete_for_date(DAY, session_for(team[0]), program_id=program["id"])

    assert counts == {"followUpsDeleted": 2, "sessionsDeleted": 1}
    assert followups.live_followups(DAY) == []
    assert programs.list_sessions(program["id"]) == []


def test_outreach_lists_by_admin(followups, admin, team, outreach):
    for name in ("Asha", "Bhakti", "Chaitanya"):
        add_contact(outreach, name)
    add_contact(outreach, "Other", admin_name="Someone Else")
    actor = session_for(admin)

    result = followups.assign_outreach("Admin 1", [team[0]["id"], team[1]["id"]], DAY, actor)
    assert result.distribution == {team[0]["id"]: 2, team[1]["id"]: 1}

    listing = followups.outreach_by_admin(None, DAY, actor)
    assert listing["adminName"] == "Admin 1"
    assert sorted(c["name"] for c in listing["contacts"]) == ["Asha", "Bhakti", "Chaitanya"]
    assert all(c["assignedVolunteer"] for c in listing["contacts"])

    asha = next(c for c in listing["contacts"] if c["name"] == "Asha")
    updated = followups.update_outreach_followup(asha["id"], DAY, actor, status="Not Answered", remarks="No pickup")
    assert updated["status"] == FollowUpStatus.NO_RESPONSE.value

    with pytest.raises(NotFound):
        followups.update_outreach_followup(asha["id"], "2025-04-01", actor, status="coming")
