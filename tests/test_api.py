from conftest import auth_headers
from temple_hub.core.settings import settings
from temple_hub.models.user import AccountStatus, Role

DAY = "2025-03-09"


def latest_code(db, target):
    records = [doc.to_dict() for doc in db.collection("otps").stream()]
    records = [r for r in records if r["target"] == target]
    return max(records, key=lambda r: r["createdAt"])["code"]


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "running"
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/health/db").json()["connected"] is True


def test_signup_verify_and_cookie_session(client, db):
    response = client.post("/api/auth/signup", json={
        "name": "Radha", "email": "radha@example.org", "password": "hare-krishna",
    })
    assert response.status_code == 201
    body = response.json()
    assert body["next"] == "verify-otp"
    assert body["target"] == "email"

    response = client.post("/api/auth/login", json={"email": "radha@example.org", "password": "hare-krishna"})
    assert response.status_code == 403
    assert response.json()["error"]

    response = client.post("/api/auth/verify-otp", json={
        "userId": body["userId"], "target": "radha@example.org", "code": latest_code(db, "radha@example.org"),
    })
    assert response.status_code == 200
    assert settings.AUTH_COOKIE_NAME in response.cookies

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "radha@example.org"
    assert "password" not in me.json()["user"]

    client.post("/api/auth/logout")
    client.cookies.clear()
    assert client.get("/api/auth/me").status_code == 401


def test_signup_conflict_envelope(client, make_user):
    make_user(Role.PARTICIPANT, email="radha@example.org")

    response = client.post("/api/auth/signup", json={
        "name": "Radha", "email": "radha@example.org", "password": "hare-krishna",
    })

    assert response.status_code == 409
    assert response.json() == {"error": "Account already exists. Please login instead."}


def test_wrong_otp_is_400(client, db):
    body = client.post("/api/auth/signup", json={
        "name": "Radha", "email": "radha@example.org", "password": "hare-krishna",
    }).json()
    code = latest_code(db, "radha@example.org")
    wrong = "000000" if code != "000000" else "111111"

    response = client.post("/api/auth/verify-otp", json={"userId": body["userId"], "target": "email", "code": wrong})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid or expired OTP"


def test_padded_otp_is_rejected(client, db):
    body = client.post("/api/auth/signup", json={
        "name": "Radha", "email": "radha@example.org", "password": "hare-krishna",
    }).json()
    code = latest_code(db, "radha@example.org")

    response = client.post("/api/auth/verify-otp", json={
        "userId": body["userId"], "target": "email", "code": f" {code} ",
    })

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid or expired OTP"
    assert client.post("/api/auth/verify-otp", json={
        "userId": body["userId"], "target": "email", "code": code,
    }).status_code == 200


def test_password_whitespace_is_kept(client, db):
    password = "  abcde  "
    body = client.post("/api/auth/signup", json={
        "name": "Radha", "email": "radha@example.org", "password": password,
    })
    assert body.status_code == 201
    client.post("/api/auth/verify-otp", json={
        "userId": body.json()["userId"], "target": "email", "code": latest_code(db, "radha@example.org"),
    })
    client.cookies.clear()

    assert client.post("/api/auth/login", json={"email": "radha@example.org", "password": "abcde"}).status_code == 401
    assert client.post("/api/auth/login", json={"email": "radha@example.org", "password": password}).status_code == 200


def test_forgot_password_flow(client, db, make_user):
    user = make_user(Role.VOLUNTEER, email="radha@example.org", password="old-password")

    sent = client.post("/api/auth/forgot-password/send-otp", json={"email": "radha@example.org"}).json()
    assert sent["userId"] == user["id"]
    verified = client.post("/api/auth/forgot-password/verify-otp", json={
        "userId": user["id"], "otp": latest_code(db, "radha@example.org"),
    }).json()
    response = client.post("/api/auth/forgot-password/reset-password", json={
        "token": verified["resetToken"], "newPassword": "new-password",
    })
    assert response.status_code == 200

    login = client.post("/api/auth/login", json={"email": "radha@example.org", "password": "new-password"})
    assert login.status_code == 200


def test_reset_token_cannot_open_a_session(client, db, make_user):
    user = make_user(Role.VOLUNTEER, email="radha@example.org")
    client.post("/api/auth/forgot-password/send-otp", json={"email": "radha@example.org"})
    reset_token = client.post("/api/auth/forgot-password/verify-otp", json={
        "userId": user["id"], "otp": latest_code(db, "radha@example.org"),
    }).json()["resetToken"]

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {reset_token}"})

    assert response.status_code == 401


def test_role_guards(client, make_user):
    participant = make_user(Role.PARTICIPANT)
    volunteer = make_user(Role.VOLUNTEER)

    assert client.get("/api/followups").status_code == 401
    assert client.get("/api/followups", headers=auth_headers(participant)).status_code == 403
    assert client.get("/api/followups", headers=auth_headers(volunteer)).status_code == 200
    assert client.post("/api/followups/bulk-assign", json={"contacts": []},
                       headers=auth_headers(volunteer)).status_code == 403
    assert client.post("/api/programs/create", json={"name": "Srijan"},
                       headers=auth_headers(volunteer)).status_code == 403


def test_role_change_endpoint(client, make_user):
    admin = make_user(Role.ADMIN)
    guest = make_user(Role.GUEST)

    response = client.post("/api/roles/change", json={"userId": guest["id"], "newRole": "volunteer"},
                           headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "volunteer"

    response = client.post("/api/roles/change", json={"newRole": "guest"}, headers=auth_headers(admin))
    assert response.status_code == 400
    assert response.json()["error"] == "Either userId or outreachId required"


def test_bulk_assign_over_http(client, make_user):
    admin = make_user(Role.ADMIN)
    v1 = make_user(Role.VOLUNTEER)
    v2 = make_user(Role.VOLUNTEER)
    people = [make_user(Role.PARTICIPANT) for _ in range(5)]

    response = client.post("/api/followups/bulk-assign", headers=auth_headers(admin), json={
        "contacts": [{"id": p["id"], "type": "user"} for p in people],
        "programDate": DAY,
        "assignmentMode": "manual",
        "volunteers": [v1["id"], v2["id"]],
    })

    assert response.status_code == 200
    body = response.json()
    assert body["created"] == 5
    assert body["distribution"] == {v1["id"]: 3, v2["id"]: 2}
    assert body["errors"] is None

    mine = client.get("/api/followups", params={"myFollowUps": "true"}, headers=auth_headers(v2)).json()
    assert len(mine["followUps"]) == 2
    assert all(f["contact"]["id"] in {p["id"] for p in people} for f in mine["followUps"])

    followup_id = mine["followUps"][0]["id"]
    response = client.patch(f"/api/followups/{followup_id}/update", headers=auth_headers(v1),
                            json={"status": "coming"})
    assert response.status_code == 403
    response = client.patch(f"/api/followups/{followup_id}/update", headers=auth_headers(v2),
                            json={"status": "coming", "notes": "Will bring a friend"})
    assert response.json()["followUp"]["status"] == "coming"


def test_outreach_public_create_and_validation(client, make_user):
    response = client.post("/api/outreach/create", json={"name": "Govinda"})
    assert response.status_code == 400
    assert response.json()["error"] == "Missing required fields"
    assert "phone" in response.json()["details"]

    response = client.post("/api/outreach/create", json={
        "name": "Govinda", "phone": "9000000001", "profession": "Engineer", "registeredBy": "Desk",
        "branch": "Main", "paidStatus": "Paid", "underWhichAdmin": "Admin 1",
    })
    assert response.status_code == 201
    contact = response.json()["contact"]
    assert contact["numberOfRounds"] == 0
    assert "addedBy" not in contact

    volunteer = make_user(Role.VOLUNTEER)
    listing = client.get("/api/outreach", headers=auth_headers(volunteer)).json()
    assert [c["id"] for c in listing["contacts"]] == [contact["id"]]


def test_outreach_edit_keeps_omitted_fields(client, make_user):
    volunteer = make_user(Role.VOLUNTEER)
    contact = client.post("/api/outreach/create", json={
        "name": "Govinda", "phone": "9000000001", "profession": "Engineer", "registeredBy": "Desk",
        "branch": "Main", "paidStatus": "Paid", "underWhichAdmin": "Admin 1",
        "motherTongue": "Marathi", "comment": "Met at the book table", "numberOfRounds": 8,
    }).json()["contact"]

    response = client.patch(f"/api/outreach/{contact['id']}/update", headers=auth_headers(volunteer), json={
        "name": "Govinda Das", "phone": "9000000001", "profession": "Engineer", "registeredBy": "Desk",
        "branch": "Main", "paidStatus": "Paid",
    })

    assert response.status_code == 200
    updated = response.json()["contact"]
    assert updated["name"] == "Govinda Das"
    assert updated["motherTongue"] == "Marathi"
    assert updated["comment"] == "Met at the book table"
    assert updated["numberOfRounds"] == 8
    assert updated["underWhichAdmin"] == "Admin 1"


def test_programs_sessions_and_attendance(client, make_user):
    admin = make_user(Role.ADMIN)
    participant = make_user(Role.PARTICIPANT, status=AccountStatus.ACTIVE)

    program = client.post("/api/programs/create", json={"name": "Srijan", "minAge": 13},
                          headers=auth_headers(admin)).json()["program"]
    duplicate = client.post("/api/programs/create", json={"name": "Srijan"}, headers=auth_headers(admin))
    assert duplicate.status_code == 409

    client.patch(f"/api/users/{participant['id']}/update", json={"programs": [program["id"]]},
                 headers=auth_headers(admin))
    created = client.post("/api/followups/create-for-date", json={"programDate": DAY, "programId": program["id"]},
                          headers=auth_headers(admin)).json()
    assert created["followUpsCreated"] == 1

    sessions = client.get(f"/api/programs/{program['id']}/sessions", headers=auth_headers(admin)).json()["sessions"]
    assert [s["sessionDate"] for s in sessions] == [DAY]

    marked = client.post("/api/attendance/mark", headers=auth_headers(admin), json={
        "programId": program["id"], "participantId": participant["id"], "date": DAY, "level": 1,
    })
    assert marked.status_code == 201
    again = client.post("/api/attendance/mark", headers=auth_headers(admin), json={
        "programId": program["id"], "participantId": participant["id"], "date": DAY, "level": 2,
    })
    assert again.status_code == 200

    detail = client.get(f"/api/programs/{program['id']}/sessions/{sessions[0]['id']}",
                        headers=auth_headers(admin)).json()
    assert [u["id"] for u in detail["presentUsers"]] == [participant["id"]]

    history = client.get(f"/api/users/{participant['id']}/attendance-history",
                         headers=auth_headers(participant)).json()
    assert history["totalSessions"] == 1
    assert history["monthlyData"] == [{"month": "2025-03", "sessions": 1}]
    assert history["programData"] == [{"name": "Srijan", "sessions": 1}]

    other = make_user(Role.PARTICIPANT)
    response = client.get(f"/api/users/{participant['id']}/attendance-history", headers=auth_headers(other))
    assert response.status_code == 403


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert "error" in response.json()
