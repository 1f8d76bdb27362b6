from urllib.parse import urlsplit

from app.rsm.db import session_scope
from app.rsm.models import ActivityLog, User, UserToken

PASSWORD = "testpassword"


def _emailed_link(msg) -> str:
    link = next(line for line in msg.get_content().splitlines() if line.startswith("http"))
    parts = urlsplit(link)
    return f"{parts.path}?{parts.query}"


def _csrf(client, path: str) -> str:
    client.get(path)
    with client.session_transaction() as sess:
        return sess["csrf_token"]


def _fields(link: str) -> dict:
    query = dict(pair.split("=", 1) for pair in urlsplit(link).query.split("&"))
    return {"email": query["email"].replace("%40", "@"), "token": query["token"]}


def test_login_page_links_to_forgot_password(client):
    r = client.get("/admin/login")
    assert b'href="/reset-password"' in r.data

    r = client.get("/reset-password")
    assert r.status_code == 200
    assert b"Forgot your password?" in r.data
    assert b'name="newPassword"' not in r.data


def test_forgot_password_form_sends_the_link(client, outbox):
    csrf = _csrf(client, "/reset-password")

    r = client.post("/reset-password", data={"csrf_token": csrf, "email": "Teacher@example.com"})
    assert r.status_code == 200
    assert b"if the account exists" in r.data
    assert [m["To"] for m in outbox] == ["teacher@example.com"]

    r = client.post("/reset-password", data={"csrf_token": csrf, "email": "nobody@example.com"})
    assert r.status_code == 200
    assert b"if the account exists" in r.data
    assert len(outbox) == 1


def test_forgot_password_form_checks_email_and_csrf(client, outbox):
    csrf = _csrf(client, "/reset-password")
    r = client.post("/reset-password", data={"csrf_token": csrf, "email": "not-an-email"})
    assert r.status_code == 400
    assert b"email: Invalid email" in r.data

    r = client.post("/reset-password", data={"email": "teacher@example.com"})
    assert r.status_code == 400
    assert b"CSRF token missing or invalid." in r.data
    assert outbox == []


def test_emailed_reset_link_sets_a_new_password(app, client, outbox):
    client.post("/auth/start-password-reset", json={"email": "supervisor@example.com"})
    link = _emailed_link(outbox[0])
    assert link.startswith("/reset-password?")

    r = client.get(link)
    assert r.status_code == 200
    assert b'name="confirmNewPassword"' in r.data
    fields = _fields(link)
    assert f'value="{fields["token"]}"'.encode() in r.data
    with client.session_transaction() as sess:
        csrf = sess["csrf_token"]

    form = {"csrf_token": csrf, **fields, "newPassword": "fresh-pass-1", "confirmNewPassword": "fresh-pass-2"}
    r = client.post("/reset-password", data=form)
    assert r.status_code == 400
    assert b"confirmNewPassword: Passwords do not match" in r.data

    form["confirmNewPassword"] = "fresh-pass-1"
    r = client.post("/reset-password", data=form)
    assert r.status_code == 200
    assert b"Your password has been reset." in r.data

    r = client.post("/auth/login", json={"email": "supervisor@example.com", "password": "fresh-pass-1"})
    assert r.status_code == 200
    with session_scope(app) as s:
        assert s.query(UserToken).count() == 0
        assert "RESET_PASSWORD" in {a.action for a in s.query(ActivityLog)}

    # the link is single use
    r = client.post("/reset-password", data=form)
    assert r.status_code == 400
    assert b"Invalid password reset token." in r.data


def test_accept_invite_page_activates_the_user(app, client, auth_headers, outbox, make_school, role_id_for):
    payload = {
        "firstName": "Ivo",
        "lastName": "Invitee",
        "email": "ivo@example.com",
        "securityLevel": "LIMITED",
        "status": "ACTIVE",
        "schoolId": make_school(),
        "roleId": role_id_for("TEACHER"),
    }
    r = client.post("/users?sendInvite=true", json=payload, headers=auth_headers())
    assert r.status_code == 201
    link = _emailed_link(outbox[0])
    assert link.startswith("/accept-invite?")

    r = client.get(link)
    assert r.status_code == 200
    assert b"Set up your account" in r.data
    with client.session_transaction() as sess:
        csrf = sess["csrf_token"]

    r = client.post(
        "/accept-invite",
        data={"csrf_token": csrf, **_fields(link), "newPassword": "ivo-pass-123", "confirmNewPassword": "ivo-pass-123"},
    )
    assert r.status_code == 200
    assert b"Your account is active." in r.data

    r = client.post("/auth/login", json={"email": "ivo@example.com", "password": "ivo-pass-123"})
    assert r.status_code == 200
    with session_scope(app) as s:
        user = s.query(User).filter(User.email == "ivo@example.com").one()
        assert user.status == "ACTIVE"
        actions = [a.action for a in s.query(ActivityLog).filter(ActivityLog.user_id == user.id)]
    assert "ACCEPT_INVITE" in actions


def test_accept_invite_with_reset_token_is_rejected(client, outbox):
    client.post("/auth/start-password-reset", json={"email": "teacher@example.com"})
    fields = _fields(_emailed_link(outbox[0]))
    csrf = _csrf(client, "/accept-invite")

    r = client.post(
        "/accept-invite",
        data={"csrf_token": csrf, **fields, "newPassword": "new-pass-123", "confirmNewPassword": "new-pass-123"},
    )
    assert r.status_code == 400
    assert b"Invalid password reset token." in r.data
