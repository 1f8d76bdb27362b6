from datetime import timedelta

from app.rsm.db import session_scope
from app.rsm.models import ActivityLog, User, UserToken, utcnow

PASSWORD = "testpassword"


def _token_from(msg) -> str:
    body = msg.get_content()
    return body.split("token=")[1].split()[0]


def test_login_returns_user_with_permissions_and_token(client):
    r = client.post("/auth/login", json={"email": "ADMIN@example.com", "password": PASSWORD})
    assert r.status_code == 200
    data = r.json["data"]
    assert data["email"] == "admin@example.com"
    assert data["role"]["name"] == "ADMIN"
    assert "MANAGE_USERS" in data["permissions"]
    assert "school" not in data
    assert r.json["token"]


def test_login_updates_last_login_and_logs(app, client):
    client.post("/auth/login", json={"email": "teacher@example.com", "password": PASSWORD})
    with session_scope(app) as s:
        user = s.query(User).filter(User.email == "teacher@example.com").one()
        assert user.last_login is not None
        actions = [a.action for a in s.query(ActivityLog).filter(ActivityLog.user_id == user.id)]
    assert actions == ["LOGIN"]


def test_login_bad_password(client):
    r = client.post("/auth/login", json={"email": "admin@example.com", "password": "wrong-password"})
    assert r.status_code == 400
    assert r.json["code"] == "INVALID_CREDENTIALS"


def test_login_validates_body(client):
    r = client.post("/auth/login", json={"email": "not-an-email"})
    assert r.status_code == 400
    assert r.json["code"] == "INVALID_REQUEST"
    assert "email: Invalid email" in r.json["errors"]
    assert "password: Required" in r.json["errors"]


def test_login_inactive_account(app, client):
    with session_scope(app) as s:
        s.query(User).filter(User.email == "provider@example.com").one().status = "INACTIVE"
    r = client.post("/auth/login", json={"email": "provider@example.com", "password": PASSWORD})
    assert r.status_code == 401
    assert r.json["code"] == "INACTIVE_ACCOUNT"


def test_login_rate_limited_after_repeated_failures(client):
    for _ in range(5):
        r = client.post("/auth/login", json={"email": "admin@example.com", "password": "wrong-password"})
        assert r.status_code == 400
    r = client.post("/auth/login", json={"email": "admin@example.com", "password": PASSWORD})
    assert r.status_code == 429
    assert r.json["code"] == "TOO_MANY_LOGIN_ATTEMPTS"


def test_password_reset_flow(app, client, outbox):
    r = client.post("/auth/start-password-reset", json={"email": "supervisor@example.com"})
    assert r.status_code == 204
    assert len(outbox) == 1
    assert outbox[0]["To"] == "supervisor@example.com"
    token = _token_from(outbox[0])

    r = client.post(
        "/auth/reset-password",
        json={"email": "supervisor@example.com", "token": token, "newPassword": "brand-new-pass"},
    )
    assert r.status_code == 204

    r = client.post("/auth/login", json={"email": "supervisor@example.com", "password": "brand-new-pass"})
    assert r.status_code == 200

    # single use
    r = client.post(
        "/auth/reset-password",
        json={"email": "supervisor@example.com", "token": token, "newPassword": "another-pass"},
    )
    assert r.status_code == 400
    assert r.json["code"] == "INVALID_RESET_TOKEN"

    with session_scope(app) as s:
        actions = {a.action for a in s.query(ActivityLog)}
    assert "RESET_PASSWORD" in actions


def test_password_reset_unknown_email_is_silent(client, outbox):
    r = client.post("/auth/start-password-reset", json={"email": "nobody@example.com"})
    assert r.status_code == 204
    assert outbox == []


def test_password_reset_survives_mail_failure(app, client, monkeypatch):
    def refuse(*args, **kwargs):
        raise ConnectionRefusedError(111, "Connection refused")

    monkeypatch.setattr("app.rsm.emails.smtplib.SMTP", refuse)
    app.config["MAIL_BACKEND"] = "smtp"

    known = client.post("/auth/start-password-reset", json={"email": "teacher@example.com"})
    unknown = client.post("/auth/start-password-reset", json={"email": "nobody@example.com"})
    assert known.status_code == unknown.status_code == 204

    with session_scope(app) as s:
        user = s.query(User).filter(User.email == "teacher@example.com").one()
        assert [t.type for t in s.query(UserToken).filter(UserToken.user_id == user.id)] == ["PASSWORD_RESET"]


def test_password_reset_expired_token(app, client, outbox):
    client.post("/auth/start-password-reset", json={"email": "therapist@example.com"})
    token = _token_from(outbox[0])
    with session_scope(app) as s:
        row = s.query(UserToken).one()
        row.expires_at = utcnow() - timedelta(minutes=1)
    r = client.post(
        "/auth/reset-password",
        json={"email": "therapist@example.com", "token": token, "newPassword": "brand-new-pass"},
    )
    assert r.status_code == 400
    assert r.json["code"] == "RESET_TOKEN_EXPIRED"


def test_reset_password_rejects_wrong_tokens(client, outbox):
    client.post("/auth/start-password-reset", json={"email": "teacher@example.com"})
    token = _token_from(outbox[0])
    flipped = ("A" if token[0] != "A" else "B") + token[1:]

    for wrong in (flipped, token[:-1], "jalapeño-token"):
        r = client.post(
            "/auth/reset-password",
            json={"email": "teacher@example.com", "token": wrong, "newPassword": "brand-new-pass"},
        )
        assert r.status_code == 400
        assert r.json["code"] == "INVALID_RESET_TOKEN"

    r = client.post(
        "/auth/reset-password",
        json={"email": "teacher@example.com", "token": token, "newPassword": "brand-new-pass"},
    )
    assert r.status_code == 204


def test_reset_password_rejects_short_password(client):
    r = client.post("/auth/reset-password", json={"email": "admin@example.com", "token": "x", "newPassword": "short"})
    assert r.status_code == 400
    assert "newPassword: Must be at least 8 characters" in r.json["errors"]


def test_invite_and_accept(app, client, auth_headers, outbox, make_school, role_id_for):
    headers = auth_headers()
    payload = {
        "firstName": "Ida",
        "lastName": "Invitee",
        "email": "ida@example.com",
        "securityLevel": "LIMITED",
        "status": "ACTIVE",
        "schoolId": make_school(),
        "roleId": role_id_for("TEACHER"),
    }
    r = client.post("/users?sendInvite=true", json=payload, headers=headers)
    assert r.status_code == 201
    user_id = r.json["id"]
    assert len(outbox) == 1
    token = _token_from(outbox[0])

    # no password yet
    r = client.post("/auth/login", json={"email": "ida@example.com", "password": "whatever-pass"})
    assert r.status_code == 400

    r = client.post("/auth/accept-invite", json={"email": "ida@example.com", "token": token, "newPassword": "ida-pass-123"})
    assert r.status_code == 204
    r = client.post("/auth/login", json={"email": "ida@example.com", "password": "ida-pass-123"})
    assert r.status_code == 200
    assert r.json["data"]["status"] == "ACTIVE"
    assert r.json["data"]["role"]["name"] == "TEACHER"

    with session_scope(app) as s:
        actions = [a.action for a in s.query(ActivityLog).filter(ActivityLog.subject_id == user_id)]
    assert sorted(actions) == ["CREATE_USER", "INVITE_USER"]
