import pytest
from werkzeug.security import generate_password_hash

from app.rsm import create_app
from app.rsm.db import session_scope
from app.rsm.models import Base, User
from app.rsm.modules.roles.service import ensure_roles

PASSWORD = "testpassword"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("MAIL_BACKEND", "memory")
    for k in ("SMTP_HOST", "SMTP_USER", "SMTP_PASSWORD", "RATE_LIMIT_MAX", "LOGIN_RATE_LIMIT"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    # one active user per role: admin@example.com, teacher@example.com, ...
    with session_scope(app) as s:
        for name, role in ensure_roles(s).items():
            s.add(
                User(
                    first_name=name.capitalize(),
                    last_name="Tester",
                    email=f"{name.lower()}@example.com",
                    password_hash=generate_password_hash(PASSWORD),
                    security_level="FULL_ACCESS",
                    status="ACTIVE",
                    role=role,
                )
            )

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def outbox(app):
    return app.extensions.setdefault("mail_outbox", [])


@pytest.fixture()
def login(client):
    """API login as the seeded user for a role; returns the /auth/login body."""

    def _login(role: str = "ADMIN") -> dict:
        r = client.post("/auth/login", json={"email": f"{role.lower()}@example.com", "password": PASSWORD})
        assert r.status_code == 200, r.json
        return r.json

    return _login


@pytest.fixture()
def auth_headers(login):
    def _headers(role: str = "ADMIN") -> dict:
        return {"Authorization": f"Bearer {login(role)['token']}"}

    return _headers


@pytest.fixture()
def admin_login(client):
    """Admin UI (session cookie) login; returns the CSRF token for form posts."""

    def _login(role: str = "ADMIN") -> str:
        r = client.post(
            "/admin/login",
            data={"email": f"{role.lower()}@example.com", "password": PASSWORD},
            follow_redirects=False,
        )
        assert r.status_code == 302, r.data
        client.get("/admin/")
        with client.session_transaction() as sess:
            return sess["csrf_token"]

    return _login


def school_payload(**overrides) -> dict:
    payload = {
        "name": "Lakeside Elementary",
        "district": "North",
        "state": "Ohio",
        "contactEmail": "office@lakeside.example.com",
        "maxTravelDistance": 10,
        "maxStudentsPerTest": 20,
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def make_school(client, auth_headers):
    headers = auth_headers()

    def _make(**overrides) -> str:
        r = client.post("/schools", json=school_payload(**overrides), headers=headers)
        assert r.status_code == 201, r.json
        return r.json["id"]

    return _make


@pytest.fixture()
def user_id_for(app):
    """Id of the seeded user for a role."""

    def _lookup(role: str) -> str:
        with session_scope(app) as s:
            return s.query(User).filter(User.email == f"{role.lower()}@example.com").one().id

    return _lookup


@pytest.fixture()
def role_id_for(app):
    from app.rsm.models import Role

    def _lookup(name: str) -> str:
        with session_scope(app) as s:
            return s.query(Role).filter(Role.name == name).one().id

    return _lookup


@pytest.fixture()
def make_student(client, auth_headers, make_school, user_id_for):
    headers = auth_headers()

    def _make(**overrides) -> str:
        payload = {
            "firstName": "Milo",
            "lastName": "Park",
            "dob": "2015-04-12",
            "gradeLevel": 4,
            "schoolId": overrides.pop("schoolId", None) or make_school(),
            "parentId": user_id_for("SUPERVISOR"),
            "studentCode": "STU-0001",
            "status": "ACTIVE",
            "confirmationStatus": "PENDING",
        }
        payload.update(overrides)
        r = client.post("/students", json=payload, headers=headers)
        assert r.status_code == 201, r.json
        return r.json["id"]

    return _make


@pytest.fixture()
def make_provider(client, auth_headers, user_id_for):
    headers = auth_headers()

    def _make(role: str = "PROVIDER", **overrides) -> str:
        payload = {
            "userId": user_id_for(role),
            "licenseNumber": "LIC-1234",
            "credentials": "CCC-SLP",
            "nssEnabled": False,
            "reviewNotes": {"notes": ""},
        }
        payload.update(overrides)
        r = client.post("/providers", json=payload, headers=headers)
        assert r.status_code == 201, r.json
        return r.json["id"]

    return _make


@pytest.fixture()
def make_therapy_service(client, auth_headers, make_student, make_provider):
    headers = auth_headers()

    def _make(**overrides) -> str:
        payload = {
            "studentId": overrides.pop("studentId", None) or make_student(),
            "providerId": overrides.pop("providerId", None) or make_provider(),
            "serviceType": "SPEECH",
            "serviceBeginDate": "2024-09-01T00:00:00.000Z",
            "sessionDate": "2024-09-10T14:30:00.000Z",
            "sessionNotes": "Worked on /r/ sounds.",
            "deliveryMode": "IN_PERSON",
            "goalTracking": {"goals": [{"name": "Articulation", "progress": 40}]},
            "ieps": [{"year": 2024, "summary": "Speech twice weekly"}],
        }
        payload.update(overrides)
        r = client.post("/therapy-services", json=payload, headers=headers)
        assert r.status_code == 201, r.json
        return r.json["id"]

    return _make
