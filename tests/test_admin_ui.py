from app.rsm.db import session_scope
from app.rsm.models import ActivityLog, User
from app.rsm.modules.schools.models import School

PASSWORD = "testpassword"


def _school_form(csrf: str, **overrides) -> dict:
    form = {
        "csrf_token": csrf,
        "name": "Hillcrest Elementary",
        "district": "East",
        "state": "Ohio",
        "contactEmail": "office@hillcrest.example.com",
        "maxTravelDistance": "12",
        "maxStudentsPerTest": "25",
    }
    form.update(overrides)
    return form


def _school_id(app, name: str) -> str:
    with session_scope(app) as s:
        return s.query(School).filter(School.name == name).one().id


def test_login_page_renders(client):
    r = client.get("/admin/login")
    assert r.status_code == 200
    assert b'name="password"' in r.data


def test_login_rejects_bad_password(client):
    r = client.post("/admin/login", data={"email": "admin@example.com", "password": "wrong-password"})
    assert r.status_code == 400
    assert b"Invalid credentials." in r.data


def test_login_requires_both_fields(client):
    r = client.post("/admin/login", data={"email": "admin@example.com"})
    assert r.status_code == 400


def test_login_redirects_to_next(client):
    r = client.post(
        "/admin/login",
        data={"email": "admin@example.com", "password": PASSWORD, "next": "/admin/schools/?page=1"},
    )
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/admin/schools/?page=1")


def test_login_ignores_offsite_next(client):
    r = client.post(
        "/admin/login",
        data={"email": "admin@example.com", "password": PASSWORD, "next": "https://evil.example.com/"},
    )
    assert r.headers["Location"].endswith("/admin/")


def test_unauthenticated_table_redirects_with_next(client):
    r = client.get("/admin/schools/?sortBy=state")
    assert r.status_code == 302
    assert "/admin/login?next=" in r.headers["Location"]


def test_dashboard_lists_permitted_resources(client, admin_login):
    admin_login("TEACHER")
    r = client.get("/admin/")
    assert r.status_code == 200
    assert b"Students" in r.data
    assert b"/admin/schools/" not in r.data


def test_forbidden_page(client, admin_login):
    admin_login("THERAPIST")
    r = client.get("/admin/schools/")
    assert r.status_code == 403
    assert b"MANAGE_USERS" in r.data


def test_table_sort_links_and_pagination(client, admin_login, make_school):
    for name in ("Alpha", "Beta", "Gamma"):
        make_school(name=name)
    admin_login()

    r = client.get("/admin/schools/?perPage=2&sortBy=name&sortOrder=desc")
    assert r.status_code == 200
    html = r.data.decode()
    assert html.index("Gamma") < html.index("Beta")
    assert "Alpha" not in html
    assert "3 total" in html
    assert "page=2" in html
    # clicking the active column flips the order
    assert "sortBy=name&amp;sortOrder=asc" in html
    assert "sortBy=state&amp;sortOrder=asc" in html


def test_table_rejects_bad_params(client, admin_login):
    admin_login()
    r = client.get("/admin/schools/?sortBy=color")
    assert r.status_code == 400
    assert b"sortBy: Invalid enum value" in r.data


def test_add_drawer_creates_school(app, client, admin_login):
    csrf = admin_login()
    r = client.get("/admin/schools/add?state=Ohio")
    assert r.status_code == 200
    assert b"Add School" in r.data
    assert b'name="csrf_token"' in r.data

    r = client.post("/admin/schools/add?state=Ohio", data=_school_form(csrf))
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/admin/schools/?state=Ohio")

    school_id = _school_id(app, "Hillcrest Elementary")
    with session_scope(app) as s:
        school = s.get(School, school_id)
        assert school.max_travel_distance == 12
        admin = s.query(User).filter(User.email == "admin@example.com").one()
        log = s.query(ActivityLog).filter(ActivityLog.subject_id == school_id).one()
        assert (log.action, log.user_id) == ("CREATE_SCHOOL", admin.id)


def test_add_drawer_reports_validation_errors(app, client, admin_login):
    csrf = admin_login()
    r = client.post("/admin/schools/add", data=_school_form(csrf, name="", maxTravelDistance="far"))
    assert r.status_code == 400
    assert b"name: Must not be empty" in r.data
    assert b"maxTravelDistance: Expected integer" in r.data
    # submitted values are kept in the drawer
    assert b'value="office@hillcrest.example.com"' in r.data
    with session_scope(app) as s:
        assert s.query(School).count() == 0


def test_post_without_csrf_is_rejected(app, client, admin_login):
    admin_login()
    form = _school_form("")
    form.pop("csrf_token")
    r = client.post("/admin/schools/add", data=form)
    assert r.status_code == 400
    with session_scope(app) as s:
        assert s.query(School).count() == 0


def test_csrf_header_is_accepted(client, admin_login):
    csrf = admin_login()
    form = _school_form("")
    form.pop("csrf_token")
    r = client.post("/admin/schools/add", data=form, headers={"X-CSRF-Token": csrf})
    assert r.status_code == 302


def test_view_edit_delete_drawers(app, client, admin_login, make_school):
    school_id = make_school(name="Cedar Park")
    csrf = admin_login()

    r = client.get(f"/admin/schools/view/{school_id}")
    assert r.status_code == 200
    assert b"Cedar Park" in r.data
    assert f"/admin/schools/delete/{school_id}".encode() in r.data

    r = client.get(f"/admin/schools/edit/{school_id}?page=1")
    assert r.status_code == 200
    assert b'value="Cedar Park"' in r.data

    r = client.post(f"/admin/schools/edit/{school_id}?page=1", data=_school_form(csrf, name="Cedar Park West"))
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/admin/schools/?page=1")
    with session_scope(app) as s:
        assert s.get(School, school_id).name == "Cedar Park West"

    r = client.post(f"/admin/schools/delete/{school_id}", data={"csrf_token": csrf})
    assert r.status_code == 302
    r = client.get(f"/admin/schools/view/{school_id}")
    assert r.status_code == 404


def test_view_drawer_bad_id(client, admin_login):
    admin_login()
    r = client.get("/admin/schools/view/not-a-uuid")
    assert r.status_code == 400


def test_user_invite_action(app, client, admin_login, outbox, user_id_for):
    csrf = admin_login()
    user_id = user_id_for("TEACHER")
    r = client.post(f"/admin/users/invite/{user_id}", data={"csrf_token": csrf})
    assert r.status_code == 302
    assert r.headers["Location"].endswith(f"/admin/users/view/{user_id}")
    assert [m["To"] for m in outbox] == ["teacher@example.com"]


def test_unknown_drawer_action_is_404(client, admin_login, user_id_for):
    csrf = admin_login()
    r = client.post(f"/admin/users/promote/{user_id_for('TEACHER')}", data={"csrf_token": csrf})
    assert r.status_code == 404


def test_logout(client, admin_login):
    admin_login()
    r = client.get("/admin/logout")
    assert r.status_code == 302
    r = client.get("/admin/")
    assert r.status_code == 302
