def test_list_roles(client, auth_headers):
    r = client.get("/roles", headers=auth_headers())
    assert r.status_code == 200
    assert [role["name"] for role in r.json["data"]] == ["ADMIN", "PROVIDER", "SUPERVISOR", "TEACHER", "THERAPIST"]
    assert r.json["pagination"] == {"total": 5, "pages": 1}


def test_role_detail_lists_permissions(client, auth_headers, role_id_for):
    r = client.get(f"/roles/{role_id_for('SUPERVISOR')}", headers=auth_headers())
    assert r.status_code == 200
    assert r.json["data"]["permissions"] == ["VIEW_RESULT"]


def test_unknown_role(client, auth_headers):
    r = client.get("/roles/00000000-0000-4000-8000-000000000000", headers=auth_headers())
    assert r.status_code == 404
    assert r.json["code"] == "ROLE_NOT_FOUND"


def test_roles_are_read_only(client, auth_headers):
    r = client.post("/roles", json={"name": "PARENT"}, headers=auth_headers())
    assert r.status_code == 405


def test_login_permissions_match_role(login):
    assert login("THERAPIST")["data"]["permissions"] == [
        "MANAGE_EQUIPMENT",
        "REPORT_INCIDENTS",
        "SCAN_QR_CODES",
        "TRACK_ATTENDANCE",
    ]
