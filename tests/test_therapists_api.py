import json

from app.rsm.db import session_scope
from app.rsm.models import ActivityLog


def _payload(user_id: str, **overrides) -> dict:
    payload = {
        "userId": user_id,
        "disciplines": "Speech, Language",
        "licenseNumber": "SLP-998",
        "medicaidNationalProviderId": 1234567890,
        "socialSecurity": "123-45-6789",
        "stateMedicaidProviderId": 4455,
    }
    payload.update(overrides)
    return payload


def test_forbidden_for_therapist_role(client, auth_headers):
    assert client.get("/therapists", headers=auth_headers("THERAPIST")).status_code == 403


def test_crud_and_ssn_is_masked_in_activity(app, client, auth_headers, user_id_for):
    headers = auth_headers()
    r = client.post("/therapists", json=_payload(user_id_for("THERAPIST")), headers=headers)
    assert r.status_code == 201
    therapist_id = r.json["id"]

    data = client.get(f"/therapists/{therapist_id}", headers=headers).json["data"]
    assert data["status"] == "PENDING"
    assert data["name"] == "Therapist Tester"
    assert data["medicaidNationalProviderId"] == 1234567890

    r = client.patch(f"/therapists/{therapist_id}", json={"socialSecurity": "987-65-4321", "status": "ACTIVE"}, headers=headers)
    assert r.status_code == 204

    with session_scope(app) as s:
        update = s.query(ActivityLog).filter(ActivityLog.action == "UPDATE_THERAPIST").one()
        changes = json.loads(update.metadata_json)["changes"]
    assert changes["socialSecurity"] == {"old": "***", "new": "***"}
    assert changes["status"] == {"old": "PENDING", "new": "ACTIVE"}

    assert client.delete(f"/therapists/{therapist_id}", headers=headers).status_code == 204
    r = client.get(f"/therapists/{therapist_id}", headers=headers)
    assert r.json["code"] == "THERAPIST_NOT_FOUND"


def test_validation(client, auth_headers, user_id_for):
    r = client.post(
        "/therapists",
        json=_payload(user_id_for("THERAPIST"), medicaidNationalProviderId="abc", status="RETIRED"),
        headers=auth_headers(),
    )
    assert r.status_code == 400
    assert "medicaidNationalProviderId: Expected integer" in r.json["errors"]
    assert "status: Invalid enum value. Expected ACTIVE | INACTIVE | PENDING" in r.json["errors"]


def test_list_filters_and_default_sort(client, auth_headers, user_id_for):
    headers = auth_headers()
    client.post("/therapists", json=_payload(user_id_for("THERAPIST"), status="ACTIVE"), headers=headers)
    client.post(
        "/therapists",
        json=_payload(user_id_for("TEACHER"), disciplines="Occupational", stateMedicaidProviderId=7),
        headers=headers,
    )

    r = client.get("/therapists", headers=headers)
    assert [t["status"] for t in r.json["data"]] == ["ACTIVE", "PENDING"]

    r = client.get("/therapists?disciplines=occup", headers=headers)
    assert [t["name"] for t in r.json["data"]] == ["Teacher Tester"]

    r = client.get("/therapists?stateMedicaidProviderId=7", headers=headers)
    assert r.json["pagination"]["total"] == 1

    r = client.get("/therapists?name=therapist", headers=headers)
    assert [t["status"] for t in r.json["data"]] == ["ACTIVE"]
