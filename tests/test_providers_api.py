import pytest

from app.rsm.db import session_scope
from app.rsm.models import ActivityLog
from app.rsm.modules.providers.models import Contact, Document


def _payload(user_id: str, **overrides) -> dict:
    payload = {
        "userId": user_id,
        "licenseNumber": "LIC-1234",
        "credentials": "CCC-SLP",
        "nssEnabled": True,
        "reviewNotes": {"notes": "Reviewed in August"},
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def provider_id(client, auth_headers, user_id_for):
    r = client.post("/providers", json=_payload(user_id_for("PROVIDER")), headers=auth_headers())
    assert r.status_code == 201
    return r.json["id"]


@pytest.fixture()
def attachments(app, user_id_for):
    admin_id = user_id_for("ADMIN")
    with session_scope(app) as s:
        docs = [Document(document=f"providers/doc-{i}.pdf", created_by_id=admin_id) for i in range(2)]
        contact = Contact(first_name="Nora", last_name="Reyes", email="nora@example.com", created_by_id=admin_id)
        s.add_all([*docs, contact])
        s.flush()
        return {"documents": [d.id for d in docs], "contacts": [contact.id]}


def test_forbidden_for_teacher(client, auth_headers):
    assert client.get("/providers", headers=auth_headers("TEACHER")).status_code == 403


def test_create_applies_defaults(client, auth_headers, provider_id):
    r = client.get(f"/providers/{provider_id}", headers=auth_headers())
    assert r.status_code == 200
    data = r.json["data"]
    assert data["status"] == "ACTIVE"
    assert data["serviceFeeStructure"] == "HOURLY"
    assert data["signature"] is None
    assert data["reviewNotes"] == {"notes": "Reviewed in August"}
    assert data["user"]["email"] == "provider@example.com"
    assert data["documents"] == [] and data["contracts"] == [] and data["contacts"] == []


def test_create_validates_review_notes(client, auth_headers, user_id_for):
    r = client.post(
        "/providers",
        json=_payload(user_id_for("PROVIDER"), reviewNotes="fine", serviceFeeStructure="WEEKLY"),
        headers=auth_headers(),
    )
    assert r.status_code == 400
    assert "reviewNotes.notes: Required" in r.json["errors"]
    assert "serviceFeeStructure: Invalid enum value. Expected HOURLY | FLAT_RATE | PER_DIEM" in r.json["errors"]


def test_create_unknown_user(client, auth_headers):
    r = client.post("/providers", json=_payload("00000000-0000-4000-8000-000000000000"), headers=auth_headers())
    assert r.status_code == 404
    assert r.json["code"] == "USER_NOT_FOUND"


def test_link_and_unlink(app, client, auth_headers, provider_id, attachments):
    headers = auth_headers()
    doc_ids = attachments["documents"]

    r = client.post(f"/providers/{provider_id}/documents", json={"documentIds": doc_ids}, headers=headers)
    assert r.status_code == 200
    assert r.json == {"success": True}
    # already linked ids are skipped
    r = client.post(f"/providers/{provider_id}/documents", json={"documentIds": doc_ids[:1]}, headers=headers)
    assert r.status_code == 200
    r = client.post(f"/providers/{provider_id}/contacts", json={"contactIds": attachments["contacts"]}, headers=headers)
    assert r.status_code == 200

    data = client.get(f"/providers/{provider_id}", headers=headers).json["data"]
    assert sorted(d["id"] for d in data["documents"]) == sorted(doc_ids)
    assert data["contacts"][0]["firstName"] == "Nora"

    r = client.get("/providers", headers=headers)
    listed = r.json["data"][0]
    assert sorted(listed["documentIds"]) == sorted(doc_ids)
    assert listed["contactIds"] == attachments["contacts"]

    r = client.delete(f"/providers/{provider_id}/documents", json={"documentIds": doc_ids[:1]}, headers=headers)
    assert r.status_code == 200
    data = client.get(f"/providers/{provider_id}", headers=headers).json["data"]
    assert [d["id"] for d in data["documents"]] == doc_ids[1:]

    # no body unlinks everything of that kind
    r = client.delete(f"/providers/{provider_id}/contacts", headers=headers)
    assert r.status_code == 200
    data = client.get(f"/providers/{provider_id}", headers=headers).json["data"]
    assert data["contacts"] == []
    assert len(data["documents"]) == 1

    with session_scope(app) as s:
        actions = [a.action for a in s.query(ActivityLog).filter(ActivityLog.subject_id == provider_id)]
    assert actions.count("UPDATE_PROVIDER") == 5


def test_link_unknown_ids(client, auth_headers, provider_id):
    missing = "00000000-0000-4000-8000-000000000000"
    r = client.post(f"/providers/{provider_id}/contracts", json={"contractIds": [missing]}, headers=auth_headers())
    assert r.status_code == 404
    assert r.json["code"] == "CONTRACT_NOT_FOUND"
    assert missing in r.json["message"]


def test_link_requires_ids(client, auth_headers, provider_id):
    r = client.post(f"/providers/{provider_id}/documents", json={}, headers=auth_headers())
    assert r.status_code == 400
    assert r.json["errors"] == ["documentIds: Required"]


def test_unknown_link_kind(client, auth_headers, provider_id):
    r = client.post(f"/providers/{provider_id}/invoices", json={}, headers=auth_headers())
    assert r.status_code in (404, 405)


def test_list_filters(client, auth_headers, user_id_for, provider_id):
    headers = auth_headers()
    client.post(
        "/providers",
        json=_payload(user_id_for("THERAPIST"), credentials="OTR/L", nssEnabled=False, status="PENDING"),
        headers=headers,
    )

    r = client.get("/providers?nssEnabled=false", headers=headers)
    assert [p["credentials"] for p in r.json["data"]] == ["OTR/L"]

    r = client.get("/providers?name=provider", headers=headers)
    assert [p["id"] for p in r.json["data"]] == [provider_id]

    r = client.get("/providers?sortBy=name&sortOrder=desc", headers=headers)
    assert [p["user"]["firstName"] for p in r.json["data"]] == ["Therapist", "Provider"]

    r = client.get("/providers?status=PENDING", headers=headers)
    assert r.json["pagination"]["total"] == 1


def test_update_and_delete(client, auth_headers, provider_id):
    headers = auth_headers()
    r = client.patch(f"/providers/{provider_id}", json={"status": "SUSPENDED", "signature": "J. Doe"}, headers=headers)
    assert r.status_code == 204
    data = client.get(f"/providers/{provider_id}", headers=headers).json["data"]
    assert data["status"] == "SUSPENDED"
    assert data["signature"] == "J. Doe"

    assert client.delete(f"/providers/{provider_id}", headers=headers).status_code == 204
    r = client.get(f"/providers/{provider_id}", headers=headers)
    assert r.json["code"] == "PROVIDER_NOT_FOUND"
