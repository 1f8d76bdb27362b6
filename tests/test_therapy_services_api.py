from app.rsm.db import session_scope
from app.rsm.models import ActivityLog


def test_teacher_can_manage(client, auth_headers, make_therapy_service):
    service_id = make_therapy_service()
    r = client.get(f"/therapy-services/{service_id}", headers=auth_headers("TEACHER"))
    assert r.status_code == 200


def test_forbidden_for_provider_role(client, auth_headers):
    assert client.get("/therapy-services", headers=auth_headers("PROVIDER")).status_code == 403


def test_create_and_read(client, auth_headers, make_therapy_service):
    headers = auth_headers()
    service_id = make_therapy_service()
    data = client.get(f"/therapy-services/{service_id}", headers=headers).json["data"]
    assert data["status"] == "SCHEDULED"
    assert data["sessionDate"] == "2024-09-10T14:30:00.000Z"
    assert data["nextMeetingDate"] is None
    assert data["goalTracking"] == {"goals": [{"name": "Articulation", "progress": 40}]}
    assert data["ieps"][0]["year"] == 2024
    assert data["student"]["firstName"] == "Milo"
    assert data["provider"]["user"]["email"] == "provider@example.com"


def test_create_rejects_empty_notes(client, auth_headers, make_student, make_provider):
    r = client.post(
        "/therapy-services",
        json={
            "studentId": make_student(),
            "providerId": make_provider(),
            "serviceType": "SPEECH",
            "serviceBeginDate": "2024-09-01",
            "sessionDate": "2024-09-10T14:30:00Z",
            "sessionNotes": "",
            "deliveryMode": "VIRTUAL",
        },
        headers=auth_headers(),
    )
    assert r.status_code == 400
    assert r.json["errors"] == ["sessionNotes: Must not be empty"]


def test_create_unknown_student(client, auth_headers, make_provider):
    r = client.post(
        "/therapy-services",
        json={
            "studentId": "00000000-0000-4000-8000-000000000000",
            "providerId": make_provider(),
            "serviceType": "SPEECH",
            "serviceBeginDate": "2024-09-01",
            "sessionDate": "2024-09-10T14:30:00Z",
            "sessionNotes": "Intake",
            "deliveryMode": "VIRTUAL",
        },
        headers=auth_headers(),
    )
    assert r.status_code == 404
    assert r.json["code"] == "STUDENT_NOT_FOUND"


def test_create_validation(client, auth_headers):
    r = client.post(
        "/therapy-services",
        json={"serviceType": "MUSIC", "sessionDate": "tomorrow", "deliveryMode": "IN_PERSON"},
        headers=auth_headers(),
    )
    assert r.status_code == 400
    errors = r.json["errors"]
    assert "studentId: Required" in errors
    assert "serviceType: Invalid enum value. Expected SPEECH | OCCUPATIONAL | PHYSICAL" in errors
    assert "sessionDate: Invalid date" in errors


def test_update_and_delete(app, client, auth_headers, make_therapy_service):
    headers = auth_headers()
    service_id = make_therapy_service()
    r = client.patch(
        f"/therapy-services/{service_id}",
        json={"status": "COMPLETED", "nextMeetingDate": "2024-09-17T14:30:00Z"},
        headers=headers,
    )
    assert r.status_code == 204
    data = client.get(f"/therapy-services/{service_id}", headers=headers).json["data"]
    assert data["status"] == "COMPLETED"
    assert data["nextMeetingDate"] == "2024-09-17T14:30:00.000Z"

    assert client.delete(f"/therapy-services/{service_id}", headers=headers).status_code == 204
    r = client.get(f"/therapy-services/{service_id}", headers=headers)
    assert r.json["code"] == "THERAPY_SERVICE_NOT_FOUND"

    with session_scope(app) as s:
        actions = sorted(a.action for a in s.query(ActivityLog).filter(ActivityLog.subject_id == service_id))
    assert actions == ["CREATE_THERAPY_SERVICE", "DELETE_THERAPY_SERVICE", "UPDATE_THERAPY_SERVICE"]


def test_list_filters(client, auth_headers, make_student, make_provider, make_therapy_service):
    headers = auth_headers()
    ana = make_student(firstName="Ana")
    ben = make_student(firstName="Ben", studentCode="STU-0002")
    provider = make_provider()
    make_therapy_service(studentId=ana, providerId=provider)
    make_therapy_service(
        studentId=ben,
        providerId=provider,
        serviceType="PHYSICAL",
        deliveryMode="VIRTUAL",
        sessionDate="2024-10-01T09:00:00Z",
    )

    r = client.get("/therapy-services?student=ben", headers=headers)
    assert [d["serviceType"] for d in r.json["data"]] == ["PHYSICAL"]

    r = client.get(f"/therapy-services?studentId={ana}", headers=headers)
    assert [d["serviceType"] for d in r.json["data"]] == ["SPEECH"]

    r = client.get("/therapy-services?sessionDate=2024-10-01", headers=headers)
    assert r.json["pagination"]["total"] == 1

    r = client.get("/therapy-services?provider=provider&deliveryMode=IN_PERSON", headers=headers)
    assert [d["student"]["firstName"] for d in r.json["data"]] == ["Ana"]

    r = client.get("/therapy-services?sortBy=sessionDate", headers=headers)
    assert [d["student"]["firstName"] for d in r.json["data"]] == ["Ben", "Ana"]

    r = client.get("/therapy-services?sortBy=sessionDate&sortOrder=asc", headers=headers)
    assert [d["student"]["firstName"] for d in r.json["data"]] == ["Ana", "Ben"]
