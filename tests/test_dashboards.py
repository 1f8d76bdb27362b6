def test_teacher_sees_only_assigned_students(client, admin_login, make_student, make_school, user_id_for):
    teacher_id = user_id_for("TEACHER")
    school_id = make_school()
    make_student(firstName="Milo", schoolId=school_id, teacherIds=[teacher_id])
    make_student(firstName="Ana", lastName="Lopez", schoolId=school_id)

    admin_login("TEACHER")
    r = client.get("/admin/")
    assert b"/admin/dashboard/teacher/students" in r.data

    r = client.get("/admin/dashboard/teacher/students")
    assert r.status_code == 200
    assert b"Milo Park" in r.data
    assert b"Ana Lopez" not in r.data
    assert b"1 total" in r.data


def test_teacher_student_services(client, admin_login, make_student, make_therapy_service, user_id_for):
    mine = make_student(teacherIds=[user_id_for("TEACHER")])
    make_therapy_service(studentId=mine)
    other = make_student(firstName="Ana")

    admin_login("TEACHER")
    r = client.get(f"/admin/dashboard/teacher/students/{mine}/services")
    assert r.status_code == 200
    assert b"Services for Milo Park" in r.data
    assert b"SPEECH" in r.data
    assert b"Provider Tester" in r.data

    r = client.get(f"/admin/dashboard/teacher/students/{other}/services")
    assert r.status_code == 404
    assert b"Student not found." in r.data

    r = client.get("/admin/dashboard/teacher/students/not-a-uuid/services")
    assert r.status_code == 400


def test_provider_schedule_lists_own_sessions(client, admin_login, make_student, make_provider, make_therapy_service):
    mine = make_provider()
    theirs = make_provider("THERAPIST")
    make_therapy_service(providerId=mine)
    make_therapy_service(providerId=theirs, studentId=make_student(firstName="Ana"))

    admin_login("PROVIDER")
    r = client.get("/admin/")
    assert b"/admin/dashboard/provider/schedule" in r.data

    r = client.get("/admin/dashboard/provider/schedule")
    assert r.status_code == 200
    assert b"Milo Park" in r.data
    assert b"Worked on /r/ sounds." in r.data
    assert b"Ana Park" not in r.data


def test_provider_without_profile_has_empty_schedule(client, admin_login):
    admin_login("PROVIDER")
    r = client.get("/admin/dashboard/provider/schedule")
    assert r.status_code == 200
    assert b"No provider profile is linked to your account." in r.data


def test_dashboards_are_role_scoped(client, admin_login):
    r = client.get("/admin/dashboard/provider/schedule", follow_redirects=False)
    assert r.status_code == 302
    assert "/admin/login?next=" in r.headers["Location"]

    admin_login("PROVIDER")
    assert client.get("/admin/dashboard/teacher/students").status_code == 403

    admin_login("TEACHER")
    assert client.get("/admin/dashboard/provider/schedule").status_code == 403


def test_provider_id_filter_on_the_api(client, auth_headers, make_provider, make_therapy_service):
    mine = make_provider()
    make_therapy_service(providerId=mine)
    make_therapy_service(providerId=make_provider("THERAPIST"))

    r = client.get(f"/therapy-services?providerId={mine}", headers=auth_headers())
    assert r.status_code == 200
    assert [row["providerId"] for row in r.json["data"]] == [mine]
