from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import or_
from sqlalchemy.orm import aliased

from app.rsm.activity import Action, record_activity
from app.rsm.errors import NotFound
from app.rsm.listing import (
    ListParams,
    ListSpec,
    contains,
    integer,
    iso_date,
    one_of,
    ordered,
    paginate,
    text,
    uuid_value,
)
from app.rsm.models import User, utcnow
from app.rsm.modules.schools.models import School
from app.rsm.modules.students.models import Accommodation, Student, StudentAccommodation, StudentTeacher
from app.rsm.utils import apply_changes, iso, iso_date as format_date
from app.rsm.validation import PayloadValidator

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

STATUSES = ("ACTIVE", "INACTIVE")
CONFIRMATION_STATUSES = ("CONFIRMED", "PENDING", "RESCHEDULED")

LIST_SPEC = ListSpec(
    filters={
        "name": text,
        "dob": iso_date,
        "gradeLevel": integer,
        "school": text,
        "parent": text,
        "studentCode": text,
        "status": one_of(*STATUSES),
        "confirmationStatus": one_of(*CONFIRMATION_STATUSES),
        "teacherId": uuid_value,
    },
    sort_fields=(
        "name",
        "dob",
        "gradeLevel",
        "school",
        "parent",
        "studentCode",
        "status",
        "confirmationStatus",
    ),
    default_sort="name",
)

FIELDS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "dob": "dob",
    "gradeLevel": "grade_level",
    "schoolId": "school_id",
    "parentId": "parent_id",
    "studentCode": "student_code",
    "status": "status",
    "confirmationStatus": "confirmation_status",
}


def _check(payload: dict, *, partial: bool) -> PayloadValidator:
    v = PayloadValidator(payload, partial=partial)
    v.string("firstName", max_length=128)
    v.string("lastName", max_length=128)
    v.date("dob")
    v.integer("gradeLevel", min_value=1, max_value=12)
    v.uuid("schoolId")
    v.uuid("parentId")
    v.string("studentCode", max_length=64)
    v.choice("status", STATUSES)
    v.choice("confirmationStatus", CONFIRMATION_STATUSES)
    v.uuid_list("accommodationIds")
    v.uuid_list("teacherIds")
    return v


def _ensure_references(s: "Session", data: dict) -> None:
    if "schoolId" in data:
        school = s.get(School, data["schoolId"])
        if not school or school.deleted_at is not None:
            raise NotFound("SCHOOL")
    if "parentId" in data:
        parent = s.get(User, data["parentId"])
        if not parent or parent.deleted_at is not None:
            raise NotFound("USER")


def _set_accommodations(s: "Session", student: Student, ids: list[str]) -> None:
    found = {a.id: a for a in s.query(Accommodation).filter(Accommodation.id.in_(ids)).all()} if ids else {}
    if len(found) != len(ids):
        raise NotFound("ACCOMMODATION")
    # Links that stay keep their details; the rest are replaced in place.
    for link in list(student.accommodations):
        if link.accommodation_id not in found:
            student.accommodations.remove(link)
    have = {link.accommodation_id for link in student.accommodations}
    for i in ids:
        if i not in have:
            student.accommodations.append(StudentAccommodation(accommodation=found[i]))


def _set_teachers(s: "Session", student: Student, ids: list[str]) -> None:
    found = (
        {u.id: u for u in s.query(User).filter(User.id.in_(ids), User.deleted_at.is_(None)).all()} if ids else {}
    )
    if len(found) != len(ids):
        raise NotFound("USER")
    for link in list(student.teachers):
        if link.teacher_id not in found:
            student.teachers.remove(link)
    have = {link.teacher_id for link in student.teachers}
    for i in ids:
        if i not in have:
            student.teachers.append(StudentTeacher(teacher=found[i]))


def get_student(s: "Session", student_id: str) -> Student:
    student = s.get(Student, student_id)
    if not student or student.deleted_at is not None:
        raise NotFound("STUDENT")
    return student


def list_students(s: "Session", params: ListParams) -> tuple[list[dict], dict]:
    f = params.filters
    q = s.query(Student).filter(Student.deleted_at.is_(None))
    if "name" in f:
        q = q.filter(or_(contains(Student.first_name, f["name"]), contains(Student.last_name, f["name"])))
    if "dob" in f:
        q = q.filter(Student.dob == f["dob"])
    if "gradeLevel" in f:
        q = q.filter(Student.grade_level == f["gradeLevel"])
    if "school" in f:
        q = q.filter(Student.school.has(contains(School.name, f["school"])))
    if "parent" in f:
        q = q.filter(
            Student.parent.has(
                or_(
                    contains(User.first_name, f["parent"]),
                    contains(User.last_name, f["parent"]),
                )
            )
        )
    if "studentCode" in f:
        q = q.filter(contains(Student.student_code, f["studentCode"]))
    if "status" in f:
        q = q.filter(Student.status == f["status"])
    if "confirmationStatus" in f:
        q = q.filter(Student.confirmation_status == f["confirmationStatus"])
    if "teacherId" in f:
        q = q.filter(Student.teachers.any(StudentTeacher.teacher_id == f["teacherId"]))

    if params.sort_by == "name":
        columns = [Student.first_name, Student.last_name]
    elif params.sort_by == "school":
        q = q.outerjoin(School, Student.school_id == School.id)
        columns = [School.name]
    elif params.sort_by == "parent":
        parent = aliased(User)
        q = q.outerjoin(parent, Student.parent_id == parent.id)
        columns = [parent.first_name, parent.last_name]
    else:
        columns = [getattr(Student, FIELDS[params.sort_by])]

    rows, pagination = paginate(q, params, ordered([*columns, Student.id], params))
    return [serialize_student(r) for r in rows], pagination


def create_student(s: "Session", payload: dict, user: User) -> Student:
    data = _check(payload, partial=False).cleaned()
    _ensure_references(s, data)

    student = Student(**{attr: data[key] for key, attr in FIELDS.items()})
    s.add(student)
    _set_accommodations(s, student, data.get("accommodationIds") or [])
    _set_teachers(s, student, data.get("teacherIds") or [])
    s.flush()

    record_activity(s, actor=user, action=Action.CREATE_STUDENT, subject_id=student.id)
    return student


def update_student(s: "Session", student: Student, payload: dict, user: User) -> Student:
    """Scalar fields are patched; accommodationIds/teacherIds replace the whole set when present."""
    data = _check(payload, partial=True).cleaned()
    _ensure_references(s, data)

    changes = apply_changes(student, data, FIELDS)
    if "accommodationIds" in data:
        _set_accommodations(s, student, data["accommodationIds"])
        changes["accommodationIds"] = {"new": data["accommodationIds"]}
    if "teacherIds" in data:
        _set_teachers(s, student, data["teacherIds"])
        changes["teacherIds"] = {"new": data["teacherIds"]}
    student.updated_at = utcnow()

    record_activity(
        s,
        actor=user,
        action=Action.UPDATE_STUDENT,
        subject_id=student.id,
        metadata={"changes": changes} if changes else None,
    )
    return student


def delete_student(s: "Session", student: Student, user: User) -> None:
    student.deleted_at = utcnow()
    record_activity(s, actor=user, action=Action.DELETE_STUDENT, subject_id=student.id)


def list_accommodations(s: "Session") -> list[dict]:
    return [
        {"id": a.id, "name": a.name, "description": a.description}
        for a in s.query(Accommodation).order_by(Accommodation.name).all()
    ]


def serialize_student(student: Student) -> dict:
    parent = student.parent
    return {
        "id": student.id,
        "firstName": student.first_name,
        "lastName": student.last_name,
        "dob": format_date(student.dob),
        "gradeLevel": student.grade_level,
        "studentCode": student.student_code,
        "status": student.status,
        "confirmationStatus": student.confirmation_status,
        "school": {"id": student.school.id, "name": student.school.name} if student.school else None,
        "parent": (
            {"id": parent.id, "firstName": parent.first_name, "lastName": parent.last_name, "email": parent.email}
            if parent
            else None
        ),
        "accommodations": [
            {"id": link.accommodation.id, "name": link.accommodation.name, "details": link.details}
            for link in student.accommodations
        ],
        "assignedTeachers": [
            {"id": link.teacher.id, "firstName": link.teacher.first_name, "lastName": link.teacher.last_name}
            for link in student.teachers
        ],
        "createdAt": iso(student.created_at),
        "updatedAt": iso(student.updated_at),
    }


def student_choices(s: "Session") -> list[tuple[str, str]]:
    rows = (
        s.query(Student)
        .filter(Student.deleted_at.is_(None))
        .order_by(Student.last_name, Student.first_name)
        .limit(1000)
        .all()
    )
    return [(st.id, f"{st.last_name}, {st.first_name} ({st.student_code})") for st in rows]


def accommodation_choices(s: "Session") -> list[tuple[str, str]]:
    return [(a["id"], a["name"]) for a in list_accommodations(s)]
