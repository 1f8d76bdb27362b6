from flask import Blueprint

from app.rsm.drawers import Column, Field, Filter, ResourceView, key, person, ref
from app.rsm.modules.schools.service import school_choices
from app.rsm.modules.students.service import (
    CONFIRMATION_STATUSES,
    LIST_SPEC,
    STATUSES,
    accommodation_choices,
    create_student,
    delete_student,
    get_student,
    list_students,
    serialize_student,
    update_student,
)
from app.rsm.modules.users.service import user_choices
from app.rsm.rbac import Permission

bp = Blueprint("students_admin", __name__)


def _name(row: dict) -> str:
    return f"{row['firstName']} {row['lastName']}"


def _accommodations(row: dict) -> list[str]:
    return [a["name"] for a in row["accommodations"]]


def _teachers(row: dict) -> list[str]:
    return [f"{t['firstName']} {t['lastName']}" for t in row["assignedTeachers"]]


def _teacher_choices(s):
    return user_choices(s, "TEACHER")


GRADES = tuple(str(n) for n in range(1, 13))

view = ResourceView(
    slug="students",
    title="Students",
    singular="Student",
    permission=Permission.ASSIGN_STUDENTS,
    write_permission=Permission.MANAGE_USERS,
    list_spec=LIST_SPEC,
    list_rows=list_students,
    get=get_student,
    serialize=serialize_student,
    create=create_student,
    update=update_student,
    delete=delete_student,
    columns=[
        Column("Name", _name, sort="name"),
        Column("Date of birth", key("dob"), sort="dob"),
        Column("Grade", key("gradeLevel"), sort="gradeLevel"),
        Column("School", ref("school", "name"), sort="school"),
        Column("Parent", person("parent"), sort="parent"),
        Column("Student code", key("studentCode"), sort="studentCode"),
        Column("Status", key("status"), sort="status"),
        Column("Confirmation", key("confirmationStatus"), sort="confirmationStatus"),
    ],
    details=[
        Column("Name", _name),
        Column("Date of birth", key("dob")),
        Column("Grade", key("gradeLevel")),
        Column("School", ref("school", "name")),
        Column("Parent", person("parent")),
        Column("Parent email", ref("parent", "email")),
        Column("Student code", key("studentCode")),
        Column("Status", key("status")),
        Column("Confirmation", key("confirmationStatus")),
        Column("Accommodations", _accommodations),
        Column("Assigned teachers", _teachers),
    ],
    filters=[
        Filter("name", "Name"),
        Filter("dob", "Date of birth", "date"),
        Filter("gradeLevel", "Grade", "select", GRADES),
        Filter("school", "School"),
        Filter("parent", "Parent"),
        Filter("studentCode", "Student code"),
        Filter("status", "Status", "select", STATUSES),
        Filter("confirmationStatus", "Confirmation", "select", CONFIRMATION_STATUSES),
    ],
    fields=[
        Field("firstName", "First name"),
        Field("lastName", "Last name"),
        Field("dob", "Date of birth", "date"),
        Field("gradeLevel", "Grade", "integer"),
        Field("schoolId", "School", "select", choices=school_choices, value=ref("school")),
        Field("parentId", "Parent", "select", choices=user_choices, value=ref("parent")),
        Field("studentCode", "Student code"),
        Field("status", "Status", "select", choices=STATUSES),
        Field("confirmationStatus", "Confirmation", "select", choices=CONFIRMATION_STATUSES),
        Field(
            "accommodationIds",
            "Accommodations",
            "multiselect",
            required=False,
            choices=accommodation_choices,
            value=lambda row: [a["id"] for a in row["accommodations"]],
        ),
        Field(
            "teacherIds",
            "Assigned teachers",
            "multiselect",
            required=False,
            choices=_teacher_choices,
            value=lambda row: [t["id"] for t in row["assignedTeachers"]],
        ),
    ],
)
view.register(bp)
