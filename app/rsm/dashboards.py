"""
Role pages: a teacher's assigned students and their services, and a provider's schedule.

Read-only views over the students and therapy-services lists, scoped to the
signed-in user instead of a permission key.
"""

from __future__ import annotations

from flask import Blueprint, render_template, request, url_for

from app.rsm.db import db_session
from app.rsm.errors import NotFound, unauthorized
from app.rsm.http import check_id, current_user
from app.rsm.listing import ListParams, parse_list_params
from app.rsm.models import User
from app.rsm.modules.providers.models import Provider
from app.rsm.modules.students import service as students
from app.rsm.modules.students.models import StudentTeacher
from app.rsm.modules.therapy_services import service as therapy_services

bp = Blueprint("dashboards", __name__)

# role name -> (endpoint, link label) shown on the admin home page
ROLE_PAGES = {
    "TEACHER": ("dashboards.teacher_students", "My students"),
    "PROVIDER": ("dashboards.provider_schedule", "My schedule"),
}


def role_page(user: User | None) -> tuple[str, str] | None:
    if not user or not user.role:
        return None
    return ROLE_PAGES.get(user.role.name)


def _require_role(name: str) -> User:
    user = current_user()
    if not user.role or user.role.name != name:
        raise unauthorized()
    return user


def _params(spec, scope: dict, **defaults) -> ListParams:
    args = {**defaults, **request.args.to_dict(), **scope}
    return parse_list_params(spec, args)


def _page_links(endpoint: str, params: ListParams, pagination: dict, **view_args) -> dict:
    links = {}
    if params.page > 1:
        links["previous"] = url_for(endpoint, **view_args, **params.query_args(page=params.page - 1))
    if params.page < pagination["pages"]:
        links["next"] = url_for(endpoint, **view_args, **params.query_args(page=params.page + 1))
    return links


@bp.get("/teacher/students")
def teacher_students():
    user = _require_role("TEACHER")
    params = _params(students.LIST_SPEC, {"teacherId": user.id})
    rows, pagination = students.list_students(db_session(), params)
    return render_template(
        "dashboards/teacher_students.html",
        students=rows,
        params=params,
        pagination=pagination,
        links=_page_links("dashboards.teacher_students", params, pagination),
    )


@bp.get("/teacher/students/<student_id>/services")
def teacher_student_services(student_id: str):
    user = _require_role("TEACHER")
    check_id(student_id)
    s = db_session()
    student = students.get_student(s, student_id)
    assigned = (
        s.query(StudentTeacher)
        .filter(StudentTeacher.student_id == student.id, StudentTeacher.teacher_id == user.id)
        .first()
    )
    if assigned is None:
        # other teachers' students look the same as missing ones
        raise NotFound("STUDENT")

    params = _params(
        therapy_services.LIST_SPEC,
        {"studentId": student.id},
        sortBy="sessionDate",
        sortOrder="desc",
        perPage="10",
    )
    rows, pagination = therapy_services.list_therapy_services(s, params)
    return render_template(
        "dashboards/student_services.html",
        student=students.serialize_student(student),
        services=rows,
        params=params,
        pagination=pagination,
        links=_page_links("dashboards.teacher_student_services", params, pagination, student_id=student.id),
    )


@bp.get("/provider/schedule")
def provider_schedule():
    user = _require_role("PROVIDER")
    s = db_session()
    provider = (
        s.query(Provider)
        .filter(Provider.user_id == user.id, Provider.deleted_at.is_(None))
        .first()
    )
    rows: list[dict] = []
    pagination = {"total": 0, "pages": 0}
    params = None
    links: dict = {}
    if provider is not None:
        params = _params(
            therapy_services.LIST_SPEC,
            {"providerId": provider.id},
            sortBy="sessionDate",
            sortOrder="asc",
        )
        rows, pagination = therapy_services.list_therapy_services(s, params)
        links = _page_links("dashboards.provider_schedule", params, pagination)
    return render_template(
        "dashboards/provider_schedule.html",
        provider=provider,
        services=rows,
        params=params,
        pagination=pagination,
        links=links,
    )
