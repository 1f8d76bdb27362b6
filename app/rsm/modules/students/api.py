from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.rsm.db import db_session
from app.rsm.http import check_id, created, current_user, json_body, no_content
from app.rsm.listing import parse_list_params
from app.rsm.modules.students.service import (
    LIST_SPEC,
    create_student,
    delete_student,
    get_student,
    list_accommodations,
    list_students,
    serialize_student,
    update_student,
)
from app.rsm.rbac import Permission, require_permission

bp = Blueprint("students", __name__)
URL_PREFIX = "/students"


@bp.get("")
@require_permission(Permission.ASSIGN_STUDENTS)
def students_list():
    params = parse_list_params(LIST_SPEC, request.args)
    data, pagination = list_students(db_session(), params)
    return jsonify({"data": data, "pagination": pagination})


@bp.get("/accommodations")
@require_permission(Permission.ASSIGN_STUDENTS)
def accommodations_list():
    return jsonify({"data": list_accommodations(db_session())})


@bp.get("/<student_id>")
@require_permission(Permission.ASSIGN_STUDENTS)
def student_detail(student_id: str):
    student = get_student(db_session(), check_id(student_id))
    return jsonify({"data": serialize_student(student)})


@bp.post("")
@require_permission(Permission.MANAGE_USERS)
def student_create():
    s = db_session()
    student = create_student(s, json_body(), current_user())
    s.commit()
    return created(student.id)


@bp.patch("/<student_id>")
@require_permission(Permission.MANAGE_USERS)
def student_update(student_id: str):
    s = db_session()
    student = get_student(s, check_id(student_id))
    update_student(s, student, json_body(), current_user())
    s.commit()
    return no_content()


@bp.delete("/<student_id>")
@require_permission(Permission.MANAGE_USERS)
def student_delete(student_id: str):
    s = db_session()
    student = get_student(s, check_id(student_id))
    delete_student(s, student, current_user())
    s.commit()
    return no_content()
