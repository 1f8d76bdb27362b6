from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.rsm.db import db_session
from app.rsm.http import check_id, created, current_user, json_body, no_content
from app.rsm.listing import parse_list_params
from app.rsm.modules.schools.service import (
    LIST_SPEC,
    create_school,
    delete_school,
    get_school,
    list_schools,
    serialize_school,
    update_school,
)
from app.rsm.rbac import Permission, require_permission

bp = Blueprint("schools", __name__)
URL_PREFIX = "/schools"


@bp.get("")
@require_permission(Permission.MANAGE_USERS)
def schools_list():
    params = parse_list_params(LIST_SPEC, request.args)
    data, pagination = list_schools(db_session(), params)
    return jsonify({"data": data, "pagination": pagination})


@bp.get("/<school_id>")
@require_permission(Permission.MANAGE_USERS)
def school_detail(school_id: str):
    school = get_school(db_session(), check_id(school_id))
    return jsonify({"data": serialize_school(school)})


@bp.post("")
@require_permission(Permission.MANAGE_USERS)
def school_create():
    s = db_session()
    school = create_school(s, json_body(), current_user())
    s.commit()
    return created(school.id)


@bp.patch("/<school_id>")
@require_permission(Permission.MANAGE_USERS)
def school_update(school_id: str):
    s = db_session()
    school = get_school(s, check_id(school_id))
    update_school(s, school, json_body(), current_user())
    s.commit()
    return no_content()


@bp.delete("/<school_id>")
@require_permission(Permission.MANAGE_USERS)
def school_delete(school_id: str):
    s = db_session()
    school = get_school(s, check_id(school_id))
    delete_school(s, school, current_user())
    s.commit()
    return no_content()
