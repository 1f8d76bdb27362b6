from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.rsm.db import db_session
from app.rsm.http import check_id, created, current_user, json_body, no_content
from app.rsm.listing import parse_list_params
from app.rsm.modules.therapists.service import (
    LIST_SPEC,
    create_therapist,
    delete_therapist,
    get_therapist,
    list_therapists,
    serialize_therapist,
    update_therapist,
)
from app.rsm.rbac import Permission, require_permission

bp = Blueprint("therapists", __name__)
URL_PREFIX = "/therapists"


@bp.get("")
@require_permission(Permission.MANAGE_USERS)
def therapists_list():
    params = parse_list_params(LIST_SPEC, request.args)
    data, pagination = list_therapists(db_session(), params)
    return jsonify({"data": data, "pagination": pagination})


@bp.get("/<therapist_id>")
@require_permission(Permission.MANAGE_USERS)
def therapist_detail(therapist_id: str):
    therapist = get_therapist(db_session(), check_id(therapist_id))
    return jsonify({"data": serialize_therapist(therapist)})


@bp.post("")
@require_permission(Permission.MANAGE_USERS)
def therapist_create():
    s = db_session()
    therapist = create_therapist(s, json_body(), current_user())
    s.commit()
    return created(therapist.id)


@bp.patch("/<therapist_id>")
@require_permission(Permission.MANAGE_USERS)
def therapist_update(therapist_id: str):
    s = db_session()
    therapist = get_therapist(s, check_id(therapist_id))
    update_therapist(s, therapist, json_body(), current_user())
    s.commit()
    return no_content()


@bp.delete("/<therapist_id>")
@require_permission(Permission.MANAGE_USERS)
def therapist_delete(therapist_id: str):
    s = db_session()
    therapist = get_therapist(s, check_id(therapist_id))
    delete_therapist(s, therapist, current_user())
    s.commit()
    return no_content()
