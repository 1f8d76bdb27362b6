from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.rsm.db import db_session
from app.rsm.http import check_id, created, current_user, json_body, no_content
from app.rsm.listing import parse_list_params
from app.rsm.modules.users.service import (
    LIST_SPEC,
    create_user,
    delete_user,
    get_user,
    invite_user,
    list_users,
    serialize_user,
    update_user,
)
from app.rsm.rbac import Permission, require_permission

bp = Blueprint("users", __name__)
URL_PREFIX = "/users"


@bp.get("")
@require_permission(Permission.MANAGE_USERS)
def users_list():
    params = parse_list_params(LIST_SPEC, request.args)
    data, pagination = list_users(db_session(), params)
    return jsonify({"data": data, "pagination": pagination})


@bp.get("/<user_id>")
@require_permission(Permission.MANAGE_USERS)
def user_detail(user_id: str):
    user = get_user(db_session(), check_id(user_id))
    return jsonify({"data": serialize_user(user)})


@bp.post("")
@require_permission(Permission.MANAGE_USERS)
def user_create():
    send_invite = request.args.get("sendInvite", "").strip().lower() == "true"
    s = db_session()
    user = create_user(s, json_body(), current_user(), send_invite=send_invite)
    s.commit()
    return created(user.id)


@bp.post("/<user_id>/invite")
@require_permission(Permission.MANAGE_USERS)
def user_invite(user_id: str):
    s = db_session()
    user = get_user(s, check_id(user_id))
    invite_user(s, user, current_user())
    s.commit()
    return no_content()


@bp.patch("/<user_id>")
@require_permission(Permission.MANAGE_USERS)
def user_update(user_id: str):
    s = db_session()
    user = get_user(s, check_id(user_id))
    update_user(s, user, json_body(), current_user())
    s.commit()
    return no_content()


@bp.delete("/<user_id>")
@require_permission(Permission.MANAGE_USERS)
def user_delete(user_id: str):
    s = db_session()
    user = get_user(s, check_id(user_id))
    delete_user(s, user, current_user())
    s.commit()
    return no_content()
