from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.rsm.db import db_session
from app.rsm.http import check_id
from app.rsm.listing import parse_list_params
from app.rsm.modules.roles.service import LIST_SPEC, get_role, list_roles, serialize_role
from app.rsm.rbac import Permission, require_permission

bp = Blueprint("roles", __name__)
URL_PREFIX = "/roles"


@bp.get("")
@require_permission(Permission.MANAGE_USERS)
def roles_list():
    params = parse_list_params(LIST_SPEC, request.args)
    data, pagination = list_roles(db_session(), params)
    return jsonify({"data": data, "pagination": pagination})


@bp.get("/<role_id>")
@require_permission(Permission.MANAGE_USERS)
def role_detail(role_id: str):
    role = get_role(db_session(), check_id(role_id))
    return jsonify({"data": serialize_role(role)})
