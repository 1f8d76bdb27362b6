from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.rsm.db import db_session
from app.rsm.http import check_id, created, current_user, json_body, no_content
from app.rsm.listing import parse_list_params
from app.rsm.modules.therapy_services.service import (
    LIST_SPEC,
    create_therapy_service,
    delete_therapy_service,
    get_therapy_service,
    list_therapy_services,
    serialize_therapy_service,
    update_therapy_service,
)
from app.rsm.rbac import Permission, require_permission

bp = Blueprint("therapy_services", __name__)
URL_PREFIX = "/therapy-services"


@bp.get("")
@require_permission(Permission.ASSIGN_STUDENTS)
def therapy_services_list():
    params = parse_list_params(LIST_SPEC, request.args)
    data, pagination = list_therapy_services(db_session(), params)
    return jsonify({"data": data, "pagination": pagination})


@bp.get("/<therapy_service_id>")
@require_permission(Permission.ASSIGN_STUDENTS)
def therapy_service_detail(therapy_service_id: str):
    therapy_service = get_therapy_service(db_session(), check_id(therapy_service_id))
    return jsonify({"data": serialize_therapy_service(therapy_service)})


@bp.post("")
@require_permission(Permission.ASSIGN_STUDENTS)
def therapy_service_create():
    s = db_session()
    therapy_service = create_therapy_service(s, json_body(), current_user())
    s.commit()
    return created(therapy_service.id)


@bp.patch("/<therapy_service_id>")
@require_permission(Permission.ASSIGN_STUDENTS)
def therapy_service_update(therapy_service_id: str):
    s = db_session()
    therapy_service = get_therapy_service(s, check_id(therapy_service_id))
    update_therapy_service(s, therapy_service, json_body(), current_user())
    s.commit()
    return no_content()


@bp.delete("/<therapy_service_id>")
@require_permission(Permission.ASSIGN_STUDENTS)
def therapy_service_delete(therapy_service_id: str):
    s = db_session()
    therapy_service = get_therapy_service(s, check_id(therapy_service_id))
    delete_therapy_service(s, therapy_service, current_user())
    s.commit()
    return no_content()
