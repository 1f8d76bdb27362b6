from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.rsm.db import db_session
from app.rsm.http import check_id, created, current_user, json_body, no_content
from app.rsm.listing import parse_list_params
from app.rsm.modules.providers.service import (
    LIST_SPEC,
    add_links,
    create_provider,
    delete_provider,
    get_provider,
    list_providers,
    remove_links,
    serialize_provider_detail,
    update_provider,
)
from app.rsm.rbac import Permission, require_permission

bp = Blueprint("providers", __name__)
URL_PREFIX = "/providers"


@bp.get("")
@require_permission(Permission.MANAGE_USERS)
def providers_list():
    params = parse_list_params(LIST_SPEC, request.args)
    data, pagination = list_providers(db_session(), params)
    return jsonify({"data": data, "pagination": pagination})


@bp.get("/<provider_id>")
@require_permission(Permission.MANAGE_USERS)
def provider_detail(provider_id: str):
    provider = get_provider(db_session(), check_id(provider_id))
    return jsonify({"data": serialize_provider_detail(provider)})


@bp.post("")
@require_permission(Permission.MANAGE_USERS)
def provider_create():
    s = db_session()
    provider = create_provider(s, json_body(), current_user())
    s.commit()
    return created(provider.id)


@bp.patch("/<provider_id>")
@require_permission(Permission.MANAGE_USERS)
def provider_update(provider_id: str):
    s = db_session()
    provider = get_provider(s, check_id(provider_id))
    update_provider(s, provider, json_body(), current_user())
    s.commit()
    return no_content()


@bp.delete("/<provider_id>")
@require_permission(Permission.MANAGE_USERS)
def provider_delete(provider_id: str):
    s = db_session()
    provider = get_provider(s, check_id(provider_id))
    delete_provider(s, provider, current_user())
    s.commit()
    return no_content()


@bp.post("/<provider_id>/<any(documents, contracts, contacts):kind>")
@require_permission(Permission.MANAGE_USERS)
def provider_link(provider_id: str, kind: str):
    s = db_session()
    provider = get_provider(s, check_id(provider_id))
    add_links(s, provider, kind, json_body(), current_user())
    s.commit()
    return jsonify({"success": True})


@bp.delete("/<provider_id>/<any(documents, contracts, contacts):kind>")
@require_permission(Permission.MANAGE_USERS)
def provider_unlink(provider_id: str, kind: str):
    s = db_session()
    provider = get_provider(s, check_id(provider_id))
    # DELETE bodies are optional: no body (or no ids) unlinks everything.
    remove_links(s, provider, kind, request.get_json(silent=True), current_user())
    s.commit()
    return jsonify({"success": True})
