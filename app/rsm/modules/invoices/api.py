from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.rsm.db import db_session
from app.rsm.http import check_id, created, current_user, json_body, no_content
from app.rsm.listing import parse_list_params
from app.rsm.modules.invoices.service import (
    LIST_SPEC,
    create_invoice,
    delete_invoice,
    get_invoice,
    list_invoices,
    serialize_invoice,
    update_invoice,
)
from app.rsm.rbac import Permission, require_permission

bp = Blueprint("invoices", __name__)
URL_PREFIX = "/invoices"


@bp.get("")
@require_permission(Permission.VIEW_INVOICES)
def invoices_list():
    params = parse_list_params(LIST_SPEC, request.args)
    data, pagination = list_invoices(db_session(), params)
    return jsonify({"data": data, "pagination": pagination})


@bp.get("/<invoice_id>")
@require_permission(Permission.VIEW_INVOICES)
def invoice_detail(invoice_id: str):
    invoice = get_invoice(db_session(), check_id(invoice_id))
    return jsonify({"data": serialize_invoice(invoice)})


@bp.post("")
@require_permission(Permission.VIEW_INVOICES)
def invoice_create():
    s = db_session()
    invoice = create_invoice(s, json_body(), current_user())
    s.commit()
    return created(invoice.id)


@bp.patch("/<invoice_id>")
@require_permission(Permission.VIEW_INVOICES)
def invoice_update(invoice_id: str):
    s = db_session()
    invoice = get_invoice(s, check_id(invoice_id))
    update_invoice(s, invoice, json_body(), current_user())
    s.commit()
    return no_content()


@bp.delete("/<invoice_id>")
@require_permission(Permission.VIEW_INVOICES)
def invoice_delete(invoice_id: str):
    s = db_session()
    invoice = get_invoice(s, check_id(invoice_id))
    delete_invoice(s, invoice, current_user())
    s.commit()
    return no_content()
