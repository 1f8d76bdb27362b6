from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.rsm.db import db_session
from app.rsm.http import check_id, created, current_user, json_body, no_content
from app.rsm.listing import parse_list_params
from app.rsm.modules.reports.service import (
    LIST_SPEC,
    create_report,
    delete_report,
    get_report,
    list_reports,
    serialize_report,
    update_report,
)
from app.rsm.rbac import Permission, require_permission

bp = Blueprint("reports", __name__)
URL_PREFIX = "/reports"


@bp.get("")
@require_permission(Permission.VIEW_REPORTS)
def reports_list():
    params = parse_list_params(LIST_SPEC, request.args)
    data, pagination = list_reports(db_session(), params)
    return jsonify({"data": data, "pagination": pagination})


@bp.get("/<report_id>")
@require_permission(Permission.VIEW_REPORTS)
def report_detail(report_id: str):
    report = get_report(db_session(), check_id(report_id))
    return jsonify({"data": serialize_report(report)})


@bp.post("")
@require_permission(Permission.VIEW_REPORTS)
def report_create():
    s = db_session()
    report = create_report(s, json_body(), current_user())
    s.commit()
    return created(report.id)


@bp.patch("/<report_id>")
@require_permission(Permission.VIEW_REPORTS)
def report_update(report_id: str):
    s = db_session()
    report = get_report(s, check_id(report_id))
    update_report(s, report, json_body(), current_user())
    s.commit()
    return no_content()


@bp.delete("/<report_id>")
@require_permission(Permission.VIEW_REPORTS)
def report_delete(report_id: str):
    s = db_session()
    report = get_report(s, check_id(report_id))
    delete_report(s, report, current_user())
    s.commit()
    return no_content()
