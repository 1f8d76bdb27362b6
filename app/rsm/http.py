from __future__ import annotations

from typing import Any

from flask import Response, g, jsonify, request

from app.rsm.errors import invalid_request, unauthenticated
from app.rsm.models import User
from app.rsm.validation import is_uuid


def current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise unauthenticated()
    return u


def json_body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise invalid_request(["body: Expected object"])
    return data


def check_id(value: str) -> str:
    if not is_uuid(value):
        raise invalid_request(["id: Invalid uuid"])
    return value


def created(entity_id: str) -> tuple[Response, int]:
    return jsonify({"id": entity_id}), 201


def no_content() -> tuple[str, int]:
    return "", 204
