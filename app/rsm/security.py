from __future__ import annotations

import secrets
from datetime import datetime, timedelta

from flask import current_app, session, Request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from app.rsm.models import utcnow

_AUTH_TOKEN_SALT = "rsm.auth-token"


def ensure_csrf_token() -> str:
    """Ensure a CSRF token exists in the session and return it."""
    token = session.get("csrf_token")
    if not token:
        token = secrets.token_urlsafe(32)
        session["csrf_token"] = token
    return token


def validate_csrf(req: Request) -> bool:
    """Validate CSRF token from the admin form or header."""
    token = req.headers.get("X-CSRF-Token") or req.form.get("csrf_token")
    return bool(token and secrets.compare_digest(token, session.get("csrf_token") or ""))


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=_AUTH_TOKEN_SALT)


def issue_auth_token(email: str) -> str:
    return _serializer().dumps({"email": email})


def read_auth_token(token: str) -> str | None:
    """Returns the email the token was issued for, or None if invalid/expired."""
    try:
        data = _serializer().loads(token, max_age=current_app.config["AUTH_TOKEN_MAX_AGE"])
    except (SignatureExpired, BadSignature):
        return None
    if not isinstance(data, dict):
        return None
    email = data.get("email")
    return email if isinstance(email, str) and email else None


def new_one_time_token() -> str:
    """Random token for reset/invite links."""
    return secrets.token_urlsafe(48)


def expiry(seconds: int) -> datetime:
    return utcnow() + timedelta(seconds=seconds)
