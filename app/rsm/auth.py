from __future__ import annotations

import uuid

from flask import Blueprint, current_app, g, jsonify, request, session
from werkzeug.security import check_password_hash

from app.rsm.activity import Action, record_activity
from app.rsm.db import db_session
from app.rsm.errors import ApiError
from app.rsm.models import User, utcnow
from app.rsm.rate_limit import client_key
from app.rsm.security import issue_auth_token, read_auth_token
from app.rsm.validation import PayloadValidator

bp = Blueprint("auth", __name__)

MIN_PASSWORD_LENGTH = 8


def find_active_user(s, email: str) -> User | None:
    """Active, non-deleted user with a role (what the API accepts as authenticated)."""
    user = (
        s.query(User)
        .filter(User.email == email.strip().lower(), User.deleted_at.is_(None), User.status == "ACTIVE")
        .one_or_none()
    )
    if not user or not user.role:
        return None
    return user


def load_current_user() -> None:
    """
    Loads g.current_user from a bearer token (API) or the signed session cookie (admin UI).
    Also assigns a per-request request_id (for activity/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None
    if request.path.startswith(("/static/", "/health", "/healthz")):
        return

    header = request.headers.get("Authorization") or ""
    try:
        if header.startswith("Bearer "):
            email = read_auth_token(header[7:].strip())
            if email:
                g.current_user = find_active_user(db_session(), email)
            return

        user_id = session.get("user_id")
        if not user_id or not request.path.startswith("/admin"):
            return
        user = db_session().get(User, user_id)
        if not user or not user.is_active:
            session.pop("user_id", None)
            return
        g.current_user = user
    except Exception as e:
        current_app.logger.error("load_current_user DB error (treating as anonymous): %s", e)
        session.pop("user_id", None)
        g.current_user = None


def serialize_user_with_permissions(user: User) -> dict:
    from app.rsm.modules.users.service import serialize_user

    data = serialize_user(user)
    data.pop("school", None)
    data["permissions"] = user.permission_keys
    return data


def check_login(s, email: str, password: str) -> User:
    """Shared by the API and the admin login form. Logs LOGIN on a password match."""
    email = email.strip().lower()
    limiter = current_app.extensions["login_limiter"]
    key = client_key()
    allowed, _remaining, reset = limiter.hit(key)
    if not allowed:
        raise ApiError(
            f"Too many login attempts. Please wait {reset} seconds.",
            code="TOO_MANY_LOGIN_ATTEMPTS",
            status=429,
        )

    user = s.query(User).filter(User.email == email, User.deleted_at.is_(None)).one_or_none()
    if not user or not user.password_hash or not check_password_hash(user.password_hash, password):
        current_app.logger.info("Login failed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        raise ApiError("Invalid credentials.", code="INVALID_CREDENTIALS", status=400)

    record_activity(s, action=Action.LOGIN, email=email)
    if find_active_user(s, email) is None:
        s.commit()
        raise ApiError("Inactive account.", code="INACTIVE_ACCOUNT", status=401)

    limiter.reset(key)
    user.last_login = utcnow()
    return user


@bp.post("/login")
def login():
    v = PayloadValidator(request.get_json(silent=True)).email("email").string("password", strip=False)
    data = v.cleaned()
    s = db_session()
    user = check_login(s, data["email"], data["password"])
    s.commit()
    token = issue_auth_token(user.email)
    return jsonify({"data": serialize_user_with_permissions(user), "token": token}), 200


@bp.post("/start-password-reset")
def start_password_reset():
    from app.rsm.modules.users.service import start_password_reset as _start

    data = PayloadValidator(request.get_json(silent=True)).email("email").cleaned()
    s = db_session()
    _start(s, data["email"])
    return "", 204


def check_password_payload(payload, *, confirm: bool = False) -> dict:
    """email/token/newPassword for the reset and invite flows. confirm also checks confirmNewPassword."""
    v = PayloadValidator(payload)
    v.email("email").string("token").string("newPassword", strip=False)
    pw = v.data.get("newPassword")
    if pw is not None and len(pw) < MIN_PASSWORD_LENGTH:
        v.errors.append(f"newPassword: Must be at least {MIN_PASSWORD_LENGTH} characters")
    if confirm and pw is not None and payload.get("confirmNewPassword") != pw:
        v.errors.append("confirmNewPassword: Passwords do not match")
    return v.cleaned()


def redeem_password_token(s, data: dict, *, invite: bool) -> User:
    """Set the password from a reset (or invite) token and log it. The caller commits."""
    from app.rsm.modules.users.service import INVITATION, PASSWORD_RESET, set_password_with_token

    user = set_password_with_token(
        s,
        data["email"],
        data["token"],
        data["newPassword"],
        token_type=INVITATION if invite else PASSWORD_RESET,
        activate=invite,
    )
    record_activity(s, action=Action.ACCEPT_INVITE if invite else Action.RESET_PASSWORD, email=data["email"])
    return user


@bp.post("/reset-password")
def reset_password():
    data = check_password_payload(request.get_json(silent=True))
    s = db_session()
    redeem_password_token(s, data, invite=False)
    s.commit()
    return "", 204


@bp.post("/accept-invite")
def accept_invite():
    data = check_password_payload(request.get_json(silent=True))
    s = db_session()
    redeem_password_token(s, data, invite=True)
    s.commit()
    return "", 204
