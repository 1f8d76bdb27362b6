"""
Browser pages behind the emailed links: forgot/reset password and accepting an invite.

They call the same functions as /auth/* so validation, token rules and the
activity log are identical; errors are shown on the form instead of as JSON.
"""

from __future__ import annotations

from flask import Blueprint, render_template, request

from app.rsm.auth import check_password_payload, redeem_password_token
from app.rsm.db import db_session
from app.rsm.errors import ApiError
from app.rsm.validation import PayloadValidator

bp = Blueprint("account", __name__)

_FLOWS = {
    "reset": {
        "title": "Change your password",
        "button": "Reset password",
        "done": "Your password has been reset.",
        "endpoint": "account.reset_password",
    },
    "invite": {
        "title": "Set up your account",
        "button": "Activate account",
        "done": "Your account is active.",
        "endpoint": "account.accept_invite",
    },
}


def _error_lines(e: ApiError) -> list[str]:
    return e.errors or [e.message]


def _set_password_page(flow: str, *, errors: list[str] | None = None, done: bool = False, status: int = 200):
    values = request.values
    return (
        render_template(
            "account/set_password.html",
            flow=_FLOWS[flow],
            email=values.get("email") or "",
            token=values.get("token") or "",
            errors=errors or [],
            done=done,
        ),
        status,
    )


def _redeem(flow: str):
    s = db_session()
    try:
        data = check_password_payload(request.form.to_dict(), confirm=True)
        redeem_password_token(s, data, invite=flow == "invite")
    except ApiError as e:
        s.rollback()
        return _set_password_page(flow, errors=_error_lines(e), status=e.status)
    s.commit()
    return _set_password_page(flow, done=True)


@bp.get("/reset-password")
def reset_password():
    if request.args.get("token"):
        return _set_password_page("reset")
    return render_template("account/forgot_password.html", email=request.args.get("email") or "", errors=[], sent=False)


@bp.post("/reset-password")
def reset_password_post():
    if "token" in request.form:
        return _redeem("reset")

    from app.rsm.modules.users.service import start_password_reset

    email = request.form.get("email") or ""
    try:
        data = PayloadValidator(request.form.to_dict()).email("email").cleaned()
    except ApiError as e:
        return render_template("account/forgot_password.html", email=email, errors=_error_lines(e), sent=False), 400
    start_password_reset(db_session(), data["email"])
    return render_template("account/forgot_password.html", email="", errors=[], sent=True)


@bp.get("/accept-invite")
def accept_invite():
    return _set_password_page("invite")


@bp.post("/accept-invite")
def accept_invite_post():
    return _redeem("invite")
