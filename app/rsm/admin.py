from __future__ import annotations

from flask import Blueprint, flash, g, redirect, render_template, request, session, url_for

from app.rsm.auth import check_login
from app.rsm.dashboards import role_page
from app.rsm.db import db_session
from app.rsm.drawers import views_for
from app.rsm.errors import ApiError
from app.rsm.http import current_user

bp = Blueprint("admin", __name__)


def _safe_next(target: str | None) -> str:
    # only bounce back inside the admin UI
    if target and target.startswith("/admin") and not target.startswith("//"):
        return target
    return url_for("admin.index")


@bp.app_context_processor
def _inject_nav() -> dict:
    user = getattr(g, "current_user", None)
    return {"admin_nav": views_for(user) if user else []}


# ---------- Login ----------
@bp.get("/login")
def login_get():
    if getattr(g, "current_user", None):
        return redirect(_safe_next(request.args.get("next")))
    return render_template("admin/login.html", next=request.args.get("next") or "", email="")


@bp.post("/login")
def login_post():
    email = (request.form.get("email") or "").strip()
    password = request.form.get("password") or ""
    nxt = request.form.get("next") or ""
    if not email or not password:
        flash("Email and password are required.", "danger")
        return render_template("admin/login.html", next=nxt, email=email), 400

    s = db_session()
    try:
        user = check_login(s, email, password)
    except ApiError as e:
        flash(e.message, "danger")
        return render_template("admin/login.html", next=nxt, email=email), e.status
    s.commit()

    csrf = session.get("csrf_token")
    session.clear()
    if csrf:
        session["csrf_token"] = csrf
    session["user_id"] = user.id
    return redirect(_safe_next(nxt))


@bp.route("/logout", methods=["GET", "POST"])
def logout():
    session.pop("user_id", None)
    flash("Signed out.", "success")
    return redirect(url_for("admin.login_get"))


# ---------- Dashboard ----------
@bp.get("/")
def index():
    user = current_user()
    return render_template("admin/index.html", resources=views_for(user), user=user, role_page=role_page(user))
