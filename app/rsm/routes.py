from flask import Blueprint, current_app, redirect, url_for

from app.rsm.db import database_ok

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return redirect(url_for("admin.index"))


@bp.get("/health")
def health():
    """Readiness: the app is up and the database answers."""
    db = database_ok(current_app)
    return {"ok": db, "database": "ok" if db else "unavailable"}, 200 if db else 503


@bp.get("/healthz")
def healthz():
    # liveness only; never touches the database
    return "ok", 200
