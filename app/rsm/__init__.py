import logging
from datetime import timedelta

from flask import Flask, g, request, session
from dotenv import load_dotenv

from app.rsm.config import load_config, production_problems
from app.rsm.db import init_db, teardown_db_session
from app.rsm.errors import ApiError, is_browser_path, register_error_handlers
from app.rsm.rate_limit import init_rate_limiting
from app.rsm.routes import bp as routes_bp
from app.rsm.auth import bp as auth_bp, load_current_user
from app.rsm.admin import bp as admin_bp
from app.rsm.account import bp as account_bp
from app.rsm.dashboards import bp as dashboards_bp
from app.rsm.modules import admin_modules, api_modules
from app.rsm.rbac import user_has_permission
from app.rsm.security import ensure_csrf_token, validate_csrf

logger = logging.getLogger(__name__)

# Form posts that run before a session (and its CSRF token) exists.
CSRF_EXEMPT_ENDPOINTS = ("admin.login_post", "admin.logout")


def _register_template_helpers(app: Flask) -> None:
    @app.context_processor
    def _inject_user() -> dict:
        user = getattr(g, "current_user", None)
        return {
            "csrf_token": ensure_csrf_token() if is_browser_path(request.path) else "",
            "current_user": user,
            "has_perm": lambda key: user_has_permission(user, key),
        }

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d") -> str:
        if value is None:
            return "-"
        return value.strftime(format) if hasattr(value, "strftime") else str(value)


def _admin_csrf_guard():
    # Bearer-token API calls carry no cookie, so only the browser pages are guarded.
    if not is_browser_path(request.path):
        return None
    ensure_csrf_token()
    session.permanent = True
    if request.method in ("GET", "HEAD", "OPTIONS") or request.endpoint in CSRF_EXEMPT_ENDPOINTS:
        return None
    if not validate_csrf(request):
        raise ApiError("CSRF token missing or invalid.", code="INVALID_CSRF_TOKEN", status=400)
    return None


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    app.json.sort_keys = False

    problems = production_problems(app.config)
    if problems:
        for problem in problems:
            logger.error("Refusing to start: %s", problem)
        raise RuntimeError(problems[0])

    init_db(app)
    _register_template_helpers(app)

    # request_id and current_user must exist before the limiter keys on them.
    app.before_request(load_current_user)
    app.before_request(_admin_csrf_guard)
    init_rate_limiting(app)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(dashboards_bp, url_prefix="/admin/dashboard")
    app.register_blueprint(account_bp)
    for module in admin_modules():
        app.register_blueprint(module.bp, url_prefix="/admin")
    for module in api_modules():
        app.register_blueprint(module.bp, url_prefix=module.URL_PREFIX)

    app.teardown_appcontext(teardown_db_session)
    register_error_handlers(app)

    logger.info("create_app() complete (env=%s, resources=%d)", app.config["ENV"], len(api_modules()))
    return app
