from __future__ import annotations

from typing import Any

from flask import Flask, current_app, g, jsonify, redirect, render_template, request, url_for
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    """
    Error with a stable machine-readable code; rendered as JSON for the API and
    as an error page on the browser paths.
    """

    status = 400

    def __init__(
        self,
        message: str,
        *,
        code: str,
        status: int | None = None,
        errors: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        if status is not None:
            self.status = status
        self.errors = errors

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class NotFound(ApiError):
    status = 404

    def __init__(self, entity: str, label: str | None = None) -> None:
        # entity is the upper snake name, e.g. "THERAPY_SERVICE"
        label = label or entity.replace("_", " ").capitalize()
        super().__init__(f"{label} not found.", code=f"{entity}_NOT_FOUND")


def invalid_request(errors: list[str]) -> ApiError:
    return ApiError("Invalid request.", code="INVALID_REQUEST", status=400, errors=errors)


def unauthenticated() -> ApiError:
    return ApiError("Unauthenticated.", code="UNAUTHENTICATED", status=401)


def unauthorized() -> ApiError:
    return ApiError("Unauthorized.", code="UNAUTHORIZED", status=403)


# Server-rendered pages: HTML errors, session login and CSRF-checked forms.
BROWSER_PREFIXES = ("/admin", "/reset-password", "/accept-invite")


def is_browser_path(path: str) -> bool:
    return path.startswith(BROWSER_PREFIXES)


def _wants_html() -> bool:
    return is_browser_path(request.path)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(e: ApiError):  # type: ignore[no-redef]
        if e.status >= 500:
            app.logger.error("ApiError %s (request_id=%s): %s", e.code, getattr(g, "request_id", None), e.message)
        if _wants_html():
            if e.status == 401:
                nxt = request.full_path or request.path
                if nxt.endswith("?"):
                    nxt = nxt[:-1]
                return redirect(url_for("admin.login_get", next=nxt))
            if e.status == 403:
                return render_template("errors/403.html", missing_permission=getattr(g, "missing_permission", None)), 403
            if e.status == 404:
                return render_template("errors/404.html", message=e.message), 404
            return render_template("errors/400.html", message=e.message, errors=e.errors or []), e.status
        return jsonify(e.to_dict()), e.status

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        if _wants_html():
            return render_template("errors/404.html", message="Page not found."), 404
        return jsonify({"message": "Not Found."}), 404

    @app.errorhandler(405)
    def _err_405(e):  # type: ignore[no-redef]
        return jsonify({"message": "Method Not Allowed."}), 405

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        return jsonify({"code": "PAYLOAD_TOO_LARGE", "message": "Request body too large."}), 413

    @app.errorhandler(Exception)
    def _err_500(e):  # type: ignore[no-redef]
        if isinstance(e, HTTPException):
            if _wants_html():
                return e
            return jsonify({"message": e.description}), e.code
        current_app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        if _wants_html():
            return render_template("errors/500.html"), 500
        return jsonify({"code": "INTERNAL_ERROR", "message": "An internal error occurred."}), 500
