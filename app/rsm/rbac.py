from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import current_app, g

from app.rsm.errors import unauthenticated, unauthorized
from app.rsm.models import User


class Permission:
    MANAGE_USERS = "MANAGE_USERS"
    ASSIGN_ROLES = "ASSIGN_ROLES"
    DEACTIVATE_USERS = "DEACTIVATE_USERS"
    RESET_PASSWORDS = "RESET_PASSWORDS"
    CONFIGURE_TEST_SITES = "CONFIGURE_TEST_SITES"
    SCHEDULE_TESTS = "SCHEDULE_TESTS"
    ASSIGN_ACCOMMODATIONS = "ASSIGN_ACCOMMODATIONS"
    TRACK_STUDENT_CONFIRMATIONS = "TRACK_STUDENT_CONFIRMATIONS"
    MANAGE_EQUIPMENT = "MANAGE_EQUIPMENT"
    MANAGE_TESTS = "MANAGE_TESTS"
    ASSIGN_STUDENTS = "ASSIGN_STUDENTS"
    TRACK_ATTENDANCE = "TRACK_ATTENDANCE"
    SEND_REMINDERS = "SEND_REMINDERS"
    VIEW_REPORTS = "VIEW_REPORTS"
    SCAN_QR_CODES = "SCAN_QR_CODES"
    REPORT_INCIDENTS = "REPORT_INCIDENTS"
    CONFIRM_TEST_LOCATION = "CONFIRM_TEST_LOCATION"
    VIEW_RESULTS = "VIEW_RESULT"
    VIEW_INVOICES = "VIEW_INVOICES"

    @classmethod
    def all(cls) -> list[str]:
        return [v for k, v in vars(cls).items() if k.isupper()]


ROLE_PERMISSIONS: dict[str, tuple[str, ...]] = {
    "ADMIN": (
        Permission.MANAGE_USERS,
        Permission.ASSIGN_ROLES,
        Permission.DEACTIVATE_USERS,
        Permission.RESET_PASSWORDS,
        Permission.CONFIGURE_TEST_SITES,
        Permission.SCHEDULE_TESTS,
        Permission.ASSIGN_ACCOMMODATIONS,
        Permission.TRACK_STUDENT_CONFIRMATIONS,
        Permission.MANAGE_EQUIPMENT,
        Permission.MANAGE_TESTS,
        Permission.ASSIGN_STUDENTS,
        Permission.SEND_REMINDERS,
        Permission.VIEW_REPORTS,
        Permission.VIEW_INVOICES,
    ),
    "TEACHER": (
        Permission.ASSIGN_ACCOMMODATIONS,
        Permission.TRACK_STUDENT_CONFIRMATIONS,
        Permission.MANAGE_EQUIPMENT,
        Permission.ASSIGN_STUDENTS,
        Permission.TRACK_ATTENDANCE,
        Permission.SEND_REMINDERS,
    ),
    "THERAPIST": (
        Permission.MANAGE_EQUIPMENT,
        Permission.TRACK_ATTENDANCE,
        Permission.SCAN_QR_CODES,
        Permission.REPORT_INCIDENTS,
    ),
    "PROVIDER": (Permission.CONFIRM_TEST_LOCATION,),
    "SUPERVISOR": (Permission.VIEW_RESULTS,),
}


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active or not user.role:
        return False
    for perm in user.role.permissions:
        if perm.name == permission_key:
            return True
    return False


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            if not user or not user.is_active:
                raise unauthenticated()
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                current_app.logger.warning(
                    "Forbidden: missing_permission=%s user_id=%s request_id=%s",
                    permission_key,
                    user.id,
                    getattr(g, "request_id", None),
                )
                raise unauthorized()
            return fn(*args, **kwargs)

        return wrapped

    return decorator
