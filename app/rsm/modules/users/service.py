from __future__ import annotations

import logging
import secrets
import smtplib
from typing import TYPE_CHECKING

from flask import current_app
from werkzeug.security import generate_password_hash

from app.rsm.activity import Action, record_activity
from app.rsm.emails import send_invite_email, send_password_reset_email
from app.rsm.errors import ApiError, NotFound
from app.rsm.listing import ListParams, ListSpec, contains, one_of, ordered, paginate, text
from app.rsm.models import Role, User, UserToken, utcnow
from app.rsm.modules.schools.models import School
from app.rsm.rbac import ROLE_PERMISSIONS
from app.rsm.security import expiry, new_one_time_token
from app.rsm.utils import apply_changes, iso
from app.rsm.validation import PayloadValidator

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

SECURITY_LEVELS = ("FULL_ACCESS", "LIMITED", "READ_ONLY")
STATUSES = ("ACTIVE", "INACTIVE")
ROLE_NAMES = tuple(ROLE_PERMISSIONS)

# user_tokens.type
PASSWORD_RESET = "PASSWORD_RESET"
INVITATION = "INVITATION"

LIST_SPEC = ListSpec(
    filters={
        "name": text,
        "school": text,
        "role": one_of(*ROLE_NAMES),
        "status": one_of(*STATUSES),
    },
    sort_fields=("name", "school", "role", "status"),
    default_sort="name",
    per_page_min=10,
    per_page_max=300,
)

FIELDS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "email": "email",
    "phoneNumber": "phone_number",
    "securityLevel": "security_level",
    "status": "status",
    "schoolId": "school_id",
    "roleId": "role_id",
}


def _check(payload: dict, *, partial: bool) -> PayloadValidator:
    v = PayloadValidator(payload, partial=partial)
    v.string("firstName", max_length=128)
    v.string("lastName", max_length=128)
    v.email("email")
    v.string("phoneNumber", nullable=True, max_length=64, default=None)
    v.choice("securityLevel", SECURITY_LEVELS)
    v.choice("status", STATUSES)
    v.uuid("schoolId")
    v.uuid("roleId")
    return v


def _ensure_references(s: "Session", data: dict) -> None:
    school_id = data.get("schoolId")
    if school_id:
        school = s.get(School, school_id)
        if not school or school.deleted_at is not None:
            raise NotFound("SCHOOL")
    role_id = data.get("roleId")
    if role_id and s.get(Role, role_id) is None:
        raise NotFound("ROLE")


def _ensure_email_free(s: "Session", email: str, *, exclude_id: str | None = None) -> None:
    q = s.query(User.id).filter(User.email == email)
    if exclude_id:
        q = q.filter(User.id != exclude_id)
    if q.first() is not None:
        raise ApiError("Email already in use.", code="EMAIL_ALREADY_IN_USE", status=409)


def get_user(s: "Session", user_id: str) -> User:
    user = s.get(User, user_id)
    if not user or user.deleted_at is not None:
        raise NotFound("USER")
    return user


def list_users(s: "Session", params: ListParams) -> tuple[list[dict], dict]:
    f = params.filters
    q = s.query(User).filter(User.deleted_at.is_(None))
    if "name" in f:
        q = q.filter(
            contains(User.first_name, f["name"])
            | contains(User.last_name, f["name"])
            | contains(User.email, f["name"])
        )
    if "school" in f:
        q = q.filter(User.school.has(contains(School.name, f["school"])))
    if "role" in f:
        q = q.filter(User.role.has(Role.name == f["role"]))
    if "status" in f:
        q = q.filter(User.status == f["status"])

    if params.sort_by == "school":
        q = q.outerjoin(School, User.school_id == School.id)
        columns = [School.name]
    elif params.sort_by == "role":
        q = q.outerjoin(Role, User.role_id == Role.id)
        columns = [Role.name]
    elif params.sort_by == "status":
        columns = [User.status]
    else:
        columns = [User.first_name, User.last_name]

    rows, pagination = paginate(q, params, ordered([*columns, User.id], params))
    return [serialize_user(u) for u in rows], pagination


def create_user(s: "Session", payload: dict, actor: User | None, *, send_invite: bool = False) -> User:
    """
    New users always start INACTIVE with no usable password; they become active by
    accepting an invite (send_invite=True) or through a password reset.
    """
    data = _check(payload, partial=False).cleaned()
    _ensure_references(s, data)
    _ensure_email_free(s, data["email"])

    user = User(**{attr: data[key] for key, attr in FIELDS.items()})
    user.status = "INACTIVE"
    user.password_hash = ""
    s.add(user)
    s.flush()

    record_activity(s, actor=actor, action=Action.CREATE_USER, subject_id=user.id)
    if send_invite:
        invite_user(s, user, actor)
    return user


def invite_user(s: "Session", user: User, actor: User | None) -> None:
    token = _store_token(s, user, INVITATION, current_app.config["INVITE_TOKEN_MAX_AGE"])
    send_invite_email(to=user.email, token=token)
    record_activity(s, actor=actor, action=Action.INVITE_USER, subject_id=user.id)


def update_user(s: "Session", user: User, payload: dict, actor: User | None) -> User:
    data = _check(payload, partial=True).cleaned()
    _ensure_references(s, data)
    if "email" in data:
        _ensure_email_free(s, data["email"], exclude_id=user.id)

    changes = apply_changes(user, data, FIELDS)
    user.updated_at = utcnow()
    record_activity(
        s,
        actor=actor,
        action=Action.UPDATE_USER,
        subject_id=user.id,
        metadata={"changes": changes} if changes else None,
    )
    return user


def delete_user(s: "Session", user: User, actor: User | None) -> None:
    user.deleted_at = utcnow()
    record_activity(s, actor=actor, action=Action.DELETE_USER, subject_id=user.id)


def _store_token(s: "Session", user: User, token_type: str, max_age: int) -> str:
    """Upsert the user's single token of this type."""
    token = new_one_time_token()
    row = s.query(UserToken).filter(UserToken.user_id == user.id, UserToken.type == token_type).one_or_none()
    if row is None:
        row = UserToken(user_id=user.id, type=token_type)
        s.add(row)
    row.token = token
    row.expires_at = expiry(max_age)
    s.flush()
    return token


def start_password_reset(s: "Session", email: str) -> None:
    """Unknown emails are ignored so the endpoint does not reveal which accounts exist."""
    user = s.query(User).filter(User.email == email.strip().lower(), User.deleted_at.is_(None)).one_or_none()
    if user is None:
        logger.info("Password reset requested for unknown email")
        return
    token = _store_token(s, user, PASSWORD_RESET, current_app.config["PASSWORD_RESET_TOKEN_MAX_AGE"])
    s.commit()
    try:
        send_password_reset_email(to=user.email, token=token)
    except (smtplib.SMTPException, OSError) as e:
        # same 204 as an unknown email; the token stays valid for a retry
        logger.warning("Password reset email to user %s failed: %s", user.id, e)


def set_password_with_token(
    s: "Session",
    email: str,
    token: str,
    new_password: str,
    *,
    token_type: str,
    activate: bool = False,
) -> User:
    """Consume a reset/invite token and set the password. The token is deleted on success."""
    invalid = ApiError("Invalid password reset token.", code="INVALID_RESET_TOKEN", status=400)
    user = s.query(User).filter(User.email == email.strip().lower(), User.deleted_at.is_(None)).one_or_none()
    if user is None:
        raise invalid
    row = next((t for t in user.tokens if t.type == token_type), None)
    if row is None or not token or not secrets.compare_digest(row.token.encode(), token.encode()):
        raise invalid
    if row.expires_at < utcnow():
        raise ApiError("Password reset token has expired.", code="RESET_TOKEN_EXPIRED", status=400)

    user.password_hash = generate_password_hash(new_password)
    if activate:
        user.status = "ACTIVE"
    user.tokens.remove(row)
    return user


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "email": user.email,
        "phoneNumber": user.phone_number,
        "securityLevel": user.security_level,
        "status": user.status,
        "lastLogin": iso(user.last_login),
        "school": {"id": user.school.id, "name": user.school.name} if user.school else None,
        "role": {"id": user.role.id, "name": user.role.name} if user.role else None,
        "createdAt": iso(user.created_at),
        "updatedAt": iso(user.updated_at),
    }


def user_choices(s: "Session", role: str | None = None) -> list[tuple[str, str]]:
    """Active users for select boxes, optionally limited to one role name."""
    q = s.query(User).filter(User.deleted_at.is_(None))
    if role:
        q = q.filter(User.role.has(Role.name == role))
    rows = q.order_by(User.first_name, User.last_name).limit(1000).all()
    return [(u.id, f"{u.full_name} <{u.email}>") for u in rows]
