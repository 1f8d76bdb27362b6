import json
import logging
from typing import Any

from flask import g, has_request_context
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.rsm.models import ActivityLog, User

logger = logging.getLogger(__name__)


class Action:
    CREATE_USER = "CREATE_USER"
    UPDATE_USER = "UPDATE_USER"
    DELETE_USER = "DELETE_USER"
    INVITE_USER = "INVITE_USER"

    CREATE_SCHOOL = "CREATE_SCHOOL"
    UPDATE_SCHOOL = "UPDATE_SCHOOL"
    DELETE_SCHOOL = "DELETE_SCHOOL"

    CREATE_STUDENT = "CREATE_STUDENT"
    UPDATE_STUDENT = "UPDATE_STUDENT"
    DELETE_STUDENT = "DELETE_STUDENT"

    ACCEPT_INVITE = "ACCEPT_INVITE"
    LOGIN = "LOGIN"
    RESET_PASSWORD = "RESET_PASSWORD"

    CREATE_PROVIDER = "CREATE_PROVIDER"
    UPDATE_PROVIDER = "UPDATE_PROVIDER"
    DELETE_PROVIDER = "DELETE_PROVIDER"

    CREATE_THERAPIST = "CREATE_THERAPIST"
    UPDATE_THERAPIST = "UPDATE_THERAPIST"
    DELETE_THERAPIST = "DELETE_THERAPIST"

    CREATE_THERAPY_SERVICE = "CREATE_THERAPY_SERVICE"
    UPDATE_THERAPY_SERVICE = "UPDATE_THERAPY_SERVICE"
    DELETE_THERAPY_SERVICE = "DELETE_THERAPY_SERVICE"

    CREATE_REPORT = "CREATE_REPORT"
    UPDATE_REPORT = "UPDATE_REPORT"
    DELETE_REPORT = "DELETE_REPORT"

    CREATE_INVOICE = "CREATE_INVOICE"
    UPDATE_INVOICE = "UPDATE_INVOICE"
    DELETE_INVOICE = "DELETE_INVOICE"


def _resolve_user_id(s: Session, actor: User | None, email: str | None) -> str | None:
    if actor is not None:
        return actor.id
    if email:
        user = s.query(User).filter(User.email == email.strip().lower()).one_or_none()
        return user.id if user else None
    return None


def record_activity(
    s: Session,
    *,
    action: str,
    actor: User | None = None,
    email: str | None = None,
    subject_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> ActivityLog | None:
    """
    Insert an activity row inside a SAVEPOINT of the caller's transaction; it is
    committed together with the mutation.

    The actor is either a user or, for the login/reset flows, an email. With no
    resolvable actor nothing is written. A failed insert only rolls back the
    savepoint: it is logged and the mutation itself still goes through.
    """
    # the mutation's own flush errors must propagate to the caller
    s.flush()
    try:
        user_id = _resolve_user_id(s, actor, email)
        if not user_id:
            return None
        rid = request_id or (getattr(g, "request_id", None) if has_request_context() else None)
        entry = ActivityLog(
            request_id=rid,
            user_id=user_id,
            subject_id=subject_id,
            action=action,
            metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
        )
        with s.begin_nested():
            s.add(entry)
            s.flush()
        return entry
    except (SQLAlchemyError, TypeError, ValueError):
        logger.warning("Failed to record activity %s (subject_id=%s)", action, subject_id, exc_info=True)
        return None
