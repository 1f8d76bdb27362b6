from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import or_

from app.rsm.activity import Action, record_activity
from app.rsm.errors import NotFound
from app.rsm.listing import ListParams, ListSpec, contains, integer, one_of, ordered, paginate, text
from app.rsm.models import User, utcnow
from app.rsm.modules.therapists.models import Therapist
from app.rsm.utils import apply_changes, iso
from app.rsm.validation import PayloadValidator

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

STATUSES = ("ACTIVE", "INACTIVE", "PENDING")

LIST_SPEC = ListSpec(
    filters={
        "disciplines": text,
        "licenseNumber": text,
        "medicaidNationalProviderId": integer,
        "stateMedicaidProviderId": integer,
        "status": one_of(*STATUSES),
        "name": text,
    },
    sort_fields=(
        "disciplines",
        "licenseNumber",
        "medicaidNationalProviderId",
        "stateMedicaidProviderId",
        "status",
        "name",
    ),
    default_sort="status",
)

FIELDS = {
    "userId": "user_id",
    "disciplines": "disciplines",
    "licenseNumber": "license_number",
    "medicaidNationalProviderId": "medicaid_national_provider_id",
    "socialSecurity": "social_security",
    "stateMedicaidProviderId": "state_medicaid_provider_id",
    "status": "status",
}


def _check(payload: dict, *, partial: bool) -> PayloadValidator:
    v = PayloadValidator(payload, partial=partial)
    v.uuid("userId")
    v.string("disciplines", max_length=255)
    v.string("licenseNumber", max_length=64)
    v.integer("medicaidNationalProviderId")
    v.string("socialSecurity", max_length=64)
    v.integer("stateMedicaidProviderId")
    v.choice("status", STATUSES, default="PENDING")
    return v


def _ensure_user(s: "Session", data: dict) -> None:
    if "userId" in data:
        user = s.get(User, data["userId"])
        if not user or user.deleted_at is not None:
            raise NotFound("USER")


def get_therapist(s: "Session", therapist_id: str) -> Therapist:
    therapist = s.get(Therapist, therapist_id)
    if not therapist or therapist.deleted_at is not None:
        raise NotFound("THERAPIST")
    return therapist


def list_therapists(s: "Session", params: ListParams) -> tuple[list[dict], dict]:
    f = params.filters
    q = s.query(Therapist).filter(Therapist.deleted_at.is_(None))
    if "disciplines" in f:
        q = q.filter(contains(Therapist.disciplines, f["disciplines"]))
    if "licenseNumber" in f:
        q = q.filter(contains(Therapist.license_number, f["licenseNumber"]))
    if "medicaidNationalProviderId" in f:
        q = q.filter(Therapist.medicaid_national_provider_id == f["medicaidNationalProviderId"])
    if "stateMedicaidProviderId" in f:
        q = q.filter(Therapist.state_medicaid_provider_id == f["stateMedicaidProviderId"])
    if "status" in f:
        q = q.filter(Therapist.status == f["status"])
    if "name" in f:
        q = q.filter(Therapist.user.has(or_(contains(User.first_name, f["name"]), contains(User.last_name, f["name"]))))

    if params.sort_by == "name":
        q = q.outerjoin(User, Therapist.user_id == User.id)
        columns = [User.first_name, User.last_name]
    else:
        columns = [getattr(Therapist, FIELDS[params.sort_by])]

    rows, pagination = paginate(q, params, ordered([*columns, Therapist.id], params))
    return [serialize_therapist(t) for t in rows], pagination


def create_therapist(s: "Session", payload: dict, user: User) -> Therapist:
    data = _check(payload, partial=False).cleaned()
    _ensure_user(s, data)

    therapist = Therapist(**{attr: data[key] for key, attr in FIELDS.items()})
    s.add(therapist)
    s.flush()

    record_activity(s, actor=user, action=Action.CREATE_THERAPIST, subject_id=therapist.id)
    return therapist


def update_therapist(s: "Session", therapist: Therapist, payload: dict, user: User) -> Therapist:
    data = _check(payload, partial=True).cleaned()
    _ensure_user(s, data)

    changes = apply_changes(therapist, data, FIELDS)
    # never write the SSN into the activity log
    if "socialSecurity" in changes:
        changes["socialSecurity"] = {"old": "***", "new": "***"}
    therapist.updated_at = utcnow()
    record_activity(
        s,
        actor=user,
        action=Action.UPDATE_THERAPIST,
        subject_id=therapist.id,
        metadata={"changes": changes} if changes else None,
    )
    return therapist


def delete_therapist(s: "Session", therapist: Therapist, user: User) -> None:
    therapist.deleted_at = utcnow()
    record_activity(s, actor=user, action=Action.DELETE_THERAPIST, subject_id=therapist.id)


def serialize_therapist(therapist: Therapist) -> dict:
    return {
        "id": therapist.id,
        "userId": therapist.user_id,
        "name": therapist.user.full_name if therapist.user else None,
        "disciplines": therapist.disciplines,
        "licenseNumber": therapist.license_number,
        "medicaidNationalProviderId": therapist.medicaid_national_provider_id,
        "socialSecurity": therapist.social_security,
        "stateMedicaidProviderId": therapist.state_medicaid_provider_id,
        "status": therapist.status,
        "createdAt": iso(therapist.created_at),
        "updatedAt": iso(therapist.updated_at),
    }
