from __future__ import annotations

from typing import TYPE_CHECKING

from app.rsm.activity import Action, record_activity
from app.rsm.errors import NotFound
from app.rsm.listing import ListParams, ListSpec, contains, integer, ordered, paginate, text
from app.rsm.models import utcnow
from app.rsm.modules.schools.models import School
from app.rsm.utils import apply_changes, iso
from app.rsm.validation import PayloadValidator

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.rsm.models import User


LIST_SPEC = ListSpec(
    filters={
        "name": text,
        "district": text,
        "state": text,
        "contactEmail": text,
        "maxTravelDistance": integer,
        "maxStudentsPerTest": integer,
    },
    sort_fields=("name", "district", "state", "contactEmail", "maxTravelDistance", "maxStudentsPerTest"),
    default_sort="name",
)

# payload key -> School attribute
FIELDS = {
    "name": "name",
    "district": "district",
    "state": "state",
    "contactEmail": "contact_email",
    "maxTravelDistance": "max_travel_distance",
    "maxStudentsPerTest": "max_students_per_test",
}


def _check(payload: dict, *, partial: bool) -> PayloadValidator:
    v = PayloadValidator(payload, partial=partial)
    v.string("name", max_length=255)
    v.string("district", max_length=255)
    v.string("state", max_length=128)
    v.email("contactEmail")
    v.integer("maxTravelDistance", min_value=0)
    v.integer("maxStudentsPerTest", min_value=0)
    return v


def get_school(s: "Session", school_id: str) -> School:
    school = s.get(School, school_id)
    if not school or school.deleted_at is not None:
        raise NotFound("SCHOOL")
    return school


def list_schools(s: "Session", params: ListParams) -> tuple[list[dict], dict]:
    f = params.filters
    q = s.query(School).filter(School.deleted_at.is_(None))
    for key in ("name", "district", "state", "contactEmail"):
        if key in f:
            q = q.filter(contains(getattr(School, FIELDS[key]), f[key]))
    for key in ("maxTravelDistance", "maxStudentsPerTest"):
        if key in f:
            q = q.filter(getattr(School, FIELDS[key]) == f[key])

    sort_column = getattr(School, FIELDS[params.sort_by])
    rows, pagination = paginate(q, params, ordered([sort_column, School.id], params))
    return [serialize_school(r) for r in rows], pagination


def create_school(s: "Session", payload: dict, user: "User") -> School:
    """Create a new school."""

    data = _check(payload, partial=False).cleaned()
    school = School(**{attr: data[key] for key, attr in FIELDS.items()})
    s.add(school)
    s.flush()

    record_activity(
        s,
        actor=user,
        action=Action.CREATE_SCHOOL,
        subject_id=school.id,
        metadata={"name": school.name},
    )
    return school


def update_school(s: "Session", school: School, payload: dict, user: "User") -> School:
    """Partial update; only keys present in the payload are touched."""
    data = _check(payload, partial=True).cleaned()
    changes = apply_changes(school, data, FIELDS)
    school.updated_at = utcnow()

    record_activity(
        s,
        actor=user,
        action=Action.UPDATE_SCHOOL,
        subject_id=school.id,
        metadata={"changes": changes} if changes else None,
    )
    return school


def delete_school(s: "Session", school: School, user: "User") -> None:
    """Soft delete: the row stays for history but disappears from the API."""
    school.deleted_at = utcnow()
    record_activity(s, actor=user, action=Action.DELETE_SCHOOL, subject_id=school.id)


def serialize_school(school: School) -> dict:
    return {
        "id": school.id,
        "name": school.name,
        "district": school.district,
        "state": school.state,
        "contactEmail": school.contact_email,
        "maxTravelDistance": school.max_travel_distance,
        "maxStudentsPerTest": school.max_students_per_test,
        "createdAt": iso(school.created_at),
        "updatedAt": iso(school.updated_at),
    }


def school_choices(s: "Session") -> list[tuple[str, str]]:
    rows = s.query(School).filter(School.deleted_at.is_(None)).order_by(School.name).all()
    return [(school.id, school.name) for school in rows]
