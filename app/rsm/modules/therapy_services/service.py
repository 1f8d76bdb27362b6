from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import or_
from sqlalchemy.orm import aliased

from app.rsm.activity import Action, record_activity
from app.rsm.errors import NotFound
from app.rsm.listing import (
    ListParams,
    ListSpec,
    contains,
    iso_date,
    one_of,
    ordered,
    paginate,
    same_day,
    text,
    uuid_value,
)
from app.rsm.models import User, utcnow
from app.rsm.modules.providers.models import Provider
from app.rsm.modules.students.models import Student
from app.rsm.modules.therapy_services.models import TherapyService
from app.rsm.utils import apply_changes, iso
from app.rsm.validation import PayloadValidator

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

SERVICE_TYPES = ("SPEECH", "OCCUPATIONAL", "PHYSICAL")
STATUSES = ("SCHEDULED", "COMPLETED", "MISSED")
DELIVERY_MODES = ("VIRTUAL", "IN_PERSON")

LIST_SPEC = ListSpec(
    filters={
        "student": text,
        "studentId": uuid_value,
        "provider": text,
        "providerId": uuid_value,
        "serviceType": one_of(*SERVICE_TYPES),
        "status": one_of(*STATUSES),
        "serviceBeginDate": iso_date,
        "sessionDate": iso_date,
        "deliveryMode": one_of(*DELIVERY_MODES),
        "nextMeetingDate": iso_date,
    },
    sort_fields=(
        "student",
        "provider",
        "serviceType",
        "status",
        "serviceBeginDate",
        "sessionDate",
        "deliveryMode",
        "nextMeetingDate",
    ),
    default_sort="provider",
    default_order="desc",
)

FIELDS = {
    "studentId": "student_id",
    "providerId": "provider_id",
    "serviceType": "service_type",
    "status": "status",
    "serviceBeginDate": "service_begin_date",
    "sessionDate": "session_date",
    "sessionNotes": "session_notes",
    "deliveryMode": "delivery_mode",
    "goalTracking": "goal_tracking",
    "ieps": "ieps",
    "nextMeetingDate": "next_meeting_date",
}


def _check(payload: dict, *, partial: bool) -> PayloadValidator:
    v = PayloadValidator(payload, partial=partial)
    v.uuid("studentId")
    v.uuid("providerId")
    v.choice("serviceType", SERVICE_TYPES)
    v.choice("status", STATUSES, default="SCHEDULED")
    v.datetime("serviceBeginDate")
    v.datetime("sessionDate")
    v.string("sessionNotes", strip=False)
    v.choice("deliveryMode", DELIVERY_MODES)
    v.json("goalTracking")
    v.json("ieps")
    v.datetime("nextMeetingDate", nullable=True, default=None)
    return v


def _ensure_references(s: "Session", data: dict) -> None:
    if "studentId" in data:
        student = s.get(Student, data["studentId"])
        if not student or student.deleted_at is not None:
            raise NotFound("STUDENT")
    if "providerId" in data:
        provider = s.get(Provider, data["providerId"])
        if not provider or provider.deleted_at is not None:
            raise NotFound("PROVIDER")


def get_therapy_service(s: "Session", therapy_service_id: str) -> TherapyService:
    therapy_service = s.get(TherapyService, therapy_service_id)
    if not therapy_service or therapy_service.deleted_at is not None:
        raise NotFound("THERAPY_SERVICE")
    return therapy_service


def _student_name(value: str):
    return TherapyService.student.has(
        or_(contains(Student.first_name, value), contains(Student.last_name, value))
    )


def _provider_name(value: str):
    return TherapyService.provider.has(
        Provider.user.has(or_(contains(User.first_name, value), contains(User.last_name, value)))
    )


def list_therapy_services(s: "Session", params: ListParams) -> tuple[list[dict], dict]:
    f = params.filters
    q = s.query(TherapyService).filter(TherapyService.deleted_at.is_(None))
    if "student" in f:
        q = q.filter(_student_name(f["student"]))
    if "studentId" in f:
        q = q.filter(TherapyService.student_id == f["studentId"])
    if "provider" in f:
        q = q.filter(_provider_name(f["provider"]))
    if "providerId" in f:
        q = q.filter(TherapyService.provider_id == f["providerId"])
    for key in ("serviceType", "status", "deliveryMode"):
        if key in f:
            q = q.filter(getattr(TherapyService, FIELDS[key]) == f[key])
    for key in ("serviceBeginDate", "sessionDate", "nextMeetingDate"):
        if key in f:
            q = q.filter(same_day(getattr(TherapyService, FIELDS[key]), f[key]))

    if params.sort_by == "student":
        q = q.outerjoin(Student, TherapyService.student_id == Student.id)
        columns = [Student.first_name, Student.last_name]
    elif params.sort_by == "provider":
        provider_user = aliased(User)
        q = q.outerjoin(Provider, TherapyService.provider_id == Provider.id).outerjoin(
            provider_user, Provider.user_id == provider_user.id
        )
        columns = [provider_user.first_name, provider_user.last_name]
    else:
        columns = [getattr(TherapyService, FIELDS[params.sort_by])]

    rows, pagination = paginate(q, params, ordered([*columns, TherapyService.id], params))
    return [serialize_therapy_service(r) for r in rows], pagination


def create_therapy_service(s: "Session", payload: dict, user: User) -> TherapyService:
    data = _check(payload, partial=False).cleaned()
    _ensure_references(s, data)

    therapy_service = TherapyService(**{attr: data.get(key) for key, attr in FIELDS.items() if key in data})
    s.add(therapy_service)
    s.flush()

    record_activity(s, actor=user, action=Action.CREATE_THERAPY_SERVICE, subject_id=therapy_service.id)
    return therapy_service


def update_therapy_service(s: "Session", therapy_service: TherapyService, payload: dict, user: User) -> TherapyService:
    data = _check(payload, partial=True).cleaned()
    _ensure_references(s, data)

    changes = apply_changes(therapy_service, data, FIELDS)
    therapy_service.updated_at = utcnow()
    record_activity(
        s,
        actor=user,
        action=Action.UPDATE_THERAPY_SERVICE,
        subject_id=therapy_service.id,
        metadata={"changes": changes} if changes else None,
    )
    return therapy_service


def delete_therapy_service(s: "Session", therapy_service: TherapyService, user: User) -> None:
    therapy_service.deleted_at = utcnow()
    record_activity(s, actor=user, action=Action.DELETE_THERAPY_SERVICE, subject_id=therapy_service.id)


def therapy_service_choices(s: "Session") -> list[tuple[str, str]]:
    rows = (
        s.query(TherapyService)
        .filter(TherapyService.deleted_at.is_(None))
        .order_by(TherapyService.session_date.desc())
        .limit(500)
        .all()
    )
    return [
        (t.id, f"{t.service_type.title()} - {t.student.first_name} {t.student.last_name} ({t.session_date:%Y-%m-%d})")
        for t in rows
    ]


def serialize_therapy_service(therapy_service: TherapyService) -> dict:
    student = therapy_service.student
    provider = therapy_service.provider
    provider_user = provider.user if provider else None
    return {
        "id": therapy_service.id,
        "studentId": therapy_service.student_id,
        "providerId": therapy_service.provider_id,
        "serviceType": therapy_service.service_type,
        "status": therapy_service.status,
        "serviceBeginDate": iso(therapy_service.service_begin_date),
        "sessionDate": iso(therapy_service.session_date),
        "sessionNotes": therapy_service.session_notes,
        "deliveryMode": therapy_service.delivery_mode,
        "goalTracking": therapy_service.goal_tracking,
        "ieps": therapy_service.ieps,
        "nextMeetingDate": iso(therapy_service.next_meeting_date),
        "student": (
            {"id": student.id, "firstName": student.first_name, "lastName": student.last_name} if student else None
        ),
        "provider": {
            "id": therapy_service.provider_id,
            "user": (
                {
                    "id": provider_user.id,
                    "firstName": provider_user.first_name,
                    "lastName": provider_user.last_name,
                    "email": provider_user.email,
                }
                if provider_user
                else None
            ),
        },
        "createdAt": iso(therapy_service.created_at),
        "updatedAt": iso(therapy_service.updated_at),
    }
