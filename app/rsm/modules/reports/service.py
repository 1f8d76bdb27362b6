from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import or_

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
from app.rsm.modules.reports.models import Report
from app.rsm.modules.schools.models import School
from app.rsm.modules.students.models import Student
from app.rsm.modules.therapy_services.models import TherapyService
from app.rsm.modules.therapy_services.service import SERVICE_TYPES
from app.rsm.utils import apply_changes, iso
from app.rsm.validation import PayloadValidator

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

REPORT_TYPES = ("PROGRESS", "ATTENDANCE", "BILLING", "ELIGIBILITY")

LIST_SPEC = ListSpec(
    filters={
        "reportType": one_of(*REPORT_TYPES),
        "therapyServiceId": uuid_value,
        "schoolName": text,
        "studentName": text,
        "therapyServiceType": one_of(*SERVICE_TYPES),
        "createdAt": iso_date,
    },
    sort_fields=(
        "reportType",
        "createdAt",
        "updatedAt",
        "content",
        "schoolName",
        "studentName",
        "therapyServiceType",
    ),
    default_sort="createdAt",
    default_order="desc",
)

FIELDS = {
    "schoolId": "school_id",
    "studentId": "student_id",
    "therapyServiceId": "therapy_service_id",
    "reportType": "report_type",
    "content": "content",
}


def _check(payload: dict, *, partial: bool) -> PayloadValidator:
    v = PayloadValidator(payload, partial=partial)
    v.uuid("schoolId")
    v.uuid("studentId")
    v.uuid("therapyServiceId")
    v.choice("reportType", REPORT_TYPES)
    v.string("content", strip=False)
    return v


def _ensure_references(s: "Session", data: dict) -> None:
    for key, model, entity in (
        ("schoolId", School, "SCHOOL"),
        ("studentId", Student, "STUDENT"),
        ("therapyServiceId", TherapyService, "THERAPY_SERVICE"),
    ):
        if key in data:
            row = s.get(model, data[key])
            if not row or row.deleted_at is not None:
                raise NotFound(entity)


def get_report(s: "Session", report_id: str) -> Report:
    report = s.get(Report, report_id)
    if not report or report.deleted_at is not None:
        raise NotFound("REPORT")
    return report


def list_reports(s: "Session", params: ListParams) -> tuple[list[dict], dict]:
    f = params.filters
    q = s.query(Report).filter(Report.deleted_at.is_(None))
    if "reportType" in f:
        q = q.filter(Report.report_type == f["reportType"])
    if "therapyServiceId" in f:
        q = q.filter(Report.therapy_service_id == f["therapyServiceId"])
    if "schoolName" in f:
        q = q.filter(Report.school.has(contains(School.name, f["schoolName"])))
    if "studentName" in f:
        q = q.filter(
            Report.student.has(
                or_(contains(Student.first_name, f["studentName"]), contains(Student.last_name, f["studentName"]))
            )
        )
    if "therapyServiceType" in f:
        q = q.filter(Report.therapy_service.has(TherapyService.service_type == f["therapyServiceType"]))
    if "createdAt" in f:
        q = q.filter(same_day(Report.created_at, f["createdAt"]))

    if params.sort_by == "schoolName":
        q = q.outerjoin(School, Report.school_id == School.id)
        columns = [School.name]
    elif params.sort_by == "studentName":
        q = q.outerjoin(Student, Report.student_id == Student.id)
        columns = [Student.last_name, Student.first_name]
    elif params.sort_by == "therapyServiceType":
        q = q.outerjoin(TherapyService, Report.therapy_service_id == TherapyService.id)
        columns = [TherapyService.service_type]
    else:
        columns = [
            {
                "reportType": Report.report_type,
                "createdAt": Report.created_at,
                "updatedAt": Report.updated_at,
                "content": Report.content,
            }[params.sort_by]
        ]

    rows, pagination = paginate(q, params, ordered([*columns, Report.id], params))
    return [serialize_report(r) for r in rows], pagination


def create_report(s: "Session", payload: dict, user: User) -> Report:
    data = _check(payload, partial=False).cleaned()
    _ensure_references(s, data)

    report = Report(**{attr: data[key] for key, attr in FIELDS.items()})
    s.add(report)
    s.flush()

    record_activity(s, actor=user, action=Action.CREATE_REPORT, subject_id=report.id)
    return report


def update_report(s: "Session", report: Report, payload: dict, user: User) -> Report:
    data = _check(payload, partial=True).cleaned()
    _ensure_references(s, data)

    changes = apply_changes(report, data, FIELDS)
    # report bodies can be long; log which fields changed, not their text
    if "content" in changes:
        changes["content"] = {"changed": True}
    report.updated_at = utcnow()
    record_activity(
        s,
        actor=user,
        action=Action.UPDATE_REPORT,
        subject_id=report.id,
        metadata={"changes": changes} if changes else None,
    )
    return report


def delete_report(s: "Session", report: Report, user: User) -> None:
    report.deleted_at = utcnow()
    record_activity(s, actor=user, action=Action.DELETE_REPORT, subject_id=report.id)


def serialize_report(report: Report) -> dict:
    school, student, therapy_service = report.school, report.student, report.therapy_service
    return {
        "id": report.id,
        "schoolId": report.school_id,
        "studentId": report.student_id,
        "therapyServiceId": report.therapy_service_id,
        "reportType": report.report_type,
        "content": report.content,
        "school": {"id": school.id, "name": school.name} if school else None,
        "student": (
            {"id": student.id, "firstName": student.first_name, "lastName": student.last_name} if student else None
        ),
        "therapyService": (
            {"id": therapy_service.id, "serviceType": therapy_service.service_type} if therapy_service else None
        ),
        "createdAt": iso(report.created_at),
        "updatedAt": iso(report.updated_at),
    }
