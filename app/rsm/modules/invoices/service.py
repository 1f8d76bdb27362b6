from __future__ import annotations

from datetime import datetime, time, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import or_
from sqlalchemy.orm import aliased

from app.rsm.activity import Action, record_activity
from app.rsm.errors import NotFound
from app.rsm.listing import ListParams, ListSpec, contains, iso_date, one_of, ordered, paginate, text
from app.rsm.models import User, utcnow
from app.rsm.modules.invoices.models import Invoice
from app.rsm.modules.providers.models import Provider
from app.rsm.modules.students.models import Student
from app.rsm.modules.therapy_services.models import TherapyService
from app.rsm.modules.therapy_services.service import SERVICE_TYPES
from app.rsm.utils import apply_changes, iso
from app.rsm.validation import PayloadValidator

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

STATUSES = ("PENDING", "PAID", "DECLINED")

LIST_SPEC = ListSpec(
    filters={
        "status": one_of(*STATUSES),
        "providerName": text,
        "studentName": text,
        "therapyServiceType": one_of(*SERVICE_TYPES),
        "dateIssuedFrom": iso_date,
        "dateIssuedTo": iso_date,
    },
    sort_fields=(
        "status",
        "amount",
        "dateIssued",
        "createdAt",
        "updatedAt",
        "providerName",
        "studentName",
        "therapyServiceType",
    ),
    default_sort="dateIssued",
    default_order="desc",
)

FIELDS = {
    "providerId": "provider_id",
    "studentId": "student_id",
    "therapyServiceId": "therapy_service_id",
    "amount": "amount",
    "status": "status",
    "dateIssued": "date_issued",
}

_CENTS = Decimal("0.01")
# Numeric(10, 2)
MAX_AMOUNT = 99_999_999.99


def _check(payload: dict, *, partial: bool) -> PayloadValidator:
    v = PayloadValidator(payload, partial=partial)
    v.uuid("providerId")
    v.uuid("studentId")
    v.uuid("therapyServiceId")
    v.number("amount", min_value=-MAX_AMOUNT, max_value=MAX_AMOUNT)
    v.choice("status", STATUSES, default="PENDING")
    v.datetime("dateIssued", default=None)
    return v


def _cleaned(payload: dict, *, partial: bool) -> dict:
    data = _check(payload, partial=partial).cleaned()
    if "amount" in data:
        data["amount"] = Decimal(str(data["amount"])).quantize(_CENTS)
    if not partial and data.get("dateIssued") is None:
        data["dateIssued"] = utcnow()
    return data


def _ensure_references(s: "Session", data: dict) -> None:
    for key, model, entity in (
        ("providerId", Provider, "PROVIDER"),
        ("studentId", Student, "STUDENT"),
        ("therapyServiceId", TherapyService, "THERAPY_SERVICE"),
    ):
        if key in data:
            row = s.get(model, data[key])
            if not row or row.deleted_at is not None:
                raise NotFound(entity)


def get_invoice(s: "Session", invoice_id: str) -> Invoice:
    invoice = s.get(Invoice, invoice_id)
    if not invoice or invoice.deleted_at is not None:
        raise NotFound("INVOICE")
    return invoice


def list_invoices(s: "Session", params: ListParams) -> tuple[list[dict], dict]:
    f = params.filters
    q = s.query(Invoice).filter(Invoice.deleted_at.is_(None))
    if "status" in f:
        q = q.filter(Invoice.status == f["status"])
    if "dateIssuedFrom" in f:
        q = q.filter(Invoice.date_issued >= datetime.combine(f["dateIssuedFrom"], time.min))
    if "dateIssuedTo" in f:
        # inclusive: the whole "to" day counts
        q = q.filter(Invoice.date_issued < datetime.combine(f["dateIssuedTo"], time.min) + timedelta(days=1))
    if "providerName" in f:
        name = f["providerName"]
        q = q.filter(
            Invoice.provider.has(Provider.user.has(or_(contains(User.first_name, name), contains(User.last_name, name))))
        )
    if "studentName" in f:
        name = f["studentName"]
        q = q.filter(Invoice.student.has(or_(contains(Student.first_name, name), contains(Student.last_name, name))))
    if "therapyServiceType" in f:
        q = q.filter(Invoice.therapy_service.has(TherapyService.service_type == f["therapyServiceType"]))

    if params.sort_by == "providerName":
        provider_user = aliased(User)
        q = q.outerjoin(Provider, Invoice.provider_id == Provider.id).outerjoin(
            provider_user, Provider.user_id == provider_user.id
        )
        columns = [provider_user.first_name, provider_user.last_name]
    elif params.sort_by == "studentName":
        q = q.outerjoin(Student, Invoice.student_id == Student.id)
        columns = [Student.first_name, Student.last_name]
    elif params.sort_by == "therapyServiceType":
        q = q.outerjoin(TherapyService, Invoice.therapy_service_id == TherapyService.id)
        columns = [TherapyService.service_type]
    else:
        columns = [
            {
                "status": Invoice.status,
                "amount": Invoice.amount,
                "dateIssued": Invoice.date_issued,
                "createdAt": Invoice.created_at,
                "updatedAt": Invoice.updated_at,
            }[params.sort_by]
        ]

    rows, pagination = paginate(q, params, ordered([*columns, Invoice.id], params))
    return [serialize_invoice(r) for r in rows], pagination


def create_invoice(s: "Session", payload: dict, user: User) -> Invoice:
    data = _cleaned(payload, partial=False)
    _ensure_references(s, data)

    invoice = Invoice(**{attr: data[key] for key, attr in FIELDS.items()})
    s.add(invoice)
    s.flush()

    record_activity(
        s,
        actor=user,
        action=Action.CREATE_INVOICE,
        subject_id=invoice.id,
        metadata={"amount": str(invoice.amount), "status": invoice.status},
    )
    return invoice


def update_invoice(s: "Session", invoice: Invoice, payload: dict, user: User) -> Invoice:
    data = _cleaned(payload, partial=True)
    _ensure_references(s, data)

    changes = apply_changes(invoice, data, FIELDS)
    invoice.updated_at = utcnow()
    record_activity(
        s,
        actor=user,
        action=Action.UPDATE_INVOICE,
        subject_id=invoice.id,
        metadata={"changes": changes} if changes else None,
    )
    return invoice


def delete_invoice(s: "Session", invoice: Invoice, user: User) -> None:
    invoice.deleted_at = utcnow()
    record_activity(s, actor=user, action=Action.DELETE_INVOICE, subject_id=invoice.id)


def serialize_invoice(invoice: Invoice) -> dict:
    provider_user = invoice.provider.user if invoice.provider else None
    student, therapy_service = invoice.student, invoice.therapy_service
    return {
        "id": invoice.id,
        "providerId": invoice.provider_id,
        "studentId": invoice.student_id,
        "therapyServiceId": invoice.therapy_service_id,
        "amount": float(invoice.amount),
        "status": invoice.status,
        "dateIssued": iso(invoice.date_issued),
        "provider": {
            "id": invoice.provider_id,
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
        "student": (
            {"id": student.id, "firstName": student.first_name, "lastName": student.last_name} if student else None
        ),
        "therapyService": (
            {"id": therapy_service.id, "serviceType": therapy_service.service_type} if therapy_service else None
        ),
        "createdAt": iso(invoice.created_at),
        "updatedAt": iso(invoice.updated_at),
    }
