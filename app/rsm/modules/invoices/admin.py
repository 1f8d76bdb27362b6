from flask import Blueprint

from app.rsm.drawers import Column, Field, Filter, ResourceView, key, person, ref
from app.rsm.modules.invoices.service import (
    LIST_SPEC,
    STATUSES,
    create_invoice,
    delete_invoice,
    get_invoice,
    list_invoices,
    serialize_invoice,
    update_invoice,
)
from app.rsm.modules.providers.service import provider_choices
from app.rsm.modules.students.service import student_choices
from app.rsm.modules.therapy_services.service import SERVICE_TYPES, therapy_service_choices
from app.rsm.rbac import Permission

bp = Blueprint("invoices_admin", __name__)


def _amount(row: dict) -> str:
    return f"${row['amount']:,.2f}"


view = ResourceView(
    slug="invoices",
    title="Invoices",
    singular="Invoice",
    permission=Permission.VIEW_INVOICES,
    list_spec=LIST_SPEC,
    list_rows=list_invoices,
    get=get_invoice,
    serialize=serialize_invoice,
    create=create_invoice,
    update=update_invoice,
    delete=delete_invoice,
    columns=[
        Column("Issued", key("dateIssued"), sort="dateIssued"),
        Column("Provider", person("provider", "user"), sort="providerName"),
        Column("Student", person("student"), sort="studentName"),
        Column("Service", ref("therapyService", "serviceType"), sort="therapyServiceType"),
        Column("Amount", _amount, sort="amount"),
        Column("Status", key("status"), sort="status"),
    ],
    filters=[
        Filter("status", "Status", "select", STATUSES),
        Filter("providerName", "Provider"),
        Filter("studentName", "Student"),
        Filter("therapyServiceType", "Service", "select", SERVICE_TYPES),
        Filter("dateIssuedFrom", "Issued from", "date"),
        Filter("dateIssuedTo", "Issued to", "date"),
    ],
    fields=[
        Field("providerId", "Provider", "select", choices=provider_choices),
        Field("studentId", "Student", "select", choices=student_choices),
        Field("therapyServiceId", "Therapy service", "select", choices=therapy_service_choices),
        Field("amount", "Amount", "number"),
        Field("status", "Status", "select", choices=STATUSES),
        Field("dateIssued", "Issued", "datetime", required=False),
    ],
)
view.register(bp)
