from flask import Blueprint

from app.rsm.drawers import Column, Field, Filter, ResourceView, key
from app.rsm.modules.therapists.service import (
    LIST_SPEC,
    STATUSES,
    create_therapist,
    delete_therapist,
    get_therapist,
    list_therapists,
    serialize_therapist,
    update_therapist,
)
from app.rsm.modules.users.service import user_choices
from app.rsm.rbac import Permission

bp = Blueprint("therapists_admin", __name__)


def _therapist_users(s):
    return user_choices(s, "THERAPIST")


def _masked_ssn(row: dict) -> str | None:
    ssn = row.get("socialSecurity")
    return f"***-**-{ssn[-4:]}" if ssn else None


view = ResourceView(
    slug="therapists",
    title="Therapists",
    singular="Therapist",
    permission=Permission.MANAGE_USERS,
    list_spec=LIST_SPEC,
    list_rows=list_therapists,
    get=get_therapist,
    serialize=serialize_therapist,
    create=create_therapist,
    update=update_therapist,
    delete=delete_therapist,
    columns=[
        Column("Name", key("name"), sort="name"),
        Column("Disciplines", key("disciplines"), sort="disciplines"),
        Column("License number", key("licenseNumber"), sort="licenseNumber"),
        Column("Medicaid NPI", key("medicaidNationalProviderId"), sort="medicaidNationalProviderId"),
        Column("State Medicaid ID", key("stateMedicaidProviderId"), sort="stateMedicaidProviderId"),
        Column("Status", key("status"), sort="status"),
    ],
    details=[
        Column("Name", key("name")),
        Column("Disciplines", key("disciplines")),
        Column("License number", key("licenseNumber")),
        Column("Medicaid NPI", key("medicaidNationalProviderId")),
        Column("State Medicaid ID", key("stateMedicaidProviderId")),
        Column("Social security", _masked_ssn),
        Column("Status", key("status")),
        Column("Created", key("createdAt")),
    ],
    filters=[
        Filter("name", "Name"),
        Filter("disciplines", "Disciplines"),
        Filter("licenseNumber", "License number"),
        Filter("medicaidNationalProviderId", "Medicaid NPI", "number"),
        Filter("stateMedicaidProviderId", "State Medicaid ID", "number"),
        Filter("status", "Status", "select", STATUSES),
    ],
    fields=[
        Field("userId", "User", "select", choices=_therapist_users),
        Field("disciplines", "Disciplines"),
        Field("licenseNumber", "License number"),
        Field("medicaidNationalProviderId", "Medicaid NPI", "integer"),
        Field("socialSecurity", "Social security"),
        Field("stateMedicaidProviderId", "State Medicaid ID", "integer"),
        Field("status", "Status", "select", choices=STATUSES),
    ],
)
view.register(bp)
