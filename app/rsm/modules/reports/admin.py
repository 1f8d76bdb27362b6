from flask import Blueprint

from app.rsm.drawers import Column, Field, Filter, ResourceView, key, person, ref
from app.rsm.modules.reports.service import (
    LIST_SPEC,
    REPORT_TYPES,
    create_report,
    delete_report,
    get_report,
    list_reports,
    serialize_report,
    update_report,
)
from app.rsm.modules.schools.service import school_choices
from app.rsm.modules.students.service import student_choices
from app.rsm.modules.therapy_services.service import SERVICE_TYPES, therapy_service_choices
from app.rsm.rbac import Permission

bp = Blueprint("reports_admin", __name__)


def _excerpt(row: dict) -> str:
    content = row["content"] or ""
    return content if len(content) <= 80 else content[:77] + "..."


view = ResourceView(
    slug="reports",
    title="Reports",
    singular="Report",
    permission=Permission.VIEW_REPORTS,
    list_spec=LIST_SPEC,
    list_rows=list_reports,
    get=get_report,
    serialize=serialize_report,
    create=create_report,
    update=update_report,
    delete=delete_report,
    columns=[
        Column("Type", key("reportType"), sort="reportType"),
        Column("School", ref("school", "name"), sort="schoolName"),
        Column("Student", person("student"), sort="studentName"),
        Column("Service", ref("therapyService", "serviceType"), sort="therapyServiceType"),
        Column("Content", _excerpt, sort="content"),
        Column("Created", key("createdAt"), sort="createdAt"),
    ],
    details=[
        Column("Type", key("reportType")),
        Column("School", ref("school", "name")),
        Column("Student", person("student")),
        Column("Service", ref("therapyService", "serviceType")),
        Column("Content", key("content")),
        Column("Created", key("createdAt")),
        Column("Updated", key("updatedAt")),
    ],
    filters=[
        Filter("reportType", "Type", "select", REPORT_TYPES),
        Filter("schoolName", "School"),
        Filter("studentName", "Student"),
        Filter("therapyServiceType", "Service", "select", SERVICE_TYPES),
        Filter("createdAt", "Created", "date"),
    ],
    fields=[
        Field("schoolId", "School", "select", choices=school_choices),
        Field("studentId", "Student", "select", choices=student_choices),
        Field("therapyServiceId", "Therapy service", "select", choices=therapy_service_choices),
        Field("reportType", "Type", "select", choices=REPORT_TYPES),
        Field("content", "Content", "textarea"),
    ],
)
view.register(bp)
