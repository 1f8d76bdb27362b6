from flask import Blueprint

from app.rsm.drawers import Column, Field, Filter, ResourceView, key, person
from app.rsm.modules.providers.service import provider_choices
from app.rsm.modules.students.service import student_choices
from app.rsm.modules.therapy_services.service import (
    DELIVERY_MODES,
    LIST_SPEC,
    SERVICE_TYPES,
    STATUSES,
    create_therapy_service,
    delete_therapy_service,
    get_therapy_service,
    list_therapy_services,
    serialize_therapy_service,
    update_therapy_service,
)
from app.rsm.rbac import Permission

bp = Blueprint("therapy_services_admin", __name__)

view = ResourceView(
    slug="therapy-services",
    title="Therapy services",
    singular="Therapy service",
    permission=Permission.ASSIGN_STUDENTS,
    list_spec=LIST_SPEC,
    list_rows=list_therapy_services,
    get=get_therapy_service,
    serialize=serialize_therapy_service,
    create=create_therapy_service,
    update=update_therapy_service,
    delete=delete_therapy_service,
    columns=[
        Column("Student", person("student"), sort="student"),
        Column("Provider", person("provider", "user"), sort="provider"),
        Column("Service type", key("serviceType"), sort="serviceType"),
        Column("Status", key("status"), sort="status"),
        Column("Service begins", key("serviceBeginDate"), sort="serviceBeginDate"),
        Column("Session", key("sessionDate"), sort="sessionDate"),
        Column("Delivery", key("deliveryMode"), sort="deliveryMode"),
        Column("Next meeting", key("nextMeetingDate"), sort="nextMeetingDate"),
    ],
    details=[
        Column("Student", person("student")),
        Column("Provider", person("provider", "user")),
        Column("Service type", key("serviceType")),
        Column("Status", key("status")),
        Column("Service begins", key("serviceBeginDate")),
        Column("Session", key("sessionDate")),
        Column("Session notes", key("sessionNotes")),
        Column("Delivery", key("deliveryMode")),
        Column("Goal tracking", key("goalTracking")),
        Column("IEPs", key("ieps")),
        Column("Next meeting", key("nextMeetingDate")),
    ],
    filters=[
        Filter("student", "Student"),
        Filter("provider", "Provider"),
        Filter("serviceType", "Service type", "select", SERVICE_TYPES),
        Filter("status", "Status", "select", STATUSES),
        Filter("serviceBeginDate", "Service begins", "date"),
        Filter("sessionDate", "Session", "date"),
        Filter("deliveryMode", "Delivery", "select", DELIVERY_MODES),
        Filter("nextMeetingDate", "Next meeting", "date"),
    ],
    fields=[
        Field("studentId", "Student", "select", choices=student_choices),
        Field("providerId", "Provider", "select", choices=provider_choices),
        Field("serviceType", "Service type", "select", choices=SERVICE_TYPES),
        Field("status", "Status", "select", choices=STATUSES),
        Field("serviceBeginDate", "Service begins", "datetime"),
        Field("sessionDate", "Session", "datetime"),
        Field("sessionNotes", "Session notes", "textarea"),
        Field("deliveryMode", "Delivery", "select", choices=DELIVERY_MODES),
        Field("goalTracking", "Goal tracking (JSON)", "json", required=False),
        Field("ieps", "IEPs (JSON)", "json", required=False),
        Field("nextMeetingDate", "Next meeting", "datetime", required=False, nullable=True),
    ],
)
view.register(bp)
