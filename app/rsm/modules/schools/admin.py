from flask import Blueprint

from app.rsm.drawers import Column, Field, Filter, ResourceView, key
from app.rsm.modules.schools.service import (
    LIST_SPEC,
    create_school,
    delete_school,
    get_school,
    list_schools,
    serialize_school,
    update_school,
)
from app.rsm.rbac import Permission

bp = Blueprint("schools_admin", __name__)

view = ResourceView(
    slug="schools",
    title="Schools",
    singular="School",
    permission=Permission.MANAGE_USERS,
    list_spec=LIST_SPEC,
    list_rows=list_schools,
    get=get_school,
    serialize=serialize_school,
    create=create_school,
    update=update_school,
    delete=delete_school,
    columns=[
        Column("Name", key("name"), sort="name"),
        Column("District", key("district"), sort="district"),
        Column("State", key("state"), sort="state"),
        Column("Contact email", key("contactEmail"), sort="contactEmail"),
        Column("Max travel distance", key("maxTravelDistance"), sort="maxTravelDistance"),
        Column("Max students per test", key("maxStudentsPerTest"), sort="maxStudentsPerTest"),
    ],
    filters=[
        Filter("name", "Name"),
        Filter("district", "District"),
        Filter("state", "State"),
        Filter("contactEmail", "Contact email"),
        Filter("maxTravelDistance", "Max travel distance", "number"),
        Filter("maxStudentsPerTest", "Max students per test", "number"),
    ],
    fields=[
        Field("name", "Name"),
        Field("district", "District"),
        Field("state", "State"),
        Field("contactEmail", "Contact email", "email"),
        Field("maxTravelDistance", "Max travel distance", "integer"),
        Field("maxStudentsPerTest", "Max students per test", "integer"),
    ],
)
view.register(bp)
