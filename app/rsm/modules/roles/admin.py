from flask import Blueprint

from app.rsm.drawers import Column, ResourceView, key
from app.rsm.modules.roles.service import LIST_SPEC, get_role, list_roles, serialize_role
from app.rsm.rbac import Permission

bp = Blueprint("roles_admin", __name__)

# read-only: roles and their permission sets are seeded, not edited
view = ResourceView(
    slug="roles",
    title="Roles",
    singular="Role",
    permission=Permission.MANAGE_USERS,
    list_spec=LIST_SPEC,
    list_rows=list_roles,
    get=get_role,
    serialize=serialize_role,
    columns=[
        Column("Name", key("name"), sort="name"),
        Column("Permissions", key("permissions")),
    ],
)
view.register(bp)
