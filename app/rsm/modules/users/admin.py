from flask import Blueprint

from app.rsm.drawers import Column, DrawerAction, Field, Filter, ResourceView, key, ref
from app.rsm.modules.roles.service import role_choices
from app.rsm.modules.schools.service import school_choices
from app.rsm.modules.users.service import (
    LIST_SPEC,
    ROLE_NAMES,
    SECURITY_LEVELS,
    STATUSES,
    create_user,
    delete_user,
    get_user,
    invite_user,
    list_users,
    serialize_user,
    update_user,
)
from app.rsm.rbac import Permission

bp = Blueprint("users_admin", __name__)


def _create(s, payload: dict, actor):
    send_invite = payload.pop("sendInvite", False)
    return create_user(s, payload, actor, send_invite=send_invite)


def _name(row: dict) -> str:
    return f"{row['firstName']} {row['lastName']}"


view = ResourceView(
    slug="users",
    title="Users",
    singular="User",
    permission=Permission.MANAGE_USERS,
    list_spec=LIST_SPEC,
    list_rows=list_users,
    get=get_user,
    serialize=serialize_user,
    create=_create,
    update=update_user,
    delete=delete_user,
    columns=[
        Column("Name", _name, sort="name"),
        Column("Email", key("email")),
        Column("School", ref("school", "name"), sort="school"),
        Column("Role", ref("role", "name"), sort="role"),
        Column("Status", key("status"), sort="status"),
    ],
    details=[
        Column("Name", _name),
        Column("Email", key("email")),
        Column("Phone", key("phoneNumber")),
        Column("Security level", key("securityLevel")),
        Column("Status", key("status")),
        Column("School", ref("school", "name")),
        Column("Role", ref("role", "name")),
        Column("Last login", key("lastLogin")),
        Column("Created", key("createdAt")),
    ],
    filters=[
        Filter("name", "Name or email"),
        Filter("school", "School"),
        Filter("role", "Role", "select", ROLE_NAMES),
        Filter("status", "Status", "select", STATUSES),
    ],
    fields=[
        Field("firstName", "First name"),
        Field("lastName", "Last name"),
        Field("email", "Email", "email"),
        Field("phoneNumber", "Phone", required=False, nullable=True),
        Field("securityLevel", "Security level", "select", choices=SECURITY_LEVELS),
        Field("status", "Status", "select", choices=STATUSES),
        Field("schoolId", "School", "select", choices=school_choices, value=ref("school")),
        Field("roleId", "Role", "select", choices=role_choices, value=ref("role")),
        Field("sendInvite", "Email an invitation", "boolean", required=False, on_edit=False),
    ],
    actions=[
        DrawerAction("invite", "Send invite", invite_user, "Invitation sent."),
    ],
)
view.register(bp)
