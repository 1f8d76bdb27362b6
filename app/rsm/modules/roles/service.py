from __future__ import annotations

from typing import TYPE_CHECKING

from app.rsm.errors import NotFound
from app.rsm.listing import ListParams, ListSpec, ordered, paginate
from app.rsm.models import Permission as PermissionRow, Role
from app.rsm.rbac import ROLE_PERMISSIONS, Permission

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

LIST_SPEC = ListSpec(filters={}, sort_fields=("name",), default_sort="name")


def list_roles(s: "Session", params: ListParams) -> tuple[list[dict], dict]:
    rows, pagination = paginate(s.query(Role), params, ordered([Role.name, Role.id], params))
    return [serialize_role(r) for r in rows], pagination


def get_role(s: "Session", role_id: str) -> Role:
    role = s.get(Role, role_id)
    if role is None:
        raise NotFound("ROLE")
    return role


def role_choices(s: "Session") -> list[tuple[str, str]]:
    return [(r.id, r.name) for r in s.query(Role).order_by(Role.name).all()]


def ensure_roles(s: "Session") -> dict[str, Role]:
    """
    Idempotently create every permission key and the default roles with their
    permission sets. Existing roles gain missing permissions; none are removed.
    """
    perms = {p.name: p for p in s.query(PermissionRow).all()}
    for key in Permission.all():
        if key not in perms:
            perms[key] = PermissionRow(name=key)
            s.add(perms[key])

    roles = {r.name: r for r in s.query(Role).all()}
    for name, keys in ROLE_PERMISSIONS.items():
        role = roles.get(name)
        if role is None:
            role = Role(name=name)
            s.add(role)
            roles[name] = role
        have = {p.name for p in role.permissions}
        for key in keys:
            if key not in have:
                role.permissions.append(perms[key])
    s.flush()
    return roles


def serialize_role(role: Role) -> dict:
    return {
        "id": role.id,
        "name": role.name,
        "permissions": sorted(p.name for p in role.permissions),
    }
