from functools import partial

from flask import Blueprint

from app.rsm.drawers import Column, Field, Filter, ResourceView, key, person
from app.rsm.modules.providers.service import (
    FEE_STRUCTURES,
    LINK_KINDS,
    LIST_SPEC,
    STATUSES,
    add_links,
    create_provider,
    delete_provider,
    get_provider,
    link_choices,
    list_providers,
    remove_links,
    serialize_provider_detail,
    update_provider,
)
from app.rsm.modules.users.service import user_choices
from app.rsm.rbac import Permission

bp = Blueprint("providers_admin", __name__)


def _update(s, provider, payload: dict, actor):
    """Provider fields plus the attachment sets; each set is diffed into add/remove calls."""
    wanted = {name: payload.pop(kind.ids_key) for name, kind in LINK_KINDS.items() if kind.ids_key in payload}
    update_provider(s, provider, payload, actor)
    for name, ids in wanted.items():
        kind = LINK_KINDS[name]
        current = [getattr(link, kind.fk) for link in getattr(provider, kind.collection)]
        removed = [i for i in current if i not in ids]
        added = [i for i in ids if i not in current]
        if removed:
            remove_links(s, provider, name, {kind.ids_key: removed}, actor)
        if added:
            add_links(s, provider, name, {kind.ids_key: added}, actor)
    return provider


def _linked(name: str, label):
    return lambda row: [label(item) for item in row[name]]


def _linked_ids(name: str):
    return lambda row: [item["id"] for item in row[name]]


view = ResourceView(
    slug="providers",
    title="Providers",
    singular="Provider",
    permission=Permission.MANAGE_USERS,
    list_spec=LIST_SPEC,
    list_rows=list_providers,
    get=get_provider,
    serialize=serialize_provider_detail,
    create=create_provider,
    update=_update,
    delete=delete_provider,
    columns=[
        Column("Name", person("user"), sort="name"),
        Column("License number", key("licenseNumber"), sort="licenseNumber"),
        Column("Credentials", key("credentials"), sort="credentials"),
        Column("NSS", key("nssEnabled"), sort="nssEnabled"),
        Column("Fee structure", key("serviceFeeStructure"), sort="serviceFeeStructure"),
        Column("Status", key("status"), sort="status"),
    ],
    details=[
        Column("Name", person("user")),
        Column("License number", key("licenseNumber")),
        Column("Credentials", key("credentials")),
        Column("Signature", key("signature")),
        Column("NSS", key("nssEnabled")),
        Column("Fee structure", key("serviceFeeStructure")),
        Column("Status", key("status")),
        Column("Review notes", lambda row: (row["reviewNotes"] or {}).get("notes")),
        Column("Documents", _linked("documents", lambda d: d["document"])),
        Column("Contracts", _linked("contracts", lambda c: c["contract"])),
        Column("Contacts", _linked("contacts", lambda c: f"{c['firstName']} {c['lastName']}")),
    ],
    filters=[
        Filter("name", "Name"),
        Filter("licenseNumber", "License number"),
        Filter("credentials", "Credentials"),
        Filter("nssEnabled", "NSS", "boolean"),
        Filter("status", "Status", "select", STATUSES),
        Filter("serviceFeeStructure", "Fee structure", "select", FEE_STRUCTURES),
    ],
    fields=[
        Field("userId", "User", "select", choices=user_choices),
        Field("licenseNumber", "License number"),
        Field("credentials", "Credentials"),
        Field("signature", "Signature", "textarea", required=False, nullable=True),
        Field("serviceFeeStructure", "Fee structure", "select", choices=FEE_STRUCTURES),
        Field("nssEnabled", "NSS enabled", "boolean"),
        Field("reviewNotes", "Review notes", "notes"),
        Field("status", "Status", "select", choices=STATUSES),
        Field(
            "documentIds",
            "Documents",
            "multiselect",
            required=False,
            choices=partial(link_choices, kind_name="documents"),
            value=_linked_ids("documents"),
            on_create=False,
        ),
        Field(
            "contractIds",
            "Contracts",
            "multiselect",
            required=False,
            choices=partial(link_choices, kind_name="contracts"),
            value=_linked_ids("contracts"),
            on_create=False,
        ),
        Field(
            "contactIds",
            "Contacts",
            "multiselect",
            required=False,
            choices=partial(link_choices, kind_name="contacts"),
            value=_linked_ids("contacts"),
            on_create=False,
        ),
    ],
)
view.register(bp)
