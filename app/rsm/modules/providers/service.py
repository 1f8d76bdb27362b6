from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_

from app.rsm.activity import Action, record_activity
from app.rsm.errors import ApiError, NotFound
from app.rsm.listing import ListParams, ListSpec, boolean, contains, one_of, ordered, paginate, text
from app.rsm.models import Base, User, utcnow
from app.rsm.modules.providers.models import (
    Contact,
    Contract,
    Document,
    Provider,
    ProviderContact,
    ProviderContract,
    ProviderDocument,
)
from app.rsm.utils import apply_changes, iso
from app.rsm.validation import PayloadValidator

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

STATUSES = ("ACTIVE", "INACTIVE", "PENDING", "SUSPENDED")
FEE_STRUCTURES = ("HOURLY", "FLAT_RATE", "PER_DIEM")

LIST_SPEC = ListSpec(
    filters={
        "name": text,
        "licenseNumber": text,
        "credentials": text,
        "nssEnabled": boolean,
        "status": one_of(*STATUSES),
        "serviceFeeStructure": one_of(*FEE_STRUCTURES),
    },
    sort_fields=("name", "licenseNumber", "credentials", "nssEnabled", "serviceFeeStructure", "status"),
    default_sort="name",
)

FIELDS = {
    "userId": "user_id",
    "licenseNumber": "license_number",
    "credentials": "credentials",
    "signature": "signature",
    "serviceFeeStructure": "service_fee_structure",
    "nssEnabled": "nss_enabled",
    "reviewNotes": "review_notes",
    "status": "status",
}


@dataclass(frozen=True)
class LinkKind:
    """One of the provider's many-to-many attachments (documents, contracts, contacts)."""

    entity: str  # error code prefix
    ids_key: str  # request body key
    model: type[Base]
    link_model: type[Base]
    collection: str  # Provider relationship holding the link rows
    fk: str  # link column pointing at the target
    target: str  # link relationship to the target row


LINK_KINDS: dict[str, LinkKind] = {
    "documents": LinkKind("DOCUMENT", "documentIds", Document, ProviderDocument, "document_links", "document_id", "document"),
    "contracts": LinkKind("CONTRACT", "contractIds", Contract, ProviderContract, "contract_links", "contract_id", "contract"),
    "contacts": LinkKind("CONTACT", "contactIds", Contact, ProviderContact, "contact_links", "contact_id", "contact"),
}


def _check(payload: dict, *, partial: bool) -> PayloadValidator:
    v = PayloadValidator(payload, partial=partial)
    v.uuid("userId")
    v.string("licenseNumber", max_length=64)
    v.string("credentials", max_length=255)
    v.string("signature", nullable=True, default=None)
    v.choice("serviceFeeStructure", FEE_STRUCTURES, default="HOURLY")
    v.boolean("nssEnabled")
    v.notes_object("reviewNotes")
    v.choice("status", STATUSES, default="ACTIVE")
    return v


def _ensure_user(s: "Session", data: dict) -> None:
    if "userId" in data:
        user = s.get(User, data["userId"])
        if not user or user.deleted_at is not None:
            raise NotFound("USER")


def get_provider(s: "Session", provider_id: str) -> Provider:
    provider = s.get(Provider, provider_id)
    if not provider or provider.deleted_at is not None:
        raise NotFound("PROVIDER")
    return provider


def list_providers(s: "Session", params: ListParams) -> tuple[list[dict], dict]:
    f = params.filters
    q = s.query(Provider).filter(Provider.deleted_at.is_(None))
    if "name" in f:
        q = q.filter(Provider.user.has(or_(contains(User.first_name, f["name"]), contains(User.last_name, f["name"]))))
    if "licenseNumber" in f:
        q = q.filter(contains(Provider.license_number, f["licenseNumber"]))
    if "credentials" in f:
        q = q.filter(contains(Provider.credentials, f["credentials"]))
    if "nssEnabled" in f:
        q = q.filter(Provider.nss_enabled.is_(f["nssEnabled"]))
    if "status" in f:
        q = q.filter(Provider.status == f["status"])
    if "serviceFeeStructure" in f:
        q = q.filter(Provider.service_fee_structure == f["serviceFeeStructure"])

    if params.sort_by == "name":
        q = q.outerjoin(User, Provider.user_id == User.id)
        columns = [User.first_name, User.last_name]
    else:
        columns = [getattr(Provider, FIELDS[params.sort_by])]

    rows, pagination = paginate(q, params, ordered([*columns, Provider.id], params))
    return [serialize_provider(p) for p in rows], pagination


def create_provider(s: "Session", payload: dict, user: User) -> Provider:
    data = _check(payload, partial=False).cleaned()
    _ensure_user(s, data)

    provider = Provider(**{attr: data[key] for key, attr in FIELDS.items()})
    s.add(provider)
    s.flush()

    record_activity(s, actor=user, action=Action.CREATE_PROVIDER, subject_id=provider.id)
    return provider


def update_provider(s: "Session", provider: Provider, payload: dict, user: User) -> Provider:
    data = _check(payload, partial=True).cleaned()
    _ensure_user(s, data)

    changes = apply_changes(provider, data, FIELDS)
    provider.updated_at = utcnow()
    record_activity(
        s,
        actor=user,
        action=Action.UPDATE_PROVIDER,
        subject_id=provider.id,
        metadata={"changes": changes} if changes else None,
    )
    return provider


def delete_provider(s: "Session", provider: Provider, user: User) -> None:
    provider.deleted_at = utcnow()
    record_activity(s, actor=user, action=Action.DELETE_PROVIDER, subject_id=provider.id)


def _link_ids(kind: LinkKind, payload: Any, *, required: bool) -> list[str] | None:
    v = PayloadValidator(payload if payload is not None else {})
    v.uuid_list(kind.ids_key, required=required)
    return v.cleaned().get(kind.ids_key)


def add_links(s: "Session", provider: Provider, kind_name: str, payload: Any, user: User) -> list[str]:
    """
    Attach existing documents/contracts/contacts. Every id must exist (else
    <ENTITY>_NOT_FOUND listing the missing ids); ids already linked are skipped.
    """
    kind = LINK_KINDS[kind_name]
    ids = _link_ids(kind, payload, required=True) or []
    if ids:
        found = {
            row.id
            for row in s.query(kind.model).filter(kind.model.id.in_(ids), kind.model.deleted_at.is_(None)).all()
        }
        missing = [i for i in ids if i not in found]
        if missing:
            raise ApiError(
                f"{kind_name.capitalize()} with IDs {', '.join(missing)} not found.",
                code=f"{kind.entity}_NOT_FOUND",
                status=404,
            )

    links = getattr(provider, kind.collection)
    linked = {getattr(link, kind.fk) for link in links}
    added = [i for i in ids if i not in linked]
    for target_id in added:
        links.append(kind.link_model(**{kind.fk: target_id}))

    record_activity(
        s,
        actor=user,
        action=Action.UPDATE_PROVIDER,
        subject_id=provider.id,
        metadata={"linked": {kind_name: added}},
    )
    return added


def remove_links(s: "Session", provider: Provider, kind_name: str, payload: Any, user: User) -> None:
    """Detach the given ids, or every link of this kind when no ids are sent."""
    kind = LINK_KINDS[kind_name]
    ids = _link_ids(kind, payload, required=False)
    links = getattr(provider, kind.collection)
    for link in list(links):
        if not ids or getattr(link, kind.fk) in ids:
            links.remove(link)

    record_activity(
        s,
        actor=user,
        action=Action.UPDATE_PROVIDER,
        subject_id=provider.id,
        metadata={"unlinked": {kind_name: ids or "all"}},
    )


def _user_ref(user: User | None) -> dict | None:
    if user is None:
        return None
    return {"id": user.id, "firstName": user.first_name, "lastName": user.last_name, "email": user.email}


def serialize_document(doc: Document) -> dict:
    return {
        "id": doc.id,
        "providerId": doc.provider_id,
        "document": doc.document,
        "createdById": doc.created_by_id,
        "createdAt": iso(doc.created_at),
        "updatedAt": iso(doc.updated_at),
    }


def serialize_contract(contract: Contract) -> dict:
    return {
        "id": contract.id,
        "providerId": contract.provider_id,
        "contract": contract.contract,
        "createdById": contract.created_by_id,
        "createdAt": iso(contract.created_at),
        "updatedAt": iso(contract.updated_at),
    }


def serialize_contact(contact: Contact) -> dict:
    return {
        "id": contact.id,
        "providerId": contact.provider_id,
        "firstName": contact.first_name,
        "lastName": contact.last_name,
        "cellPhone": contact.cell_phone,
        "workPhone": contact.work_phone,
        "email": contact.email,
        "createdById": contact.created_by_id,
        "createdAt": iso(contact.created_at),
        "updatedAt": iso(contact.updated_at),
    }


def serialize_provider(provider: Provider) -> dict:
    """List shape: linked records as id arrays."""
    return {
        "id": provider.id,
        "userId": provider.user_id,
        "user": _user_ref(provider.user),
        "status": provider.status,
        "licenseNumber": provider.license_number,
        "credentials": provider.credentials,
        "signature": provider.signature,
        "serviceFeeStructure": provider.service_fee_structure,
        "nssEnabled": provider.nss_enabled,
        "reviewNotes": provider.review_notes,
        "documentIds": [link.document_id for link in provider.document_links],
        "contractIds": [link.contract_id for link in provider.contract_links],
        "contactIds": [link.contact_id for link in provider.contact_links],
        "createdAt": iso(provider.created_at),
        "updatedAt": iso(provider.updated_at),
    }


def serialize_provider_detail(provider: Provider) -> dict:
    """Detail shape: the linked records are embedded instead of the id arrays."""
    data = serialize_provider(provider)
    for key in ("documentIds", "contractIds", "contactIds"):
        data.pop(key)
    data["documents"] = [serialize_document(link.document) for link in provider.document_links]
    data["contracts"] = [serialize_contract(link.contract) for link in provider.contract_links]
    data["contacts"] = [serialize_contact(link.contact) for link in provider.contact_links]
    return data


def provider_choices(s: "Session") -> list[tuple[str, str]]:
    rows = (
        s.query(Provider)
        .join(User, Provider.user_id == User.id)
        .filter(Provider.deleted_at.is_(None))
        .order_by(User.first_name, User.last_name)
        .all()
    )
    return [(p.id, p.user.full_name if p.user else p.id) for p in rows]


def link_choices(s: "Session", kind_name: str) -> list[tuple[str, str]]:
    """Documents/contracts/contacts that can be attached to a provider."""
    kind = LINK_KINDS[kind_name]
    rows = s.query(kind.model).filter(kind.model.deleted_at.is_(None)).limit(1000).all()
    if kind_name == "contacts":
        return [(c.id, f"{c.first_name} {c.last_name}") for c in rows]
    return [(row.id, getattr(row, kind.target)) for row in rows]
