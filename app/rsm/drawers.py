"""
Admin data tables with add/edit/view drawers.

A module's admin.py describes its table (columns, filters) and its form
(fields) as a ResourceView and registers it on the module's admin blueprint.
Under /admin/<slug> the view then serves:

    /               table (sort, filters and pagination from the query string)
    /add            table + add drawer; POST saves
    /view/<id>      table + detail drawer
    /edit/<id>      table + edit drawer; POST saves
    /delete/<id>    POST only

Drawer routes render the same table underneath and carry the table's query
string, so closing a drawer lands back on the same page of results. Form posts
call the module's service functions, the same ones the REST API calls.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from flask import Blueprint, flash, redirect, render_template, request, url_for

from app.rsm.db import db_session
from app.rsm.errors import ApiError
from app.rsm.http import check_id, current_user
from app.rsm.listing import ListParams, ListSpec, parse_list_params
from app.rsm.rbac import require_permission, user_has_permission

# a fixed tuple of enum values, or a callable(session) -> [(value, label)]
Choices = tuple[str, ...] | Callable[[Any], list[tuple[str, str]]]

_REGISTRY: list["ResourceView"] = []


@dataclass(frozen=True)
class Column:
    label: str
    value: Callable[[dict], Any]
    sort: str | None = None


@dataclass(frozen=True)
class Filter:
    name: str
    label: str
    kind: str = "text"  # text | number | date | select | boolean
    choices: Choices | None = None


@dataclass(frozen=True)
class Field:
    name: str
    label: str
    # text | textarea | email | integer | number | boolean | date | datetime
    # | select | multiselect | json | notes
    kind: str = "text"
    required: bool = True
    nullable: bool = False
    choices: Choices | None = None
    value: Callable[[dict], Any] | None = None
    on_create: bool = True
    on_edit: bool = True


@dataclass(frozen=True)
class DrawerAction:
    """Extra POST button in the view drawer, e.g. re-sending an invitation."""

    name: str
    label: str
    run: Callable[[Any, Any, Any], None]
    message: str


def key(name: str) -> Callable[[dict], Any]:
    return lambda row: row.get(name)


def ref(name: str, attr: str = "id") -> Callable[[dict], Any]:
    """Attribute of a nested reference in a serialized row, e.g. ref("school", "name")."""

    def get(row: dict) -> Any:
        nested = row.get(name)
        return nested.get(attr) if nested else None

    return get


def person(*path: str) -> Callable[[dict], str | None]:
    """Full name of a nested person, e.g. person("provider", "user")."""

    def get(row: dict) -> str | None:
        nested: Any = row
        for part in path:
            nested = nested.get(part) if nested else None
        if not nested:
            return None
        return f"{nested.get('firstName', '')} {nested.get('lastName', '')}".strip()

    return get


def model_choices(model, limit: int = 1000) -> Callable[[Any], list[tuple[str, str]]]:
    """Select options for a foreign key: live rows labelled by full_name, then name, then id."""

    def load(s) -> list[tuple[str, str]]:
        q = s.query(model)
        if hasattr(model, "deleted_at"):
            q = q.filter(model.deleted_at.is_(None))
        rows = q.limit(limit).all()
        return [
            (row.id, str(getattr(row, "full_name", None) or getattr(row, "name", None) or row.id)) for row in rows
        ]

    return load


def options(choices: Choices | None, s) -> list[tuple[str, str]]:
    if choices is None:
        return []
    if callable(choices):
        return list(choices(s))
    return [(c, c.replace("_", " ").title()) for c in choices]


def display(value: Any) -> str:
    if value is None or value == "":
        return "-"
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (dict, list)):
        if isinstance(value, list) and all(isinstance(v, str) for v in value):
            return ", ".join(value) or "-"
        return json.dumps(value, indent=2, default=str)
    return str(value)


def _to_number(raw: str, cast: Callable[[str], Any]) -> Any:
    try:
        return cast(raw)
    except ValueError:
        # let the service validator report it
        return raw


def form_payload(fields: list[Field], form: Mapping) -> tuple[dict[str, Any], list[str]]:
    """
    Turn submitted form strings into the camelCase JSON-shaped payload the
    services accept. Blank optional inputs are left out; a blank required text
    input is sent as "" so the validator reports it.
    """
    payload: dict[str, Any] = {}
    errors: list[str] = []
    for f in fields:
        if f.kind == "boolean":
            payload[f.name] = f.name in form
            continue
        if f.kind == "multiselect":
            payload[f.name] = [v for v in form.getlist(f.name) if v]
            continue
        raw = form.get(f.name) or ""
        if f.kind == "notes":
            payload[f.name] = {"notes": raw}
            continue
        if not raw.strip():
            if f.nullable:
                payload[f.name] = None
            elif f.required and f.kind in ("text", "textarea", "email"):
                payload[f.name] = ""
            continue
        if f.kind == "integer":
            payload[f.name] = _to_number(raw.strip(), int)
        elif f.kind == "number":
            payload[f.name] = _to_number(raw.strip(), float)
        elif f.kind == "json":
            try:
                payload[f.name] = json.loads(raw)
            except ValueError:
                errors.append(f"{f.name}: Invalid JSON")
        elif f.kind == "textarea":
            payload[f.name] = raw
        else:
            payload[f.name] = raw.strip()
    return payload, errors


def initial_values(fields: list[Field], row: dict) -> dict[str, Any]:
    """Form values for the edit drawer, taken from the serialized row."""
    values: dict[str, Any] = {}
    for f in fields:
        value = f.value(row) if f.value else row.get(f.name)
        if f.kind == "boolean":
            values[f.name] = bool(value)
        elif f.kind == "multiselect":
            values[f.name] = list(value or [])
        elif f.kind == "notes":
            values[f.name] = (value or {}).get("notes", "")
        elif value is None:
            values[f.name] = ""
        elif f.kind == "json":
            values[f.name] = json.dumps(value, indent=2)
        elif f.kind == "datetime":
            values[f.name] = str(value)[:16]  # datetime-local wants YYYY-MM-DDTHH:MM
        elif f.kind == "date":
            values[f.name] = str(value)[:10]
        else:
            values[f.name] = str(value)
    return values


def submitted_values(fields: list[Field], form: Mapping) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for f in fields:
        if f.kind == "boolean":
            values[f.name] = f.name in form
        elif f.kind == "multiselect":
            values[f.name] = form.getlist(f.name)
        else:
            values[f.name] = form.get(f.name) or ""
    return values


class ResourceView:
    def __init__(
        self,
        *,
        slug: str,
        title: str,
        singular: str,
        permission: str,
        list_spec: ListSpec,
        list_rows: Callable[[Any, ListParams], tuple[list[dict], dict]],
        get: Callable[[Any, str], Any],
        serialize: Callable[[Any], dict],
        columns: list[Column],
        filters: list[Filter] | None = None,
        fields: list[Field] | None = None,
        details: list[Column] | None = None,
        create: Callable[[Any, dict, Any], Any] | None = None,
        update: Callable[[Any, Any, dict, Any], Any] | None = None,
        delete: Callable[[Any, Any, Any], None] | None = None,
        write_permission: str | None = None,
        actions: list[DrawerAction] | None = None,
    ) -> None:
        self.slug = slug
        self.title = title
        self.singular = singular
        self.permission = permission
        self.write_permission = write_permission or permission
        self.list_spec = list_spec
        self.list_rows = list_rows
        self.get = get
        self.serialize = serialize
        self.columns = columns
        self.filters = filters or []
        self.fields = fields or []
        self.details = details or columns
        self.create = create
        self.update = update
        self.delete = delete
        self.actions = actions or []
        self.blueprint: str | None = None

    # ---------- Wiring ----------
    def register(self, bp: Blueprint) -> None:
        self.blueprint = bp.name
        read = require_permission(self.permission)
        write = require_permission(self.write_permission)
        base = f"/{self.slug}"
        bp.add_url_rule(f"{base}/", "index", read(self.index_view))
        bp.add_url_rule(f"{base}/view/<item_id>", "view", read(self.view_view))
        if self.create:
            bp.add_url_rule(f"{base}/add", "add", write(self.add_view))
            bp.add_url_rule(f"{base}/add", "add_post", write(self.add_post), methods=["POST"])
        if self.update:
            bp.add_url_rule(f"{base}/edit/<item_id>", "edit", write(self.edit_view))
            bp.add_url_rule(f"{base}/edit/<item_id>", "edit_post", write(self.edit_post), methods=["POST"])
        if self.delete:
            bp.add_url_rule(f"{base}/delete/<item_id>", "delete", write(self.delete_post), methods=["POST"])
        if self.actions:
            bp.add_url_rule(f"{base}/<action>/<item_id>", "action", write(self.action_post), methods=["POST"])
        _REGISTRY.append(self)

    def endpoint(self, name: str) -> str:
        return f"{self.blueprint}.{name}"

    def can(self, user, *, write: bool = False) -> bool:
        return user_has_permission(user, self.write_permission if write else self.permission)

    # ---------- URLs (all keep the table's query string) ----------
    def list_args(self) -> dict[str, str]:
        return request.args.to_dict()

    def close_url(self) -> str:
        return url_for(self.endpoint("index"), **self.list_args())

    def drawer_url(self, name: str, item_id: str | None = None, **extra: str) -> str:
        if item_id is not None:
            extra["item_id"] = item_id
        return url_for(self.endpoint(name), **extra, **self.list_args())

    def sort_url(self, params: ListParams, column: Column) -> str:
        order = "desc" if params.sort_by == column.sort and not params.descending else "asc"
        return url_for(self.endpoint("index"), **params.query_args(sortBy=column.sort, sortOrder=order, page=1))

    def page_url(self, params: ListParams, page: int) -> str:
        return url_for(self.endpoint("index"), **params.query_args(page=page))

    # ---------- Rendering ----------
    def _fields_for(self, mode: str) -> list[Field]:
        if mode == "add":
            return [f for f in self.fields if f.on_create]
        return [f for f in self.fields if f.on_edit]

    def _form_drawer(self, s, mode: str, values: dict[str, Any], item_id: str | None = None) -> dict:
        fields = self._fields_for(mode)
        return {
            "mode": mode,
            "title": f"Add {self.singular}" if mode == "add" else f"Edit {self.singular}",
            "item_id": item_id,
            "action": self.drawer_url("add_post") if mode == "add" else self.drawer_url("edit_post", item_id),
            "fields": [
                {"field": f, "options": options(f.choices, s), "value": values.get(f.name, "")}
                for f in fields
            ],
        }

    def _page(self, drawer: dict | None = None, status: int = 200):
        s = db_session()
        params = parse_list_params(self.list_spec, request.args)
        data, pagination = self.list_rows(s, params)
        rows = [(row["id"], [display(col.value(row)) for col in self.columns]) for row in data]
        filters = [{"filter": f, "options": options(f.choices, s)} for f in self.filters]
        html = render_template(
            "admin/resource/list.html",
            view=self,
            params=params,
            rows=rows,
            pagination=pagination,
            filters=filters,
            drawer=drawer,
            user=current_user(),
        )
        return html, status

    # ---------- Table ----------
    def index_view(self):
        return self._page()

    # ---------- View ----------
    def view_view(self, item_id: str):
        s = db_session()
        row = self.serialize(self.get(s, check_id(item_id)))
        drawer = {
            "mode": "view",
            "title": self.singular,
            "item_id": item_id,
            "details": [(col.label, display(col.value(row))) for col in self.details],
        }
        return self._page(drawer)

    # ---------- Add ----------
    def add_view(self):
        s = db_session()
        defaults = {f.name: False for f in self.fields if f.kind == "boolean"}
        return self._page(self._form_drawer(s, "add", defaults))

    def add_post(self):
        s = db_session()
        fields = self._fields_for("add")
        payload, errors = form_payload(fields, request.form)
        if not errors:
            try:
                self.create(s, payload, current_user())
                s.commit()
            except ApiError as e:
                s.rollback()
                errors = e.errors or [e.message]
            else:
                flash(f"{self.singular} created.", "success")
                return redirect(self.close_url())
        for e in errors:
            flash(e, "danger")
        return self._page(self._form_drawer(s, "add", submitted_values(fields, request.form)), status=400)

    # ---------- Edit ----------
    def edit_view(self, item_id: str):
        s = db_session()
        row = self.serialize(self.get(s, check_id(item_id)))
        return self._page(self._form_drawer(s, "edit", initial_values(self._fields_for("edit"), row), item_id))

    def edit_post(self, item_id: str):
        s = db_session()
        obj = self.get(s, check_id(item_id))
        fields = self._fields_for("edit")
        payload, errors = form_payload(fields, request.form)
        if not errors:
            try:
                self.update(s, obj, payload, current_user())
                s.commit()
            except ApiError as e:
                s.rollback()
                errors = e.errors or [e.message]
            else:
                flash(f"{self.singular} updated.", "success")
                return redirect(self.close_url())
        for e in errors:
            flash(e, "danger")
        drawer = self._form_drawer(s, "edit", submitted_values(fields, request.form), item_id)
        return self._page(drawer, status=400)

    # ---------- Delete / actions ----------
    def delete_post(self, item_id: str):
        s = db_session()
        obj = self.get(s, check_id(item_id))
        self.delete(s, obj, current_user())
        s.commit()
        flash(f"{self.singular} deleted.", "success")
        return redirect(self.close_url())

    def action_post(self, action: str, item_id: str):
        match = next((a for a in self.actions if a.name == action), None)
        if match is None:
            raise ApiError("Page not found.", code="NOT_FOUND", status=404)
        s = db_session()
        obj = self.get(s, check_id(item_id))
        match.run(s, obj, current_user())
        s.commit()
        flash(match.message, "success")
        return redirect(self.drawer_url("view", item_id))


def views_for(user) -> list[ResourceView]:
    return [v for v in _REGISTRY if v.can(user)]
