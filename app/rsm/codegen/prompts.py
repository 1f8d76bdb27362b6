"""
Interactive questions for the endpoint generator.

ask/say default to input/print; tests pass scripted replacements.
"""

from __future__ import annotations

from collections.abc import Callable

from app.rsm.codegen.fields import (
    FIELD_TYPES,
    RESERVED_FIELDS,
    FieldSpec,
    Relation,
    ResourceSpec,
    enum_values,
    permission_attr,
)
from app.rsm.codegen.naming import camel_case, pascal_case
from app.rsm.rbac import Permission

Ask = Callable[[str], str]
Say = Callable[[str], None]

DEFAULT_PERMISSION = "MANAGE_USERS"


def ask_text(ask: Ask, question: str, default: str = "") -> str:
    suffix = f" [{default}]" if default else ""
    return (ask(f"{question}{suffix}: ") or "").strip() or default


def ask_yes_no(ask: Ask, question: str, default: bool = False) -> bool:
    hint = "Y/n" if default else "y/N"
    while True:
        answer = (ask(f"{question} ({hint}): ") or "").strip().lower()
        if not answer:
            return default
        if answer in ("y", "yes"):
            return True
        if answer in ("n", "no"):
            return False


def _ask_name(ask: Ask, say: Say, existing_modules: tuple[str, ...], overwrite: bool) -> str:
    while True:
        name = ask_text(ask, "Resource name (plural, e.g. therapy_goals)")
        draft = ResourceSpec(name=name, permission=DEFAULT_PERMISSION, fields=[])
        problems = [e for e in draft.validate(existing_modules, overwrite=overwrite) if e.startswith("name:")]
        if name and not problems:
            return name
        say(problems[0] if problems else "A resource name is required.")


def _ask_permission(ask: Ask, say: Say) -> str:
    say("Permissions: " + ", ".join(Permission.all()))
    while True:
        attr = permission_attr(ask_text(ask, "Permission required", DEFAULT_PERMISSION))
        if attr:
            return attr
        say("Unknown permission.")


def _ask_type(ask: Ask, say: Say, name: str) -> str:
    default = "uuid" if name.endswith("Id") else "string"
    while True:
        kind = ask_text(ask, f"Type ({'/'.join(FIELD_TYPES)})", default).lower()
        if kind in FIELD_TYPES:
            return kind
        say(f"Type must be one of {', '.join(FIELD_TYPES)}.")


def _ask_relation(ask: Ask, say: Say, name: str, existing_modules: tuple[str, ...]) -> Relation | None:
    suggested = pascal_case(name.removesuffix("Id"))
    while True:
        answer = ask_text(ask, "Related model (- for none)", suggested)
        if answer == "-":
            return None
        relation = Relation.resolve(answer)
        if relation.module.startswith("app.rsm.models") or relation.table in existing_modules:
            return relation
        say(f"Unknown model {relation.class_name!r}.")


def ask_field(ask: Ask, say: Say, taken: set[str], existing_modules: tuple[str, ...]) -> FieldSpec | None:
    """One field, or None when the operator is done adding fields."""
    while True:
        raw = ask_text(ask, "Field name (blank to finish)")
        if not raw:
            return None
        name = camel_case(raw)
        if not name.isidentifier():
            say("Field names must be letters, digits and underscores.")
        elif name in RESERVED_FIELDS:
            say(f"{name!r} is generated automatically.")
        elif name in taken:
            say(f"{name!r} is already defined.")
        else:
            break

    kind = _ask_type(ask, say, name)
    required = ask_yes_no(ask, "Required?", default=True)

    values: tuple[str, ...] = ()
    if kind == "enum":
        while not values:
            values = enum_values(ask_text(ask, "Values (comma-separated)"))
            if not values:
                say("An enum needs at least one value.")

    relation = None
    if kind == "uuid" and name.endswith("Id"):
        relation = _ask_relation(ask, say, name, existing_modules)

    return FieldSpec(name=name, type=kind, required=required, enum_values=values, relation=relation)


def prompt_resource(
    existing_modules: tuple[str, ...],
    *,
    overwrite: bool = False,
    ask: Ask = input,
    say: Say = print,
) -> ResourceSpec:
    name = _ask_name(ask, say, existing_modules, overwrite)
    permission = _ask_permission(ask, say)

    fields: list[FieldSpec] = []
    while True:
        f = ask_field(ask, say, {f.name for f in fields}, existing_modules)
        if f is not None:
            fields.append(f)
            continue
        if fields:
            break
        say("Add at least one field.")

    return ResourceSpec(name=name, permission=permission, fields=fields)
