"""
Resource and field descriptions for the endpoint generator.

A ResourceSpec is what the interactive prompt (or a --spec JSON file) produces.
Each FieldSpec knows how its type maps onto every generated layer: the
SQLAlchemy column, the payload validator call, the list filter, the serializer
and the admin form input. The templates only stitch those fragments together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from app.rsm.codegen.naming import (
    camel_case,
    humanize,
    kebab_case,
    pascal_case,
    pluralize,
    singularize,
    snake_case,
    upper_snake,
)
from app.rsm.rbac import ROLE_PERMISSIONS, Permission

FIELD_TYPES = ("string", "number", "boolean", "date", "uuid", "enum")
RESERVED_FIELDS = ("id", "createdAt", "updatedAt", "deletedAt")
EXAMPLE_UUID = "3f1f0c52-7d5e-4a43-9a55-0b3a4c1b6e21"
# tables owned by app.rsm.models
CORE_TABLES = ("users", "roles", "permissions", "role_permissions", "user_tokens", "activity_logs")

# models outside app/rsm/modules that a generated *Id field may point at
CORE_MODELS = {
    "User": ("app.rsm.models", "users"),
    "Role": ("app.rsm.models", "roles"),
}


class SpecError(ValueError):
    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


def permission_attr(value: str) -> str | None:
    """Permission class attribute for a key or attribute name, e.g. VIEW_RESULT -> VIEW_RESULTS."""
    value = value.strip().upper()
    names = {k: v for k, v in vars(Permission).items() if k.isupper()}
    if value in names:
        return value
    for attr, key in names.items():
        if key == value:
            return attr
    return None


@dataclass(frozen=True)
class Relation:
    class_name: str
    module: str
    table: str

    @property
    def entity(self) -> str:
        return upper_snake(self.class_name)

    @classmethod
    def resolve(cls, name: str) -> "Relation":
        class_name = pascal_case(singularize(name))
        if class_name in CORE_MODELS:
            module, table = CORE_MODELS[class_name]
            return cls(class_name, module, table)
        table = pluralize(snake_case(class_name))
        return cls(class_name, f"app.rsm.modules.{table}.models", table)


@dataclass(frozen=True)
class FieldSpec:
    name: str  # camelCase payload key
    type: str
    required: bool = True
    enum_values: tuple[str, ...] = ()
    relation: Relation | None = None

    @property
    def attr(self) -> str:
        return snake_case(self.name)

    @property
    def label(self) -> str:
        return humanize(self.name.removesuffix("Id") if self.relation else self.name)

    @property
    def constant(self) -> str:
        """Module-level tuple holding an enum's values, e.g. SESSION_TYPES."""
        return upper_snake(pluralize(self.attr))

    # ---------- models.py ----------
    @property
    def sa_type(self) -> str:
        return {
            "string": "String",
            "number": "Float",
            "boolean": "Boolean",
            "date": "DateTime",
            "uuid": "String",
            "enum": "String",
        }[self.type]

    @property
    def annotation(self) -> str:
        py = {
            "string": "str",
            "number": "float",
            "boolean": "bool",
            "date": "datetime",
            "uuid": "str",
            "enum": "str",
        }[self.type]
        nullable = not self.required and self.type != "boolean"
        return f"Mapped[{py} | None]" if nullable else f"Mapped[{py}]"

    @property
    def column(self) -> str:
        if self.relation:
            if self.required:
                args = [f'ForeignKey("{self.relation.table}.id")', "nullable=False"]
            else:
                args = [f'ForeignKey("{self.relation.table}.id", ondelete="SET NULL")', "nullable=True"]
        else:
            type_expr = {
                "string": "String(255)",
                "number": "Float",
                "boolean": "Boolean",
                "date": "DateTime(timezone=False)",
                "uuid": "String(36)",
                "enum": "String(32)",
            }[self.type]
            args = [type_expr]
            if self.type == "boolean":
                args += ["nullable=False", "default=False"]
            else:
                args.append(f"nullable={not self.required}")
        return f"mapped_column({', '.join(args)})"

    # ---------- migration ----------
    @property
    def migration_type(self) -> str:
        return {
            "string": "sa.String(length=255)",
            "number": "sa.Float()",
            "boolean": "sa.Boolean()",
            "date": "sa.DateTime()",
            "uuid": "sa.String(length=36)",
            "enum": "sa.String(length=32)",
        }[self.type]

    @property
    def migration_nullable(self) -> bool:
        return not self.required and self.type != "boolean"

    # ---------- service.py ----------
    @property
    def validator(self) -> str:
        key = f'"{self.name}"'
        if self.type == "string":
            if self.required:
                return f"v.string({key}, max_length=255)"
            return f"v.string({key}, nullable=True, default=None, max_length=255)"
        if self.type == "number":
            return f"v.number({key})" if self.required else f"v.number({key}, required=False, nullable=True)"
        if self.type == "boolean":
            return f"v.boolean({key})" if self.required else f"v.boolean({key}, default=False)"
        if self.type == "date":
            return f"v.datetime({key})" if self.required else f"v.datetime({key}, nullable=True, default=None)"
        if self.type == "uuid":
            return f"v.uuid({key})" if self.required else f"v.uuid({key}, required=False, nullable=True)"
        if self.required:
            return f"v.choice({key}, {self.constant})"
        return f"v.choice({key}, {self.constant}, required=False)"

    @property
    def filter_converter(self) -> str:
        return {
            "string": "text",
            "number": "number",
            "boolean": "boolean",
            "date": "iso_date",
            "uuid": "uuid_value",
            "enum": f"one_of(*{self.constant})",
        }[self.type]

    def filter_expression(self, model: str) -> str:
        column = f"{model}.{self.attr}"
        value = f'f["{self.name}"]'
        if self.type == "string":
            return f"contains({column}, {value})"
        if self.type == "date":
            return f"same_day({column}, {value})"
        if self.type == "boolean":
            return f"{column}.is_({value})"
        return f"{column} == {value}"

    def serialize_expression(self, var: str) -> str:
        if self.type == "date":
            return f"iso({var}.{self.attr})"
        return f"{var}.{self.attr}"

    # ---------- admin.py ----------
    def admin_field(self) -> str:
        args = [f'"{self.name}"', f'"{self.label}"']
        kind = {
            "string": "text",
            "number": "number",
            "boolean": "boolean",
            "date": "datetime",
            "uuid": "select" if self.relation else "text",
            "enum": "select",
        }[self.type]
        if kind != "text":
            args.append(f'"{kind}"')
        if not self.required:
            args.append("required=False")
            if self.type not in ("boolean", "enum"):
                args.append("nullable=True")
        if self.type == "enum":
            args.append(f"choices={self.constant}")
        elif self.relation:
            args.append(f"choices=model_choices({self.relation.class_name})")
        return f"Field({', '.join(args)})"

    def admin_filter(self) -> str:
        kind = {
            "string": None,
            "number": "number",
            "boolean": "boolean",
            "date": "date",
            "uuid": None,
            "enum": "select",
        }[self.type]
        args = [f'"{self.name}"', f'"{self.label}"']
        if kind:
            args.append(f'"{kind}"')
        if self.type == "enum":
            args.append(self.constant)
        return f"Filter({', '.join(args)})"

    # ---------- tests ----------
    def example(self) -> Any:
        return {
            "string": f"Example {self.label.lower()}",
            "number": 12.5,
            "boolean": True,
            "date": "2024-09-03T09:30:00",
            "uuid": EXAMPLE_UUID,
            "enum": self.enum_values[0] if self.enum_values else None,
        }.get(self.type)

    def changed_example(self) -> Any:
        return {
            "string": f"Updated {self.label.lower()}",
            "number": 20.0,
            "boolean": False,
            "date": "2024-10-01T14:00:00",
            "enum": self.enum_values[-1] if self.enum_values else None,
        }.get(self.type)


@dataclass
class ResourceSpec:
    name: str  # plural resource name as entered
    permission: str  # Permission class attribute
    fields: list[FieldSpec] = field(default_factory=list)

    @property
    def module(self) -> str:
        return snake_case(self.name)

    @property
    def table(self) -> str:
        return self.module

    @property
    def slug(self) -> str:
        return kebab_case(self.name)

    @property
    def var(self) -> str:
        return singularize(self.module)

    @property
    def model(self) -> str:
        return pascal_case(self.var)

    @property
    def entity(self) -> str:
        return upper_snake(self.var)

    @property
    def title(self) -> str:
        return humanize(self.module)

    @property
    def singular_label(self) -> str:
        return humanize(self.var)

    @property
    def permission_key(self) -> str:
        return getattr(Permission, self.permission)

    @property
    def default_sort(self) -> str:
        return self.fields[0].name

    @property
    def enums(self) -> list[FieldSpec]:
        return [f for f in self.fields if f.type == "enum"]

    @property
    def relations(self) -> list[Relation]:
        seen: dict[str, Relation] = {}
        for f in self.fields:
            if f.relation and f.relation.class_name not in seen:
                seen[f.relation.class_name] = f.relation
        return list(seen.values())

    @property
    def sa_types(self) -> list[str]:
        names = {"DateTime", "String"}
        for f in self.fields:
            names.add("ForeignKey" if f.relation else f.sa_type)
        return sorted(names)

    @property
    def listing_imports(self) -> list[str]:
        """Names the generated service pulls from app.rsm.listing."""
        names = {"ListParams", "ListSpec", "ordered", "paginate"}
        for f in self.fields:
            converter = f.filter_converter
            names.add("one_of" if converter.startswith("one_of") else converter)
            if f.type == "string":
                names.add("contains")
            elif f.type == "date":
                names.add("same_day")
        return sorted(names, key=lambda n: (not n[0].isupper(), n))

    @property
    def forbidden_role(self) -> str | None:
        """A seeded role lacking this resource's permission (for the generated 403 test)."""
        for role, keys in ROLE_PERMISSIONS.items():
            if self.permission_key not in keys:
                return role
        return None

    @property
    def allowed_role(self) -> str | None:
        for role, keys in ROLE_PERMISSIONS.items():
            if self.permission_key in keys:
                return role
        return None

    @property
    def crud_testable(self) -> bool:
        """Round-trip tests need every required reference to be satisfiable by the logged-in user."""
        return all(f.relation is None or not f.required or f.relation.class_name == "User" for f in self.fields)

    def validate(self, existing_modules: tuple[str, ...] = (), *, overwrite: bool = False) -> list[str]:
        errors: list[str] = []
        if not self.module or not self.module.isidentifier():
            errors.append(f"name: {self.name!r} is not a usable module name")
        elif self.module in existing_modules and not overwrite:
            errors.append(f"name: module {self.module!r} already exists")
        elif self.table in CORE_TABLES:
            errors.append(f"name: table {self.table!r} already exists")
        if permission_attr(self.permission) is None:
            errors.append(f"permission: unknown permission {self.permission!r}")
        if not self.fields:
            errors.append("fields: at least one field is required")
        seen: set[str] = set()
        for f in self.fields:
            where = f"fields.{f.name or '?'}"
            if not f.name or not f.name.isidentifier():
                errors.append(f"{where}: invalid field name")
            elif f.name in RESERVED_FIELDS:
                errors.append(f"{where}: {f.name!r} is generated automatically")
            elif f.name in seen:
                errors.append(f"{where}: duplicate field")
            seen.add(f.name)
            if f.type not in FIELD_TYPES:
                errors.append(f"{where}: type must be one of {', '.join(FIELD_TYPES)}")
            if f.type == "enum" and not f.enum_values:
                errors.append(f"{where}: enum fields need at least one value")
            if f.relation and f.type != "uuid":
                errors.append(f"{where}: only uuid fields can reference another model")
            elif f.relation and f.relation.class_name not in CORE_MODELS and f.relation.table not in existing_modules:
                errors.append(f"{where}: unknown model {f.relation.class_name!r}")
        return errors


def enum_values(raw: Any) -> tuple[str, ...]:
    """Comma-separated (or listed) enum values, upper-cased, blanks and repeats dropped."""
    items = raw.split(",") if isinstance(raw, str) else list(raw or [])
    cleaned = [str(v).strip().upper().replace(" ", "_") for v in items]
    return tuple(dict.fromkeys(v for v in cleaned if v))


def field_from_dict(data: dict[str, Any]) -> FieldSpec:
    relation = data.get("relation")
    return FieldSpec(
        name=camel_case(str(data.get("name") or "")),
        type=str(data.get("type") or "").strip().lower(),
        required=bool(data.get("required", True)),
        enum_values=enum_values(data.get("enumValues") or data.get("values")),
        relation=Relation.resolve(relation) if relation else None,
    )


def spec_from_dict(
    data: dict[str, Any], existing_modules: tuple[str, ...] = (), *, overwrite: bool = False
) -> ResourceSpec:
    """Build and validate a ResourceSpec from a --spec JSON document. Raises SpecError."""
    if not isinstance(data, dict):
        raise SpecError(["spec: expected a JSON object"])
    raw_fields = data.get("fields") or []
    if not isinstance(raw_fields, list) or not all(isinstance(f, dict) for f in raw_fields):
        raise SpecError(["fields: expected a list of objects"])
    permission = str(data.get("permission") or "")
    spec = ResourceSpec(
        name=str(data.get("name") or ""),
        permission=permission_attr(permission) or permission,
        fields=[field_from_dict(f) for f in raw_fields],
    )
    errors = spec.validate(existing_modules, overwrite=overwrite)
    if errors:
        raise SpecError(errors)
    return spec
