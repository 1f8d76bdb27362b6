"""
Render a ResourceSpec into module files, a test module and an Alembic revision,
then wire the new module into RESOURCE_MODULES.
"""

from __future__ import annotations

import json
import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from alembic.config import Config
from alembic.script import ScriptDirectory
from jinja2 import Environment, FileSystemLoader, StrictUndefined

from app.rsm.codegen.fields import EXAMPLE_UUID, ResourceSpec
from app.rsm.codegen.naming import camel_case, humanize, kebab_case, pascal_case, pluralize, snake_case, upper_snake

TEMPLATES_DIR = Path(__file__).parent / "templates"
MODULES_INIT = Path("app") / "rsm" / "modules" / "__init__.py"

_MODULES_TUPLE = re.compile(r"RESOURCE_MODULES = \((?P<body>.*?)\)", re.S)

# template -> path relative to the repo root
MODULE_TEMPLATES = (
    ("models.py.j2", "app/rsm/modules/{module}/models.py"),
    ("service.py.j2", "app/rsm/modules/{module}/service.py"),
    ("api.py.j2", "app/rsm/modules/{module}/api.py"),
    ("admin.py.j2", "app/rsm/modules/{module}/admin.py"),
    ("test_api.py.j2", "tests/test_{module}_api.py"),
)


@dataclass
class GeneratedFile:
    path: str  # relative to the repo root
    content: str
    template: str | None = None


def py_literal(value: Any) -> str:
    """Python source for a JSON-ish scalar, double-quoted like the rest of the codebase."""
    if value is None or isinstance(value, bool):
        return repr(value)
    if isinstance(value, (int, float)):
        return repr(value)
    return json.dumps(str(value))


def create_jinja_env(templates_dir: Path = TEMPLATES_DIR) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
    env.filters["py"] = py_literal
    env.filters["camel_case"] = camel_case
    env.filters["pascal_case"] = pascal_case
    env.filters["snake_case"] = snake_case
    env.filters["kebab_case"] = kebab_case
    env.filters["upper_snake"] = upper_snake
    env.filters["plural"] = pluralize
    env.filters["humanize"] = humanize
    return env


def new_revision_id() -> str:
    return uuid.uuid4().hex[-12:]


def _context(spec: ResourceSpec, **extra: Any) -> dict[str, Any]:
    crud_fields = [
        f for f in spec.fields if f.example() is not None and (f.relation is None or f.relation.class_name == "User")
    ]
    changed = next((f for f in spec.fields if not f.relation and f.changed_example() is not None), None)
    return {
        "spec": spec,
        "crud_fields": crud_fields,
        "changed": changed,
        "example_uuid": EXAMPLE_UUID,
        **extra,
    }


def render_resource(
    spec: ResourceSpec,
    *,
    revision: str | None = None,
    down_revision: str | None = None,
    create_date: datetime | None = None,
    env: Environment | None = None,
) -> list[GeneratedFile]:
    env = env or create_jinja_env()
    revision = revision or new_revision_id()
    create_date = create_date or datetime.now()
    ctx = _context(spec, revision=revision, down_revision=down_revision, create_date=create_date)

    files = [
        GeneratedFile(path.format(module=spec.module), env.get_template(name).render(ctx), name)
        for name, path in MODULE_TEMPLATES
    ]
    files.append(
        GeneratedFile(
            f"migrations/versions/{revision}_create_{spec.table}_table.py",
            env.get_template("migration.py.j2").render(ctx),
            "migration.py.j2",
        )
    )
    return files


def current_head(root: Path) -> str | None:
    """Head revision of the repo's Alembic history (None for an empty history)."""
    cfg = Config(str(root / "alembic.ini"))
    cfg.set_main_option("script_location", str(root / "migrations"))
    return ScriptDirectory.from_config(cfg).get_current_head()


def write_files(root: Path, files: list[GeneratedFile], *, force: bool = False) -> list[Path]:
    """Write generated files under root. Refuses to touch existing files unless force is set."""
    targets = [(root / f.path, f) for f in files]
    if not force:
        existing = [str(path.relative_to(root)) for path, _ in targets if path.exists()]
        if existing:
            raise FileExistsError(f"Refusing to overwrite: {', '.join(existing)} (use --force)")
    written: list[Path] = []
    for path, f in targets:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f.content, encoding="utf-8")
        written.append(path)
    return written


def registered_modules(root: Path) -> tuple[str, ...]:
    match = _MODULES_TUPLE.search((root / MODULES_INIT).read_text(encoding="utf-8"))
    if not match:
        raise RuntimeError(f"RESOURCE_MODULES not found in {MODULES_INIT}")
    return tuple(re.findall(r'"([a-z0-9_]+)"', match.group("body")))


def register_module(root: Path, module: str) -> bool:
    """Append module to RESOURCE_MODULES. Returns False when it is already listed."""
    path = root / MODULES_INIT
    modules = registered_modules(root)
    if module in modules:
        return False
    body = "".join(f'    "{name}",\n' for name in (*modules, module))
    source = path.read_text(encoding="utf-8")
    path.write_text(_MODULES_TUPLE.sub(lambda _m: f"RESOURCE_MODULES = (\n{body})", source, count=1), encoding="utf-8")
    return True


def existing_modules(root: Path) -> tuple[str, ...]:
    """Registered modules plus any module directory on disk."""
    on_disk = tuple(p.name for p in (root / MODULES_INIT).parent.iterdir() if p.is_dir() and not p.name.startswith("_"))
    return tuple(dict.fromkeys((*registered_modules(root), *on_disk)))
