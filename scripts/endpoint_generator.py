"""
Scaffold a new CRUD resource: model, service, REST api, admin drawers, tests
and an Alembic revision, then register the module in RESOURCE_MODULES.

Usage:
  python scripts/endpoint_generator.py                  # interactive
  python scripts/endpoint_generator.py --spec goals.json --dry-run
  python scripts/endpoint_generator.py --spec goals.json --migrate

Spec file shape:
  {"name": "therapy_goals", "permission": "ASSIGN_STUDENTS",
   "fields": [{"name": "studentId", "type": "uuid", "relation": "Student"},
              {"name": "goalType", "type": "enum", "values": "SPEECH, MOTOR"},
              {"name": "targetDate", "type": "date", "required": false}]}
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.rsm.codegen.fields import SpecError, spec_from_dict  # noqa: E402
from app.rsm.codegen.prompts import ask_yes_no, prompt_resource  # noqa: E402
from app.rsm.codegen.render import (  # noqa: E402
    current_head,
    existing_modules,
    register_module,
    render_resource,
    write_files,
)


def run_migrations(root: Path) -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(root / "alembic.ini"))
    cfg.set_main_option("script_location", str(root / "migrations"))
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if db_url:
        cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Scaffold a CRUD resource module.")
    p.add_argument("--spec", type=Path, help="JSON resource description (skips the prompts)")
    p.add_argument("--dry-run", action="store_true", help="Print the files that would be written and stop")
    p.add_argument("--force", action="store_true", help="Overwrite existing generated files")
    p.add_argument(
        "--migrate",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Run alembic upgrade head afterwards (asked interactively when omitted)",
    )
    p.add_argument("--root", type=Path, default=ROOT, help=argparse.SUPPRESS)
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    root: Path = args.root.resolve()
    known = existing_modules(root)

    if args.spec:
        try:
            data = json.loads(args.spec.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            print(f"Could not read {args.spec}: {e}", file=sys.stderr)
            return 2
        try:
            spec = spec_from_dict(data, known, overwrite=args.force)
        except SpecError as e:
            for err in e.errors:
                print(f"  {err}", file=sys.stderr)
            return 2
    else:
        spec = prompt_resource(known, overwrite=args.force)

    migrate = args.migrate
    if migrate is None:
        migrate = False if (args.spec or args.dry_run) else ask_yes_no(input, "Run the database migration now?")

    files = render_resource(spec, down_revision=current_head(root))

    if args.dry_run:
        print(f"Would generate {spec.model} ({spec.slug}, permission {spec.permission_key}):")
        for f in files:
            print(f"  {'overwrite' if (root / f.path).exists() else 'create'} {f.path}")
        if spec.module not in known:
            print(f"  register {spec.module!r} in RESOURCE_MODULES")
        return 0

    try:
        written = write_files(root, files, force=args.force)
    except FileExistsError as e:
        print(str(e), file=sys.stderr)
        return 1
    for path in written:
        print(f"  wrote {path.relative_to(root)}")
    if register_module(root, spec.module):
        print(f"  registered {spec.module!r} in RESOURCE_MODULES")

    if migrate:
        print("Running Alembic migrations...", flush=True)
        run_migrations(root)
        print("Migrations complete.", flush=True)
    else:
        print("Run `alembic upgrade head` to create the table.")

    print(f"Done. REST: /{spec.slug}  Admin: /admin/{spec.slug}/")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
