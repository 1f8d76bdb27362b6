"""
Release phase: migrate, then make sure roles and the admin login exist.

SEED_DEMO_DATA=1 also runs the Faker seeder (refused in production).

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.rsm.config import load_config, production_problems  # noqa: E402


def upgrade_database(db_url: str) -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")


def run_release() -> None:
    config = load_config()
    problems = production_problems(config)
    if problems:
        raise RuntimeError("; ".join(problems))
    db_url = config["DATABASE_URL"]
    is_production = config["ENV"] in ("prod", "production")

    print(f"=== RSM release (ENV={config['ENV']}) ===", flush=True)
    print("Upgrading database to head...", flush=True)
    upgrade_database(db_url)

    from scripts import init_db

    init_db.seed_only(database_url=db_url)

    if (os.environ.get("SEED_DEMO_DATA") or "").strip() == "1":
        if is_production:
            raise RuntimeError("SEED_DEMO_DATA=1 is not allowed in production.")
        from scripts import seed

        seed.main(["--database-url", db_url])
    print("=== RSM release done ===", flush=True)


if __name__ == "__main__":
    run_release()
