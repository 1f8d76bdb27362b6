"""
Idempotent bootstrap: roles with their default permissions plus one ADMIN login.

An existing admin keeps their password; ADMIN_PASSWORD only applies on first run.

Usage:
  ADMIN_EMAIL=me@district.org ADMIN_PASSWORD=... python scripts/init_db.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.rsm.models import User  # noqa: E402
from app.rsm.modules.roles.service import ensure_roles  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402


def seed_only(*, database_url: str | None = None, create_tables: bool = False) -> User:
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@example.com").strip().lower()
    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///rsm.db").strip()

    with script_session(db_url, create_tables=create_tables) as s:
        roles = ensure_roles(s)
        admin = s.query(User).filter(User.email == admin_email).one_or_none()
        created = admin is None
        if created:
            admin = User(
                first_name="Admin",
                last_name="User",
                email=admin_email,
                password_hash=generate_password_hash(os.environ.get("ADMIN_PASSWORD") or "change-me"),
                security_level="FULL_ACCESS",
                status="ACTIVE",
            )
            s.add(admin)
        if admin.role is None:
            admin.role = roles["ADMIN"]

    print(f"Roles: {', '.join(sorted(roles))}")
    print(f"Admin {admin_email}: {'created' if created else 'already present'}")
    return admin


if __name__ == "__main__":
    seed_only()
