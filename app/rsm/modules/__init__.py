"""
Resource modules live under this package.

Each module owns its models/service/api/admin files and reuses the platform
primitives (auth, RBAC, activity log, listing, DB session). A module is wired
into the app by listing it in RESOURCE_MODULES; the endpoint generator appends
new entries here.
"""

from __future__ import annotations

import importlib
import importlib.util
from types import ModuleType

RESOURCE_MODULES = (
    "schools",
    "roles",
    "users",
    "students",
    "providers",
    "therapists",
    "therapy_services",
    "reports",
    "invoices",
)


def _submodule(name: str, part: str) -> ModuleType | None:
    dotted = f"{__name__}.{name}.{part}"
    if importlib.util.find_spec(dotted) is None:
        return None
    return importlib.import_module(dotted)


def import_models() -> None:
    for name in RESOURCE_MODULES:
        _submodule(name, "models")


def api_modules() -> list[ModuleType]:
    return [m for m in (_submodule(name, "api") for name in RESOURCE_MODULES) if m is not None]


def admin_modules() -> list[ModuleType]:
    return [m for m in (_submodule(name, "admin") for name in RESOURCE_MODULES) if m is not None]
