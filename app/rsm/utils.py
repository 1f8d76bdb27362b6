from __future__ import annotations

from datetime import date, datetime
from typing import Any


def iso(value: datetime | None) -> str | None:
    """UTC timestamp as ISO-8601 with a Z suffix (columns are naive UTC)."""
    if value is None:
        return None
    return value.isoformat(timespec="milliseconds") + "Z"


def iso_date(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _jsonable(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def apply_changes(obj: Any, data: dict[str, Any], field_map: dict[str, str]) -> dict[str, dict[str, Any]]:
    """
    Copy payload keys onto model attributes (payload key -> attribute name).
    Returns {key: {"old", "new"}} for the values that actually changed.
    """
    changes: dict[str, dict[str, Any]] = {}
    for key, attr in field_map.items():
        if key not in data:
            continue
        old = getattr(obj, attr)
        new = data[key]
        if old != new:
            changes[key] = {"old": _jsonable(old), "new": _jsonable(new)}
            setattr(obj, attr, new)
    return changes
