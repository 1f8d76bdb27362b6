"""
Request payload checking shared by the resource services.

Errors are collected as "field: message" strings so a single response can
report every problem at once.
"""

from __future__ import annotations

import math
import re
import uuid
from datetime import date, datetime, timezone
from typing import Any

from app.rsm.errors import invalid_request

_MISSING = object()
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def parse_date(value: str) -> date:
    """YYYY-MM-DD, or the date part of an ISO timestamp."""
    value = value.strip()
    if len(value) > 10:
        return parse_datetime(value).date()
    return date.fromisoformat(value)


def parse_datetime(value: str) -> datetime:
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def is_uuid(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


class PayloadValidator:
    def __init__(self, payload: Any, *, partial: bool = False) -> None:
        self.partial = partial
        self.errors: list[str] = []
        self.data: dict[str, Any] = {}
        if not isinstance(payload, dict):
            self.errors.append("body: Expected object")
            payload = {}
        self.payload: dict[str, Any] = payload

    def _take(self, key: str, *, required: bool, nullable: bool, default: Any) -> Any:
        value = self.payload.get(key, _MISSING)
        if value is _MISSING:
            if self.partial:
                return _MISSING
            if default is not _MISSING:
                self.data[key] = default
                return _MISSING
            if required:
                self.errors.append(f"{key}: Required")
            return _MISSING
        if value is None:
            if nullable:
                self.data[key] = None
            else:
                self.errors.append(f"{key}: Expected a value, received null")
            return _MISSING
        return value

    def string(
        self,
        key: str,
        *,
        required: bool = True,
        nullable: bool = False,
        default: Any = _MISSING,
        max_length: int | None = None,
        strip: bool = True,
    ) -> "PayloadValidator":
        value = self._take(key, required=required, nullable=nullable, default=default)
        if value is _MISSING:
            return self
        if not isinstance(value, str):
            self.errors.append(f"{key}: Expected string")
            return self
        if strip:
            value = value.strip()
        if not value:
            if nullable:
                self.data[key] = None
            else:
                self.errors.append(f"{key}: Must not be empty")
            return self
        if max_length is not None and len(value) > max_length:
            self.errors.append(f"{key}: Must be at most {max_length} characters")
            return self
        self.data[key] = value
        return self

    def email(self, key: str, *, required: bool = True) -> "PayloadValidator":
        self.string(key, required=required, max_length=320)
        value = self.data.get(key)
        if isinstance(value, str):
            if not _EMAIL_RE.match(value):
                self.errors.append(f"{key}: Invalid email")
                del self.data[key]
            else:
                self.data[key] = value.lower()
        return self

    def integer(
        self,
        key: str,
        *,
        required: bool = True,
        nullable: bool = False,
        min_value: int | None = None,
        max_value: int | None = None,
    ) -> "PayloadValidator":
        value = self._take(key, required=required, nullable=nullable, default=_MISSING)
        if value is _MISSING:
            return self
        if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
            self.errors.append(f"{key}: Expected integer")
            return self
        value = int(value)
        if min_value is not None and value < min_value:
            self.errors.append(f"{key}: Must be greater than or equal to {min_value}")
            return self
        if max_value is not None and value > max_value:
            self.errors.append(f"{key}: Must be less than or equal to {max_value}")
            return self
        self.data[key] = value
        return self

    def number(
        self,
        key: str,
        *,
        required: bool = True,
        nullable: bool = False,
        min_value: float | None = None,
        max_value: float | None = None,
    ) -> "PayloadValidator":
        value = self._take(key, required=required, nullable=nullable, default=_MISSING)
        if value is _MISSING:
            return self
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            self.errors.append(f"{key}: Expected number")
            return self
        # json.loads accepts NaN and Infinity
        if isinstance(value, float) and not math.isfinite(value):
            self.errors.append(f"{key}: Expected number")
            return self
        if min_value is not None and value < min_value:
            self.errors.append(f"{key}: Must be greater than or equal to {min_value}")
            return self
        if max_value is not None and value > max_value:
            self.errors.append(f"{key}: Must be less than or equal to {max_value}")
            return self
        self.data[key] = value
        return self

    def boolean(self, key: str, *, required: bool = True, default: Any = _MISSING) -> "PayloadValidator":
        value = self._take(key, required=required, nullable=False, default=default)
        if value is _MISSING:
            return self
        if not isinstance(value, bool):
            self.errors.append(f"{key}: Expected boolean")
            return self
        self.data[key] = value
        return self

    def date(self, key: str, *, required: bool = True, nullable: bool = False) -> "PayloadValidator":
        value = self._take(key, required=required, nullable=nullable, default=_MISSING)
        if value is _MISSING:
            return self
        try:
            self.data[key] = parse_date(value) if isinstance(value, str) else _invalid()
        except ValueError:
            self.errors.append(f"{key}: Invalid date")
        return self

    def datetime(
        self,
        key: str,
        *,
        required: bool = True,
        nullable: bool = False,
        default: Any = _MISSING,
    ) -> "PayloadValidator":
        value = self._take(key, required=required, nullable=nullable, default=default)
        if value is _MISSING:
            return self
        try:
            self.data[key] = parse_datetime(value) if isinstance(value, str) else _invalid()
        except ValueError:
            self.errors.append(f"{key}: Invalid date")
        return self

    def uuid(self, key: str, *, required: bool = True, nullable: bool = False) -> "PayloadValidator":
        value = self._take(key, required=required, nullable=nullable, default=_MISSING)
        if value is _MISSING:
            return self
        if not is_uuid(value):
            self.errors.append(f"{key}: Invalid uuid")
            return self
        self.data[key] = value
        return self

    def choice(
        self,
        key: str,
        choices: tuple[str, ...],
        *,
        required: bool = True,
        default: Any = _MISSING,
    ) -> "PayloadValidator":
        value = self._take(key, required=required, nullable=False, default=default)
        if value is _MISSING:
            return self
        if value not in choices:
            self.errors.append(f"{key}: Invalid enum value. Expected {' | '.join(choices)}")
            return self
        self.data[key] = value
        return self

    def uuid_list(self, key: str, *, required: bool = False) -> "PayloadValidator":
        value = self._take(key, required=required, nullable=False, default=_MISSING)
        if value is _MISSING:
            return self
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            self.errors.append(f"{key}: Expected array of strings")
            return self
        # keep order, drop duplicates
        self.data[key] = list(dict.fromkeys(value))
        return self

    def json(self, key: str, *, required: bool = False) -> "PayloadValidator":
        value = self._take(key, required=required, nullable=True, default=_MISSING)
        if value is _MISSING:
            return self
        self.data[key] = value
        return self

    def notes_object(self, key: str, *, required: bool = True) -> "PayloadValidator":
        value = self._take(key, required=required, nullable=False, default=_MISSING)
        if value is _MISSING:
            return self
        if not isinstance(value, dict) or not isinstance(value.get("notes"), str):
            self.errors.append(f"{key}.notes: Required")
            return self
        self.data[key] = {"notes": value["notes"]}
        return self

    def cleaned(self) -> dict[str, Any]:
        if self.errors:
            raise invalid_request(self.errors)
        return self.data


def _invalid() -> Any:
    raise ValueError("expected string")
