"""
List endpoints: search-parameter parsing and pagination.

The REST API and the admin data tables share these parsers, so a table URL like
/admin/schools/?sortBy=state&sortOrder=desc&page=2 means the same thing as
GET /schools?sortBy=state&sortOrder=desc&page=2.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any

from sqlalchemy import and_
from sqlalchemy.orm import Query

from app.rsm.errors import invalid_request
from app.rsm.validation import is_uuid, parse_date

SORT_ORDERS = ("asc", "desc")

Converter = Callable[[str], Any]


def text(value: str) -> str:
    return value


def integer(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValueError("Expected integer")


def number(value: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise ValueError("Expected number")


def boolean(value: str) -> bool:
    if value == "true":
        return True
    if value == "false":
        return False
    raise ValueError("Expected 'true' or 'false'")


def iso_date(value: str) -> date:
    try:
        return parse_date(value)
    except ValueError:
        raise ValueError("Invalid date")


def uuid_value(value: str) -> str:
    if not is_uuid(value):
        raise ValueError("Invalid uuid")
    return value


def one_of(*choices: str) -> Converter:
    def convert(value: str) -> str:
        if value not in choices:
            raise ValueError(f"Invalid enum value. Expected {' | '.join(choices)}")
        return value

    return convert


# Upper bounds keep OFFSET within a 64-bit integer on every backend.
MAX_PAGE = 1_000_000
MAX_PER_PAGE = 1000


@dataclass(frozen=True)
class ListSpec:
    filters: dict[str, Converter]
    sort_fields: tuple[str, ...]
    default_sort: str
    default_order: str = "asc"
    per_page_default: int = 20
    per_page_min: int = 1
    per_page_max: int | None = None


@dataclass(frozen=True)
class ListParams:
    page: int
    per_page: int
    sort_by: str
    sort_order: str
    filters: dict[str, Any] = field(default_factory=dict)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    @property
    def descending(self) -> bool:
        return self.sort_order == "desc"

    def query_args(self, **overrides: Any) -> dict[str, Any]:
        """Search params for links (pagination/sort headers) that keep the current filters."""
        args: dict[str, Any] = {k: _as_arg(v) for k, v in self.filters.items()}
        args.update(
            {
                "page": self.page,
                "perPage": self.per_page,
                "sortBy": self.sort_by,
                "sortOrder": self.sort_order,
            }
        )
        args.update(overrides)
        return {k: v for k, v in args.items() if v is not None and v != ""}


def _as_arg(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, date):
        return value.isoformat()
    return value


def _positive_int(args: Mapping[str, str], key: str, default: int, low: int, high: int, errors: list[str]) -> int:
    raw = (args.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        errors.append(f"{key}: Expected number")
        return default
    if value < low:
        errors.append(f"{key}: Must be greater than or equal to {low}")
    elif value > high:
        errors.append(f"{key}: Must be less than or equal to {high}")
    return value


def parse_list_params(spec: ListSpec, args: Mapping[str, str]) -> ListParams:
    """
    Parse page/perPage/sortBy/sortOrder and the resource's filters.
    Blank values count as absent. Raises INVALID_REQUEST listing every bad parameter.
    """
    errors: list[str] = []
    page = _positive_int(args, "page", 1, 1, MAX_PAGE, errors)
    per_page_max = min(spec.per_page_max or MAX_PER_PAGE, MAX_PER_PAGE)
    per_page = _positive_int(args, "perPage", spec.per_page_default, spec.per_page_min, per_page_max, errors)

    sort_by = (args.get("sortBy") or "").strip() or spec.default_sort
    if sort_by not in spec.sort_fields:
        errors.append(f"sortBy: Invalid enum value. Expected {' | '.join(spec.sort_fields)}")
    sort_order = (args.get("sortOrder") or "").strip() or spec.default_order
    if sort_order not in SORT_ORDERS:
        errors.append("sortOrder: Invalid enum value. Expected asc | desc")

    filters: dict[str, Any] = {}
    for name, convert in spec.filters.items():
        raw = (args.get(name) or "").strip()
        if not raw:
            continue
        try:
            filters[name] = convert(raw)
        except ValueError as e:
            errors.append(f"{name}: {e}")

    if errors:
        raise invalid_request(errors)
    return ListParams(page=page, per_page=per_page, sort_by=sort_by, sort_order=sort_order, filters=filters)


def contains(column, value: str):
    """Case-insensitive substring match."""
    return column.ilike(f"%{value}%")


def same_day(column, day: date):
    """Date filter against a timestamp column: any time on that calendar day."""
    start = datetime.combine(day, time.min)
    return and_(column >= start, column < start + timedelta(days=1))


def ordered(columns: list, params: ListParams) -> list:
    return [c.desc() if params.descending else c.asc() for c in columns]


def paginate(q: Query, params: ListParams, order_by: list) -> tuple[list, dict[str, int]]:
    total = q.order_by(None).count()
    rows = q.order_by(*order_by).offset(params.offset).limit(params.per_page).all()
    return rows, {"total": total, "pages": math.ceil(total / params.per_page)}
