from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from .models import TIMESTAMP_FIELDS, field_name

T = TypeVar("T")

SORT_ORDERS = ("asc", "desc")
DEFAULT_SORT_FIELD = "created_at"
DEFAULT_SORT_ORDER = "desc"
ALL = "all"


@dataclass(frozen=True)
class ListQuery:
    """
    Filter and ordering parameters for listing bugs.
    """
    status: Optional[str] = None  # None or "all" disables the filter
    severity: Optional[str] = None
    sort_by: str = DEFAULT_SORT_FIELD
    sort_order: str = DEFAULT_SORT_ORDER


def normalize_sort_field(name: Optional[str]) -> str:
    """Resolve a wire or attribute field name; unknown names fall back to created_at."""
    if not name:
        return DEFAULT_SORT_FIELD
    return field_name(name.strip()) or DEFAULT_SORT_FIELD


def normalize_sort_order(order: Optional[str]) -> str:
    value = (order or DEFAULT_SORT_ORDER).strip().lower()
    return value if value in SORT_ORDERS else DEFAULT_SORT_ORDER


# PUBLIC_INTERFACE
def parse_sort(sort: Optional[str]) -> Tuple[str, str]:
    """
    Parse a sort expression such as 'createdAt' or '-createdAt'.

    Returns (attribute field name, 'asc' | 'desc'). A leading '-' means
    descending. An empty expression yields the default (created_at, desc).
    """
    expr = (sort or "").strip()
    if not expr:
        return DEFAULT_SORT_FIELD, DEFAULT_SORT_ORDER
    if expr.startswith("-"):
        return normalize_sort_field(expr[1:]), "desc"
    return normalize_sort_field(expr), "asc"


def _value(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _normalize_filter(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    v = value.strip().lower()
    return None if not v or v == ALL else v


def active_filters(query: ListQuery) -> Dict[str, str]:
    """Return the equality filters in effect, keyed by attribute name."""
    filters: Dict[str, str] = {}
    for name in ("status", "severity"):
        value = _normalize_filter(getattr(query, name))
        if value is not None:
            filters[name] = value
    return filters


def matches(record: Any, query: ListQuery) -> bool:
    return all(_value(record, name) == value for name, value in active_filters(query).items())


def filter_records(records: Iterable[T], query: ListQuery) -> List[T]:
    """Keep records matching the query filters, preserving their relative order."""
    return [r for r in records if matches(r, query)]


def _sort_key(name: str):
    def key(record: Any) -> Tuple[Any, ...]:
        value = _value(record, name)
        if name in TIMESTAMP_FIELDS and isinstance(value, str):
            value = datetime.fromisoformat(value)
        # (has value, value, id): nulls order lowest, id breaks ties
        if value is None:
            return (False, 0, _value(record, "id") or "")
        return (True, value, _value(record, "id") or "")

    return key


def sort_records(records: Iterable[T], sort_by: str, sort_order: str) -> List[T]:
    """
    Return a new list ordered by one field.

    Timestamp fields compare as instants; other fields use their natural
    ordering. Equal values are ordered by id in the same direction, so the
    result is deterministic.
    """
    name = normalize_sort_field(sort_by)
    reverse = normalize_sort_order(sort_order) == "desc"
    return sorted(records, key=_sort_key(name), reverse=reverse)


# PUBLIC_INTERFACE
def apply_query(records: Sequence[T], query: Optional[ListQuery] = None) -> List[T]:
    """Filter then sort a snapshot of records. The input sequence is not modified."""
    q = query or ListQuery()
    return sort_records(filter_records(records, q), q.sort_by, q.sort_order)
