"""
Client-side mirror of the bug store.

``SyncState`` is immutable; it only changes through ``reduce(state, action)``
with one of the action types below. ``Action`` is a closed union, and
``reduce`` ends in ``assert_never`` so a type checker flags any action type
without a branch.

``loading`` changes only through ``SetLoading``; the synchronizer owns it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional, Tuple, Union, assert_never

from ..query import ALL, DEFAULT_SORT_FIELD, DEFAULT_SORT_ORDER, ListQuery, apply_query
from ..schemas import BugRecord


@dataclass(frozen=True)
class SyncState:
    records: Tuple[BugRecord, ...] = ()
    loading: bool = False
    error: Optional[str] = None
    filter: str = ALL
    sort_by: str = DEFAULT_SORT_FIELD
    sort_order: str = DEFAULT_SORT_ORDER

    @property
    def visible_records(self) -> List[BugRecord]:
        """Records after the status filter and sort are applied; derived on every read."""
        query = ListQuery(status=self.filter, sort_by=self.sort_by, sort_order=self.sort_order)
        return apply_query(self.records, query)


@dataclass(frozen=True)
class SetLoading:
    loading: bool


@dataclass(frozen=True)
class SetError:
    message: Optional[str]


@dataclass(frozen=True)
class SetRecords:
    records: Tuple[BugRecord, ...]


@dataclass(frozen=True)
class AddRecord:
    record: BugRecord


@dataclass(frozen=True)
class UpdateRecord:
    record: BugRecord


@dataclass(frozen=True)
class RemoveRecord:
    bug_id: str


@dataclass(frozen=True)
class SetFilter:
    status: str


@dataclass(frozen=True)
class SetSortBy:
    sort_by: str


@dataclass(frozen=True)
class SetSortOrder:
    order: str


Action = Union[
    SetLoading,
    SetError,
    SetRecords,
    AddRecord,
    UpdateRecord,
    RemoveRecord,
    SetFilter,
    SetSortBy,
    SetSortOrder,
]


# PUBLIC_INTERFACE
def reduce(state: SyncState, action: Action) -> SyncState:
    """Return the state that results from applying ``action`` to ``state``."""
    match action:
        case SetLoading(loading=loading):
            return replace(state, loading=loading)
        case SetError(message=message):
            return replace(state, error=message)
        case SetRecords(records=records):
            return replace(state, records=tuple(records), error=None)
        case AddRecord(record=record):
            return replace(state, records=(record, *state.records))
        case UpdateRecord(record=record):
            records = tuple(record if r.id == record.id else r for r in state.records)
            return replace(state, records=records)
        case RemoveRecord(bug_id=bug_id):
            records = tuple(r for r in state.records if r.id != bug_id)
            return replace(state, records=records)
        case SetFilter(status=status):
            return replace(state, filter=status)
        case SetSortBy(sort_by=sort_by):
            return replace(state, sort_by=sort_by)
        case SetSortOrder(order=order):
            return replace(state, sort_order=order)
        case _:
            assert_never(action)
