"""
Client for the bug tracker API: an async HTTP service, the state mirror it
feeds, and a form draft helper.
"""

from .form import BugForm
from .service import BugService
from .state import (
    Action,
    AddRecord,
    RemoveRecord,
    SetError,
    SetFilter,
    SetLoading,
    SetRecords,
    SetSortBy,
    SetSortOrder,
    SyncState,
    UpdateRecord,
    reduce,
)
from .synchronizer import BugSynchronizer

__all__ = [
    "Action",
    "AddRecord",
    "BugForm",
    "BugService",
    "BugSynchronizer",
    "RemoveRecord",
    "SetError",
    "SetFilter",
    "SetLoading",
    "SetRecords",
    "SetSortBy",
    "SetSortOrder",
    "SyncState",
    "UpdateRecord",
    "reduce",
]
