"""
Bug state synchronizer: the client's single mirror of the server's bugs.

Callers receive a ``BugSynchronizer`` explicitly (there is no module-level
instance). Every network intent marks the state as loading, awaits the API and
then either commits the confirmed server record or records the error. The
local mirror is never treated as authoritative: nothing changes until the
server has answered.

Concurrency: intents are independent and are not queued. Two guards keep late
completions from corrupting the mirror:

- each ``fetch`` takes a generation number; a fetch that finishes after a
  newer one started is discarded
- after ``close()`` every completion is ignored
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, List, Mapping, Optional

from ..errors import BugTrackerError
from ..query import SORT_ORDERS
from ..schemas import BugRecord
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

logger = logging.getLogger(__name__)

Listener = Callable[[SyncState], None]


class BugSynchronizer:
    """
    Mirrors server bugs locally and exposes the client intents.

    Failures are captured in ``state.error``. ``fetch`` never raises; the
    other network intents re-raise after recording the error so the caller
    can react (e.g. keep a form open).
    """

    def __init__(self, service: BugService, initial_state: Optional[SyncState] = None) -> None:
        self._service = service
        self._state = initial_state or SyncState()
        self._listeners: List[Listener] = []
        self._in_flight = 0
        self._fetch_generation = 0
        self._closed = False

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with every new state; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, action: Action) -> SyncState:
        if self._closed:
            logger.debug("Ignoring %s after close", type(action).__name__)
            return self._state
        new_state = reduce(self._state, action)
        if new_state != self._state:
            self._state = new_state
            for listener in list(self._listeners):
                listener(new_state)
        return self._state

    def close(self) -> None:
        """Stop applying completions, e.g. when the owning view goes away."""
        self._closed = True
        self._listeners.clear()

    @asynccontextmanager
    async def _network_intent(self) -> AsyncIterator[None]:
        self._in_flight += 1
        self.dispatch(SetLoading(True))
        try:
            yield
        finally:
            self._in_flight -= 1
            self.dispatch(SetLoading(self._in_flight > 0))

    def _record_failure(self, intent: str, exc: BugTrackerError) -> None:
        logger.error("%s failed: %s", intent, exc, extra={"error_code": exc.code})
        self.dispatch(SetError(str(exc)))

    # PUBLIC_INTERFACE
    async def fetch(
        self,
        status: Optional[str] = None,
        severity: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> List[BugRecord]:
        """
        Reload the mirror from the server.

        Probes /health first; if the probe fails the list call is not made.
        On failure the mirror is emptied and the error recorded. Returns the
        records now in the mirror.
        """
        self._fetch_generation += 1
        generation = self._fetch_generation
        async with self._network_intent():
            try:
                await self._service.health_check()
                records = await self._service.list_bugs(status=status, severity=severity, sort=sort)
            except BugTrackerError as exc:
                if generation == self._fetch_generation:
                    self.dispatch(SetRecords(()))
                    self._record_failure("fetch", exc)
                return list(self._state.records)

            if generation != self._fetch_generation:
                logger.debug("Discarding superseded fetch %d", generation)
            else:
                self.dispatch(SetRecords(tuple(records)))
                logger.info("Fetched bugs", extra={"count": len(records)})
        return list(self._state.records)

    # PUBLIC_INTERFACE
    async def get_by_id(self, bug_id: str) -> BugRecord:
        """Load one bug; a mirrored copy with the same id is refreshed."""
        async with self._network_intent():
            try:
                record = await self._service.get_bug(bug_id)
            except BugTrackerError as exc:
                self._record_failure("get_by_id", exc)
                raise
            self.dispatch(UpdateRecord(record))
            return record

    # PUBLIC_INTERFACE
    async def create(self, payload: Mapping[str, Any]) -> BugRecord:
        """Create a bug; the confirmed record is prepended to the mirror."""
        async with self._network_intent():
            try:
                record = await self._service.create_bug(payload)
            except BugTrackerError as exc:
                self._record_failure("create", exc)
                raise
            self.dispatch(AddRecord(record))
            return record

    # PUBLIC_INTERFACE
    async def update(self, bug_id: str, payload: Mapping[str, Any]) -> BugRecord:
        """Update a bug; the mirrored copy is replaced by the server's version."""
        async with self._network_intent():
            try:
                record = await self._service.update_bug(bug_id, payload)
            except BugTrackerError as exc:
                self._record_failure("update", exc)
                raise
            self.dispatch(UpdateRecord(record))
            return record

    # PUBLIC_INTERFACE
    async def delete(self, bug_id: str) -> None:
        """Delete a bug; it leaves the mirror only after the server confirms."""
        async with self._network_intent():
            try:
                await self._service.delete_bug(bug_id)
            except BugTrackerError as exc:
                self._record_failure("delete", exc)
                raise
            self.dispatch(RemoveRecord(bug_id))

    def set_filter(self, status: str) -> None:
        self.dispatch(SetFilter(status))

    def set_sort_by(self, sort_by: str) -> None:
        self.dispatch(SetSortBy(sort_by))

    def set_sort_order(self, order: str) -> None:
        if order not in SORT_ORDERS:
            raise ValueError(f"sort order must be one of {', '.join(SORT_ORDERS)}")
        self.dispatch(SetSortOrder(order))
