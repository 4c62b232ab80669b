from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from threading import RLock
from typing import Any, Dict, List, Mapping, Optional

from .errors import RecordNotFoundError
from .models import BugEntity, Status
from .query import ListQuery, apply_query
from .settings import get_settings
from .validation import validate_create, validate_update

logger = logging.getLogger(__name__)


def new_bug_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def next_update_time(previous: datetime, now: datetime) -> datetime:
    """Return ``now``, bumped past ``previous`` so updated_at strictly advances."""
    if now <= previous:
        return previous + timedelta(microseconds=1)
    return now


def log_status_change(bug_id: str, old_status: str, new_status: str) -> None:
    """Transitions are unrestricted; reopening a closed bug is made visible."""
    if old_status == new_status:
        return
    if old_status == Status.CLOSED.value:
        logger.warning(
            "Closed bug reopened as %s", new_status,
            extra={"bug_id": bug_id, "status": new_status},
        )
    else:
        logger.info(
            "Bug status changed from %s to %s", old_status, new_status,
            extra={"bug_id": bug_id, "status": new_status},
        )


# PUBLIC_INTERFACE
class Repository(ABC):
    """Abstract store contract for bug records."""

    @abstractmethod
    def create(self, payload: Mapping[str, Any]) -> BugEntity:
        """Validate, assign id and timestamps, persist and return the new bug."""

    @abstractmethod
    def get(self, bug_id: str) -> BugEntity:
        """Return a bug by id. Raises RecordNotFoundError if absent."""

    @abstractmethod
    def update(self, bug_id: str, changes: Mapping[str, Any]) -> BugEntity:
        """
        Merge changes into an existing bug, revalidate, persist and refresh
        updated_at. Raises RecordNotFoundError or ValidationError.
        """

    @abstractmethod
    def delete(self, bug_id: str) -> None:
        """Hard-delete a bug. Raises RecordNotFoundError if absent."""

    @abstractmethod
    def list(self, query: Optional[ListQuery] = None) -> List[BugEntity]:
        """
        Return every bug matching the query filters, ordered by the query's
        sort field and direction (id as tie-break). No pagination.
        """


def _copy(entity: BugEntity) -> BugEntity:
    copied = entity.copy()
    copied["tags"] = list(entity["tags"])
    return copied


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory store suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: Dict[str, BugEntity] = {}

    def _now(self) -> datetime:
        return utc_now()

    def create(self, payload: Mapping[str, Any]) -> BugEntity:
        fields = validate_create(payload)
        now = self._now()
        entity: BugEntity = {
            "id": new_bug_id(),
            **fields,  # type: ignore[typeddict-item]
            "created_at": now,
            "updated_at": now,
        }
        with self._lock:
            self._items[entity["id"]] = entity
        logger.info("Bug created", extra={"bug_id": entity["id"]})
        return _copy(entity)

    def get(self, bug_id: str) -> BugEntity:
        with self._lock:
            item = self._items.get(bug_id)
            if item is None:
                raise RecordNotFoundError(bug_id)
            return _copy(item)

    def update(self, bug_id: str, changes: Mapping[str, Any]) -> BugEntity:
        with self._lock:
            existing = self._items.get(bug_id)
            if existing is None:
                raise RecordNotFoundError(bug_id)

            merged = validate_update(existing, changes)
            updated: BugEntity = {**existing, **merged}  # type: ignore[typeddict-item]
            updated["updated_at"] = next_update_time(existing["updated_at"], self._now())

            self._items[bug_id] = updated
        log_status_change(bug_id, existing["status"], updated["status"])
        return _copy(updated)

    def delete(self, bug_id: str) -> None:
        with self._lock:
            if self._items.pop(bug_id, None) is None:
                raise RecordNotFoundError(bug_id)
        logger.info("Bug deleted", extra={"bug_id": bug_id})

    def list(self, query: Optional[ListQuery] = None) -> List[BugEntity]:
        with self._lock:
            snapshot = [_copy(t) for t in self._items.values()]
        return apply_query(snapshot, query)


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_repository() -> Repository:
    """
    Return the process-wide store configured by settings.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository at SQLITE_DB_PATH
    """
    settings = get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteRepository

        logger.info("Using SQLite store at %s", settings.sqlite_db_path)
        return SQLiteRepository(settings.sqlite_db_path)
    return InMemoryRepository()


def reset_repository() -> None:
    """Drop the cached store so the next call re-reads settings."""
    get_repository.cache_clear()
