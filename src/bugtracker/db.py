from __future__ import annotations

import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generator, List, Mapping, Optional

from .errors import RecordNotFoundError
from .models import BugEntity
from .query import ListQuery, active_filters, sort_records
from .repositories import (
    Repository,
    log_status_change,
    new_bug_id,
    next_update_time,
    utc_now,
)
from .validation import validate_create, validate_update

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cols:
    table: str = "bugs"
    id: str = "id"
    title: str = "title"
    description: str = "description"
    severity: str = "severity"
    status: str = "status"
    reported_by: str = "reported_by"
    assigned_to: str = "assigned_to"
    tags: str = "tags"
    reproduction_steps: str = "reproduction_steps"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


_COLS = _Cols()

_WRITE_ORDER = (
    _COLS.title,
    _COLS.description,
    _COLS.severity,
    _COLS.status,
    _COLS.reported_by,
    _COLS.assigned_to,
    _COLS.tags,
    _COLS.reproduction_steps,
)


class SQLiteRepository(Repository):
    """
    Lightweight SQLite store. Tags are stored as a JSON array, timestamps as
    ISO8601 strings with UTC offset.
    """

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} TEXT PRIMARY KEY,
                    {_COLS.title} TEXT NOT NULL,
                    {_COLS.description} TEXT NOT NULL,
                    {_COLS.severity} TEXT NOT NULL,
                    {_COLS.status} TEXT NOT NULL,
                    {_COLS.reported_by} TEXT NOT NULL,
                    {_COLS.assigned_to} TEXT NULL,
                    {_COLS.tags} TEXT NOT NULL DEFAULT '[]',
                    {_COLS.reproduction_steps} TEXT NULL,
                    {_COLS.created_at} TEXT NOT NULL,
                    {_COLS.updated_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_status_severity "
                f"ON {_COLS.table}({_COLS.status}, {_COLS.severity})"
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_created_at ON {_COLS.table}({_COLS.created_at})"
            )

    def _row_to_entity(self, row: sqlite3.Row) -> BugEntity:
        return {
            "id": str(row[_COLS.id]),
            "title": str(row[_COLS.title]),
            "description": str(row[_COLS.description]),
            "severity": str(row[_COLS.severity]),
            "status": str(row[_COLS.status]),
            "reported_by": str(row[_COLS.reported_by]),
            "assigned_to": row[_COLS.assigned_to],
            "tags": list(json.loads(row[_COLS.tags] or "[]")),
            "reproduction_steps": row[_COLS.reproduction_steps],
            "created_at": datetime.fromisoformat(row[_COLS.created_at]),
            "updated_at": datetime.fromisoformat(row[_COLS.updated_at]),
        }

    @staticmethod
    def _write_values(fields: Mapping[str, Any]) -> List[Any]:
        return [
            json.dumps(fields[col]) if col == _COLS.tags else fields[col]
            for col in _WRITE_ORDER
        ]

    def _fetch_row(self, conn: sqlite3.Connection, bug_id: str) -> Optional[sqlite3.Row]:
        return conn.execute(
            f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} = ?", (bug_id,)
        ).fetchone()

    def create(self, payload: Mapping[str, Any]) -> BugEntity:
        fields = validate_create(payload)
        bug_id = new_bug_id()
        now = utc_now().isoformat()
        columns = ", ".join((_COLS.id, *_WRITE_ORDER, _COLS.created_at, _COLS.updated_at))
        placeholders = ", ".join("?" for _ in range(len(_WRITE_ORDER) + 3))
        with self._conn() as conn:
            conn.execute(
                f"INSERT INTO {_COLS.table} ({columns}) VALUES ({placeholders})",
                [bug_id, *self._write_values(fields), now, now],
            )
            row = self._fetch_row(conn, bug_id)
            assert row is not None
        logger.info("Bug created", extra={"bug_id": bug_id})
        return self._row_to_entity(row)

    def get(self, bug_id: str) -> BugEntity:
        with self._conn() as conn:
            row = self._fetch_row(conn, bug_id)
        if row is None:
            raise RecordNotFoundError(bug_id)
        return self._row_to_entity(row)

    def update(self, bug_id: str, changes: Mapping[str, Any]) -> BugEntity:
        with self._conn() as conn:
            row = self._fetch_row(conn, bug_id)
            if row is None:
                raise RecordNotFoundError(bug_id)
            current = self._row_to_entity(row)

            merged = validate_update(current, changes)
            updated_at = next_update_time(current["updated_at"], utc_now())
            assignments = ", ".join(f"{col} = ?" for col in (*_WRITE_ORDER, _COLS.updated_at))
            conn.execute(
                f"UPDATE {_COLS.table} SET {assignments} WHERE {_COLS.id} = ?",
                [*self._write_values(merged), updated_at.isoformat(), bug_id],
            )
            row2 = self._fetch_row(conn, bug_id)
            assert row2 is not None
        updated = self._row_to_entity(row2)
        log_status_change(bug_id, current["status"], updated["status"])
        return updated

    def delete(self, bug_id: str) -> None:
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = ?", (bug_id,))
            deleted = cur.rowcount > 0
        if not deleted:
            raise RecordNotFoundError(bug_id)
        logger.info("Bug deleted", extra={"bug_id": bug_id})

    def list(self, query: Optional[ListQuery] = None) -> List[BugEntity]:
        q = query or ListQuery()
        clauses = []
        params: list = []
        for column, value in active_filters(q).items():
            clauses.append(f"{column} = ?")
            params.append(value)
        where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._conn() as conn:
            rows = conn.execute(f"SELECT * FROM {_COLS.table} {where_sql}", params).fetchall()
        # Ordering follows the shared comparison rules rather than SQL collation
        return sort_records([self._row_to_entity(r) for r in rows], q.sort_by, q.sort_order)
