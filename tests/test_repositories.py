import logging
from datetime import datetime, timedelta, timezone

import pytest

from bugtracker.db import SQLiteRepository
from bugtracker.errors import RecordNotFoundError, ValidationError
from bugtracker.query import ListQuery
from bugtracker.repositories import (
    InMemoryRepository,
    get_repository,
    next_update_time,
    reset_repository,
)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryRepository()
    return SQLiteRepository(str(tmp_path / "nested" / "bugs.db"))


def new_bug(store, **overrides):
    payload = {
        "title": "Crash on save",
        "description": "Saving a document crashes the editor.",
        "reportedBy": "Alice",
    }
    payload.update(overrides)
    return store.create(payload)


class TestCreateGet:
    def test_create_assigns_id_and_timestamps(self, store):
        bug = new_bug(store)
        assert len(bug["id"]) == 32
        assert bug["created_at"] == bug["updated_at"]
        assert bug["created_at"].tzinfo is not None
        assert bug["severity"] == "medium"
        assert bug["status"] == "open"

    def test_ids_are_unique(self, store):
        ids = {new_bug(store)["id"] for _ in range(5)}
        assert len(ids) == 5

    def test_get_returns_stored_record(self, store):
        bug = new_bug(store, tags=["  ui ", "", "ui"], assignedTo="Bob")
        fetched = store.get(bug["id"])
        assert fetched == bug
        assert fetched["tags"] == ["ui", "ui"]

    def test_get_missing(self, store):
        with pytest.raises(RecordNotFoundError):
            store.get("0" * 32)

    def test_invalid_create_stores_nothing(self, store):
        with pytest.raises(ValidationError):
            new_bug(store, title="no")
        assert store.list() == []

    def test_returned_records_are_copies(self, store):
        bug = new_bug(store, tags=["ui"])
        bug["tags"].append("mutated")
        assert store.get(bug["id"])["tags"] == ["ui"]


class TestUpdate:
    def test_update_merges_and_advances_updated_at(self, store):
        bug = new_bug(store)
        updated = store.update(bug["id"], {"status": "in-progress", "assigned_to": "Bob"})
        assert updated["status"] == "in-progress"
        assert updated["assigned_to"] == "Bob"
        assert updated["title"] == bug["title"]
        assert updated["created_at"] == bug["created_at"]
        assert updated["updated_at"] > bug["updated_at"]
        assert store.get(bug["id"]) == updated

    def test_invalid_update_leaves_record_untouched(self, store):
        bug = new_bug(store)
        with pytest.raises(ValidationError) as excinfo:
            store.update(bug["id"], {"title": "", "severity": "urgent"})
        assert set(excinfo.value.fields) == {"title", "severity"}
        assert store.get(bug["id"]) == bug

    def test_update_missing(self, store):
        with pytest.raises(RecordNotFoundError):
            store.update("0" * 32, {"status": "closed"})

    def test_reopen_is_logged(self, store, caplog):
        bug = new_bug(store, status="closed")
        with caplog.at_level(logging.INFO, logger="bugtracker.repositories"):
            store.update(bug["id"], {"status": "open"})
        reopened = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(reopened) == 1
        assert reopened[0].bug_id == bug["id"]


class TestDelete:
    def test_delete_then_get(self, store):
        bug = new_bug(store)
        store.delete(bug["id"])
        with pytest.raises(RecordNotFoundError):
            store.get(bug["id"])

    def test_second_delete_reports_not_found(self, store):
        bug = new_bug(store)
        store.delete(bug["id"])
        with pytest.raises(RecordNotFoundError):
            store.delete(bug["id"])
        assert store.list() == []


class TestList:
    def test_filter_and_sort(self, store):
        a = new_bug(store, title="Alpha bug", severity="high")
        new_bug(store, title="Bravo bug", status="closed")
        c = new_bug(store, title="Charlie bug", severity="high")

        out = store.list(ListQuery(severity="high", sort_by="title", sort_order="desc"))
        assert [b["id"] for b in out] == [c["id"], a["id"]]

    def test_default_order_is_newest_first(self, store):
        for i in range(3):
            new_bug(store, title=f"Bug {i}")
        out = store.list()
        created = [b["created_at"] for b in out]
        assert created == sorted(created, reverse=True)

    def test_status_all(self, store):
        new_bug(store)
        new_bug(store, status="resolved")
        assert len(store.list(ListQuery(status="all"))) == 2


class TestSQLitePersistence:
    def test_records_survive_reopening(self, tmp_path):
        path = str(tmp_path / "bugs.db")
        bug = new_bug(SQLiteRepository(path), tags=["db"])
        assert SQLiteRepository(path).get(bug["id"]) == bug


def test_next_update_time_strictly_advances():
    t = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert next_update_time(t, t) == t + timedelta(microseconds=1)
    assert next_update_time(t, t - timedelta(seconds=1)) > t
    later = t + timedelta(seconds=5)
    assert next_update_time(t, later) == later


def test_get_repository_follows_settings(monkeypatch, tmp_path):
    monkeypatch.setenv("PERSISTENCE_BACKEND", "sqlite")
    monkeypatch.setenv("SQLITE_DB_PATH", str(tmp_path / "bugs.db"))
    reset_repository()
    try:
        assert isinstance(get_repository(), SQLiteRepository)
    finally:
        reset_repository()

    monkeypatch.setenv("PERSISTENCE_BACKEND", "memory")
    try:
        assert isinstance(get_repository(), InMemoryRepository)
    finally:
        reset_repository()
