from datetime import datetime, timedelta, timezone

from bugtracker.client.state import (
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
from bugtracker.schemas import BugRecord

T0 = datetime(2024, 5, 1, tzinfo=timezone.utc)


def make_record(bug_id, status="open", minutes=0, title="Some bug"):
    ts = T0 + timedelta(minutes=minutes)
    return BugRecord(
        id=bug_id,
        title=title,
        description="Something is broken here.",
        severity="medium",
        status=status,
        reported_by="Alice",
        created_at=ts,
        updated_at=ts,
    )


class TestReducer:
    def test_initial_state(self):
        state = SyncState()
        assert state.records == ()
        assert state.loading is False
        assert state.error is None
        assert state.filter == "all"
        assert state.sort_by == "created_at"
        assert state.sort_order == "desc"

    def test_commits_and_errors_leave_loading_alone(self):
        state = reduce(SyncState(), SetLoading(True))
        assert state.loading is True
        state = reduce(state, SetError("boom"))
        assert state.error == "boom"
        assert state.loading is True

    def test_set_records_clears_error(self):
        state = SyncState(loading=True, error="old")
        state = reduce(state, SetRecords((make_record("a"),)))
        assert [r.id for r in state.records] == ["a"]
        assert state.error is None
        assert state.loading is True

    def test_add_prepends(self):
        state = SyncState(records=(make_record("a"),), loading=True)
        state = reduce(state, AddRecord(make_record("b")))
        assert [r.id for r in state.records] == ["b", "a"]
        assert state.loading is True

    def test_update_replaces_by_id(self):
        state = SyncState(records=(make_record("a"), make_record("b")))
        state = reduce(state, UpdateRecord(make_record("b", status="closed")))
        assert [r.status for r in state.records] == ["open", "closed"]

    def test_update_of_unknown_id_changes_nothing(self):
        records = (make_record("a"),)
        state = reduce(SyncState(records=records), UpdateRecord(make_record("z")))
        assert state.records == records

    def test_remove(self):
        state = SyncState(records=(make_record("a"), make_record("b")))
        state = reduce(state, RemoveRecord("a"))
        assert [r.id for r in state.records] == ["b"]

    def test_previous_state_is_untouched(self):
        before = SyncState()
        after = reduce(before, AddRecord(make_record("a")))
        assert before.records == ()
        assert after is not before


class TestVisibleRecords:
    def state(self):
        return SyncState(records=(
            make_record("a", status="open", minutes=1, title="Bravo"),
            make_record("b", status="closed", minutes=3, title="Alpha"),
            make_record("c", status="open", minutes=2, title="Charlie"),
        ))

    def test_default_is_newest_first(self):
        assert [r.id for r in self.state().visible_records] == ["b", "c", "a"]

    def test_filter(self):
        state = reduce(self.state(), SetFilter("open"))
        assert [r.id for r in state.visible_records] == ["c", "a"]
        assert len(state.records) == 3

    def test_sort_by_and_order(self):
        state = reduce(self.state(), SetSortBy("title"))
        state = reduce(state, SetSortOrder("asc"))
        assert [r.title for r in state.visible_records] == ["Alpha", "Bravo", "Charlie"]
