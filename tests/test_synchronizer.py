import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
import pytest

from bugtracker.client import BugService, BugSynchronizer, SyncState
from bugtracker.errors import BackendUnreachableError, RecordNotFoundError, ValidationError
from bugtracker.main import app
from bugtracker.schemas import BugRecord

T0 = datetime(2024, 5, 1, tzinfo=timezone.utc)


def bug_payload(**overrides):
    payload = {
        "title": "Sync bug",
        "description": "Created through the synchronizer.",
        "reported_by": "Alice",
    }
    payload.update(overrides)
    return payload


def make_record(bug_id, title="Some bug"):
    return BugRecord(
        id=bug_id,
        title=title,
        description="Something is broken here.",
        severity="medium",
        status="open",
        reported_by="Alice",
        created_at=T0,
        updated_at=T0,
    )


@asynccontextmanager
async def asgi_service():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield BugService(base_url="http://testserver", http_client=http)


class FakeService:
    """Stands in for BugService where the test needs to control timing or failures."""

    def __init__(self, healthy=True):
        self.healthy = healthy
        self.list_calls = 0
        self.pending = []
        self.delete_calls = 0
        self.delete_gate = asyncio.Event()

    async def health_check(self):
        if not self.healthy:
            raise BackendUnreachableError("Backend server is not accessible.")

    async def list_bugs(self, status=None, severity=None, sort=None):
        self.list_calls += 1
        release = asyncio.Event()
        entry = {"release": release, "records": []}
        self.pending.append(entry)
        await release.wait()
        return entry["records"]

    def finish(self, index, records):
        entry = self.pending[index]
        entry["records"] = records
        entry["release"].set()

    async def delete_bug(self, bug_id):
        self.delete_calls += 1
        await self.delete_gate.wait()


async def wait_until(predicate):
    for _ in range(100):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


class TestAgainstApp:
    @pytest.mark.asyncio
    async def test_create_fetch_update_delete(self):
        async with asgi_service() as service:
            sync = BugSynchronizer(service)

            created = await sync.create(bug_payload(tags=["ui"]))
            assert sync.state.records == (created,)
            assert created.severity == "medium"

            records = await sync.fetch()
            assert [r.id for r in records] == [created.id]
            assert sync.state.loading is False
            assert sync.state.error is None

            updated = await sync.update(created.id, {"status": "resolved"})
            assert updated.status == "resolved"
            assert sync.state.records[0].status == "resolved"
            assert updated.updated_at > created.updated_at

            fetched = await sync.get_by_id(created.id)
            assert fetched == updated

            await sync.delete(created.id)
            assert sync.state.records == ()

    @pytest.mark.asyncio
    async def test_fetch_passes_filters(self):
        async with asgi_service() as service:
            sync = BugSynchronizer(service)
            await sync.create(bug_payload(title="Open one"))
            await sync.create(bug_payload(title="Closed one", status="closed"))

            records = await sync.fetch(status="closed")
            assert [r.title for r in records] == ["Closed one"]

    @pytest.mark.asyncio
    async def test_validation_error_is_recorded_and_raised(self):
        async with asgi_service() as service:
            sync = BugSynchronizer(service)
            with pytest.raises(ValidationError) as excinfo:
                await sync.create(bug_payload(title="no", reported_by="A"))
            assert set(excinfo.value.fields) == {"title", "reportedBy"}
            assert sync.state.error is not None
            assert sync.state.loading is False
            assert sync.state.records == ()

    @pytest.mark.asyncio
    async def test_missing_bug(self):
        async with asgi_service() as service:
            sync = BugSynchronizer(service)
            with pytest.raises(RecordNotFoundError):
                await sync.get_by_id("0" * 32)
            assert sync.state.error == "Bug not found"

            # Delete of a missing bug leaves the mirror as it was
            with pytest.raises(RecordNotFoundError):
                await sync.delete("0" * 32)


class TestUnreachableBackend:
    @pytest.mark.asyncio
    async def test_probe_failure_skips_list_and_empties_mirror(self):
        service = FakeService(healthy=False)
        sync = BugSynchronizer(service)
        records = await sync.fetch()
        assert records == []
        assert service.list_calls == 0
        assert sync.state.error == "Backend server is not accessible."
        assert sync.state.loading is False

    @pytest.mark.asyncio
    async def test_transport_error_maps_to_unreachable(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(refuse), base_url="http://nowhere") as http:
            service = BugService(base_url="http://nowhere", http_client=http)
            with pytest.raises(BackendUnreachableError) as excinfo:
                await service.health_check()
            assert "http://nowhere" in str(excinfo.value)

            sync = BugSynchronizer(service)
            assert await sync.fetch() == []
            assert "not accessible" in sync.state.error


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_superseded_fetch_is_discarded(self):
        service = FakeService()
        sync = BugSynchronizer(service)

        first = asyncio.create_task(sync.fetch())
        await wait_until(lambda: service.list_calls == 1)
        second = asyncio.create_task(sync.fetch())
        await wait_until(lambda: service.list_calls == 2)
        assert sync.state.loading is True

        service.finish(1, [make_record("new")])
        await second
        assert sync.state.loading is True

        service.finish(0, [make_record("old")])
        await first
        assert [r.id for r in sync.state.records] == ["new"]
        assert sync.state.loading is False

    @pytest.mark.asyncio
    async def test_loading_stays_true_while_another_intent_is_pending(self):
        service = FakeService()
        sync = BugSynchronizer(service, SyncState(records=(make_record("a" * 32),)))
        seen = []
        sync.subscribe(lambda state: seen.append(state.loading))

        deleting = asyncio.create_task(sync.delete("a" * 32))
        await wait_until(lambda: service.delete_calls == 1)

        fetching = asyncio.create_task(sync.fetch())
        await wait_until(lambda: service.list_calls == 1)
        service.finish(0, [make_record("a" * 32), make_record("b" * 32)])
        await fetching
        assert len(sync.state.records) == 2
        assert False not in seen

        service.delete_gate.set()
        await deleting
        assert [r.id for r in sync.state.records] == ["b" * 32]
        assert seen[-1] is False

    @pytest.mark.asyncio
    async def test_completion_after_close_is_ignored(self):
        service = FakeService()
        sync = BugSynchronizer(service)
        seen = []
        sync.subscribe(seen.append)

        task = asyncio.create_task(sync.fetch())
        await wait_until(lambda: service.list_calls == 1)
        notifications = len(seen)
        sync.close()

        service.finish(0, [make_record("late")])
        await task
        assert sync.closed
        assert sync.state.records == ()
        assert len(seen) == notifications


class TestLocalIntents:
    def test_subscribe_and_unsubscribe(self):
        sync = BugSynchronizer(FakeService())
        seen = []
        unsubscribe = sync.subscribe(seen.append)
        sync.set_filter("open")
        sync.set_filter("open")
        assert [s.filter for s in seen] == ["open"]

        unsubscribe()
        sync.set_sort_by("title")
        assert len(seen) == 1
        assert sync.state.sort_by == "title"

    def test_sort_order_must_be_known(self):
        sync = BugSynchronizer(FakeService())
        sync.set_sort_order("asc")
        assert sync.state.sort_order == "asc"
        with pytest.raises(ValueError):
            sync.set_sort_order("sideways")
