import asyncio
import gc
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from courtside.exceptions import SyncFailure
from courtside.schemas import PointEvent
from courtside.services.event_log import EventLog
from courtside.services.remote import RemoteAuthority
from courtside.services.sync import SyncCoordinator

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeRemote:
    """Remote authority stand-in that dedupes events by id like the real one."""

    def __init__(self, fail_with: int | None = None) -> None:
        self.fail_with = fail_with
        self.stored: dict[str, set] = {}
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"error": "remote says no"})

        parts = request.url.path.strip("/").split("/")
        if request.method == "POST" and parts[-1] == "events":
            match_id = parts[-2]
            body = json.loads(request.content)
            seen = self.stored.setdefault(match_id, set())
            inserted = 0
            for event in body["events"]:
                if event["id"] not in seen:
                    seen.add(event["id"])
                    inserted += 1
            return httpx.Response(200, json={"data": {"inserted": inserted}})
        if request.method == "POST" and parts[-1] == "complete":
            return httpx.Response(200, json={"data": {"id": parts[-2], "completed": True}})
        if request.method == "GET" and parts[-1] == "players":
            return httpx.Response(200, json={"data": [{"id": "p1", "name": "Ana"}]})
        if request.method == "GET" and parts[-1] == "venues":
            return httpx.Response(200, json={"data": [{"id": "v1", "name": "Centre"}]})
        return httpx.Response(404, json={"error": "not found"})

    def client(self) -> RemoteAuthority:
        return RemoteAuthority(
            client=httpx.AsyncClient(
                transport=httpx.MockTransport(self.handler), base_url="http://remote"
            )
        )


def _event(event_id, seconds, match_id="m1", team="A"):
    return PointEvent(
        id=event_id,
        match_id=match_id,
        timestamp=T0 + timedelta(seconds=seconds),
        point_winner_team=team,
        serve_type="first",
    )


def test_sync_submits_pending_events_and_is_idempotent(make_storage):
    fake = FakeRemote()

    async def run_test():
        async with make_storage() as storage:
            log = EventLog(storage)
            coordinator = SyncCoordinator(log, fake.client())
            await log.append(_event("e1", 0))
            await log.append(_event("e2", 1, team="B"))
            first = await coordinator.sync("m1")
            second = await coordinator.sync("m1")
            return first, second, await log.unsynced_for("m1")

    first, second, pending = asyncio.run(run_test())
    assert first.submitted == 2
    assert first.inserted == 2
    assert first.total == 2
    assert second.submitted == 0
    assert len(pending) == 0
    # The second sync had nothing to send and made no request.
    assert len(fake.requests) == 1
    payload = json.loads(fake.requests[0].content)
    assert {e["id"] for e in payload["events"]} == {"e1", "e2"}
    assert payload["events"][0]["serve_type"] == "first"


def test_failed_sync_leaves_events_unsynced(make_storage):
    fake = FakeRemote(fail_with=500)

    async def run_test():
        async with make_storage() as storage:
            log = EventLog(storage)
            coordinator = SyncCoordinator(log, fake.client())
            await log.append(_event("e1", 0))
            with pytest.raises(SyncFailure) as exc:
                await coordinator.sync("m1")
            return exc.value, await log.unsynced_for("m1")

    failure, pending = asyncio.run(run_test())
    assert failure.status == 500
    assert failure.detail == "remote says no"
    assert [e.id for e in pending] == ["e1"]


def test_resend_after_lost_flags_is_deduplicated_by_remote(make_storage):
    fake = FakeRemote()

    async def run_test():
        async with make_storage() as storage:
            log = EventLog(storage)
            remote = fake.client()
            await log.append(_event("e1", 0))
            # Remote already has e1 from an earlier attempt whose flags were lost.
            await remote.submit_events("m1", [_event("e1", 0)])
            result = await SyncCoordinator(log, remote).sync("m1")
            return result, await log.unsynced_for("m1")

    result, pending = asyncio.run(run_test())
    assert result.submitted == 1
    assert result.inserted == 0
    assert len(pending) == 0


def test_sync_all_isolates_failures_per_match(make_storage):
    class Flaky(FakeRemote):
        def handler(self, request):
            if "/m2/" in request.url.path:
                return httpx.Response(503, json={"error": "busy"})
            return super().handler(request)

    fake = Flaky()

    async def run_test():
        async with make_storage() as storage:
            log = EventLog(storage)
            coordinator = SyncCoordinator(log, fake.client())
            await log.append(_event("a1", 0, match_id="m1"))
            await log.append(_event("b1", 0, match_id="m2"))
            outcomes = await coordinator.sync_all()
            return outcomes, await log.matches_with_unsynced()

    outcomes, still_pending = asyncio.run(run_test())
    assert outcomes["m1"].submitted == 1
    assert isinstance(outcomes["m2"], SyncFailure)
    assert still_pending == ["m2"]


def test_unreachable_remote_raises_sync_failure(make_storage):
    def refuse(request):
        raise httpx.ConnectError("offline", request=request)

    async def run_test():
        async with make_storage() as storage:
            log = EventLog(storage)
            remote = RemoteAuthority(
                client=httpx.AsyncClient(
                    transport=httpx.MockTransport(refuse), base_url="http://remote"
                )
            )
            await log.append(_event("e1", 0))
            with pytest.raises(SyncFailure) as exc:
                await SyncCoordinator(log, remote).sync("m1")
            return exc.value, await log.unsynced_for("m1")

    failure, pending = asyncio.run(run_test())
    assert failure.status is None
    assert len(pending) == 1


def test_remote_rejects_body_without_inserted_count():
    def handler(request):
        return httpx.Response(200, json={"data": {"ok": True}})

    async def run_test():
        remote = RemoteAuthority(
            client=httpx.AsyncClient(
                transport=httpx.MockTransport(handler), base_url="http://remote"
            )
        )
        with pytest.raises(SyncFailure):
            await remote.submit_events("m1", [_event("e1", 0)])

    asyncio.run(run_test())


def test_remote_match_endpoints():
    seen = []

    def handler(request):
        seen.append((request.method, request.url.path, request.content))
        if request.url.path == "/api/matches":
            return httpx.Response(201, json={"data": {"id": "m9"}})
        return httpx.Response(200, json={"data": {"id": "m9", "score": {"A": 2}}})

    async def run_test():
        async with RemoteAuthority(
            client=httpx.AsyncClient(
                transport=httpx.MockTransport(handler), base_url="http://remote"
            )
        ) as remote:
            created = await remote.create_match("v1", "doubles", ["p1", "p2"], ["p3", "p4"])
            summary = await remote.get_match_summary("m9")
            return created, summary

    created, summary = asyncio.run(run_test())
    assert created == {"id": "m9"}
    assert summary["score"] == {"A": 2}
    assert seen[0][0] == "POST"
    assert json.loads(seen[0][2])["team_b"] == ["p3", "p4"]
    assert seen[1][:2] == ("GET", "/api/matches/m9/summary")


def test_match_locks_are_released_after_sync(make_storage):
    fake = FakeRemote()

    async def run_test():
        async with make_storage() as storage:
            log = EventLog(storage)
            coordinator = SyncCoordinator(log, fake.client())
            await log.append(_event("a1", 0, match_id="m1"))
            await log.append(_event("b1", 0, match_id="m2"))
            await coordinator.sync_all()
            await coordinator.sync("m3")
            gc.collect()
            return len(coordinator._locks)

    assert asyncio.run(run_test()) == 0
