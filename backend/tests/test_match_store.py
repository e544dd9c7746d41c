import asyncio
from datetime import datetime, timedelta, timezone

from courtside.schemas import PointEvent
from courtside.services.event_log import EventLog
from courtside.services.match_store import MatchStateStore


def _event(match_id, event_id, when, team="A"):
    return PointEvent(id=event_id, match_id=match_id, timestamp=when, point_winner_team=team)


def test_created_at_is_fixed_by_first_save(make_storage, clock):
    async def run_test():
        async with make_storage() as storage:
            store = MatchStateStore(storage, now=clock)
            first = await store.save("m1", {"team_a": ["p1"], "team_b": ["p2"]})
            clock.advance(minutes=5)
            second = await store.save("m1", {"completed": False, "createdAt": clock()})
            return first, second

    first, second = asyncio.run(run_test())
    assert second.created_at == first.created_at
    assert second.updated_at == first.created_at + timedelta(minutes=5)
    assert second.team_a == ["p1"]


def test_get_all_orders_by_last_touched_and_skips_completed(make_storage, clock):
    async def run_test():
        async with make_storage() as storage:
            store = MatchStateStore(storage, now=clock)
            await store.save("older", {"team_a": ["p1"], "team_b": ["p2"]})
            clock.advance(minutes=1)
            await store.save("newer", {"team_a": ["p3"], "team_b": ["p4"]})
            clock.advance(minutes=1)
            await store.save("done", {"completed": True})
            clock.advance(minutes=1)
            await store.save("older", {"current_server": "p1"})
            return await store.get_all()

    result = asyncio.run(run_test())
    assert result.ok
    assert [r.match_id for r in result] == ["older", "newer"]


def test_matches_expire_from_creation_time(make_storage, clock):
    async def run_test():
        async with make_storage() as storage:
            events = EventLog(storage)
            store = MatchStateStore(storage, event_log=events, now=clock)
            await store.save("stale", {"team_a": ["p1"], "team_b": ["p2"]})
            await events.append(_event("stale", "e1", clock()))
            clock.advance(hours=23)
            await store.save("fresh", {"team_a": ["p1"], "team_b": ["p2"]})
            # Touching the stale match does not extend its life.
            await store.save("stale", {"current_server": "p2"})
            clock.advance(hours=2)
            listed = await store.get_all()
            return (
                [r.match_id for r in listed],
                await store.get("stale"),
                await events.all_for("stale"),
            )

    listed, stale, stale_events = asyncio.run(run_test())
    assert listed == ["fresh"]
    assert stale is None
    assert len(stale_events) == 0


def test_delete_cascades_to_events_and_legacy_slot(make_storage, clock):
    async def run_test():
        async with make_storage() as storage:
            events = EventLog(storage)
            store = MatchStateStore(storage, event_log=events, now=clock)
            await store.save("m1", {"team_a": ["p1"], "team_b": ["p2"]})
            await events.append(_event("m1", "e1", clock()))
            await events.append(_event("m1", "e2", clock() + timedelta(seconds=1), "B"))
            removed = await store.delete("m1")
            missing = await store.delete("m1")
            return removed, missing, await events.all_for("m1"), await store.get_current()

    removed, missing, remaining, current = asyncio.run(run_test())
    assert removed is True
    assert missing is False
    assert len(remaining) == 0
    assert current is None


def test_legacy_slot_mirrors_latest_save(make_storage, clock):
    async def run_test():
        async with make_storage() as storage:
            store = MatchStateStore(storage, now=clock)
            await store.save("m1", {"team_a": ["p1"], "team_b": ["p2"]})
            await store.save("m2", {"team_a": ["p3"], "team_b": ["p4"]})
            current = await store.get_current()
            await store.save_current({"matchId": "m3", "teamA": ["x"], "teamB": ["y"]})
            forwarded = await store.get("m3")
            await store.save_current({"draft": True})
            draft = await store.get_current()
            await store.clear_current()
            return current, forwarded, draft, await store.get_current()

    current, forwarded, draft, cleared = asyncio.run(run_test())
    assert current["match_id"] == "m2"
    assert current["id"] == "current"
    assert forwarded is not None
    assert forwarded.team_a == ["x"]
    assert draft == {"draft": True}
    assert cleared is None


def test_legacy_venue_shapes_are_normalized(make_storage, clock):
    async def run_test():
        async with make_storage() as storage:
            store = MatchStateStore(storage, now=clock)
            nested = await store.save("m1", {"venue": {"venue_id": "v1", "venue_name": "Club"}})
            flat = await store.save("m2", {"venueId": "v2", "venueName": "Court 2"})
            bare = await store.save("m3", {"venue": "v3"})
            return nested, flat, bare

    nested, flat, bare = asyncio.run(run_test())
    assert nested.venue.id == "v1" and nested.venue.name == "Club"
    assert flat.venue.id == "v2" and flat.venue.name == "Court 2"
    assert bare.venue.id == "v3" and bare.venue.name is None


def test_reads_degrade_when_storage_is_closed(make_storage):
    async def run_test():
        storage = make_storage()
        store = MatchStateStore(storage)
        return await store.get_all(), await store.get("m1"), await store.get_current()

    listed, single, current = asyncio.run(run_test())
    assert listed.ok is False
    assert list(listed) == []
    assert single is None
    assert current is None


def test_writes_fail_loudly_when_storage_is_closed(make_storage):
    from courtside.exceptions import StorageFailure

    async def run_test():
        store = MatchStateStore(make_storage())
        try:
            await store.save("m1", {"team_a": ["p1"]})
        except StorageFailure as exc:
            return exc
        return None

    exc = asyncio.run(run_test())
    assert exc is not None
    assert exc.status_code == 503


def test_timestamps_are_utc(make_storage, clock):
    async def run_test():
        async with make_storage() as storage:
            store = MatchStateStore(storage, now=clock)
            await store.save("m1", {"team_a": ["p1"], "team_b": ["p2"]})
            return await store.get("m1")

    record = asyncio.run(run_test())
    assert record.created_at == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert record.created_at.tzinfo is not None
