"""Live match flow: scoring input -> engine -> event log + snapshot."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..exceptions import InvalidInput, MatchNotFound, SyncFailure, TerminalStateViolation
from ..schemas import MatchRecord, PointEvent, new_id
from ..scoring import (
    MatchMode,
    MatchState,
    current_server,
    match_display,
    new_match_state,
    replay,
    score_point,
)
from ..time_utils import utcnow
from .event_log import EventLog
from .match_store import MatchStateStore
from .remote import RemoteAuthority
from .results import ReadResult
from .sync import SyncCoordinator, SyncResult
from .validation import validate_team

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class LiveMatch:
    record: MatchRecord
    state: MatchState

    @property
    def match_id(self) -> str:
        return self.record.match_id

    @property
    def display(self) -> Dict[str, Any]:
        return match_display(self.state)


class LiveMatchService:
    """Records points for in-progress matches.

    Every point is appended to the event log before the snapshot is written.
    The snapshot is only a cache: :meth:`resume` rebuilds the state from the
    log and repairs the snapshot when the two disagree.
    """

    def __init__(
        self,
        matches: MatchStateStore,
        events: EventLog,
        *,
        sync: SyncCoordinator | None = None,
        remote: RemoteAuthority | None = None,
        now: Callable[[], datetime] = utcnow,
        logger: logging.Logger | None = None,
    ) -> None:
        self._matches = matches
        self._events = events
        self._sync = sync
        self._remote = remote
        self._now = now
        self._logger = logger or LOGGER

    async def start_match(
        self,
        *,
        mode: MatchMode | str,
        team_a: Sequence[str],
        team_b: Sequence[str],
        servers: Optional[Sequence[str]] = None,
        venue: Any = None,
        match_type: str = "singles",
        match_id: str | None = None,
    ) -> LiveMatch:
        state = new_match_state(mode, team_a, team_b, servers)
        match_id = match_id or new_id()
        if await self._matches.get(match_id) is not None:
            raise InvalidInput(f"match '{match_id}' already exists", code="match_exists")

        data: Dict[str, Any] = {
            "match_type": match_type,
            "format_mode": state.mode.value,
            "team_a": list(state.team_a),
            "team_b": list(state.team_b),
            "events": [],
            "completed": False,
        }
        if venue is not None:
            data["venue"] = venue
        data.update(self._snapshot(state))
        record = await self._matches.save(match_id, data)
        self._logger.info("Started %s match %s", state.mode.value, match_id)
        return LiveMatch(record, state)

    async def record_point(
        self,
        match_id: str,
        team: str,
        *,
        server_player_id: str | None = None,
        serve_type: str | None = None,
        timestamp: datetime | None = None,
        event_id: str | None = None,
    ) -> Tuple[LiveMatch, PointEvent]:
        team = validate_team(team)
        record = await self._require(match_id)
        state = self._state_from(record)

        # A resent event id is answered with the stored event, not scored again.
        if event_id:
            existing = await self._events.get(event_id)
            if existing is not None:
                if existing.match_id != match_id:
                    raise InvalidInput(
                        f"event '{event_id}' belongs to another match", code="event_exists"
                    )
                self._logger.debug("Event %s already recorded for match %s", event_id, match_id)
                return LiveMatch(record, state), existing

        if state.completed:
            raise TerminalStateViolation(match_id)

        event = PointEvent(
            id=event_id or new_id(),
            match_id=match_id,
            timestamp=timestamp or self._now(),
            server_player_id=server_player_id or current_server(state),
            serve_type=serve_type,
            point_winner_team=team,
        )
        new_state = score_point(state, team)

        await self._events.append(event)
        record = await self._matches.save(
            match_id,
            {**self._snapshot(new_state), "events": [*record.events, event.id]},
        )
        if new_state.completed:
            self._logger.info("Match %s won by %s", match_id, new_state.winner)
        return LiveMatch(record, new_state), event

    async def undo_point(self, match_id: str) -> Tuple[LiveMatch, Optional[PointEvent]]:
        record = await self._require(match_id)
        undone = await self._events.undo_last(match_id)
        if undone is None:
            return LiveMatch(record, self._state_from(record)), None
        if undone.synced:
            self._logger.warning(
                "Undid event %s of match %s after it was synced; the remote still counts it",
                undone.id,
                match_id,
            )

        history = await self._events.all_for(match_id)
        state = replay(self._initial_state(record), [e.point_winner_team for e in history])
        record = await self._matches.save(
            match_id,
            {
                **self._snapshot(state),
                "events": [eid for eid in record.events if eid != undone.id],
            },
        )
        return LiveMatch(record, state), undone

    async def resume(self, match_id: str) -> LiveMatch:
        """Load a match, trusting the event log over the stored snapshot."""

        record = await self._require(match_id)
        history = await self._events.all_for(match_id)
        if not history.ok:
            self._logger.warning(
                "Event log unreadable for match %s; resuming from snapshot", match_id
            )
            return LiveMatch(record, self._state_from(record))

        replayed = replay(
            self._initial_state(record), [e.point_winner_team for e in history]
        )
        if self._cached_state(record) != replayed:
            self._logger.warning(
                "Snapshot for match %s disagrees with its %d logged points; rebuilding",
                match_id,
                len(history),
            )
            record = await self._matches.save(
                match_id,
                {**self._snapshot(replayed), "events": [e.id for e in history]},
            )
        return LiveMatch(record, replayed)

    async def resumable(self) -> ReadResult[MatchRecord]:
        return await self._matches.get_all()

    async def complete(self, match_id: str) -> SyncResult:
        """Flush the match to the remote, close it there and drop the local copy."""

        live = await self.resume(match_id)
        if not live.state.completed:
            raise InvalidInput(
                f"match '{match_id}' has no winner yet", code="match_not_finished"
            )
        if self._sync is None or self._remote is None:
            raise SyncFailure("no remote authority configured", match_id=match_id)

        result = await self._sync.sync(match_id)
        remaining = await self._events.unsynced_for(match_id)
        if remaining:
            raise SyncFailure(
                f"{len(remaining)} events still unsynced", match_id=match_id
            )
        await self._remote.complete_match(match_id)
        await self._matches.delete(match_id)
        self._logger.info("Completed match %s", match_id)
        return result

    async def abandon(self, match_id: str) -> bool:
        return await self._matches.delete(match_id)

    async def housekeeping(self) -> List[str]:
        """Drain what can be synced, then expire stale matches."""

        if self._sync is not None:
            await self._sync.sync_all()
        return await self._matches.cleanup_expired()

    async def _require(self, match_id: str) -> MatchRecord:
        record = await self._matches.get(match_id)
        if record is None:
            raise MatchNotFound(match_id)
        return record

    def _initial_state(self, record: MatchRecord) -> MatchState:
        servers = None
        if record.score and record.score.get("servers") is not None:
            servers = record.score["servers"]
        mode = record.format_mode or (record.score or {}).get("mode") or MatchMode.STANDARD
        return new_match_state(mode, record.team_a, record.team_b, servers)

    def _cached_state(self, record: MatchRecord) -> Optional[MatchState]:
        if record.score is None:
            return None
        try:
            return MatchState.from_dict(record.score)
        except InvalidInput:
            self._logger.warning("Unreadable snapshot for match %s", record.match_id)
            return None

    def _state_from(self, record: MatchRecord) -> MatchState:
        if record.score is None:
            return self._initial_state(record)
        return MatchState.from_dict(record.score)

    @staticmethod
    def _snapshot(state: MatchState) -> Dict[str, Any]:
        snapshot: Dict[str, Any] = {
            "score": state.to_dict(),
            "completed": state.completed,
        }
        server = current_server(state)
        if server is not None:
            snapshot["current_server"] = server
            snapshot["server_team"] = "A" if server in state.team_a else "B"
        return snapshot
