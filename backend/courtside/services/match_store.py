"""Per-match snapshots of in-progress matches.

Each incomplete match is stored under its id so several matches can be
resumed independently. Records expire 24 hours after they were created,
regardless of how recently they were touched. A legacy single slot
(``current_match``) mirrors the most recent save for older readers.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy import delete, select

from ..config import CURRENT_MATCH_KEY, MATCH_RETENTION
from ..db import Storage
from ..db_errors import STORAGE_ERRORS, describe_storage_error, is_missing_table_error
from ..exceptions import StorageFailure
from ..models import CurrentMatch, IncompleteMatch
from ..schemas import MatchRecord
from ..time_utils import coerce_utc, to_storage, utcnow
from .event_log import EventLog
from .results import ReadResult
from .validation import normalize_venue, validate_match_id

LOGGER = logging.getLogger(__name__)

# Incoming key -> column. Both the record's own names and the camelCase names
# used by older saves are accepted.
_FIELD_ALIASES: Dict[str, str] = {
    "match_type": "match_type",
    "matchType": "match_type",
    "format_mode": "format_mode",
    "formatMode": "format_mode",
    "matchMode": "format_mode",
    "mode": "format_mode",
    "team_a": "team_a",
    "teamA": "team_a",
    "team_b": "team_b",
    "teamB": "team_b",
    "score": "score",
    "events": "events",
    "current_server": "current_server",
    "currentServer": "current_server",
    "server_team": "server_team",
    "serverTeam": "server_team",
    "completed": "completed",
}

_LEGACY_VENUE_KEYS = ("venue", "venueId", "venueName", "venue_id", "venue_name")


def _columns_from(data: Mapping[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for key, column in _FIELD_ALIASES.items():
        if key in data:
            value = data[key]
            if column in ("team_a", "team_b", "events"):
                value = list(value or [])
            elif column == "completed":
                value = bool(value)
            elif column == "format_mode" and value is not None:
                value = getattr(value, "value", value)
            values[column] = value

    if any(key in data for key in _LEGACY_VENUE_KEYS):
        values["venue"] = normalize_venue(data)
    return values


class MatchStateStore:
    def __init__(
        self,
        storage: Storage,
        *,
        event_log: EventLog | None = None,
        now: Callable[[], datetime] = utcnow,
        logger: logging.Logger | None = None,
    ) -> None:
        self._storage = storage
        self._logger = logger or LOGGER
        self._now = now
        self.event_log = event_log or EventLog(storage, logger=self._logger)

    # ------------------------------------------------------------------
    # Incomplete matches
    # ------------------------------------------------------------------
    async def save(self, match_id: str, data: Mapping[str, Any]) -> MatchRecord:
        """Upsert the record for ``match_id`` with the fields present in ``data``.

        ``created_at`` is fixed by the first save and never overwritten;
        ``updated_at`` is refreshed on every save. Last write wins.
        """

        match_id = validate_match_id(match_id)
        values = _columns_from(data)
        now = self._now()

        try:
            async with self._storage.session() as session:
                row = await session.get(IncompleteMatch, match_id)
                if row is None:
                    seeded = data.get("created_at") or data.get("createdAt")
                    row = IncompleteMatch(
                        match_id=match_id,
                        team_a=[],
                        team_b=[],
                        events=[],
                        completed=False,
                        created_at=to_storage(seeded if isinstance(seeded, datetime) else now),
                    )
                    session.add(row)
                for column, value in values.items():
                    setattr(row, column, value)
                row.updated_at = to_storage(now)
                record = MatchRecord.model_validate(row)
                await self._write_current(session, record, now)
                await session.commit()
        except STORAGE_ERRORS as exc:
            raise StorageFailure("save match", describe_storage_error(exc)) from exc

        self._logger.debug("Saved match %s", match_id)
        return record

    async def get(self, match_id: str) -> Optional[MatchRecord]:
        try:
            async with self._storage.session() as session:
                row = await session.get(IncompleteMatch, match_id)
        except STORAGE_ERRORS as exc:
            self._logger.warning("Could not read match %s: %s", match_id, describe_storage_error(exc))
            return None
        return MatchRecord.model_validate(row) if row is not None else None

    async def get_all(self) -> ReadResult[MatchRecord]:
        """Resumable matches, most recently touched first."""

        try:
            await self.cleanup_expired()
        except StorageFailure as exc:
            self._logger.warning("Skipping expiry sweep: %s", exc.detail)

        try:
            async with self._storage.session() as session:
                rows = (
                    await session.execute(
                        select(IncompleteMatch).where(IncompleteMatch.completed.is_(False))
                    )
                ).scalars().all()
        except STORAGE_ERRORS as exc:
            if is_missing_table_error(exc, "incomplete_match"):
                self._logger.debug("Match store not initialised; no matches to resume")
            else:
                self._logger.warning("Could not list matches: %s", describe_storage_error(exc))
            return ReadResult.failed(exc)

        now = self._now()
        records = [MatchRecord.model_validate(row) for row in rows]
        records = [r for r in records if not self._is_expired(r.created_at, now)]
        records.sort(key=lambda r: r.last_touched, reverse=True)
        return ReadResult(items=records)

    async def delete(self, match_id: str) -> bool:
        """Remove the record and every event recorded for it."""

        try:
            async with self._storage.session() as session:
                result = await session.execute(
                    delete(IncompleteMatch).where(IncompleteMatch.match_id == match_id)
                )
                await session.execute(
                    delete(CurrentMatch).where(
                        CurrentMatch.id == CURRENT_MATCH_KEY,
                        CurrentMatch.match_id == match_id,
                    )
                )
                await session.commit()
        except STORAGE_ERRORS as exc:
            raise StorageFailure("delete match", describe_storage_error(exc)) from exc

        removed_events = await self.event_log.clear_for(match_id)
        existed = bool(result.rowcount)
        self._logger.info(
            "Deleted match %s (%s events removed)", match_id, removed_events
        )
        return existed

    async def cleanup_expired(self) -> List[str]:
        """Delete records older than the retention window, with their events.

        Returns the ids that were removed. Unsynced events of an expired match
        are dropped as well, so callers that care drain the sync queue first.
        """

        now = self._now()
        try:
            async with self._storage.session() as session:
                rows = (
                    await session.execute(
                        select(IncompleteMatch.match_id, IncompleteMatch.created_at)
                    )
                ).all()
                expired = [
                    match_id
                    for match_id, created_at in rows
                    if self._is_expired(coerce_utc(created_at), now)
                ]
                if expired:
                    await session.execute(
                        delete(IncompleteMatch).where(IncompleteMatch.match_id.in_(expired))
                    )
                    await session.execute(
                        delete(CurrentMatch).where(CurrentMatch.match_id.in_(expired))
                    )
                    await session.commit()
        except STORAGE_ERRORS as exc:
            raise StorageFailure("clean up expired matches", describe_storage_error(exc)) from exc

        for match_id in expired:
            unsynced = len(await self.event_log.unsynced_for(match_id))
            if unsynced:
                self._logger.warning(
                    "Expired match %s still had %d unsynced events", match_id, unsynced
                )
            await self.event_log.clear_for(match_id)

        if expired:
            self._logger.info("Removed %d expired matches", len(expired))
        return expired

    def _is_expired(self, created_at: datetime, now: datetime) -> bool:
        return now - created_at > MATCH_RETENTION

    # ------------------------------------------------------------------
    # Legacy single slot
    # ------------------------------------------------------------------
    async def save_current(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Write the legacy slot; forwarded to :meth:`save` when ``data`` names a match."""

        match_id = data.get("match_id") or data.get("matchId") or data.get("id")
        if match_id and match_id != CURRENT_MATCH_KEY:
            await self.save(match_id, data)
            current = await self.get_current()
            return current or {}

        payload = dict(data)
        now = self._now()
        try:
            async with self._storage.session() as session:
                row = await session.get(CurrentMatch, CURRENT_MATCH_KEY)
                if row is None:
                    row = CurrentMatch(id=CURRENT_MATCH_KEY)
                    session.add(row)
                row.match_id = None
                row.data = payload
                row.updated_at = to_storage(now)
                await session.commit()
        except STORAGE_ERRORS as exc:
            raise StorageFailure("save current match", describe_storage_error(exc)) from exc
        return payload

    async def get_current(self) -> Optional[Dict[str, Any]]:
        try:
            async with self._storage.session() as session:
                row = await session.get(CurrentMatch, CURRENT_MATCH_KEY)
        except STORAGE_ERRORS as exc:
            self._logger.warning("Could not read current match: %s", describe_storage_error(exc))
            return None
        return dict(row.data) if row is not None else None

    async def clear_current(self) -> None:
        try:
            async with self._storage.session() as session:
                await session.execute(
                    delete(CurrentMatch).where(CurrentMatch.id == CURRENT_MATCH_KEY)
                )
                await session.commit()
        except STORAGE_ERRORS as exc:
            raise StorageFailure("clear current match", describe_storage_error(exc)) from exc

    async def _write_current(self, session, record: MatchRecord, now: datetime) -> None:
        data = record.model_dump(mode="json")
        data["id"] = CURRENT_MATCH_KEY
        await session.merge(
            CurrentMatch(
                id=CURRENT_MATCH_KEY,
                match_id=record.match_id,
                data=data,
                updated_at=to_storage(now),
            )
        )
