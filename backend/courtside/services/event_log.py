"""Append-only, per-match log of point events awaiting sync."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from sqlalchemy import delete, select, update

from ..db import Storage
from ..db_errors import STORAGE_ERRORS, describe_storage_error
from ..exceptions import StorageFailure
from ..models import PointEvent as PointEventRow
from ..schemas import PointEvent
from ..time_utils import to_storage
from .results import ReadResult

LOGGER = logging.getLogger(__name__)


class EventLog:
    def __init__(self, storage: Storage, *, logger: logging.Logger | None = None) -> None:
        self._storage = storage
        self._logger = logger or LOGGER

    async def append(self, event: PointEvent) -> PointEvent:
        """Store ``event`` as unsynced.

        Event ids are client generated; appending an id that is already stored
        leaves the stored event untouched and returns it.
        """

        try:
            async with self._storage.session() as session:
                existing = await session.get(PointEventRow, event.id)
                if existing is not None:
                    self._logger.debug("Event %s already recorded; skipping append", event.id)
                    return PointEvent.model_validate(existing)
                row = PointEventRow(
                    id=event.id,
                    match_id=event.match_id,
                    timestamp=to_storage(event.timestamp),
                    server_player_id=event.server_player_id,
                    serve_type=event.serve_type,
                    point_winner_team=event.point_winner_team,
                    synced=False,
                )
                session.add(row)
                await session.commit()
        except STORAGE_ERRORS as exc:
            raise StorageFailure("append event", describe_storage_error(exc)) from exc
        return event.model_copy(update={"synced": False})

    async def get(self, event_id: str) -> Optional[PointEvent]:
        try:
            async with self._storage.session() as session:
                row = await session.get(PointEventRow, event_id)
        except STORAGE_ERRORS as exc:
            self._logger.warning("Could not read event %s: %s", event_id, describe_storage_error(exc))
            return None
        return PointEvent.model_validate(row) if row is not None else None

    async def unsynced_for(self, match_id: str) -> ReadResult[PointEvent]:
        return await self._read(
            match_id,
            select(PointEventRow).where(
                PointEventRow.match_id == match_id,
                PointEventRow.synced.is_(False),
            ),
        )

    async def all_for(self, match_id: str) -> ReadResult[PointEvent]:
        """Full history for ``match_id`` in timestamp order."""

        result = await self._read(
            match_id, select(PointEventRow).where(PointEventRow.match_id == match_id)
        )
        if not result.ok:
            return result
        return ReadResult(items=sorted(result.items, key=lambda e: e.timestamp))

    async def undo_last(self, match_id: str) -> Optional[PointEvent]:
        """Remove and return the chronologically last event of ``match_id``.

        Returns ``None`` when the match has no events. Events sharing the
        latest timestamp are resolved in favour of the one stored last.
        """

        try:
            async with self._storage.session() as session:
                rows = (
                    await session.execute(
                        select(PointEventRow).where(PointEventRow.match_id == match_id)
                    )
                ).scalars().all()
                if not rows:
                    return None
                ordered = sorted(rows, key=lambda r: r.timestamp)
                last = ordered[-1]
                removed = PointEvent.model_validate(last)
                await session.delete(last)
                await session.commit()
        except STORAGE_ERRORS as exc:
            raise StorageFailure("undo last event", describe_storage_error(exc)) from exc

        self._logger.info("Undid event %s for match %s", removed.id, match_id)
        return removed

    async def mark_synced(self, event_ids: Iterable[str]) -> int:
        """Flag the given events as synced; ids no longer stored are ignored."""

        ids = sorted({eid for eid in event_ids if eid})
        if not ids:
            return 0
        try:
            async with self._storage.session() as session:
                result = await session.execute(
                    update(PointEventRow)
                    .where(PointEventRow.id.in_(ids))
                    .values(synced=True)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
        except STORAGE_ERRORS as exc:
            raise StorageFailure("mark events synced", describe_storage_error(exc)) from exc
        return result.rowcount or 0

    async def clear_for(self, match_id: str) -> int:
        try:
            async with self._storage.session() as session:
                result = await session.execute(
                    delete(PointEventRow).where(PointEventRow.match_id == match_id)
                )
                await session.commit()
        except STORAGE_ERRORS as exc:
            raise StorageFailure("clear match events", describe_storage_error(exc)) from exc
        return result.rowcount or 0

    async def matches_with_unsynced(self) -> List[str]:
        try:
            async with self._storage.session() as session:
                rows = (
                    await session.execute(
                        select(PointEventRow.match_id)
                        .where(PointEventRow.synced.is_(False))
                        .distinct()
                    )
                ).scalars().all()
        except STORAGE_ERRORS as exc:
            self._logger.warning("Could not list unsynced matches: %s", describe_storage_error(exc))
            return []
        return sorted(rows)

    async def _read(self, match_id: str, stmt) -> ReadResult[PointEvent]:
        try:
            async with self._storage.session() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except STORAGE_ERRORS as exc:
            self._logger.warning(
                "Could not read events for match %s: %s",
                match_id,
                describe_storage_error(exc),
            )
            return ReadResult.failed(exc)
        return ReadResult(items=[PointEvent.model_validate(row) for row in rows])
