"""Local mirrors of roster and venue data, plus venue-scoped temporary players."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Type

from sqlalchemy import delete, select

from ..config import TEMP_PLAYER_TTL
from ..db import Storage
from ..db_errors import STORAGE_ERRORS, describe_storage_error
from ..exceptions import InvalidInput, StorageFailure, SyncFailure
from ..models import CachedPlayer as CachedPlayerRow
from ..models import CachedVenue as CachedVenueRow
from ..models import TempPlayer as TempPlayerRow
from ..schemas import CachedPlayer, CachedVenue, TempPlayer
from ..time_utils import coerce_utc, to_storage, utcnow
from .remote import RemoteAuthority
from .results import ReadResult

LOGGER = logging.getLogger(__name__)


def _require_id(raw: Mapping[str, Any], kind: str) -> str:
    if not isinstance(raw, Mapping) or raw.get("id") in (None, ""):
        raise InvalidInput(f"{kind} rows must include an id")
    return str(raw["id"])


def _player_values(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": _require_id(raw, "player"),
        "name": str(raw.get("name") or ""),
        "active": bool(raw.get("active", True)),
    }


def _venue_values(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": _require_id(raw, "venue"),
        "name": str(raw.get("name") or ""),
        "surface": raw.get("surface"),
    }


class ReferenceCache:
    """Read-mostly copies of the remote player and venue lists.

    Each collection is replaced wholesale when refreshed and can be expired
    on its own.
    """

    def __init__(
        self,
        storage: Storage,
        *,
        now: Callable[[], datetime] = utcnow,
        logger: logging.Logger | None = None,
    ) -> None:
        self._storage = storage
        self._now = now
        self._logger = logger or LOGGER

    async def cache_players(self, players: Iterable[Mapping[str, Any]]) -> int:
        return await self._replace(CachedPlayerRow, [_player_values(p) for p in players])

    async def cache_venues(self, venues: Iterable[Mapping[str, Any]]) -> int:
        return await self._replace(CachedVenueRow, [_venue_values(v) for v in venues])

    async def get_players(self, *, max_age: timedelta | None = None) -> ReadResult[CachedPlayer]:
        result = await self._read(CachedPlayerRow, max_age)
        if not result.ok:
            return result
        return ReadResult(items=[CachedPlayer.model_validate(r) for r in result.items])

    async def get_venues(self, *, max_age: timedelta | None = None) -> ReadResult[CachedVenue]:
        result = await self._read(CachedVenueRow, max_age)
        if not result.ok:
            return result
        return ReadResult(items=[CachedVenue.model_validate(r) for r in result.items])

    async def expire_players(self, max_age: timedelta) -> int:
        return await self._expire(CachedPlayerRow, max_age)

    async def expire_venues(self, max_age: timedelta) -> int:
        return await self._expire(CachedVenueRow, max_age)

    async def refresh(self, remote: RemoteAuthority) -> bool:
        """Pull both lists from the remote; the old mirror is kept on failure."""

        try:
            players = await remote.get_players()
            venues = await remote.get_venues()
        except SyncFailure as exc:
            self._logger.info("Reference refresh skipped, using cached data: %s", exc.detail)
            return False

        await self.cache_players(players)
        await self.cache_venues(venues)
        self._logger.info("Cached %d players and %d venues", len(players), len(venues))
        return True

    async def _replace(self, model: Type, rows: List[Dict[str, Any]]) -> int:
        cached_at = to_storage(self._now())
        try:
            async with self._storage.session() as session:
                await session.execute(delete(model))
                session.add_all(model(**values, cached_at=cached_at) for values in rows)
                await session.commit()
        except STORAGE_ERRORS as exc:
            raise StorageFailure(
                f"cache {model.__tablename__}", describe_storage_error(exc)
            ) from exc
        return len(rows)

    async def _read(self, model: Type, max_age: timedelta | None) -> ReadResult:
        try:
            async with self._storage.session() as session:
                rows = (
                    await session.execute(select(model).order_by(model.name))
                ).scalars().all()
        except STORAGE_ERRORS as exc:
            self._logger.warning(
                "Could not read %s: %s", model.__tablename__, describe_storage_error(exc)
            )
            return ReadResult.failed(exc)

        if max_age is not None:
            cutoff = self._now() - max_age
            rows = [r for r in rows if coerce_utc(r.cached_at) >= cutoff]
        return ReadResult(items=list(rows))

    async def _expire(self, model: Type, max_age: timedelta) -> int:
        cutoff = to_storage(self._now() - max_age)
        try:
            async with self._storage.session() as session:
                result = await session.execute(delete(model).where(model.cached_at < cutoff))
                await session.commit()
        except STORAGE_ERRORS as exc:
            raise StorageFailure(
                f"expire {model.__tablename__}", describe_storage_error(exc)
            ) from exc
        return result.rowcount or 0


class TempPlayerStore:
    """Ephemeral players added at a venue, valid for 24 hours.

    Temp players are never promoted to permanent roster entries.
    """

    def __init__(
        self,
        storage: Storage,
        *,
        now: Callable[[], datetime] = utcnow,
        logger: logging.Logger | None = None,
    ) -> None:
        self._storage = storage
        self._now = now
        self._logger = logger or LOGGER

    async def add(self, name: str, venue_id: str) -> TempPlayer:
        name = (name or "").strip()
        if not name:
            raise InvalidInput("temp player name must not be empty")
        if not venue_id:
            raise InvalidInput("temp players must belong to a venue")

        created_at = self._now()
        player = TempPlayer(
            id=f"temp-{uuid.uuid4().hex}",
            name=name,
            venue_id=venue_id,
            created_at=created_at,
            expires_at=created_at + TEMP_PLAYER_TTL,
            active=True,
        )
        try:
            async with self._storage.session() as session:
                session.add(
                    TempPlayerRow(
                        id=player.id,
                        name=player.name,
                        venue_id=player.venue_id,
                        created_at=to_storage(player.created_at),
                        expires_at=to_storage(player.expires_at),
                        active=True,
                    )
                )
                await session.commit()
        except STORAGE_ERRORS as exc:
            raise StorageFailure("add temp player", describe_storage_error(exc)) from exc

        self._logger.info("Added temp player %s at venue %s", player.id, venue_id)
        return player

    async def get(self, player_id: str) -> Optional[TempPlayer]:
        try:
            async with self._storage.session() as session:
                row = await session.get(TempPlayerRow, player_id)
        except STORAGE_ERRORS as exc:
            self._logger.warning("Could not read temp player %s: %s", player_id, describe_storage_error(exc))
            return None
        return TempPlayer.model_validate(row) if row is not None else None

    async def for_venue(self, venue_id: str) -> ReadResult[TempPlayer]:
        """Active, unexpired temp players of ``venue_id``, oldest first."""

        try:
            async with self._storage.session() as session:
                rows = (
                    await session.execute(
                        select(TempPlayerRow)
                        .where(
                            TempPlayerRow.venue_id == venue_id,
                            TempPlayerRow.active.is_(True),
                        )
                        .order_by(TempPlayerRow.created_at)
                    )
                ).scalars().all()
        except STORAGE_ERRORS as exc:
            self._logger.warning(
                "Could not read temp players for venue %s: %s",
                venue_id,
                describe_storage_error(exc),
            )
            return ReadResult.failed(exc)

        now = self._now()
        players = [TempPlayer.model_validate(r) for r in rows]
        return ReadResult(items=[p for p in players if p.expires_at > now])

    async def deactivate(self, player_id: str) -> bool:
        try:
            async with self._storage.session() as session:
                row = await session.get(TempPlayerRow, player_id)
                if row is None:
                    return False
                row.active = False
                await session.commit()
        except STORAGE_ERRORS as exc:
            raise StorageFailure("deactivate temp player", describe_storage_error(exc)) from exc
        return True

    async def cleanup_expired(self) -> int:
        cutoff = to_storage(self._now())
        try:
            async with self._storage.session() as session:
                result = await session.execute(
                    delete(TempPlayerRow).where(TempPlayerRow.expires_at <= cutoff)
                )
                await session.commit()
        except STORAGE_ERRORS as exc:
            raise StorageFailure("clean up temp players", describe_storage_error(exc)) from exc

        removed = result.rowcount or 0
        if removed:
            self._logger.info("Removed %d expired temp players", removed)
        return removed
