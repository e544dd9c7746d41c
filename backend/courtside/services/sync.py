"""Drains unsynced point events to the remote authority.

The coordinator keeps no state of its own: whether an event still has to be
sent is carried entirely by its ``synced`` flag. Events are flagged only after
the remote confirmed the batch, so a failed or interrupted sync simply resends
the same events next time and the remote deduplicates them by id.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import dataclass
from typing import Dict, Union

from ..exceptions import StorageFailure, SyncFailure
from .event_log import EventLog
from .remote import RemoteAuthority

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncResult:
    match_id: str
    submitted: int = 0
    inserted: int = 0

    @property
    def total(self) -> int:
        return self.submitted


class SyncCoordinator:
    def __init__(
        self,
        event_log: EventLog,
        remote: RemoteAuthority,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._event_log = event_log
        self._remote = remote
        self._logger = logger or LOGGER
        # Entries vanish once no sync holds or awaits the lock.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, match_id: str) -> asyncio.Lock:
        lock = self._locks.get(match_id)
        if lock is None:
            lock = self._locks[match_id] = asyncio.Lock()
        return lock

    async def sync(self, match_id: str) -> SyncResult:
        """Submit every unsynced event of ``match_id`` as a single batch.

        Raises :class:`SyncFailure` when nothing could be confirmed; in that
        case no event has been flagged and the call can simply be retried.
        """

        async with self._lock_for(match_id):
            pending = await self._event_log.unsynced_for(match_id)
            if not pending.ok:
                raise SyncFailure(
                    "could not read unsynced events from local storage",
                    match_id=match_id,
                ) from pending.error
            if not pending:
                return SyncResult(match_id=match_id)

            events = list(pending)
            self._logger.info("Submitting %d events for match %s", len(events), match_id)
            inserted = await self._remote.submit_events(match_id, events)

            try:
                await self._event_log.mark_synced(e.id for e in events)
            except StorageFailure as exc:
                # The remote has the events; the next sync resends and the
                # remote ignores the duplicates.
                self._logger.warning(
                    "Match %s synced remotely but flags were not saved: %s",
                    match_id,
                    exc.detail,
                )
                raise

            if inserted < len(events):
                self._logger.info(
                    "Remote already had %d of %d events for match %s",
                    len(events) - inserted,
                    len(events),
                    match_id,
                )
            return SyncResult(match_id=match_id, submitted=len(events), inserted=inserted)

    async def sync_all(self) -> Dict[str, Union[SyncResult, SyncFailure]]:
        """Sync every match that has unsynced events, independently of each other."""

        match_ids = await self._event_log.matches_with_unsynced()
        if not match_ids:
            return {}

        outcomes = await asyncio.gather(
            *(self.sync(mid) for mid in match_ids), return_exceptions=True
        )
        results: Dict[str, Union[SyncResult, SyncFailure]] = {}
        for match_id, outcome in zip(match_ids, outcomes):
            if isinstance(outcome, SyncFailure):
                self._logger.warning("Sync failed for match %s: %s", match_id, outcome.detail)
                results[match_id] = outcome
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results[match_id] = outcome
        return results
