"""Wiring of the storage handle, remote client and services for the device API."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from .db import Storage
from .services.event_log import EventLog
from .services.live_match import LiveMatchService
from .services.match_store import MatchStateStore
from .services.reference import ReferenceCache, TempPlayerStore
from .services.remote import RemoteAuthority
from .services.sync import SyncCoordinator


@dataclass
class Services:
    storage: Storage
    remote: RemoteAuthority
    events: EventLog
    matches: MatchStateStore
    sync: SyncCoordinator
    live: LiveMatchService
    reference: ReferenceCache
    temp_players: TempPlayerStore


def build_services(storage: Storage, remote: RemoteAuthority) -> Services:
    events = EventLog(storage)
    matches = MatchStateStore(storage, event_log=events)
    sync = SyncCoordinator(events, remote)
    return Services(
        storage=storage,
        remote=remote,
        events=events,
        matches=matches,
        sync=sync,
        live=LiveMatchService(matches, events, sync=sync, remote=remote),
        reference=ReferenceCache(storage),
        temp_players=TempPlayerStore(storage),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
