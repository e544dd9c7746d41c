"""Persistence, sync and match orchestration built on top of the scoring engine."""

from .results import ReadResult
from .event_log import EventLog
from .match_store import MatchStateStore
from .remote import RemoteAuthority
from .sync import SyncCoordinator, SyncResult
from .reference import ReferenceCache, TempPlayerStore
from .live_match import LiveMatch, LiveMatchService
from .validation import normalize_venue, validate_match_id, validate_team

__all__ = [
    "EventLog",
    "LiveMatch",
    "LiveMatchService",
    "MatchStateStore",
    "ReadResult",
    "ReferenceCache",
    "RemoteAuthority",
    "SyncCoordinator",
    "SyncResult",
    "TempPlayerStore",
    "normalize_venue",
    "validate_match_id",
    "validate_team",
]
