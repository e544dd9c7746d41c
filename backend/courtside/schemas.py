from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .scoring import MatchMode
from .time_utils import coerce_utc, require_utc

TeamSide = Literal["A", "B"]
ServeType = Literal["first", "second", "double_fault"]
MatchType = Literal["singles", "doubles"]


def new_id() -> str:
    return uuid.uuid4().hex


def _strip_nonempty(value: Any, field: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValueError(f"{field} must not be empty")
    return trimmed


# -----------------------------------------------------------------------------
# Stored shapes
# -----------------------------------------------------------------------------
class Venue(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None


class PointEvent(BaseModel):
    """A single point as recorded on the device."""

    id: str = Field(default_factory=new_id)
    match_id: str
    timestamp: datetime
    server_player_id: Optional[str] = None
    serve_type: Optional[ServeType] = None
    point_winner_team: TeamSide
    synced: bool = False

    model_config = ConfigDict(from_attributes=True)

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, v: datetime) -> datetime:
        # Values read back from SQLite are naive UTC.
        return coerce_utc(v)


class MatchRecord(BaseModel):
    match_id: str
    venue: Optional[Venue] = None
    match_type: Optional[str] = None
    format_mode: Optional[str] = None
    team_a: List[str] = Field(default_factory=list)
    team_b: List[str] = Field(default_factory=list)
    score: Optional[Dict[str, Any]] = None
    events: List[Any] = Field(default_factory=list)
    current_server: Optional[str] = None
    server_team: Optional[str] = None
    completed: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _normalize_times(cls, v: datetime | None) -> datetime | None:
        return coerce_utc(v)

    @property
    def last_touched(self) -> datetime:
        return self.updated_at or self.created_at


class CachedPlayer(BaseModel):
    id: str
    name: str
    active: bool = True
    cached_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("cached_at")
    @classmethod
    def _normalize_cached_at(cls, v: datetime | None) -> datetime | None:
        return coerce_utc(v)


class CachedVenue(BaseModel):
    id: str
    name: str
    surface: Optional[str] = None
    cached_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("cached_at")
    @classmethod
    def _normalize_cached_at(cls, v: datetime | None) -> datetime | None:
        return coerce_utc(v)


class TempPlayer(BaseModel):
    id: str
    name: str
    venue_id: str
    created_at: datetime
    expires_at: datetime
    active: bool = True

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at", "expires_at")
    @classmethod
    def _normalize_times(cls, v: datetime) -> datetime:
        return coerce_utc(v)


# -----------------------------------------------------------------------------
# Remote authority wire format
# -----------------------------------------------------------------------------
class RemoteEvent(BaseModel):
    id: str
    timestamp: datetime
    server_player_id: Optional[str] = None
    serve_type: Optional[ServeType] = None
    point_winner_team: TeamSide

    @classmethod
    def from_event(cls, event: PointEvent) -> "RemoteEvent":
        return cls(
            id=event.id,
            timestamp=event.timestamp,
            server_player_id=event.server_player_id,
            serve_type=event.serve_type,
            point_winner_team=event.point_winner_team,
        )


class SubmitEventsRequest(BaseModel):
    events: List[RemoteEvent]


class SubmitEventsResult(BaseModel):
    inserted: int = Field(..., ge=0)


# -----------------------------------------------------------------------------
# Device API
# -----------------------------------------------------------------------------
class MatchCreate(BaseModel):
    matchId: Optional[str] = None
    venue: Optional[Any] = None
    matchType: MatchType = "singles"
    mode: MatchMode = MatchMode.STANDARD
    teamA: List[str]
    teamB: List[str]
    servers: Optional[List[str]] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("teamA", "teamB")
    @classmethod
    def _require_players(cls, v: List[str]) -> List[str]:
        players = [_strip_nonempty(pid, "player id") for pid in v]
        if not players:
            raise ValueError("teams must include at least one player")
        return players


class PointIn(BaseModel):
    team: TeamSide
    serverPlayerId: Optional[str] = None
    serveType: Optional[ServeType] = None
    timestamp: Optional[datetime] = None
    eventId: Optional[str] = None

    @field_validator("team", mode="before")
    @classmethod
    def _upper_team(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("timestamp")
    @classmethod
    def _require_utc(cls, v: datetime | None) -> datetime | None:
        return require_utc(v, field_name="timestamp")


class PointEventOut(BaseModel):
    id: str
    matchId: str
    timestamp: datetime
    serverPlayerId: Optional[str] = None
    serveType: Optional[str] = None
    pointWinnerTeam: str
    synced: bool


class MatchOut(BaseModel):
    matchId: str
    venue: Optional[Venue] = None
    matchType: Optional[str] = None
    mode: Optional[str] = None
    teamA: List[str]
    teamB: List[str]
    score: Optional[Dict[str, Any]] = None
    display: Optional[Dict[str, Any]] = None
    currentServer: Optional[str] = None
    serverTeam: Optional[str] = None
    completed: bool
    createdAt: datetime
    updatedAt: Optional[datetime] = None


class UndoOut(BaseModel):
    undone: Optional[PointEventOut] = None
    match: MatchOut


class SyncOut(BaseModel):
    matchId: str
    submitted: int
    inserted: int
    total: int


class TeamsRandomizeIn(BaseModel):
    playerIds: List[str]


class TeamsOut(BaseModel):
    teamA: List[str]
    teamB: List[str]


class PlayerOut(BaseModel):
    id: str
    name: str
    temporary: bool = False


class VenueOut(BaseModel):
    id: str
    name: str
    surface: Optional[str] = None


class TempPlayerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return _strip_nonempty(value, "name")


class TempPlayerOut(BaseModel):
    id: str
    name: str
    venueId: str
    createdAt: datetime
    expiresAt: datetime
    active: bool
