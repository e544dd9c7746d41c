from sqlalchemy import (
    Column,
    String,
    DateTime,
    JSON,
    Boolean,
    Index,
)
from .db import Base


class CurrentMatch(Base):
    """Legacy single-slot mirror of the most recently saved match."""

    __tablename__ = "current_match"
    id = Column(String, primary_key=True)  # always "current"
    match_id = Column(String, nullable=True)
    data = Column(JSON, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class IncompleteMatch(Base):
    __tablename__ = "incomplete_match"
    match_id = Column(String, primary_key=True)
    venue = Column(JSON, nullable=True)  # {"id": ..., "name": ...}
    match_type = Column(String, nullable=True)  # "singles" | "doubles"
    format_mode = Column(String, nullable=True)  # "standard" | "short"
    team_a = Column(JSON, nullable=False, default=list)
    team_b = Column(JSON, nullable=False, default=list)
    score = Column(JSON, nullable=True)  # engine snapshot
    events = Column(JSON, nullable=False, default=list)
    current_server = Column(String, nullable=True)
    server_team = Column(String, nullable=True)
    completed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_incomplete_match_created_at", "created_at"),
    )


class PointEvent(Base):
    __tablename__ = "point_event"
    id = Column(String, primary_key=True)
    match_id = Column(String, nullable=False)
    timestamp = Column(DateTime, nullable=False)
    server_player_id = Column(String, nullable=True)
    serve_type = Column(String, nullable=True)
    point_winner_team = Column(String, nullable=False)  # "A" | "B"
    synced = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_point_event_match_id", "match_id"),
        Index("ix_point_event_synced", "synced"),
    )


class CachedPlayer(Base):
    __tablename__ = "cached_player"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    cached_at = Column(DateTime, nullable=False)


class CachedVenue(Base):
    __tablename__ = "cached_venue"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    surface = Column(String, nullable=True)
    cached_at = Column(DateTime, nullable=False)


class TempPlayer(Base):
    __tablename__ = "temp_player"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    venue_id = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("ix_temp_player_venue_id", "venue_id"),
        Index("ix_temp_player_created_at", "created_at"),
    )
