"""Scoring engine for standard and short-format racquet matches."""

from .engine import (
    GameScore,
    MatchMode,
    MatchState,
    current_server,
    new_match_state,
    replay,
    score_point,
)
from .rules import GameState, game_state, is_tie_break, set_winner
from .display import PointDisplay, game_display, match_display, point_display
from .teams import randomize_teams

__all__ = [
    "GameScore",
    "GameState",
    "MatchMode",
    "MatchState",
    "PointDisplay",
    "current_server",
    "game_display",
    "game_state",
    "is_tie_break",
    "match_display",
    "new_match_state",
    "point_display",
    "randomize_teams",
    "replay",
    "score_point",
    "set_winner",
]
