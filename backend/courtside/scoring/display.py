"""Projection of engine state into tennis notation for the scoreboard."""

from typing import Any, Dict, NamedTuple

from .engine import MatchMode, MatchState, current_server
from .rules import GameState, game_state, is_tie_break

_POINT_NAMES = {0: "0", 1: "15", 2: "30", 3: "40"}


class PointDisplay(NamedTuple):
    a: str
    b: str


def point_display(points: int) -> str:
    return _POINT_NAMES.get(points, "40")


def game_display(points_a: int, points_b: int) -> PointDisplay:
    state = game_state(points_a, points_b)
    if state is GameState.DEUCE:
        return PointDisplay("Deuce", "Deuce")
    if state is GameState.ADVANTAGE_A:
        return PointDisplay("Ad", "40")
    if state is GameState.ADVANTAGE_B:
        return PointDisplay("40", "Ad")
    return PointDisplay(point_display(points_a), point_display(points_b))


def match_display(state: MatchState) -> Dict[str, Any]:
    points = game_display(state.current_game.points_a, state.current_game.points_b)
    display: Dict[str, Any] = {
        "points": {"a": points.a, "b": points.b},
        "games": {"a": state.games_a, "b": state.games_b},
        "gameNumber": state.current_game.game_number,
        "winner": state.winner,
        "completed": state.completed,
    }

    if state.mode is MatchMode.SHORT_FORMAT:
        display["totalGames"] = 3
        display["server"] = current_server(state)
    else:
        display["sets"] = {"a": state.sets_a, "b": state.sets_b}
        display["currentSet"] = state.current_set
        display["isTieBreak"] = is_tie_break(state.games_a, state.games_b)

    return display
