"""Racquet scoring engine.

Tracks points -> games -> sets -> match for the STANDARD format and
points -> games -> match for the three-game SHORT_FORMAT. Every function in
this module is pure: states are frozen and each transition returns a new one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from functools import reduce
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from ..exceptions import InvalidInput
from .rules import GameState, game_state, set_winner

logger = logging.getLogger(__name__)

TEAMS = ("A", "B")
SHORT_FORMAT_SERVERS = 3
GAMES_TO_WIN_SHORT = 2
SETS_TO_WIN = 2


class MatchMode(str, Enum):
    STANDARD = "standard"
    SHORT_FORMAT = "short"


@dataclass(frozen=True)
class GameScore:
    points_a: int = 0
    points_b: int = 0
    game_number: int = 1
    server_index: int = 0


@dataclass(frozen=True)
class MatchState:
    mode: MatchMode
    team_a: Tuple[str, ...]
    team_b: Tuple[str, ...]
    servers: Optional[Tuple[str, ...]] = None
    current_game: GameScore = field(default_factory=GameScore)
    # Current set in STANDARD, whole match in SHORT_FORMAT.
    games_a: int = 0
    games_b: int = 0
    # STANDARD only.
    sets_a: Optional[int] = None
    sets_b: Optional[int] = None
    current_set: Optional[int] = None
    winner: Optional[str] = None
    completed: bool = False

    @property
    def players(self) -> Tuple[str, ...]:
        return self.team_a + self.team_b

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot in the camelCase shape persisted alongside a match record."""

        return {
            "mode": self.mode.value,
            "players": {"teamA": list(self.team_a), "teamB": list(self.team_b)},
            "servers": list(self.servers) if self.servers is not None else None,
            "currentGame": {
                "pointsA": self.current_game.points_a,
                "pointsB": self.current_game.points_b,
                "gameNumber": self.current_game.game_number,
                "serverIndex": self.current_game.server_index,
            },
            "gamesA": self.games_a,
            "gamesB": self.games_b,
            "setsA": self.sets_a,
            "setsB": self.sets_b,
            "currentSet": self.current_set,
            "winner": self.winner,
            "completed": self.completed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MatchState":
        try:
            mode = MatchMode(data["mode"])
            players = data.get("players") or {}
            game = data.get("currentGame") or {}
            servers = data.get("servers")
            return cls(
                mode=mode,
                team_a=tuple(players.get("teamA") or ()),
                team_b=tuple(players.get("teamB") or ()),
                servers=tuple(servers) if servers is not None else None,
                current_game=GameScore(
                    points_a=int(game.get("pointsA", 0)),
                    points_b=int(game.get("pointsB", 0)),
                    game_number=int(game.get("gameNumber", 1)),
                    server_index=int(game.get("serverIndex", 0)),
                ),
                games_a=int(data.get("gamesA", 0)),
                games_b=int(data.get("gamesB", 0)),
                sets_a=data.get("setsA"),
                sets_b=data.get("setsB"),
                current_set=data.get("currentSet"),
                winner=data.get("winner"),
                completed=bool(data.get("completed", False)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidInput(f"invalid match snapshot: {exc}") from exc


def new_match_state(
    mode: MatchMode | str,
    team_a: Sequence[str],
    team_b: Sequence[str],
    servers: Optional[Sequence[str]] = None,
) -> MatchState:
    """Return the opening state of a match.

    SHORT_FORMAT needs exactly three servers, one per game in serving order.
    STANDARD does not model service rotation and rejects a server list.
    """

    try:
        mode = MatchMode(mode)
    except ValueError:
        raise InvalidInput(f"invalid match mode: {mode}")

    if not team_a or not team_b:
        raise InvalidInput("both teams must have at least one player")

    if mode is MatchMode.SHORT_FORMAT:
        if servers is None or len(servers) != SHORT_FORMAT_SERVERS:
            raise InvalidInput("short-format mode requires exactly 3 servers")
        return MatchState(
            mode=mode,
            team_a=tuple(team_a),
            team_b=tuple(team_b),
            servers=tuple(servers),
        )

    if servers is not None:
        raise InvalidInput("standard mode must not specify servers")
    return MatchState(
        mode=mode,
        team_a=tuple(team_a),
        team_b=tuple(team_b),
        sets_a=0,
        sets_b=0,
        current_set=1,
    )


def score_point(state: MatchState, team: str) -> MatchState:
    """Award a point to ``team`` and return the resulting state.

    Scoring a completed match is a no-op: the same state is returned. Buffered
    events for a finished match may still be replayed, so this must not raise.
    """

    if team not in TEAMS:
        raise InvalidInput(f"invalid team: {team!r}")

    if state.completed:
        logger.debug("Ignoring point for %s: match already won by %s", team, state.winner)
        return state

    game = state.current_game
    if team == "A":
        game = replace(game, points_a=game.points_a + 1)
    else:
        game = replace(game, points_b=game.points_b + 1)

    outcome = game_state(game.points_a, game.points_b)
    state = replace(state, current_game=game)

    if outcome is GameState.WON_A:
        return _game_won(state, "A")
    if outcome is GameState.WON_B:
        return _game_won(state, "B")
    return state


def replay(state: MatchState, point_winners: Iterable[str]) -> MatchState:
    """Fold :func:`score_point` over a sequence of point winners."""

    return reduce(score_point, point_winners, state)


def current_server(state: MatchState) -> Optional[str]:
    if state.mode is not MatchMode.SHORT_FORMAT or not state.servers:
        return None
    index = state.current_game.server_index
    if index >= len(state.servers):
        return None
    return state.servers[index]


def _game_won(state: MatchState, winner: str) -> MatchState:
    if state.mode is MatchMode.SHORT_FORMAT:
        return _short_format_game_won(state, winner)
    return _standard_game_won(state, winner)


def _short_format_game_won(state: MatchState, winner: str) -> MatchState:
    games_a = state.games_a + (winner == "A")
    games_b = state.games_b + (winner == "B")

    # First to two games; no two-game lead required.
    if games_a == GAMES_TO_WIN_SHORT or games_b == GAMES_TO_WIN_SHORT:
        return replace(
            state,
            games_a=games_a,
            games_b=games_b,
            winner="A" if games_a == GAMES_TO_WIN_SHORT else "B",
            completed=True,
        )

    game = state.current_game
    servers = len(state.servers) if state.servers else 1
    return replace(
        state,
        games_a=games_a,
        games_b=games_b,
        current_game=GameScore(
            points_a=0,
            points_b=0,
            game_number=game.game_number + 1,
            server_index=(game.server_index + 1) % servers,
        ),
    )


def _standard_game_won(state: MatchState, winner: str) -> MatchState:
    games_a = state.games_a + (winner == "A")
    games_b = state.games_b + (winner == "B")
    sets_a = state.sets_a or 0
    sets_b = state.sets_b or 0
    current_set = state.current_set or 1

    set_won_by = set_winner(games_a, games_b)
    if set_won_by:
        sets_a += set_won_by == "A"
        sets_b += set_won_by == "B"

        if sets_a == SETS_TO_WIN or sets_b == SETS_TO_WIN:
            return replace(
                state,
                games_a=games_a,
                games_b=games_b,
                sets_a=sets_a,
                sets_b=sets_b,
                winner="A" if sets_a == SETS_TO_WIN else "B",
                completed=True,
            )

        current_set += 1
        games_a = games_b = 0

    return replace(
        state,
        games_a=games_a,
        games_b=games_b,
        sets_a=sets_a,
        sets_b=sets_b,
        current_set=current_set,
        current_game=GameScore(
            points_a=0,
            points_b=0,
            game_number=games_a + games_b + 1,
            server_index=0,
        ),
    )
