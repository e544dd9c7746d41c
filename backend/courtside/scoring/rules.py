"""Game and set rules shared by both match formats.

Everything here works on raw counts so it can be reused for display and for
the state transition in :mod:`.engine`.
"""

from enum import Enum
from typing import Optional


class GameState(str, Enum):
    IN_PROGRESS = "in_progress"
    DEUCE = "deuce"
    ADVANTAGE_A = "advantage_a"
    ADVANTAGE_B = "advantage_b"
    WON_A = "won_a"
    WON_B = "won_b"


def game_state(points_a: int, points_b: int) -> GameState:
    # The both-at-40 branch must run first: 4-3 is advantage, not a win.
    if points_a >= 3 and points_b >= 3:
        diff = points_a - points_b
        if diff == 0:
            return GameState.DEUCE
        if diff == 1:
            return GameState.ADVANTAGE_A
        if diff == -1:
            return GameState.ADVANTAGE_B
        return GameState.WON_A if diff >= 2 else GameState.WON_B

    if points_a >= 4 and points_a - points_b >= 2:
        return GameState.WON_A
    if points_b >= 4 and points_b - points_a >= 2:
        return GameState.WON_B

    return GameState.IN_PROGRESS


def set_winner(games_a: int, games_b: int) -> Optional[str]:
    """Return ``"A"``/``"B"`` when the set is decided, otherwise ``None``.

    A set goes to the first side with six games and a two game lead. A set that
    reached 6-6 is settled as 7-6 without modelling the tie-break points.
    """

    if games_a >= 6 and games_a - games_b >= 2:
        return "A"
    if games_b >= 6 and games_b - games_a >= 2:
        return "B"

    if games_a == 7 and games_b == 6:
        return "A"
    if games_b == 7 and games_a == 6:
        return "B"

    return None


def is_tie_break(games_a: int, games_b: int) -> bool:
    return games_a == 6 and games_b == 6
