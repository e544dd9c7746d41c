import os, sys
import random

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..")))
from courtside.exceptions import InvalidInput
from courtside.scoring import (
    MatchMode,
    game_display,
    is_tie_break,
    match_display,
    new_match_state,
    point_display,
    randomize_teams,
    replay,
    set_winner,
)


def test_point_display():
    assert [point_display(n) for n in range(5)] == ["0", "15", "30", "40", "40"]


def test_game_display_deuce_and_advantage():
    assert game_display(3, 3) == ("Deuce", "Deuce")
    assert game_display(4, 3) == ("Ad", "40")
    assert game_display(5, 6) == ("40", "Ad")
    assert game_display(2, 1) == ("30", "15")


def test_set_winner_rules():
    assert set_winner(6, 4) == "A"
    assert set_winner(5, 6) is None
    assert set_winner(7, 5) == "A"
    assert set_winner(7, 6) == "A"
    assert set_winner(6, 7) == "B"
    assert set_winner(6, 6) is None


def test_is_tie_break():
    assert is_tie_break(6, 6) is True
    assert is_tie_break(6, 5) is False


def test_match_display_short_format():
    state = new_match_state(MatchMode.SHORT_FORMAT, ["p1"], ["p2"], ["p1", "p2", "p1"])
    display = match_display(replay(state, ["A", "A", "A", "B"]))
    assert display["points"] == {"a": "40", "b": "15"}
    assert display["totalGames"] == 3
    assert display["server"] == "p1"
    assert "sets" not in display


def test_match_display_standard():
    state = new_match_state(MatchMode.STANDARD, ["p1"], ["p2"])
    display = match_display(state)
    assert display["sets"] == {"a": 0, "b": 0}
    assert display["currentSet"] == 1
    assert display["isTieBreak"] is False
    assert display["completed"] is False


def test_randomize_teams_splits_evenly():
    players = ["a", "b", "c", "d", "e", "f"]
    team_a, team_b = randomize_teams(players, rng=random.Random(7))
    assert len(team_a) == len(team_b) == 3
    assert sorted(team_a + team_b) == sorted(players)


def test_randomize_teams_rejects_odd_count():
    with pytest.raises(InvalidInput) as exc:
        randomize_teams(["a", "b", "c"])
    assert exc.value.code == "odd_player_count"


def test_randomize_teams_empty():
    assert randomize_teams([]) == ([], [])
