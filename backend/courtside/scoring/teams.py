import random
from typing import List, Optional, Sequence, Tuple, TypeVar

from ..exceptions import InvalidInput

T = TypeVar("T")


def randomize_teams(
    player_ids: Sequence[T], rng: Optional[random.Random] = None
) -> Tuple[List[T], List[T]]:
    """Shuffle ``player_ids`` (Fisher-Yates) and split them into two equal teams."""

    if len(player_ids) % 2 != 0:
        raise InvalidInput(
            "Player count must be even to split into teams.", code="odd_player_count"
        )

    rng = rng or random.SystemRandom()
    shuffled = list(player_ids)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randrange(i + 1)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]

    midpoint = len(shuffled) // 2
    return shuffled[:midpoint], shuffled[midpoint:]
