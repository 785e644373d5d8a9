"""
Round state.
A GameSession lives from secret generation until the player wins and starts
again, resets, or changes level. It is owned by the GameController (game.py).
"""

import string
from dataclasses import dataclass, field
from secrets import choice
from typing import List, Optional, Set

from .schemas import HistoryEntry
from .types import EpochMs, GameStatus, Level, Secret

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits


def random_token(length: int = 9) -> str:
    return "".join(choice(_TOKEN_ALPHABET) for _ in range(length))


def new_round_id(now_ms: EpochMs) -> str:
    """e.g. game_1718000000000_k3j2h1g0f"""
    return f"game_{now_ms}_{random_token()}"


@dataclass
class GameSession:
    round_id: str
    secret: Secret
    level: Level
    started_at: EpochMs
    attempt_count: int = 0
    history: List[HistoryEntry] = field(default_factory=list)
    # set once, when the winning guess is accepted
    won_at: Optional[EpochMs] = None
    elapsed_display: Optional[str] = None

    @property
    def status(self) -> GameStatus:
        return "won" if self.won_at is not None else "active"

    def prior_guesses(self) -> Set[str]:
        return {entry.guess for entry in self.history}
