"""
Explicit validation & Pydantic models
- Models are used to validate and serialize/deserialize data
  exchanged between the client and server, and the documents we store.
- Defines the structure of API requests and responses.
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

from .types import GameStatus, RejectKind, ScoreStatus

# 1. One line of the guess history
class HistoryEntry(BaseModel):
    attempt: int = Field(..., ge=1, description="1-based attempt number")
    guess: str = Field(..., description="The guess as typed, e.g. '1243'")
    bulls: int = Field(..., ge=0, description="Right digit, right place")
    cows: int = Field(..., ge=0, description="Right digit, wrong place")

# 2. Player's guess
class GuessRequest(BaseModel):
    guess: str = Field(..., max_length=256, description="Digits only; length depends on the level")
    round_id: Optional[str] = Field(
        None, description="Round the guess was typed for; a stale round is rejected without effect"
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"guess": "1234"},
                {"guess": "507", "round_id": "game_1718000000000_k3j2h1g0f"},
            ]
        }
    }

class OutcomeOut(BaseModel):
    bulls: int = Field(..., description="Digits in the right place")
    cows: int = Field(..., description="Digits in the secret but elsewhere")

# 3. Result of a guess, as the presentation layer consumes it
class GuessResponse(BaseModel):
    accepted: bool = Field(..., description="False when the guess was rejected; nothing changed")
    error_kind: Optional[RejectKind] = Field(None, description="Why the guess was rejected")
    message: Optional[str] = Field(None, description="Human readable rejection message")
    outcome: Optional[OutcomeOut] = Field(None, description="Bulls and cows of an accepted guess")
    is_win: Optional[bool] = Field(None, description="True when this guess found the secret")
    attempt_count: int = Field(..., description="Accepted guesses so far this round")
    elapsed_display: Optional[str] = Field(None, description="Time to win, e.g. '1m 5s'")
    round_id: str = Field(..., description="Round the response refers to")
    score_status: Optional[ScoreStatus] = Field(None, description="What happened to the score on a win")

# 4. Overall state of the current round (secret only revealed once won)
class SessionView(BaseModel):
    round_id: str
    level: int
    status: GameStatus
    attempt_count: int
    started_at: int = Field(..., description="Epoch ms")
    history: List[HistoryEntry]
    elapsed_display: Optional[str] = None
    secret: Optional[str] = Field(None, description="Only present when the round is won")
    score_pending: bool = Field(False, description="Won, but the score still waits for an identity")
    degraded: bool = Field(False, description="Storage is unavailable; playing in memory only")

# 5. Level change
class LevelChangeRequest(BaseModel):
    level: int = Field(..., description="Number of digits")
    confirmed: bool = Field(False, description="Required to drop a round that already has guesses")

class LevelChangeResponse(BaseModel):
    applied: bool
    needs_confirmation: bool
    session: SessionView

# 6. A finished round in the score table
class ScoreRecord(BaseModel):
    level: int = Field(..., ge=1)
    attempts: int = Field(..., ge=1)
    elapsed_display: str
    date_label: str = Field(..., description="dd/mm/yyyy")
    timestamp: int = Field(..., description="Epoch ms of the win")
    player_display_name: str
    player_id: str
    round_id: Optional[str] = Field(None, description="Older records may not carry one")

# 7. Player statistics
class LevelStats(BaseModel):
    count: int
    best: int

class PlayerStats(BaseModel):
    player_id: Optional[str] = None
    total_games: int = 0
    best_attempts: int = Field(0, description="Fewest attempts over all levels, 0 without games")
    by_level: Dict[int, LevelStats] = Field(default_factory=dict)

# 8. Identity
class Identity(BaseModel):
    player_id: str
    display_name: str

class DisplayNameRequest(BaseModel):
    display_name: str = Field(..., max_length=40)

    @field_validator("display_name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return value.strip()

# 9. Sync
class SyncReport(BaseModel):
    sent: int = 0
    failed: int = 0
    pending: int = 0

class SyncStatus(BaseModel):
    configured: bool = Field(..., description="A remote score store is wired in")
    available: bool = Field(..., description="Last probe reached the remote store")
    pending: int
    cached: int = Field(..., description="Remote records in the local cache")
    last_sync: Optional[int] = Field(None, description="Epoch ms of the last successful fetch")
    pending_records: List[ScoreRecord] = Field(default_factory=list)

class MessageOut(BaseModel):
    message: str
