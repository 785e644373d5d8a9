"""
Labels for clarity.
"""

from typing import Literal

Secret = str  # "1234": unique digits, never starts with 0
Guess = str
Level = int  # number of digits: 3, 4 or 5
EpochMs = int

# Rejections the evaluator can produce
GuessErrorKind = Literal["WrongLength", "LeadingZero", "DuplicateDigits", "AlreadyTried"]
# Rejections the controller adds on top of the evaluator
RejectKind = Literal[
    "WrongLength", "LeadingZero", "DuplicateDigits", "AlreadyTried", "RoundOver", "StaleRound"
]
GameStatus = Literal["active", "won"]
ScoreStatus = Literal["committed", "already_committed", "no_identity"]
