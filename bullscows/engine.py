"""
Pure game logic (no HTTP, no storage).
For each guess we compute two feedback numbers:
- bulls: digits that are in the secret AND at the same position
- cows: digits that are in the secret but at another position

Secrets and guesses never contain the same digit twice, so a digit is
either a bull, a cow, or nothing.
"""

from dataclasses import dataclass
from typing import Iterable, Tuple

from .types import Guess, GuessErrorKind, Secret

ERROR_MESSAGES = {
    "WrongLength": "Please enter {length} digits.",
    "LeadingZero": "The number cannot start with 0.",
    "DuplicateDigits": "Digits must all be different.",
    "AlreadyTried": "You already tried {guess}.",
}


class InvalidGuess(ValueError):
    """A guess the player has to correct. No attempt is consumed."""

    def __init__(self, kind: GuessErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


@dataclass(frozen=True)
class Outcome:
    bulls: int
    cows: int
    is_win: bool


def validate_guess(guess: Guess, secret: Secret, prior_guesses: Iterable[Guess] = ()) -> None:
    """
    Raises InvalidGuess for the first rule that fails:
      1. length (a non-digit character also counts as a wrong length)
      2. leading zero
      3. duplicate digits
      4. already tried this round
    """
    length = len(secret)
    if len(guess) != length or not guess.isdigit() or not guess.isascii():
        raise InvalidGuess("WrongLength", ERROR_MESSAGES["WrongLength"].format(length=length))
    if guess[0] == "0":
        raise InvalidGuess("LeadingZero", ERROR_MESSAGES["LeadingZero"])
    if len(set(guess)) != length:
        raise InvalidGuess("DuplicateDigits", ERROR_MESSAGES["DuplicateDigits"])
    if guess in set(prior_guesses):
        raise InvalidGuess("AlreadyTried", ERROR_MESSAGES["AlreadyTried"].format(guess=guess))


def score_guess(secret: Secret, guess: Guess) -> Tuple[int, int]:
    """
    Example:
      secret = "1234"
      guess  = "1243"
      bulls = 2  (1 and 2 are in place)
      cows  = 2  (4 and 3 are in the secret, swapped)
      Returns a tuple: (bulls, cows)
    """
    if len(secret) == 0 or len(guess) != len(secret):
        raise ValueError("Secret and guess must be the same non-zero length.")

    bulls = 0
    cows = 0
    for index, digit in enumerate(guess):
        if digit in secret:
            if secret[index] == digit:
                bulls += 1
            else:
                cows += 1
    return (bulls, cows)


def is_win(secret: Secret, guess: Guess) -> bool:
    """Win = every digit in place. Works for any length."""
    return len(secret) > 0 and guess == secret


def evaluate(guess: Guess, secret: Secret, prior_guesses: Iterable[Guess] = ()) -> Outcome:
    """Validate then score one guess. Raises InvalidGuess, never touches state."""
    guess = guess.strip()
    validate_guess(guess, secret, prior_guesses)
    bulls, cows = score_guess(secret, guess)
    return Outcome(bulls=bulls, cows=cows, is_win=bulls == len(secret))


def format_elapsed(elapsed_ms: int) -> str:
    """
    Whole seconds, minutes only when there are some:
      42_000  -> "42s"
      125_900 -> "2m 5s"
    """
    total_seconds = max(0, int(elapsed_ms // 1000))
    minutes, seconds = divmod(total_seconds, 60)
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"
