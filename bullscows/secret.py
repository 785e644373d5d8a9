"""
Secret generation.
The first digit is drawn from 1..9, every other digit from 0..9 and redrawn
while it is already part of the secret (so all digits end up unique).
"""

from secrets import randbelow as secure_randbelow
from typing import Callable

from .types import Level, Secret

# Ten decimal digits, so no longer secret can have unique digits
MAX_LEVEL = 10


def generate_secret(level: Level, randbelow: Callable[[int], int] = secure_randbelow) -> Secret:
    """
    Example:
      generate_secret(4) -> "5820"
    `randbelow(n)` must return an int in [0, n); tests pass a scripted one.
    """
    if level < 1 or level > MAX_LEVEL:
        raise ValueError(f"Level must be between 1 and {MAX_LEVEL}, got {level}.")

    digits = [str(randbelow(9) + 1)]
    while len(digits) < level:
        digit = str(randbelow(10))
        # rejection sampling; terminates almost surely
        if digit not in digits:
            digits.append(digit)
    return "".join(digits)
