"""
Testing secret generation.
- Property check over many random secrets
- A scripted randbelow to see the rejection sampling at work
"""

import pytest

from bullscows.secret import generate_secret

@pytest.mark.parametrize("level", [3, 4, 5])
def test_generated_secrets_are_valid(level):
    for _ in range(300):
        secret = generate_secret(level)
        assert len(secret) == level
        assert secret.isdigit()
        assert len(set(secret)) == level
        assert secret[0] != "0"

def test_duplicate_draws_are_redrawn():
    # first digit: randbelow(9) -> 4 -> "5"; then 5 (dup), 0, 0 (dup), 7
    draws = iter([4, 5, 0, 0, 7])

    secret = generate_secret(3, randbelow=lambda n: next(draws))

    assert secret == "507"

def test_first_digit_is_never_zero():
    # the first draw is shifted by one: randbelow(9) == 0 gives "1", not "0"
    draws = iter([0, 0, 2])

    secret = generate_secret(3, randbelow=lambda n: next(draws))

    assert secret == "102"

@pytest.mark.parametrize("level", [0, 11])
def test_unsupported_level(level):
    with pytest.raises(ValueError):
        generate_secret(level)
