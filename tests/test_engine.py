"""
Testing pure game logic.
"""

from itertools import permutations

import pytest

from bullscows.engine import (
    InvalidGuess,
    evaluate,
    format_elapsed,
    is_win,
    score_guess,
)

def test_score_guess_no_matches():
    bulls, cows = score_guess("1234", "5678")

    assert bulls == 0
    assert cows == 0

def test_score_guess_swapped_digits():
    # secret 1234, guess 1243: 1 and 2 in place, 4 and 3 swapped
    bulls, cows = score_guess("1234", "1243")

    assert bulls == 2
    assert cows == 2

def test_score_guess_all_cows():
    bulls, cows = score_guess("123", "312")

    assert bulls == 0
    assert cows == 3

def test_score_guess_rejects_length_mismatch():
    with pytest.raises(ValueError):
        score_guess("1234", "123")

def test_evaluate_five_digit_win():
    outcome = evaluate("13579", "13579")

    assert outcome.bulls == 5
    assert outcome.cows == 0
    assert outcome.is_win is True

def test_evaluate_is_idempotent():
    first = evaluate("1243", "1234")
    second = evaluate("1243", "1234")

    assert first == second
    assert first.is_win is False

def test_evaluate_strips_whitespace():
    outcome = evaluate(" 1243 ", "1234")

    assert (outcome.bulls, outcome.cows) == (2, 2)

@pytest.mark.parametrize(
    "guess, prior, kind",
    [
        ("12", (), "WrongLength"),
        ("1234", (), "WrongLength"),
        ("12a", (), "WrongLength"),
        ("012", (), "LeadingZero"),
        ("112", (), "DuplicateDigits"),
        ("145", ("145",), "AlreadyTried"),
    ],
)
def test_evaluate_rejections(guess, prior, kind):
    with pytest.raises(InvalidGuess) as excinfo:
        evaluate(guess, "123", prior)

    assert excinfo.value.kind == kind
    assert excinfo.value.message

def test_validation_order_first_rule_wins():
    # leading zero AND duplicates: leading zero is reported
    with pytest.raises(InvalidGuess) as excinfo:
        evaluate("001", "123")
    assert excinfo.value.kind == "LeadingZero"

    # duplicates AND already tried: duplicates is reported
    with pytest.raises(InvalidGuess) as excinfo:
        evaluate("112", "123", {"112"})
    assert excinfo.value.kind == "DuplicateDigits"

def test_bulls_plus_cows_never_exceed_length():
    secret = "1234"
    for digits in permutations("0123456789", 4):
        guess = "".join(digits)
        bulls, cows = score_guess(secret, guess)
        assert bulls + cows <= 4
        assert (bulls == 4) == (guess == secret)

def test_is_win_true_and_false():
    assert is_win("1234", "1234") is True
    assert is_win("1234", "1235") is False
    assert is_win("", "") is False

def test_format_elapsed():
    assert format_elapsed(0) == "0s"
    assert format_elapsed(42_999) == "42s"
    assert format_elapsed(60_000) == "1m 0s"
    assert format_elapsed(125_900) == "2m 5s"
