"""Score arithmetic shared by the session, ledger and scheduler."""

import math

HINT_PENALTY = 5
MAX_HINT_PENALTY = 25


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def percentage(correct: int, total: int) -> int:
    """Whole-number percentage of correct answers."""
    if total <= 0:
        return 0
    return round_half_up(correct * 100 / total)


def adjusted_percentage(pct: int, hints_used: int) -> int:
    """
    Percentage after the hint penalty.

    Each hint costs 5 points, capped at 25 points, never below zero.
    Only used for display; the canonical percentage is unaffected.
    """
    penalty = min(hints_used * HINT_PENALTY, MAX_HINT_PENALTY)
    return max(pct - penalty, 0)


def is_passing(pct: int, passing_score: int) -> bool:
    return pct >= passing_score
