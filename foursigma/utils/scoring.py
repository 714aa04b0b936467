"""
Scoring Engine for Four Sigma

Rewards narrow confidence intervals that contain the true value.
Misses score 0 points.

Changing any constant here is a game-balance change: the regression
values in tests/test_scoring.py pin the current formula.
"""

import math

EXACT_GUESS_BONUS = 10000
BUFFER_MULTIPLIER = 0.01
MIN_BUFFER = 0.01
BASE_SCORE = 50
PRECISION_EXPONENT = 0.7
INDIVIDUAL_SCORE_DECIMALS = 1
TOTAL_SCORE_DECIMALS = 2


def round_half_up(value, decimals):
    """Round halves up (2.25 -> 2.3) where round() would give 2.2"""
    multiplier = 10**decimals
    return math.floor(value * multiplier + 0.5) / multiplier


def in_bounds(lower, upper, true_value):
    """True iff lower <= true_value <= upper"""
    return lower <= true_value <= upper


def calculate_score(lower, upper, true_value):
    """
    Calculate score for a single answer.

    Returns:
        0 for a miss
        EXACT_GUESS_BONUS for a point guess on the true value
        BASE_SCORE * (1 / relative_width ** PRECISION_EXPONENT) otherwise,
        rounded to INDIVIDUAL_SCORE_DECIMALS

    Args:
        lower: Lower bound of the interval
        upper: Upper bound of the interval
        true_value: The question's true value
    """
    if not in_bounds(lower, upper, true_value):
        return 0

    if lower == upper == true_value:
        return EXACT_GUESS_BONUS

    # Degenerate interval: widen it so the relative width is never zero
    if lower == upper:
        buffer = max(MIN_BUFFER, abs(lower) * BUFFER_MULTIPLIER)
        lower = lower - buffer
        upper = upper + buffer

    return _compute_score(lower, upper, true_value)


def _compute_score(lower, upper, true_value):
    interval_width = abs(upper - lower)
    answer_magnitude = max(1, abs(true_value))
    relative_width = interval_width / answer_magnitude

    # Width underflowed to zero relative to a huge magnitude
    if relative_width == 0:
        return EXACT_GUESS_BONUS

    precision_multiplier = 1 / math.pow(relative_width, PRECISION_EXPONENT)
    score = BASE_SCORE * precision_multiplier

    return round_half_up(score, INDIVIDUAL_SCORE_DECIMALS)


def calculate_total_score(scores):
    """Sum of per-question scores, rounded to strip float noise"""
    return round_half_up(sum(scores), TOTAL_SCORE_DECIMALS)
