import math

import pytest

from foursigma.utils.scoring import (
    EXACT_GUESS_BONUS,
    calculate_score,
    calculate_total_score,
    in_bounds,
    round_half_up,
)


class TestInBounds:
    def test_inclusive_edges(self):
        assert in_bounds(10, 20, 10)
        assert in_bounds(10, 20, 20)

    def test_outside(self):
        assert not in_bounds(10, 20, 9.999)
        assert not in_bounds(10, 20, 20.001)


class TestCalculateScore:
    def test_regression_value(self):
        # Pins the current formula; changing it is a game-balance change
        assert calculate_score(8700, 9000, 8849) == 534.3

    def test_wide_interval(self):
        assert calculate_score(5000, 12000, 8849) == 58.9

    def test_ten_percent_interval(self):
        assert calculate_score(99, 101, 100) == 773.1

    def test_miss_scores_zero(self):
        assert calculate_score(9000, 9500, 8849) == 0
        assert calculate_score(0, 1, 8849) == 0

    def test_exact_point_guess_gets_bonus(self):
        assert calculate_score(42, 42, 42) == EXACT_GUESS_BONUS

    def test_point_guess_that_misses_scores_zero(self):
        assert calculate_score(41, 41, 42) == 0

    def test_narrower_hit_scores_more(self):
        wide = calculate_score(50, 150, 100)
        narrow = calculate_score(90, 110, 100)
        narrower = calculate_score(99, 101, 100)
        assert 0 < wide < narrow < narrower

    def test_small_true_values_use_unit_magnitude(self):
        # |true_value| < 1 is scaled as if it were 1
        assert calculate_score(0, 0.5, 0.25) == 81.2
        assert calculate_score(-0.01, 0.01, 0) == 773.1

    def test_huge_interval_rounds_to_zero(self):
        assert calculate_score(1, 100_000_000, 30) == 0.0

    def test_negative_values(self):
        assert calculate_score(-110, -90, -100) == calculate_score(90, 110, 100)

    def test_result_is_finite_for_extreme_inputs(self):
        score = calculate_score(1e300 - 1e290, 1e300 + 1e290, 1e300)
        assert math.isfinite(score)
        assert score > 0


class TestRoundHalfUp:
    def test_ties_round_up(self):
        # round() gives 0.2, 1.2 and 2 for these
        assert round_half_up(0.25, 1) == 0.3
        assert round_half_up(1.25, 1) == 1.3
        assert round_half_up(2.5, 0) == 3

    def test_non_ties(self):
        assert round_half_up(81.2252, 1) == 81.2
        assert round_half_up(0.30000000000000004, 2) == 0.3


class TestTotalScore:
    def test_rounds_to_two_decimals(self):
        assert calculate_total_score([534.3, 58.9, 0.1]) == pytest.approx(593.3)
        assert calculate_total_score([0.1, 0.2]) == 0.3

    def test_empty(self):
        assert calculate_total_score([]) == 0
