from datetime import datetime, timedelta

import pytz

from foursigma.utils.streaks import next_streak

UTC = pytz.UTC
NOW = datetime(2024, 3, 13, 12, 0, tzinfo=UTC)


def test_first_play_starts_streak():
    assert next_streak(None, NOW, 0, 0) == (1, 1)


def test_first_play_keeps_existing_best():
    assert next_streak(None, NOW, 0, 7) == (1, 7)


def test_same_day_leaves_streak_unchanged():
    earlier = NOW - timedelta(hours=3)
    assert next_streak(earlier, NOW, 4, 6) == (4, 6)


def test_same_day_never_reports_zero():
    earlier = NOW - timedelta(hours=1)
    assert next_streak(earlier, NOW, 0, 0) == (1, 1)


def test_consecutive_day_extends_streak():
    yesterday = NOW - timedelta(days=1)
    assert next_streak(yesterday, NOW, 4, 4) == (5, 5)


def test_consecutive_day_below_best():
    yesterday = NOW - timedelta(days=1)
    assert next_streak(yesterday, NOW, 2, 9) == (3, 9)


def test_gap_resets_streak():
    three_days_ago = NOW - timedelta(days=3)
    assert next_streak(three_days_ago, NOW, 8, 8) == (1, 8)


def test_uses_utc_calendar_days_not_elapsed_hours():
    last = datetime(2024, 3, 12, 23, 59, tzinfo=UTC)
    now = datetime(2024, 3, 13, 0, 1, tzinfo=UTC)
    assert next_streak(last, now, 1, 1) == (2, 2)

    last = datetime(2024, 3, 13, 0, 1, tzinfo=UTC)
    now = datetime(2024, 3, 13, 23, 59, tzinfo=UTC)
    assert next_streak(last, now, 1, 1) == (1, 1)


def test_non_utc_timestamps_are_converted():
    eastern = pytz.timezone("US/Eastern")
    # 2024-03-12 21:30 EDT is 2024-03-13 01:30 UTC
    last = eastern.localize(datetime(2024, 3, 12, 21, 30))
    assert next_streak(last, NOW, 3, 3) == (3, 3)


def test_naive_timestamps_are_treated_as_utc():
    last = datetime(2024, 3, 12, 8, 0)
    assert next_streak(last, NOW, 3, 3) == (4, 4)
