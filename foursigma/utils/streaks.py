"""
Play streak calculation.

A streak counts consecutive UTC calendar days on which the user finished at
least one session. Streaks track participation only. The older
performance-based rule (streak kept only when 2 of 3 questions were
captured) is retired and must not come back through this function.
"""

from foursigma.utils.timezone_utils import utc_date


def next_streak(last_played_at, now, current_streak, best_streak):
    """
    Compute the streak after a session finished at `now`.

    Args:
        last_played_at: Timestamp of the previous finished session, or None
        now: Timestamp of the session being recorded
        current_streak: Streak before this session
        best_streak: Best streak before this session

    Returns:
        (current_streak, best_streak)
    """
    current_streak = current_streak or 0
    best_streak = best_streak or 0

    if last_played_at is None:
        current_streak = 1
    else:
        days_since_last_play = (utc_date(now) - utc_date(last_played_at)).days

        if days_since_last_play <= 0:
            # Already played today
            current_streak = max(current_streak, 1)
        elif days_since_last_play == 1:
            current_streak += 1
        else:
            current_streak = 1

    return current_streak, max(best_streak, current_streak)
