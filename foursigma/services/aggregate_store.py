"""
User aggregate row access.

Writes are optimistic: `update` only lands if the row still carries the
version the caller read, so two sessions finalizing for the same user at
once cannot silently overwrite each other. `apply_session` wraps the
read-compute-write cycle and retries on conflict.
"""

import logging

from flask import current_app

from foursigma import db
from foursigma.errors import NotFoundError, StaleAggregateError
from foursigma.models import User
from foursigma.utils.streaks import next_streak
from foursigma.utils.timezone_utils import get_utc_time

logger = logging.getLogger(__name__)


def compute_session_aggregate(user, session_score, questions_answered, questions_captured, now):
    """New aggregate column values after one finalized session"""
    total_score = (user.total_score or 0.0) + session_score
    games_played = (user.games_played or 0) + 1
    answered = (user.questions_answered or 0) + questions_answered
    captured = (user.questions_captured or 0) + questions_captured

    current_streak, best_streak = next_streak(
        user.last_played_at, now, user.current_streak, user.best_streak
    )

    return {
        "total_score": total_score,
        "average_score": total_score / games_played,
        "games_played": games_played,
        "questions_answered": answered,
        "questions_captured": captured,
        "calibration_rate": captured / answered if answered else 0.0,
        "current_streak": current_streak,
        "best_streak": best_streak,
        "best_single_score": max(user.best_single_score or 0.0, session_score),
        "last_played_at": now,
    }


class UserAggregateStore:
    def get(self, user_id):
        """Fresh read of the user row (bypasses the identity map)"""
        return db.session.get(User, user_id, populate_existing=True)

    def update(self, user_id, new_values, expected_version):
        """Write new aggregate values if the row is still at expected_version"""
        values = dict(new_values)
        values["version"] = expected_version + 1

        updated = (
            User.query.filter(User.id == user_id, User.version == expected_version)
            .update(values, synchronize_session=False)
        )
        if updated == 0:
            db.session.rollback()
            raise StaleAggregateError(
                f"Aggregate for user {user_id} changed since version {expected_version}"
            )

        db.session.commit()
        return values["version"]

    def apply_session(
        self, user_id, session_score, questions_answered, questions_captured, now=None
    ):
        """Fold one finalized session into the user's aggregate row"""
        now = now or get_utc_time()
        retries = current_app.config.get("AGGREGATE_UPDATE_RETRIES", 3)

        for attempt in range(1, retries + 1):
            user = self.get(user_id)
            if user is None:
                raise NotFoundError(f"User {user_id} not found")

            new_values = compute_session_aggregate(
                user, session_score, questions_answered, questions_captured, now
            )
            try:
                self.update(user_id, new_values, user.version)
                return new_values
            except StaleAggregateError:
                logger.warning(
                    f"Aggregate update conflict for user {user_id} "
                    f"(attempt {attempt}/{retries})"
                )

        raise StaleAggregateError(
            f"Gave up updating aggregate for user {user_id} after {retries} attempts"
        )

    def display_names(self, user_ids):
        if not user_ids:
            return {}
        rows = (
            db.session.query(User.id, User.display_name)
            .filter(User.id.in_(list(user_ids)))
            .all()
        )
        return {row.id: row.display_name or "Anonymous" for row in rows}

    def games_played(self, user_ids):
        if not user_ids:
            return {}
        rows = (
            db.session.query(User.id, User.games_played)
            .filter(User.id.in_(list(user_ids)))
            .all()
        )
        return {row.id: row.games_played or 0 for row in rows}
