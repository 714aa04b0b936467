"""
Append-only log of scored responses.

Callers own the transaction: `append`/`append_batch` only stage rows on the
session so a finalize can commit its whole batch (or none of it) at once.
"""

from foursigma import db
from foursigma.models import UserResponse


class ResponseLog:
    def append(self, response):
        db.session.add(response)
        return response

    def append_batch(self, responses):
        db.session.add_all(responses)
        return responses

    def query_by_user(self, user_id):
        """All responses of one user, oldest first"""
        return (
            UserResponse.query.filter_by(user_id=user_id)
            .order_by(UserResponse.answered_at.asc(), UserResponse.id.asc())
            .all()
        )

    def query_by_date_range(self, start=None, end=None):
        """Responses with start <= answered_at < end; either bound may be None"""
        query = UserResponse.query
        if start is not None:
            query = query.filter(UserResponse.answered_at >= start)
        if end is not None:
            query = query.filter(UserResponse.answered_at < end)
        return query.order_by(UserResponse.answered_at.asc(), UserResponse.id.asc()).all()

    def query_by_question_ids(self, question_ids, start=None, end=None):
        if not question_ids:
            return []
        query = UserResponse.query.filter(UserResponse.question_id.in_(question_ids))
        if start is not None:
            query = query.filter(UserResponse.answered_at >= start)
        if end is not None:
            query = query.filter(UserResponse.answered_at < end)
        return query.order_by(UserResponse.answered_at.asc(), UserResponse.id.asc()).all()

    def top_responses(self, limit):
        """Highest single scores of all time"""
        return (
            UserResponse.query.order_by(
                UserResponse.score.desc(), UserResponse.answered_at.asc()
            )
            .limit(limit)
            .all()
        )
