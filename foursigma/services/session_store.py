"""
Storage for short-lived game sessions.

Sessions live in the database with an expiry; an expired session reads as
unknown and is removed by `purge_expired` (run by the scheduler).
"""

import logging
import secrets
from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError

from foursigma import db
from foursigma.errors import ConflictError, NotFoundError
from foursigma.models import GameSession, SessionAnswer, SessionState
from foursigma.utils.timezone_utils import get_utc_time

logger = logging.getLogger(__name__)


def generate_session_id():
    return secrets.token_urlsafe(24)


class SessionStore:
    def __init__(self, ttl_seconds=None):
        self._ttl_seconds = ttl_seconds

    @property
    def ttl(self):
        seconds = self._ttl_seconds
        if seconds is None:
            seconds = current_app.config.get("SESSION_TTL_SECONDS", 6 * 3600)
        return timedelta(seconds=seconds)

    def create(self, question_ids, question_date, owner_id=None, now=None):
        now = now or get_utc_time()
        session = GameSession(
            id=generate_session_id(),
            question_ids=list(question_ids),
            question_date=question_date,
            owner_id=owner_id,
            state=SessionState.CREATED,
            created_at=now,
            expires_at=now + self.ttl,
        )
        db.session.add(session)
        db.session.commit()
        return session

    def get(self, session_id, now=None):
        """Live session or None (unknown and expired look the same)"""
        if not session_id:
            return None
        session = db.session.get(GameSession, session_id, populate_existing=True)
        if session is None or session.is_expired(now):
            return None
        return session

    def save_answer(self, session, question_id, lower, upper, now=None):
        """Insert or replace the answer for one question of the session"""
        now = now or get_utc_time()
        values = {"lower": lower, "upper": upper, "submitted_at": now}

        updated = SessionAnswer.query.filter_by(
            session_id=session.id, question_id=question_id
        ).update(values, synchronize_session=False)

        if updated == 0:
            db.session.add(
                SessionAnswer(session_id=session.id, question_id=question_id, **values)
            )
            try:
                db.session.flush()
            except IntegrityError:
                # A concurrent submission inserted first; last write wins
                db.session.rollback()
                SessionAnswer.query.filter_by(
                    session_id=session.id, question_id=question_id
                ).update(values, synchronize_session=False)

        GameSession.query.filter(
            GameSession.id == session.id,
            GameSession.state == SessionState.CREATED,
        ).update({"state": SessionState.ANSWERING}, synchronize_session=False)

        db.session.commit()

    def claim_for_finalize(self, session_id, now=None):
        """
        Atomically move a session to FINALIZED.

        Stages the state change without committing, so the caller can commit
        it together with the session's responses.
        """
        now = now or get_utc_time()
        claimed = GameSession.query.filter(
            GameSession.id == session_id,
            GameSession.state != SessionState.FINALIZED,
        ).update(
            {"state": SessionState.FINALIZED, "finalized_at": now},
            synchronize_session=False,
        )
        if claimed == 0:
            raise ConflictError("Session already finalized")

    def purge_expired(self, now=None):
        """Delete expired sessions and their answers, returns count"""
        now = now or get_utc_time()
        expired_ids = [
            row.id
            for row in db.session.query(GameSession.id)
            .filter(GameSession.expires_at <= now)
            .all()
        ]
        if not expired_ids:
            return 0

        SessionAnswer.query.filter(SessionAnswer.session_id.in_(expired_ids)).delete(
            synchronize_session=False
        )
        GameSession.query.filter(GameSession.id.in_(expired_ids)).delete(
            synchronize_session=False
        )
        db.session.commit()
        logger.info(f"Purged {len(expired_ids)} expired sessions")
        return len(expired_ids)

    def require(self, session_id, now=None):
        session = self.get(session_id, now)
        if session is None:
            raise NotFoundError("Session not found")
        return session
