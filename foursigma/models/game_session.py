import enum
from datetime import datetime, timezone

from foursigma import db
from foursigma.utils.timezone_utils import convert_to_utc, get_utc_time


class SessionState(enum.Enum):
    CREATED = "created"
    ANSWERING = "answering"
    FINALIZED = "finalized"


class GameSession(db.Model):
    __tablename__ = "game_sessions"

    id = db.Column(db.String(64), primary_key=True)

    # Fixed at creation
    question_ids = db.Column(db.JSON, nullable=False)
    question_date = db.Column(db.Date, nullable=False)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    state = db.Column(
        db.Enum(SessionState, name="session_state"),
        nullable=False,
        default=SessionState.CREATED,
    )

    # Timestamps
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    finalized_at = db.Column(db.DateTime(timezone=True))

    answers = db.relationship(
        "SessionAnswer",
        backref="session",
        lazy="select",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.Index("idx_session_expires_at", "expires_at"),
        db.Index("idx_session_owner", "owner_id"),
    )

    def __repr__(self):
        return f"<GameSession {self.id} state={self.state.value}>"

    @property
    def is_finalized(self):
        return self.state == SessionState.FINALIZED

    def is_expired(self, now=None):
        now = now or get_utc_time()
        return convert_to_utc(self.expires_at) <= now

    def has_question(self, question_id):
        return question_id in self.question_ids

    def answers_by_question(self):
        return {answer.question_id: answer for answer in self.answers}


class SessionAnswer(db.Model):
    __tablename__ = "session_answers"

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(
        db.String(64), db.ForeignKey("game_sessions.id"), nullable=False
    )
    question_id = db.Column(db.Integer, nullable=False)
    lower = db.Column(db.Float, nullable=False)
    upper = db.Column(db.Float, nullable=False)
    submitted_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # One logically-current answer per question
    __table_args__ = (
        db.UniqueConstraint(
            "session_id", "question_id", name="unique_session_question_answer"
        ),
    )

    def __repr__(self):
        return f"<SessionAnswer session={self.session_id} q={self.question_id} [{self.lower}, {self.upper}]>"
