from datetime import datetime, timezone

from foursigma import db


class UserResponse(db.Model):
    """One scored answer. Rows are only ever inserted."""

    __tablename__ = "user_responses"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    question_id = db.Column(db.Integer, db.ForeignKey("questions.id"), nullable=False)

    lower_bound = db.Column(db.Float, nullable=False)
    upper_bound = db.Column(db.Float, nullable=False)
    score = db.Column(db.Float, nullable=False, default=0.0)
    captured = db.Column(db.Boolean, nullable=False, default=False)

    # True value when answered, so later question edits don't rewrite history
    answer_value_at_response = db.Column(db.Float, nullable=False)

    answered_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    question = db.relationship("Question")

    __table_args__ = (
        db.Index("idx_response_user_answered", "user_id", "answered_at"),
        db.Index("idx_response_answered_at", "answered_at"),
        db.Index("idx_response_question", "question_id"),
    )

    def __repr__(self):
        return f"<UserResponse user={self.user_id} q={self.question_id} score={self.score}>"

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "questionId": self.question_id,
            "lowerBound": self.lower_bound,
            "upperBound": self.upper_bound,
            "score": self.score,
            "captured": self.captured,
            "trueValue": self.answer_value_at_response,
            "answeredAt": self.answered_at.isoformat() if self.answered_at else None,
        }
