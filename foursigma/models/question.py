from datetime import datetime, timezone

from foursigma import db


class Question(db.Model):
    __tablename__ = "questions"

    id = db.Column(db.Integer, primary_key=True)
    prompt = db.Column(db.Text, nullable=False)
    unit = db.Column(db.String(100), default="")
    true_value = db.Column(db.Float, nullable=False)

    # Citation
    source_name = db.Column(db.String(255), default="")
    source_url = db.Column(db.String(500), default="")
    answer_context = db.Column(db.Text)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (db.Index("idx_question_active", "is_active"),)

    def __repr__(self):
        return f"<Question {self.id}>"

    def to_stub(self):
        """Public view used before finalize - never includes the true value"""
        return {"id": self.id, "prompt": self.prompt, "unit": self.unit or ""}

    def to_dict(self):
        return {
            "id": self.id,
            "prompt": self.prompt,
            "unit": self.unit or "",
            "trueValue": self.true_value,
            "source": self.source_name or "",
            "sourceUrl": self.source_url or "",
            "answerContext": self.answer_context,
            "isActive": self.is_active,
        }


class DailyQuestion(db.Model):
    """Published schedule of questions per UTC date"""

    __tablename__ = "daily_questions"

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False)
    question_id = db.Column(db.Integer, db.ForeignKey("questions.id"), nullable=False)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_published = db.Column(db.Boolean, default=True, nullable=False)

    question = db.relationship("Question")

    __table_args__ = (
        db.UniqueConstraint("date", "question_id", name="unique_daily_question"),
        db.Index("idx_daily_question_date", "date"),
    )

    def __repr__(self):
        return f"<DailyQuestion {self.date} #{self.display_order} q={self.question_id}>"
