from datetime import datetime, timezone

from flask_login import UserMixin
from sqlalchemy.exc import IntegrityError

from foursigma import db

DEFAULT_DISPLAY_NAME = "Guest Player"


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    device_id = db.Column(db.String(128), unique=True, nullable=True, index=True)
    display_name = db.Column(db.String(100), default=DEFAULT_DISPLAY_NAME)
    is_anonymous_user = db.Column(db.Boolean, default=True)

    # Aggregate stats, rewritten once per finalized session
    total_score = db.Column(db.Float, nullable=False, default=0.0)
    average_score = db.Column(db.Float, nullable=False, default=0.0)
    games_played = db.Column(db.Integer, nullable=False, default=0)
    questions_answered = db.Column(db.Integer, nullable=False, default=0)
    questions_captured = db.Column(db.Integer, nullable=False, default=0)
    calibration_rate = db.Column(db.Float, nullable=False, default=0.0)
    current_streak = db.Column(db.Integer, nullable=False, default=0)
    best_streak = db.Column(db.Integer, nullable=False, default=0)
    best_single_score = db.Column(db.Float, nullable=False, default=0.0)
    last_played_at = db.Column(db.DateTime(timezone=True))

    # Optimistic concurrency counter for aggregate writes
    version = db.Column(db.Integer, nullable=False, default=0)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    responses = db.relationship("UserResponse", backref="user", lazy="dynamic")

    __table_args__ = (db.Index("idx_user_games_played", "games_played"),)

    def __repr__(self):
        return f"<User {self.id} {self.display_name}>"

    @property
    def full_name(self):
        return self.display_name or DEFAULT_DISPLAY_NAME

    def set_display_name(self, display_name):
        """Set display name with sanitization"""
        import html

        if display_name:
            self.display_name = html.escape(display_name.strip())
            self.is_anonymous_user = False
        else:
            self.display_name = DEFAULT_DISPLAY_NAME

    @staticmethod
    def get_or_create_for_device(device_id):
        """Get or create the anonymous user bound to a device id"""
        user = User.query.filter_by(device_id=device_id).first()
        if user:
            return user

        user = User(device_id=device_id)
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            # Another request registered the same device first
            db.session.rollback()
            user = User.query.filter_by(device_id=device_id).first()
        return user

    def stats_dict(self):
        """Aggregate stats for API responses"""
        return {
            "totalScore": self.total_score,
            "averageScore": self.average_score,
            "gamesPlayed": self.games_played,
            "questionsAnswered": self.questions_answered,
            "questionsCaptured": self.questions_captured,
            "calibrationRate": self.calibration_rate,
            "currentStreak": self.current_streak,
            "bestStreak": self.best_streak,
            "bestSingleScore": self.best_single_score,
            "lastPlayedAt": (
                self.last_played_at.isoformat() if self.last_played_at else None
            ),
        }

    def to_dict(self):
        """Convert user to dictionary for API responses"""
        return {
            "id": self.id,
            "displayName": self.full_name,
            "isAnonymous": self.is_anonymous_user,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
