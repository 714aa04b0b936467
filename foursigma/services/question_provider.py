"""
Daily question selection.

Every player gets the same ordered question set for a UTC date. A published
`daily_questions` schedule wins; without one the set is drawn from active
questions with an RNG seeded by the date, so it is still stable for the day.
"""

import logging
import random

from flask import current_app

from foursigma import db
from foursigma.models import DailyQuestion, Question
from foursigma.utils.timezone_utils import utc_date

logger = logging.getLogger(__name__)


class QuestionProvider:
    def __init__(self, questions_per_day=None):
        self._questions_per_day = questions_per_day

    @property
    def questions_per_day(self):
        if self._questions_per_day is not None:
            return self._questions_per_day
        return current_app.config.get("QUESTIONS_PER_DAY", 3)

    def daily_questions(self, for_date=None):
        """Ordered question list for a UTC date (today if omitted)"""
        day = for_date or utc_date()

        scheduled = (
            db.session.query(Question)
            .join(DailyQuestion, DailyQuestion.question_id == Question.id)
            .filter(DailyQuestion.date == day, DailyQuestion.is_published.is_(True))
            .order_by(DailyQuestion.display_order, DailyQuestion.id)
            .limit(self.questions_per_day)
            .all()
        )
        if scheduled:
            return scheduled

        pool = Question.query.filter_by(is_active=True).order_by(Question.id).all()
        if not pool:
            logger.warning(f"No daily questions found for date: {day.isoformat()}")
            return []

        rng = random.Random(day.isoformat())
        count = min(self.questions_per_day, len(pool))
        logger.debug(
            f"No schedule for {day.isoformat()}, drawing {count} of {len(pool)} active questions"
        )
        return rng.sample(pool, count)

    def by_id(self, question_id):
        return db.session.get(Question, question_id)

    def by_ids(self, question_ids):
        if not question_ids:
            return {}
        questions = Question.query.filter(Question.id.in_(question_ids)).all()
        return {question.id: question for question in questions}
