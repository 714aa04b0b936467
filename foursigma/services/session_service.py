"""
Game session lifecycle: start -> submit answers -> finalize.

Finalize is the only step with durable side effects. It checks every
question has an answer before writing anything, claims the session and
appends the responses in one transaction, and only then runs the
best-effort aggregate update and statistics reads.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from numbers import Real

from flask import current_app

from foursigma import db
from foursigma.errors import (
    ConflictError,
    ConsistencyError,
    QuestionsUnavailableError,
    ValidationError,
)
from foursigma.models import UserResponse
from foursigma.services.aggregate_store import UserAggregateStore
from foursigma.services.question_provider import QuestionProvider
from foursigma.services.response_log import ResponseLog
from foursigma.services.session_store import SessionStore
from foursigma.services.statistics_service import StatisticsService
from foursigma.utils.cache_utils import invalidate_leaderboard_cache
from foursigma.utils.logging_config import ContextualLogger
from foursigma.utils.performance import PerformanceMonitor
from foursigma.utils.scoring import calculate_score, calculate_total_score, in_bounds
from foursigma.utils.timezone_utils import get_utc_time, utc_date

logger = logging.getLogger(__name__)


def _validate_bound(name, value):
    # bool is a Real subclass but never a valid bound
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationError("Lower and upper must be numbers")
    try:
        value = float(value)
    except OverflowError:
        raise ValidationError(f"{name.capitalize()} bound must be finite")
    if not math.isfinite(value):
        raise ValidationError(f"{name.capitalize()} bound must be finite")
    return value


def build_judgement(question, answer):
    """Grade one answer against its question"""
    hit = in_bounds(answer.lower, answer.upper, question.true_value)
    return {
        "questionId": question.id,
        "prompt": question.prompt,
        "unit": question.unit or "",
        "lower": answer.lower,
        "upper": answer.upper,
        "trueValue": question.true_value,
        "hit": hit,
        "score": calculate_score(answer.lower, answer.upper, question.true_value),
        "source": question.source_name or "",
        "sourceUrl": question.source_url or "",
        "answerContext": question.answer_context,
    }


class SessionService:
    def __init__(
        self,
        session_store=None,
        question_provider=None,
        response_log=None,
        aggregate_store=None,
        statistics=None,
    ):
        self.session_store = session_store or SessionStore()
        self.question_provider = question_provider or QuestionProvider()
        self.response_log = response_log or ResponseLog()
        self.aggregate_store = aggregate_store or UserAggregateStore()
        self.statistics = statistics or StatisticsService(
            self.response_log, self.aggregate_store
        )

    def start(self, owner_id=None, for_date=None):
        """Open a session on the day's questions; owner is fixed from here on"""
        question_date = for_date or utc_date()
        questions = self.question_provider.daily_questions(question_date)
        if not questions:
            raise QuestionsUnavailableError("No questions available")

        session = self.session_store.create(
            [question.id for question in questions], question_date, owner_id=owner_id
        )
        ContextualLogger(__name__, {"session_id": session.id, "owner_id": owner_id}).info(
            f"Session started with {len(questions)} questions for {question_date.isoformat()}"
        )

        return {
            "sessionId": session.id,
            "questions": [question.to_stub() for question in questions],
        }

    def submit_answer(self, session_id, question_id, lower, upper):
        if not session_id or question_id is None:
            raise ValidationError("Missing sessionId or questionId")

        lower = _validate_bound("lower", lower)
        upper = _validate_bound("upper", upper)
        if lower > upper:
            raise ValidationError("Lower bound cannot be greater than upper bound")

        session = self.session_store.require(session_id)
        if session.is_finalized:
            raise ConflictError("Session already finalized")
        if not session.has_question(question_id):
            raise ValidationError("Question not part of this session")

        self.session_store.save_answer(session, question_id, lower, upper)
        return {"success": True}

    def finalize(self, session_id):
        if not session_id:
            raise ValidationError("Missing sessionId")

        session = self.session_store.require(session_id)
        if session.is_finalized:
            raise ConflictError("Session already finalized")

        owner_id = session.owner_id
        log = ContextualLogger(__name__, {"session_id": session_id, "owner_id": owner_id})

        with PerformanceMonitor("finalize_session"):
            judgements = self._grade(session)
            now = get_utc_time()
            self._persist(session_id, owner_id, judgements, now)

            score = calculate_total_score([j["score"] for j in judgements])
            result = {
                "judgements": judgements,
                "score": score,
                "totalQuestions": len(judgements),
            }

            question_ids = [j["questionId"] for j in judgements]
            self._attach_community_stats(judgements, question_ids, log)

            if owner_id is not None:
                captured = sum(1 for j in judgements if j["hit"])
                try:
                    self.aggregate_store.apply_session(
                        owner_id, score, len(judgements), captured, now=now
                    )
                except Exception:
                    db.session.rollback()
                    log.exception("Failed to update user aggregate")

                invalidate_leaderboard_cache()
                result.update(self._enrichment(owner_id, question_ids, log))

        log.info(f"Session finalized with score {score}")
        return result

    def _grade(self, session):
        """Judgements in session order; any gap fails the whole finalize"""
        answers = session.answers_by_question()
        questions = self.question_provider.by_ids(session.question_ids)

        judgements = []
        for question_id in session.question_ids:
            question = questions.get(question_id)
            answer = answers.get(question_id)
            if question is None or answer is None:
                raise ConsistencyError(f"Missing question or answer for {question_id}")
            judgements.append(build_judgement(question, answer))
        return judgements

    def _persist(self, session_id, owner_id, judgements, now):
        """Claim the session and append its responses as one batch"""
        try:
            self.session_store.claim_for_finalize(session_id, now=now)
            if owner_id is not None:
                self.response_log.append_batch(
                    [
                        UserResponse(
                            user_id=owner_id,
                            question_id=j["questionId"],
                            lower_bound=j["lower"],
                            upper_bound=j["upper"],
                            score=j["score"],
                            captured=j["hit"],
                            answer_value_at_response=j["trueValue"],
                            answered_at=now,
                        )
                        for j in judgements
                    ]
                )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    def _attach_community_stats(self, judgements, question_ids, log):
        try:
            community = self.statistics.question_community_stats(question_ids)
        except Exception:
            db.session.rollback()
            log.exception("Failed to load community stats")
            return

        for judgement in judgements:
            stats = community.get(judgement["questionId"])
            if stats:
                judgement["communityStats"] = stats

    def _enrichment(self, owner_id, question_ids, log):
        """Run the independent statistics reads concurrently, keep what succeeds"""
        config = current_app.config
        app = current_app._get_current_object()

        tasks = {
            "dailyStats": lambda: self.statistics.daily_stats(owner_id),
            "performanceHistory": lambda: self.statistics.performance_history(
                owner_id, config.get("PERFORMANCE_HISTORY_DAYS", 7)
            ),
            "calibrationMilestones": lambda: self.statistics.calibration_milestones(
                owner_id
            ),
            "overallLeaderboard": lambda: self.statistics.overall_leaderboard(owner_id),
            "overallStanding": lambda: self.statistics.overall_standing(owner_id),
            "questionLeaders": lambda: self.statistics.question_top_scorers(
                question_ids
            ),
        }

        def run_in_context(task):
            with app.app_context():
                return task()

        enrichment = {}
        with PerformanceMonitor("finalize_enrichment"):
            with ThreadPoolExecutor(
                max_workers=config.get("STATS_MAX_WORKERS", 4)
            ) as executor:
                futures = {
                    key: executor.submit(run_in_context, task)
                    for key, task in tasks.items()
                }
                for key, future in futures.items():
                    try:
                        value = future.result()
                    except Exception:
                        log.exception(f"Failed to compute {key}")
                        continue
                    if value is not None:
                        enrichment[key] = value
        return enrichment
