"""
Read-side statistics over the response log.

Every grouping is by the UTC calendar date of `answered_at`. Methods take an
optional `now` so tests can pin "today".
"""

import logging
import math
from collections import OrderedDict, defaultdict

from flask import current_app

from foursigma.services.aggregate_store import UserAggregateStore
from foursigma.services.response_log import ResponseLog
from foursigma.utils.performance import timer
from foursigma.utils.timezone_utils import utc_date, utc_day_bounds, weekday_label

logger = logging.getLogger(__name__)

MILESTONE_INTERIOR_POINTS = 4


def _round_half_up(value):
    return int(math.floor(value + 0.5))


def _calibration_percent(captured, total):
    return (captured / total) * 100 if total else None


def _sum_scores_by_user(responses):
    totals = defaultdict(float)
    for response in responses:
        totals[response.user_id] += response.score
    return totals


def _rank(scores_by_user):
    """[(user_id, score)] best first; ties go to the lower user id"""
    return sorted(scores_by_user.items(), key=lambda item: (-item[1], item[0]))


def _daily_series(responses):
    """
    Per UTC play date: that day's score sum and the running capture counts
    up to and including that day. Responses must be oldest first.
    """
    series = OrderedDict()
    running_captured = 0
    running_total = 0

    for response in responses:
        day = utc_date(response.answered_at)
        running_captured += 1 if response.captured else 0
        running_total += 1

        entry = series.setdefault(
            day, {"score": 0.0, "cumulative_captured": 0, "cumulative_total": 0}
        )
        entry["score"] += response.score
        entry["cumulative_captured"] = running_captured
        entry["cumulative_total"] = running_total

    return series


class StatisticsService:
    def __init__(self, response_log=None, aggregate_store=None):
        self.response_log = response_log or ResponseLog()
        self.aggregate_store = aggregate_store or UserAggregateStore()

    @timer
    def daily_stats(self, user_id, now=None):
        """
        Rank and participation for today, plus the user's calibration.

        calibrationToday is cumulative over all of the user's responses; a
        single day of three questions is too small a sample to report alone.
        """
        start, end = utc_day_bounds(utc_date(now))
        todays_responses = self.response_log.query_by_date_range(start, end)
        user_responses = self.response_log.query_by_user(user_id)

        calibration = _calibration_percent(
            sum(1 for r in user_responses if r.captured), len(user_responses)
        )

        ranking = _rank(_sum_scores_by_user(todays_responses))
        if not ranking:
            return {
                "dailyRank": None,
                "topScoreToday": None,
                "todaysAverage": None,
                "userScoreToday": None,
                "calibrationToday": calibration,
                "totalParticipantsToday": 0,
                "todayLeaderboard": [],
            }

        user_ids = [uid for uid, _ in ranking]
        rank_index = user_ids.index(user_id) if user_id in user_ids else None
        size = current_app.config.get("LEADERBOARD_SIZE", 5)
        top = ranking[:size]
        names = self.aggregate_store.display_names([uid for uid, _ in top])

        return {
            "dailyRank": rank_index + 1 if rank_index is not None else None,
            "topScoreToday": ranking[0][1],
            "todaysAverage": sum(score for _, score in ranking) / len(ranking),
            "userScoreToday": (
                ranking[rank_index][1] if rank_index is not None else None
            ),
            "calibrationToday": calibration,
            "totalParticipantsToday": len(ranking),
            "todayLeaderboard": [
                {
                    "rank": index + 1,
                    "username": names.get(uid, "Anonymous"),
                    "score": round(score),
                    "isCurrentUser": uid == user_id,
                }
                for index, (uid, score) in enumerate(top)
            ],
        }

    def performance_history(self, user_id, plays=10):
        """
        One entry per day the user played, for their last `plays` play dates.
        Days without play are skipped, not zero-filled.
        """
        if plays <= 0:
            return []

        series = _daily_series(self.response_log.query_by_user(user_id))
        played_dates = list(series)[-plays:]
        if not played_dates:
            return []

        range_start, _ = utc_day_bounds(played_dates[0])
        _, range_end = utc_day_bounds(played_dates[-1])
        everyone = self.response_log.query_by_date_range(range_start, range_end)

        scores_by_day = defaultdict(lambda: defaultdict(float))
        for response in everyone:
            scores_by_day[utc_date(response.answered_at)][response.user_id] += (
                response.score
            )

        history = []
        for day in played_dates:
            stats = series[day]
            day_totals = list(scores_by_day.get(day, {}).values())
            history.append(
                {
                    "date": day.isoformat(),
                    "day": weekday_label(day),
                    "userScore": round(stats["score"], 2),
                    "avgScore": (
                        round(sum(day_totals) / len(day_totals), 2) if day_totals else 0
                    ),
                    "calibration": round(
                        _calibration_percent(
                            stats["cumulative_captured"], stats["cumulative_total"]
                        ),
                        1,
                    ),
                }
            )
        return history

    def calibration_milestones(self, user_id):
        """
        Down-sampled cumulative calibration trend.

        Under 2 play dates there is no trend. Up to 5 dates are returned as-is;
        beyond that the first and last dates are kept along with the play
        dates nearest to 1/5, 2/5, 3/5 and 4/5 of the elapsed time span.
        """
        series = _daily_series(self.response_log.query_by_user(user_id))
        days = list(series)

        if len(days) < 2:
            return []

        if len(days) <= MILESTONE_INTERIOR_POINTS + 1:
            chosen = range(len(days))
        else:
            first = days[0]
            span = (days[-1] - first).days
            picked = {0, len(days) - 1}
            for step in range(1, MILESTONE_INTERIOR_POINTS + 1):
                target = span * step / (MILESTONE_INTERIOR_POINTS + 1)
                nearest = min(
                    range(len(days)),
                    key=lambda i: (abs((days[i] - first).days - target), i),
                )
                picked.add(nearest)
            chosen = sorted(picked)

        milestones = []
        for index in chosen:
            day = days[index]
            stats = series[day]
            milestones.append(
                {
                    "date": day.isoformat(),
                    "day": weekday_label(day),
                    "calibration": round(
                        _calibration_percent(
                            stats["cumulative_captured"], stats["cumulative_total"]
                        ),
                        1,
                    ),
                }
            )
        return milestones

    def best_day_scores(self):
        """Each user's highest single-UTC-day score total across all history"""
        day_totals = defaultdict(float)
        for response in self.response_log.query_by_date_range():
            day_totals[(response.user_id, utc_date(response.answered_at))] += (
                response.score
            )

        best = {}
        for (uid, _), total in day_totals.items():
            if uid not in best or total > best[uid]:
                best[uid] = total
        return best

    @timer
    def overall_leaderboard(self, current_user_id=None, limit=None):
        """Top users by personal-best-day score"""
        limit = limit or current_app.config.get("LEADERBOARD_SIZE", 5)
        top = _rank(self.best_day_scores())[:limit]

        user_ids = [uid for uid, _ in top]
        names = self.aggregate_store.display_names(user_ids)
        games = self.aggregate_store.games_played(user_ids)

        return [
            {
                "rank": index + 1,
                "username": names.get(uid, "Anonymous"),
                "score": round(score, 1),
                "gamesPlayed": games.get(uid, 0),
                "isCurrentUser": current_user_id is not None and uid == current_user_id,
            }
            for index, (uid, score) in enumerate(top)
        ]

    def overall_standing(self, user_id):
        """Percentile of the user's personal-best-day among all players"""
        ranked_ids = [uid for uid, _ in _rank(self.best_day_scores())]
        if user_id not in ranked_ids:
            return None

        total_players = len(ranked_ids)
        rank_index = ranked_ids.index(user_id)
        percentile = _round_half_up(
            (total_players - rank_index - 1) / total_players * 100
        )
        return {"percentile": percentile, "totalPlayers": total_players}

    def question_top_scorers(self, question_ids, now=None):
        """Today's single best response per question, in the given order"""
        start, end = utc_day_bounds(utc_date(now))
        best = {}
        for response in self.response_log.query_by_question_ids(question_ids, start, end):
            current = best.get(response.question_id)
            # Strictly greater: the earliest response keeps a tie
            if current is None or response.score > current.score:
                best[response.question_id] = response

        names = self.aggregate_store.display_names({r.user_id for r in best.values()})
        leaders = []
        for question_id in question_ids:
            response = best.get(question_id)
            if response is None:
                continue
            leaders.append(
                {
                    "questionId": question_id,
                    "highestScore": response.score,
                    "highestScoreUsername": names.get(response.user_id, "Anonymous"),
                    "lowerBound": response.lower_bound,
                    "upperBound": response.upper_bound,
                }
            )
        return leaders

    def question_community_stats(self, question_ids, now=None):
        """{question_id: {averageScore, highestScore, totalResponses}} for today"""
        start, end = utc_day_bounds(utc_date(now))
        scores = defaultdict(list)
        for response in self.response_log.query_by_question_ids(question_ids, start, end):
            scores[response.question_id].append(response.score)

        return {
            question_id: {
                "averageScore": round(sum(values) / len(values), 2),
                "highestScore": round(max(values), 2),
                "totalResponses": len(values),
            }
            for question_id, values in scores.items()
        }

    def best_guesses(self, limit=None):
        """Highest-scoring single responses of all time"""
        limit = limit or current_app.config.get("BEST_GUESSES_SIZE", 10)
        responses = self.response_log.top_responses(limit)
        names = self.aggregate_store.display_names({r.user_id for r in responses})

        return [
            {
                "rank": index + 1,
                "username": names.get(response.user_id, "Anonymous"),
                "score": round(response.score),
                "questionText": (
                    response.question.prompt if response.question else "Unknown question"
                ),
                "lowerBound": response.lower_bound,
                "upperBound": response.upper_bound,
                "trueValue": response.answer_value_at_response,
                "answeredAt": (
                    response.answered_at.isoformat() if response.answered_at else None
                ),
            }
            for index, response in enumerate(responses)
        ]
