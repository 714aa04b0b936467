from flask import current_app, jsonify, request
from flask_login import current_user

from foursigma import limiter
from foursigma.errors import ValidationError
from foursigma.routes.session import bp
from foursigma.services.session_service import SessionService
from foursigma.services.statistics_service import StatisticsService
from foursigma.utils.cache_utils import LEADERBOARD_KEY_PREFIX, cached_route
from foursigma.utils.timezone_utils import parse_date


def _current_user_id():
    return current_user.id if current_user.is_authenticated else None


def _json_body(allow_empty=False):
    data = request.get_json(silent=True)
    if data is None and allow_empty:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


@bp.route("/start", methods=["POST"])
def start():
    """Create a session on today's questions"""
    data = _json_body(allow_empty=True)

    for_date = None
    if data.get("date") and current_app.config.get("ALLOW_DATE_OVERRIDE"):
        try:
            for_date = parse_date(data["date"])
        except (TypeError, ValueError):
            raise ValidationError("date must be YYYY-MM-DD")

    result = SessionService().start(owner_id=_current_user_id(), for_date=for_date)
    return jsonify(result)


@bp.route("/answer", methods=["POST"])
@limiter.limit("120 per minute")
def answer():
    """Submit or replace the answer to one question"""
    data = _json_body()
    result = SessionService().submit_answer(
        data.get("sessionId"),
        data.get("questionId"),
        data.get("lower"),
        data.get("upper"),
    )
    return jsonify(result)


@bp.route("/finalize", methods=["POST"])
def finalize():
    """Score the session; owner was fixed at start and is not re-resolved"""
    data = _json_body()
    result = SessionService().finalize(data.get("sessionId"))
    return jsonify(result)


@bp.route("/leaderboard")
def leaderboard():
    """Overall (personal-best-day) or best single guesses leaderboard"""
    board = _leaderboard_for(request.args.get("type"), _current_user_id())
    return jsonify(board)


def _leaderboard_for(board_type, user_id):
    # Only the anonymous view is shared through the cache
    if user_id is None:
        return _cached_leaderboard()
    return _build_leaderboard(board_type, user_id)


@cached_route(timeout="LEADERBOARD_CACHE_TIMEOUT", key_prefix=LEADERBOARD_KEY_PREFIX)
def _cached_leaderboard():
    return _build_leaderboard(request.args.get("type"), None)


def _build_leaderboard(board_type, user_id):
    statistics = StatisticsService()
    if board_type == "overall":
        return {"leaderboard": statistics.overall_leaderboard(user_id)}
    if board_type == "best-guesses":
        return {"leaderboard": statistics.best_guesses()}
    return {"leaderboard": []}
