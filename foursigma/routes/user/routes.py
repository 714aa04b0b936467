from flask import current_app, jsonify, request
from flask_login import current_user, login_required

from foursigma import db
from foursigma.errors import ValidationError
from foursigma.routes.user import bp
from foursigma.services.statistics_service import StatisticsService


@bp.route("/stats")
@login_required
def stats():
    """Lifetime aggregate stats for the caller"""
    return jsonify({"user": current_user.to_dict(), "stats": current_user.stats_dict()})


@bp.route("/daily-stats")
@login_required
def daily_stats():
    return jsonify(StatisticsService().daily_stats(current_user.id))


@bp.route("/performance-history")
@login_required
def performance_history():
    """Performance on the caller's last N play dates (?days=N, capped)"""
    days = request.args.get("days", type=int) or current_app.config.get(
        "PERFORMANCE_HISTORY_DAYS", 7
    )
    max_days = current_app.config.get("MAX_HISTORY_DAYS", 30)
    history = StatisticsService().performance_history(
        current_user.id, max(1, min(days, max_days))
    )
    return jsonify({"history": history})


@bp.route("/calibration-milestones")
@login_required
def calibration_milestones():
    return jsonify(
        {"milestones": StatisticsService().calibration_milestones(current_user.id)}
    )


@bp.route("/standing")
@login_required
def standing():
    """Percentile among all players by personal-best-day score"""
    result = StatisticsService().overall_standing(current_user.id)
    if result is None:
        return jsonify({"error": "No games played yet"}), 404
    return jsonify(result)


@bp.route("/profile", methods=["PUT"])
@login_required
def update_profile():
    """Set the name shown on leaderboards"""
    data = request.get_json(silent=True) or {}
    display_name = data.get("displayName")
    if display_name is not None and not isinstance(display_name, str):
        raise ValidationError("displayName must be a string")
    if display_name and len(display_name.strip()) > 100:
        raise ValidationError("displayName must be at most 100 characters")

    current_user.set_display_name(display_name)
    db.session.commit()
    return jsonify({"user": current_user.to_dict()})
