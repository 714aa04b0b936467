import logging
import os

from flask import Flask, jsonify, request
from flask_caching import Cache
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

from config import config

logger = logging.getLogger(__name__)

db = SQLAlchemy()
login_manager = LoginManager()
cache = Cache()
migrate = Migrate()


def get_real_ip():
    """
    Get the real client IP address, accounting for reverse proxies.
    Checks X-Forwarded-For, X-Real-IP, and falls back to remote_addr.
    """
    # X-Forwarded-For: client, proxy1, proxy2, ...
    if request.headers.get("X-Forwarded-For"):
        return request.headers.get("X-Forwarded-For").split(",")[0].strip()
    if request.headers.get("X-Real-IP"):
        return request.headers.get("X-Real-IP")
    return get_remote_address()


limiter = Limiter(
    key_func=get_real_ip,
    default_limits=["10000 per day", "1000 per hour"],
)


def create_app(config_name=None):
    app = Flask(__name__)

    # Determine configuration
    if config_name is None:
        config_name = os.environ.get("FLASK_CONFIG", "default")

    app.config.from_object(config[config_name]())

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)
    cache.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    register_identity_loader()

    # Import and register blueprints
    from foursigma.routes.session import bp as session_bp

    app.register_blueprint(session_bp, url_prefix="/api/session")

    from foursigma.routes.user import bp as user_bp

    app.register_blueprint(user_bp, url_prefix="/api/user")

    # Register error handlers
    register_error_handlers(app)
    register_performance_hooks(app)

    # Setup logging
    from foursigma.utils.logging_config import setup_logging

    setup_logging(app)

    show_config_warnings(app, config_name)

    # Create database tables
    with app.app_context():
        db.create_all()

    # Initialize and start background scheduler
    if not app.config.get("TESTING", False):
        from foursigma.services.scheduler_service import scheduler_service

        scheduler_service.init_app(app)

    return app


def register_identity_loader():
    """Resolve callers to users from the X-Device-Id header"""

    @login_manager.request_loader
    def load_user_from_request(req):
        from foursigma.models import User

        device_id = (req.headers.get("X-Device-Id") or "").strip()
        if not device_id:
            return None
        return User.get_or_create_for_device(device_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return (
            jsonify(
                {
                    "error": "User identification required. Send X-Device-Id header."
                }
            ),
            401,
        )


def show_config_warnings(app, config_name):
    """Display configuration warnings and status"""
    import warnings

    if config_name == "production" and app.config.get("DEBUG"):
        warnings.warn("DEBUG mode is enabled in production!", UserWarning)

    db_url = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    db_kind = db_url.split("://")[0] if "://" in db_url else "unknown"
    app.logger.info(
        f"Four Sigma starting with '{config_name}' configuration "
        f"(database: {db_kind}, cache: {app.config.get('CACHE_TYPE')})"
    )


def register_error_handlers(app):
    """Register global error handlers"""
    from foursigma.errors import GameError

    @app.after_request
    def after_request(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if request.path.startswith("/api/"):
            response.headers["Cache-Control"] = (
                "no-store, no-cache, must-revalidate, max-age=0"
            )
        return response

    @app.errorhandler(GameError)
    def handle_game_error(error):
        if error.status_code >= 500:
            app.logger.error(f"{type(error).__name__}: {error} - Path: {request.path}")
        else:
            app.logger.info(f"{type(error).__name__}: {error} - Path: {request.path}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({"error": "Resource not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500

    @app.errorhandler(400)
    def bad_request_error(error):
        app.logger.warning(
            f"400 Bad Request: {str(error)} - Path: {request.path} - Method: {request.method}"
        )
        return jsonify({"error": "Bad request"}), 400

    @app.errorhandler(429)
    def too_many_requests_error(error):
        return jsonify({"error": "Too many requests"}), 429


def register_performance_hooks(app):
    from foursigma.utils.performance import (
        log_request_performance,
        track_request_performance,
    )

    app.before_request(track_request_performance)

    @app.after_request
    def after_request_timing(response):
        log_request_performance()
        return response


from foursigma import models  # noqa: F401, E402 - imported for model registration
