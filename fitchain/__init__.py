# backend/fitchain/__init__.py

from flask import Flask, jsonify
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy
from flask_jwt_extended import JWTManager
from pydantic import ValidationError as PydanticValidationError
from werkzeug.exceptions import HTTPException

from config import Config

db = SQLAlchemy()
jwt = JWTManager()


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)

    CORS(app, resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    # -----------------------------
    # Collaborators (replaceable in tests)
    # -----------------------------
    from .ratelimit import FixedWindowRateLimiter
    from .integrations.food_recognition import GeminiFoodRecognizer
    from .integrations.identity import WorldIdVerifier

    timeout = app.config["UPSTREAM_TIMEOUT_SECONDS"]
    app.extensions["rate_limiters"] = {
        "analyze": FixedWindowRateLimiter(
            app.config["ANALYZE_RATE_LIMIT"], app.config["ANALYZE_RATE_WINDOW_SECONDS"]
        ),
        "verify": FixedWindowRateLimiter(
            app.config["VERIFY_RATE_LIMIT"], app.config["VERIFY_RATE_WINDOW_SECONDS"]
        ),
    }
    app.extensions["food_recognizer"] = GeminiFoodRecognizer(
        api_key=app.config.get("GEMINI_API_KEY"),
        model=app.config["GEMINI_MODEL"],
        base_url=app.config["GEMINI_BASE_URL"],
        timeout=timeout,
        max_side=app.config["ANALYZE_MAX_IMAGE_SIDE"],
    )
    app.extensions["identity_provider"] = WorldIdVerifier(
        app_id=app.config.get("WORLD_ID_APP_ID"),
        base_url=app.config["WORLD_ID_BASE_URL"],
        timeout=timeout,
    )

    # -----------------------------
    # JWT error handlers
    # -----------------------------
    @jwt.unauthorized_loader
    def unauthorized_callback(reason):
        return jsonify({"success": False, "error": "Missing or invalid auth token", "details": reason}), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(reason):
        return jsonify({"success": False, "error": "Invalid auth token", "details": reason}), 422

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return jsonify({"success": False, "error": "Token has expired"}), 401

    # -----------------------------
    # Error envelope
    # -----------------------------
    from .errors import EngineError

    @app.errorhandler(EngineError)
    def handle_engine_error(e):
        if e.status_code >= 500:
            app.logger.error(f"[{type(e).__name__}] {e.message}")
        return jsonify({"success": False, "error": e.message}), e.status_code

    @app.errorhandler(PydanticValidationError)
    def handle_validation_error(e):
        return jsonify({"success": False, "error": "Invalid request", "details": e.errors()}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"success": False, "error": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        db.session.rollback()
        app.logger.exception(f"Unhandled error: {e}")
        body = {"success": False, "error": "Internal server error"}
        if app.config.get("EXPOSE_ERROR_DETAILS"):
            body["details"] = str(e)
        return jsonify(body), 500

    # -----------------------------
    # IMPORT BLUEPRINTS (all routes)
    # -----------------------------
    from .routes.users_routes import users_bp
    from .routes.groups_routes import groups_bp
    from .routes.stakes_routes import stakes_bp
    from .routes.leaderboard_routes import leaderboards_bp
    from .routes.meal_window_routes import meal_windows_bp
    from .routes.food_routes import food_entries_bp, analyze_bp
    from .routes.verify_routes import verify_bp

    # -----------------------------
    # REGISTER BLUEPRINTS
    # -----------------------------
    app.register_blueprint(users_bp, url_prefix="/api/users")
    app.register_blueprint(groups_bp, url_prefix="/api/groups")
    app.register_blueprint(stakes_bp, url_prefix="/api/stakes")
    app.register_blueprint(leaderboards_bp, url_prefix="/api/leaderboards")
    app.register_blueprint(meal_windows_bp, url_prefix="/api/meal-windows")
    app.register_blueprint(food_entries_bp, url_prefix="/api/food-entries")
    app.register_blueprint(analyze_bp, url_prefix="/api/analyze-food")
    app.register_blueprint(verify_bp, url_prefix="/api/verify")

    @app.route("/api/health")
    def health():
        return {"status": "ok"}

    # -----------------------------
    # DB init
    # -----------------------------
    from .models import user, group, stake, meal_window, food_entry, user_stats_history  # noqa: F401
    from .services.meal_windows import seed_default_windows

    with app.app_context():
        db.create_all()
        seed_default_windows()

    return app
