"""Flask application factory for the Clean Madurai waste-reporting API."""
import os
from typing import Optional

from flask import Flask, g, jsonify, request
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import SQLAlchemyError
from dotenv import load_dotenv

from extensions import db, migrate
from utils.ai_vision import AIGateway, build_gateway
from utils.errors import ApiError
from utils.logger import init_logging
from utils.security import apply_security_headers, normalize_email, sanitize_input


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def api_error(error: ApiError):
        log = app.logger.error if error.status_code >= 500 else app.logger.warning
        log(
            "%s %s",
            error.status_code,
            error.message,
            extra={"path": request.path, "method": request.method},
        )
        return jsonify(error.to_payload()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        app.logger.warning("404 Not Found", extra={"path": request.path, "method": request.method})
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(413)
    def payload_too_large(error):
        app.logger.warning("413 Payload Too Large", extra={"path": request.path})
        return jsonify({"error": "Request payload is too large"}), 413

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.exception("500 Internal Server Error")
        return jsonify({"error": "Internal server error"}), 500


def ensure_default_authority(app: Flask) -> None:
    """Insert the seed authority account if its email is not registered yet."""
    from models import User, UserRole  # Local import to avoid circular dependency

    email = normalize_email(app.config.get("DEFAULT_AUTHORITY_EMAIL"))
    password = app.config.get("DEFAULT_AUTHORITY_PASSWORD") or ""
    if not email or not password:
        return
    if User.query.filter_by(email=email).first():
        return

    authority = User(
        email=email,
        role=UserRole.AUTHORITY.value,
        name=app.config.get("DEFAULT_AUTHORITY_NAME") or "Municipal Officer",
    )
    authority.set_password(password)
    db.session.add(authority)
    try:
        db.session.commit()
    except SQLAlchemyError:
        # Another worker may have seeded the same email between the check and the insert.
        db.session.rollback()
        app.logger.warning("Seed authority insert skipped", extra={"email": email})
        return
    app.logger.info("Seed authority account created", extra={"email": email})


def ensure_database_exists(database_uri: str) -> None:
    """Make sure the parent directory of a file-backed SQLite database exists."""
    url = make_url(database_uri)
    if url.drivername.startswith("sqlite") and url.database and url.database != ":memory:":
        os.makedirs(os.path.dirname(url.database) or ".", exist_ok=True)


def create_app(config_name: Optional[str] = None, ai_gateway: Optional[AIGateway] = None) -> Flask:
    """Application factory with environment-aware configuration.

    ``ai_gateway`` replaces the Gemini-backed gateway, e.g. with a deterministic stub in tests.
    """
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    # Resolve configuration
    from config import DevelopmentConfig, ProductionConfig, TestingConfig

    config_key = (config_name or os.getenv("FLASK_CONFIG") or os.getenv("FLASK_ENV") or "production").lower()
    config_map = {
        "development": DevelopmentConfig,
        "dev": DevelopmentConfig,
        "production": ProductionConfig,
        "prod": ProductionConfig,
        "testing": TestingConfig,
        "test": TestingConfig,
    }
    config_class = config_map.get(config_key, ProductionConfig)
    app.config.from_object(config_class())

    # Optional instance-specific overrides
    if config_class is not TestingConfig:
        app.config.from_pyfile("config.py", silent=True)

    ensure_database_exists(app.config["SQLALCHEMY_DATABASE_URI"])
    os.makedirs(app.instance_path, exist_ok=True)

    # Initialize logging early
    logger = init_logging(app)
    app.logger = logger

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    app.extensions["ai_gateway"] = ai_gateway or build_gateway(app.config)

    # Blueprints
    from routes import ai_bp, auth_bp, complaints_bp, main_bp

    app.register_blueprint(main_bp, url_prefix="/api")
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(complaints_bp, url_prefix="/api/complaints")
    app.register_blueprint(ai_bp, url_prefix="/api/ai")

    @app.cli.command("seed-authority")
    def seed_authority():
        """Insert the default authority account if it is missing."""
        ensure_default_authority(app)

    # Error handlers
    register_error_handlers(app)

    # Request lifecycle hooks
    @app.before_request
    def _before_request() -> None:
        g.sanitized_args = sanitize_input(request.args)

    @app.after_request
    def _after_request(response):
        return apply_security_headers(response, force_https=app.config.get("PREFERRED_URL_SCHEME") == "https")

    # Ensure tables exist so first run creates the database structure automatically.
    with app.app_context():
        db.create_all()
        ensure_default_authority(app)

    return app


if __name__ == "__main__":
    port = int(os.getenv("PORT", 3000))
    create_app().run(host="0.0.0.0", port=port, use_reloader=False)
