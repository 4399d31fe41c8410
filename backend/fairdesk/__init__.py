# backend/fairdesk/__init__.py
import os

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate
from .validation import ConflictError, NotFoundError, ValidationError


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)
    if not app.config.get("QR_CODE_DIR"):
        app.config["QR_CODE_DIR"] = os.path.join(app.root_path, "static", "qrcodes")

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.auth import auth_bp
    from .routes.sessions import sessions_bp
    from .routes.spaces import spaces_bp
    from .routes.bookings import bookings_bp
    from .routes.edits import edits_bp
    from .routes.materials import materials_bp
    from .routes.electric import electric_bp
    from .routes.sheds import sheds_bp
    from .routes.payments import payments_bp
    from .routes.accounting import accounting_bp
    from .routes.reports import reports_bp
    from .routes.ticketing import ticketing_bp
    from .routes.users import users_bp
    from .routes.dashboard import dashboard_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(sessions_bp)
    app.register_blueprint(spaces_bp)
    app.register_blueprint(bookings_bp)
    app.register_blueprint(edits_bp)
    app.register_blueprint(materials_bp)
    app.register_blueprint(electric_bp)
    app.register_blueprint(sheds_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(accounting_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(ticketing_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(dashboard_bp)

    @app.before_request
    def load_session_scope():
        # Static files never touch the database
        if request.endpoint == "static":
            return None
        from .services.event_session_service import resolve_scope
        g.scope = resolve_scope(request.args.get("view_session_id"))
        return None

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc):
        return jsonify({"error": str(exc)}), 400

    @app.errorhandler(NotFoundError)
    def handle_not_found(exc):
        return jsonify({"error": str(exc)}), 404

    @app.errorhandler(ConflictError)
    def handle_conflict(exc):
        return jsonify({"error": str(exc)}), 409

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc):
        if isinstance(exc, HTTPException):
            return jsonify({"error": exc.description}), exc.code
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500

    if app.config.get("APPLY_COLUMN_PATCHES"):
        from .services.schema_patch_service import apply_column_patches
        with app.app_context():
            apply_column_patches()

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
