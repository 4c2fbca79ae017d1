"""
pricedesk/__init__.py

Flask application factory for the PriceDesk pricing-request workflow.

Requirements:
- Clear architecture, stable imports, server-side access control.
- One storage contract, two backends (relational / local JSON document),
  chosen by configuration and injected into the workflow service here.
- No module-level backend singleton: the service lives in
  app.extensions["pricedesk"] and is initialized explicitly.
"""

from __future__ import annotations

import logging

import click
from flask import Flask, current_app, jsonify
from flask_login import current_user
from flask_wtf.csrf import CSRFError
from werkzeug.exceptions import HTTPException

from .errors import PricingError
from .extensions import csrf, db, login_manager, migrate
from .serializers import PriceDeskJSONProvider
from .services import PricingService
from .storage import build_store

logger = logging.getLogger(__name__)

# Blueprint imports kept inside create_app() where possible to reduce import side effects.


def register_error_handlers(app: Flask) -> None:
    """Render every failure as JSON {"error": kind, "message": text}."""

    @app.errorhandler(PricingError)
    def _pricing_error(err: PricingError):
        if err.status_code >= 500:
            logger.error("%s: %s", err.kind, err.message)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(CSRFError)
    def _csrf_error(err: CSRFError):
        return jsonify({"error": "csrf_error", "message": err.description}), 400

    @app.errorhandler(HTTPException)
    def _http_error(err: HTTPException):
        return jsonify({"error": err.name.lower().replace(" ", "_"), "message": err.description}), err.code


def create_app(config_object: str | object = "config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.json = PriceDeskJSONProvider(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    login_manager.init_app(app)

    # Storage + workflow service (explicit construction, no globals)
    service = PricingService(build_store(app.config))
    app.extensions["pricedesk"] = service

    @login_manager.user_loader
    def load_user(user_id: str):
        """Load user for Flask-Login; deleted or deactivated users drop out of the session."""
        try:
            user = current_app.extensions["pricedesk"].store.get_user(int(user_id))
        except (TypeError, ValueError):
            return None
        if user is None or not user.is_active:
            return None
        return user

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "unauthorized", "message": "Login required."}), 401

    register_error_handlers(app)

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp
    from .blueprints.catalog import catalog_bp
    from .blueprints.projects import projects_bp
    from .blueprints.inquiries import inquiries_bp
    from .blueprints.admin import admin_bp
    from .blueprints.users import users_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(projects_bp)
    app.register_blueprint(inquiries_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(users_bp)

    # ----------------------------------------------------------------------
    # Initialization (schema/files + optional seed)
    # ----------------------------------------------------------------------
    with app.app_context():
        service.initialize(seed=app.config.get("SEED_DEFAULTS", False))

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("init-db")
    def init_db_command():
        """Create tables (sql backend) or the store file (local backend)."""
        service.initialize(seed=False)
        click.echo(f"Storage '{service.store.name}' initialized.")

    @app.cli.command("seed-defaults")
    def seed_defaults_command():
        """Seed default coefficients, catalog and users (idempotent)."""
        service.initialize(seed=True)
        click.echo("Default data seeded.")

    # ----------------------------------------------------------------------
    # Home
    # ----------------------------------------------------------------------
    @app.route("/")
    def index():
        """Service banner; tells clients whether a session exists."""
        return jsonify(
            {
                "app": app.config.get("APP_NAME", "PriceDesk"),
                "authenticated": bool(current_user.is_authenticated),
                "backend": service.store.name,
            }
        )

    return app
