# backend/routewise/__init__.py
from flask import Flask, request

from .collaborators import init_collaborators
from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None, **collaborator_overrides) -> Flask:
    """
    Build the API app.

    `collaborator_overrides` replaces the default plan-limit, exchange-rate,
    notifier or toll-estimator collaborators (see collaborators.py).
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    init_collaborators(app, **collaborator_overrides)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.pricing import pricing_bp
    from .routes.quotations import quotations_bp
    from .routes.itineraries import itineraries_bp
    from .routes.invoices import invoices_bp
    from .routes.payments import payments_bp
    from .routes.advances import advances_bp
    from .routes.fleet import fleet_bp
    from .routes.parameters import parameters_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(pricing_bp)
    app.register_blueprint(quotations_bp)
    app.register_blueprint(itineraries_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(advances_bp)
    app.register_blueprint(fleet_bp)
    app.register_blueprint(parameters_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type, X-Tenant-ID"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
