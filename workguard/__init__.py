"""
WorkGuard - Labor Risk & Compliance Engine

Flask application factory for the compliance API:
- Location-scoped risk gate on allocation creation
- Fleet-wide labor risk ranking
- Worker blocks with an append-only audit ledger
- Autonomy evidence (refusals, client diversity)
"""

import os
from typing import Optional

from flask import Flask, jsonify
from flask_cors import CORS
from flask_migrate import Migrate

from workguard.config import get_config
from workguard.models import db, init_db
from workguard.utils.exceptions import register_error_handlers
from workguard.utils.logger import setup_logging

# Global instances
migrate = Migrate()


def create_app(config_name: Optional[str] = None) -> Flask:
    """
    Create and configure Flask application.

    Args:
        config_name: Configuration environment (development, production, testing)

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)

    # Load configuration
    config_obj = get_config(config_name or os.getenv("FLASK_ENV", "development"))
    app.config.from_object(config_obj)

    # Setup logging
    setup_logging(app)
    config_obj.init_app(app)
    app.logger.info(f"Starting WorkGuard in {config_obj.ENV} mode")

    # Initialize extensions
    _init_extensions(app)

    # Register blueprints
    _register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Initialize database
    with app.app_context():
        init_db(app)

    app.logger.info("WorkGuard application created successfully")

    return app


def _init_extensions(app: Flask) -> None:
    """Initialize Flask extensions."""

    # Database
    db.init_app(app)
    migrate.init_app(app, db)

    # CORS configuration
    cors_origins = (
        app.config.get("CORS_ORIGINS", "").split(",")
        if isinstance(app.config.get("CORS_ORIGINS"), str)
        else app.config.get("CORS_ORIGINS", [])
    )
    CORS(
        app,
        origins=cors_origins,
        allow_headers=["Content-Type", "X-Actor-Id", "X-Request-Id"],
        methods=["GET", "POST", "PATCH", "OPTIONS"],
    )


def _register_blueprints(app: Flask) -> None:
    """Register application blueprints."""

    from workguard.api import api_bp

    api_prefix = "/api/v1"
    app.register_blueprint(api_bp, url_prefix=api_prefix)

    @app.route("/api")
    def api_info():
        """API information endpoint."""
        return jsonify(
            {
                "name": "WorkGuard API",
                "version": "v1",
                "description": "Labor risk and compliance engine",
                "endpoints": {
                    "health": f"{api_prefix}/health",
                    "clients": f"{api_prefix}/clients",
                    "workers": f"{api_prefix}/workers",
                    "allocations": f"{api_prefix}/allocations",
                    "operations": f"{api_prefix}/operations",
                    "compliance": f"{api_prefix}/compliance",
                },
            }
        )
