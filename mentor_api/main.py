"""Flask application setup and blueprint wiring."""

from __future__ import annotations

import os

from flask import Flask
from flask_cors import CORS

from mentor_api.database import mongodb_enabled
from mentor_api.routes import register_routes
from mentor_api.utils.auth import register_session_cleanup

REQUEST_LIMIT_BYTES = 1 * 1024 * 1024  # 1 MB per request


def create_app() -> Flask:
    """Configure and return the Flask application instance."""
    app = Flask(__name__)
    origins = os.getenv("CORS_ORIGINS", "*")
    CORS(app, resources={r"/api/*": {"origins": origins.split(",") if origins != "*" else "*"}})

    app.config["MAX_CONTENT_LENGTH"] = REQUEST_LIMIT_BYTES

    register_session_cleanup(app)
    register_routes(app)

    # Initialize MongoDB indexes if enabled
    if mongodb_enabled():
        try:
            from mentor_api.services import auth_service, history_service, memory_service
            with app.app_context():
                history_service.create_indexes()
                memory_service.create_indexes()
                app.logger.info("MongoDB indexes created successfully")
                removed = auth_service.cleanup_expired_sessions()
                if removed:
                    app.logger.info(f"Removed {removed} expired sessions")
        except Exception as e:
            app.logger.warning(f"Failed to prepare MongoDB collections: {e}")

    return app
