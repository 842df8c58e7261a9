"""Blueprint registration helper."""

from __future__ import annotations

from flask import Flask, jsonify

from .career import bp as career_bp
from .chat import bp as chat_bp
from .exam_planner import bp as exam_planner_bp
from .history import bp as history_bp
from .memory import bp as memory_bp


def register_routes(app: Flask) -> None:
    """Register all application blueprints on the provided Flask app."""
    app.register_blueprint(chat_bp)
    app.register_blueprint(career_bp)
    app.register_blueprint(exam_planner_bp)
    app.register_blueprint(history_bp)
    app.register_blueprint(memory_bp)

    @app.get("/")
    def index():
        return jsonify(message="Hello from the Mentor API"), 200
