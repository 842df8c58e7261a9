"""/api/career endpoint generating a personalised career roadmap."""

from __future__ import annotations

import json
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from mentor_api.database import mongodb_enabled
from mentor_api.prompts import get_career_prompt
from mentor_api.services import completion_service, memory_service
from mentor_api.utils.auth import require_user

bp = Blueprint("career", __name__, url_prefix="/api/career")

REQUIRED_FIELDS = ("currentEducation", "interests", "strengths")
FORM_FIELDS = REQUIRED_FIELDS + ("goals",)


def _field(payload: Dict[str, Any], name: str) -> str:
    value = payload.get(name)
    return value.strip() if isinstance(value, str) else ""


def _remember_career_request(user_id: str, form: Dict[str, str], roadmap: str) -> None:
    """Record the submitted goal and resulting roadmap; failures are only logged."""
    if not mongodb_enabled():
        return

    try:
        memory_service.save_memory(user_id, "user", json.dumps(form, ensure_ascii=False), "career_goal")
        memory_service.save_memory(user_id, "assistant", roadmap, "career_roadmap")
    except Exception:
        current_app.logger.exception("Failed to save career memory")


@bp.post("")
def generate_roadmap():
    """Return career options and a learning roadmap for the student's profile."""
    user_id, error_response = require_user()
    if error_response is not None:
        return error_response

    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    form = {name: _field(payload, name) for name in FORM_FIELDS}

    if not all(form[name] for name in REQUIRED_FIELDS):
        return jsonify(error="Missing required fields"), 400

    prompt = get_career_prompt(
        form["currentEducation"],
        form["interests"],
        form["strengths"],
        form["goals"] or None,
    )

    try:
        roadmap = completion_service.complete([{"role": "user", "content": prompt}], "career", "Hinglish")
    except Exception as exc:
        current_app.logger.exception("Career roadmap request failed")
        return jsonify(error=str(exc) or "Failed to generate roadmap"), 500

    _remember_career_request(user_id, form, roadmap)
    return jsonify(roadmap=roadmap), 200
