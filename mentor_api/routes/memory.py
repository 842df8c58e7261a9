"""/api/memory endpoints for the append-only interaction memory."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from mentor_api.database import mongodb_enabled
from mentor_api.services import memory_service
from mentor_api.utils.auth import require_user

bp = Blueprint("memory", __name__, url_prefix="/api/memory")


@bp.get("")
def list_memory():
    """Return recent memory rows, newest first."""
    if not mongodb_enabled():
        return jsonify(error="Memory feature is not enabled."), 503

    user_id, error_response = require_user()
    if error_response is not None:
        return error_response

    interaction_type = (request.args.get("type") or "").strip() or None
    limit = request.args.get("limit", 10, type=int)

    try:
        rows = memory_service.get_recent_memory(user_id, interaction_type, limit=limit)
        return jsonify(items=rows), 200
    except Exception as e:
        current_app.logger.exception("Failed to load memory")
        return jsonify(error="Failed to retrieve memory.", details=str(e)), 500


@bp.post("")
def append_memory():
    """Append one interaction to memory."""
    if not mongodb_enabled():
        return jsonify(error="Memory feature is not enabled."), 503

    user_id, error_response = require_user()
    if error_response is not None:
        return error_response

    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    role = payload.get("role")
    content = payload.get("content")
    interaction_type = str(payload.get("interactionType") or "").strip()

    if not isinstance(content, str) or not content:
        return jsonify(error="Missing 'content' in request body."), 400

    try:
        memory_id = memory_service.save_memory(user_id, role, content, interaction_type)
    except ValueError as exc:
        return jsonify(error=str(exc)), 400
    except Exception as e:
        current_app.logger.exception("Failed to save memory")
        return jsonify(error="Failed to save memory.", details=str(e)), 500

    return jsonify(id=memory_id), 201


@bp.get("/latest/<interaction_type>")
def latest_memory(interaction_type: str):
    """Return the newest memory row of one type, e.g. the last career goal."""
    if not mongodb_enabled():
        return jsonify(error="Memory feature is not enabled."), 503

    user_id, error_response = require_user()
    if error_response is not None:
        return error_response

    try:
        row = memory_service.get_latest_memory(user_id, interaction_type)
    except Exception as e:
        current_app.logger.exception("Failed to load memory")
        return jsonify(error="Failed to retrieve memory.", details=str(e)), 500

    if row is None:
        return jsonify(error="No memory found."), 404
    return jsonify(item=row), 200
