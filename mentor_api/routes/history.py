"""/api/history endpoints for listing, restoring and deleting sessions."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from mentor_api.database import mongodb_enabled
from mentor_api.prompts import MODULE_TYPES
from mentor_api.services import history_service
from mentor_api.utils.auth import require_user

bp = Blueprint("history", __name__, url_prefix="/api/history")


def _disabled_response():
    return jsonify(error="History feature is not enabled."), 503


def _module_arg():
    """Return ``(module_type, error_response)`` for the optional ``module`` query arg."""
    module_type = (request.args.get("module") or "").strip() or None
    if module_type is not None and module_type not in MODULE_TYPES:
        return None, (jsonify(error=f"Unknown module type: {module_type}"), 400)
    return module_type, None


@bp.get("")
def list_history():
    """List the user's history, newest first, optionally for one module."""
    if not mongodb_enabled():
        return _disabled_response()

    user_id, error_response = require_user()
    if error_response is not None:
        return error_response

    module_type, error_response = _module_arg()
    if error_response is not None:
        return error_response

    limit = request.args.get("limit", 100, type=int)

    try:
        items = history_service.list_history(user_id, module_type, limit=limit)
        return jsonify(items=items), 200
    except Exception as e:
        current_app.logger.exception("Failed to list history")
        return jsonify(error="Failed to retrieve history.", details=str(e)), 500


@bp.get("/<session_id>")
def get_history_item(session_id: str):
    """Return one session's history record."""
    if not mongodb_enabled():
        return _disabled_response()

    user_id, error_response = require_user()
    if error_response is not None:
        return error_response

    try:
        item = history_service.get_history_by_session(user_id, session_id)
    except Exception as e:
        current_app.logger.exception("Failed to load history item")
        return jsonify(error="Failed to retrieve history.", details=str(e)), 500

    if item is None:
        return jsonify(error="History item not found."), 404
    return jsonify(item=item), 200


@bp.put("/<session_id>")
def save_history_item(session_id: str):
    """Insert or update one session's history record."""
    if not mongodb_enabled():
        return _disabled_response()

    user_id, error_response = require_user()
    if error_response is not None:
        return error_response

    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    module_type = payload.get("moduleType")
    content = payload.get("content")
    title = payload.get("title")
    metadata = payload.get("metadata")

    if module_type not in MODULE_TYPES:
        return jsonify(error="Missing or invalid 'moduleType' in request body."), 400
    if not isinstance(content, dict):
        return jsonify(error="Missing or invalid 'content' in request body."), 400
    if title is not None and not isinstance(title, str):
        return jsonify(error="Invalid 'title' in request body."), 400
    if metadata is not None and not isinstance(metadata, dict):
        return jsonify(error="Invalid 'metadata' in request body."), 400

    try:
        item = history_service.save_history(user_id, session_id, module_type, content, title, metadata)
        return jsonify(item=item), 200
    except Exception as e:
        current_app.logger.exception("Failed to save history item")
        return jsonify(error="Failed to save history.", details=str(e)), 500


@bp.delete("/<session_id>")
def delete_history_item(session_id: str):
    """Permanently delete one session."""
    if not mongodb_enabled():
        return _disabled_response()

    user_id, error_response = require_user()
    if error_response is not None:
        return error_response

    try:
        deleted_count = history_service.delete_session(user_id, session_id)
        return jsonify(success=True, deleted=deleted_count), 200
    except Exception as e:
        current_app.logger.exception("Failed to delete history item")
        return jsonify(success=False, error="Failed to delete item.", details=str(e)), 500


@bp.delete("")
def delete_history():
    """Permanently delete one module's history, or every module's when none is given."""
    if not mongodb_enabled():
        return _disabled_response()

    user_id, error_response = require_user()
    if error_response is not None:
        return error_response

    module_type, error_response = _module_arg()
    if error_response is not None:
        return error_response

    modules = [module_type] if module_type else list(MODULE_TYPES)
    deleted_count = 0
    failed = []
    for module in modules:
        try:
            deleted_count += history_service.delete_all_by_module(user_id, module)
        except Exception:
            current_app.logger.exception("Failed to delete %s history", module)
            failed.append(module)

    if failed:
        return (
            jsonify(success=False, error="Failed to delete history.", failedModules=failed),
            500,
        )
    return jsonify(success=True, deleted=deleted_count), 200
