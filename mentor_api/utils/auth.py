"""Authentication helpers for optional bearer-token checks."""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Optional, Tuple

from flask import Flask, jsonify, request

from mentor_api.database import mongodb_enabled
from mentor_api.services import auth_service
from mentor_api.storage import sessions

_LOGGER = logging.getLogger(__name__)

LOCAL_USER_ID = "local"


def auth_enabled() -> bool:
    """Authentication is enforced only when an auth provider is configured."""
    return os.getenv("ENABLE_AUTH", "false").lower() == "true"


def now_seconds() -> int:
    """Return the current UNIX timestamp in seconds."""
    return int(time.time())


def prune_expired() -> None:
    """Remove stale sessions from the in-memory cache."""
    current = now_seconds()

    for token, session in list(sessions.items()):
        if session["expires_at"] <= current:
            sessions.pop(token, None)


def _lookup_session(token: str) -> Optional[dict]:
    session = sessions.get(token)
    if session or not mongodb_enabled():
        return session

    try:
        session = auth_service.get_session(token)
    except Exception:
        _LOGGER.exception("Failed to look up session in MongoDB")
        return None

    if session:
        sessions[token] = session
    return session


def require_user() -> Tuple[Optional[str], Optional[Any]]:
    """
    Resolve the calling user's id.

    Returns ``(user_id, None)`` on success or ``(None, error_response)``.
    Without a configured auth provider every request is accepted and the
    user id comes from the optional ``X-User-Id`` header.
    """
    if not auth_enabled():
        user_id = request.headers.get("X-User-Id", "").strip() or LOCAL_USER_ID
        return user_id, None

    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None, (jsonify(error="Unauthorized"), 401)

    token = auth_header[7:].strip()
    session = _lookup_session(token)
    if not session:
        return None, (jsonify(error="Unauthorized"), 401)

    if session["expires_at"] <= now_seconds():
        sessions.pop(token, None)
        if mongodb_enabled():
            try:
                auth_service.delete_session(token)
            except Exception:
                _LOGGER.exception("Failed to delete expired session from MongoDB")
        return None, (jsonify(error="Session expired."), 401)

    return session["user_id"], None


def register_session_cleanup(app: Flask) -> None:
    """Attach a before-request handler that keeps session state tidy."""

    @app.before_request  # pragma: no cover - trivial wiring
    def _cleanup_state() -> None:
        prune_expired()
