"""Keeps the live session and the persisted history store in step."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from mentor_api.client.models import SessionState
from mentor_api.utils.text import DEFAULT_TITLE, TITLE_MAX_WORDS, generate_title

_LOGGER = logging.getLogger(__name__)


class HistoryReconciler:
    """
    Thin, failure-tolerant wrapper over a history store.

    ``store`` is anything exposing ``get_history_by_session``,
    ``save_history``, ``list_history``, ``delete_session`` and
    ``delete_all_by_module``: the ``history_service`` module when running next
    to the database, or ``MentorApiClient`` when talking to the HTTP API.
    Failures are logged and reported through return values.
    """

    def __init__(self, store, title_generator: Callable[[str, int], str] = generate_title):
        self.store = store
        self._title_generator = title_generator

    def load_by_session(self, user_id: str, session_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored record or None for a session with nothing saved."""
        try:
            return self.store.get_history_by_session(user_id, session_id)
        except Exception:
            _LOGGER.exception("Failed to load history for session %s", session_id)
            return None

    def save(
        self,
        user_id: str,
        session_id: str,
        module_type: str,
        content: Dict[str, Any],
        title: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        try:
            self.store.save_history(user_id, session_id, module_type, content, title, metadata)
            return True
        except Exception:
            _LOGGER.exception("Failed to save history for session %s", session_id)
            return False

    def sync(self, user_id: str, state: SessionState, metadata: Optional[Dict[str, Any]] = None) -> bool:
        """Write-through save of ``state``; empty sessions are never written."""
        if not state.messages:
            return False

        title = state.title if state.title != DEFAULT_TITLE else None
        return self.save(user_id, state.session_id, state.module_type, state.content(), title, metadata)

    def generate_title(self, first_message: str, max_words: int = TITLE_MAX_WORDS) -> str:
        return self._title_generator(first_message, max_words)

    def maybe_generate_title(self, state: SessionState) -> bool:
        """Title the session from its first user message once it has two messages."""
        if state.title_generated or len(state.messages) < 2:
            return False

        first = state.first_user_message()
        title = self.generate_title(first.content) if first is not None else None
        state.mark_title_generated(title)
        return True

    def list_sessions(self, user_id: str, module_type: Optional[str] = None) -> List[Dict[str, Any]]:
        try:
            return list(self.store.list_history(user_id, module_type))
        except Exception:
            _LOGGER.exception("Failed to list history")
            return []

    def delete_session(self, user_id: str, session_id: str) -> bool:
        try:
            self.store.delete_session(user_id, session_id)
            return True
        except Exception:
            _LOGGER.exception("Failed to delete session %s", session_id)
            return False

    def delete_all_by_module(self, user_id: str, module_type: str) -> bool:
        try:
            self.store.delete_all_by_module(user_id, module_type)
            return True
        except Exception:
            _LOGGER.exception("Failed to delete %s history", module_type)
            return False
