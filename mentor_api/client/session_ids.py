"""Active session id bookkeeping."""

from __future__ import annotations

import secrets
import string
import time
from typing import Callable, MutableMapping, Optional

SESSION_STORAGE_KEY = "history-session-id"
_ID_ALPHABET = string.digits + string.ascii_lowercase
_SUFFIX_LENGTH = 9


def new_session_id(prefix: str = "chat", clock: Callable[[], float] = time.time) -> str:
    """Return ``<prefix>-<epoch ms>-<random base36>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(_SUFFIX_LENGTH))
    return f"{prefix}-{int(clock() * 1000)}-{suffix}"


class SessionIdentityManager:
    """Keeps exactly one active session id in ``store`` under ``key``."""

    def __init__(
        self,
        store: MutableMapping[str, str],
        prefix: str = "chat",
        key: str = SESSION_STORAGE_KEY,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.prefix = prefix
        self.key = key
        self._clock = clock

    @property
    def current(self) -> Optional[str]:
        return self.store.get(self.key) or None

    def get_or_create(self) -> str:
        session_id = self.current
        if session_id is None:
            session_id = new_session_id(self.prefix, self._clock)
            self.store[self.key] = session_id
        return session_id

    def rotate(self) -> str:
        """Discard the active id and start a fresh one."""
        session_id = new_session_id(self.prefix, self._clock)
        while session_id == self.current:
            session_id = new_session_id(self.prefix, self._clock)
        self.store[self.key] = session_id
        return session_id

    def set_active(self, session_id: str) -> None:
        if not session_id:
            raise ValueError("session_id must not be empty")
        self.store[self.key] = session_id

    def clear(self) -> None:
        self.store.pop(self.key, None)
