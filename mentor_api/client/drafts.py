"""Debounced draft persistence for not-yet-submitted input."""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

_LOGGER = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 2.5

_STORAGE_ERRORS = (OSError, TypeError, ValueError)


def is_blank(value: Any) -> bool:
    """True for values not worth saving: None, whitespace, empty containers or all-blank mappings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, dict):
        return all(is_blank(item) for item in value.values())
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


class MemoryDraftStorage:
    """Keeps draft records in a dict; useful for tests and short-lived processes."""

    def __init__(self):
        self.records: Dict[str, Dict[str, Any]] = {}

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        return self.records.get(key)

    def write(self, key: str, record: Dict[str, Any]) -> None:
        self.records[key] = record

    def delete(self, key: str) -> None:
        self.records.pop(key, None)


class JsonFileDraftStorage:
    """All drafts in one JSON file, keyed by draft key."""

    def __init__(self, path):
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        return data if isinstance(data, dict) else {}

    def _dump(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        return self._load().get(key)

    def write(self, key: str, record: Dict[str, Any]) -> None:
        data = self._load()
        data[key] = record
        self._dump(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)


class DraftStore:
    """
    Saves input after it has been idle for ``debounce_seconds``.

    Blank values are never written and cancel any pending save. Storage
    failures are logged and otherwise ignored so typing is never interrupted.

    Args:
        storage: Object with ``read``, ``write`` and ``delete`` methods.
        debounce_seconds: Idle time before a value is written.
        timer_factory: ``threading.Timer`` compatible factory.
        clock: Returns the current epoch time in seconds.
    """

    def __init__(
        self,
        storage=None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        timer_factory: Callable[..., Any] = threading.Timer,
        clock: Callable[[], float] = time.time,
    ):
        self.storage = storage if storage is not None else MemoryDraftStorage()
        self.debounce_seconds = debounce_seconds
        self._timer_factory = timer_factory
        self._clock = clock
        self._lock = threading.Lock()
        # Held across every storage write and delete.
        self._io_lock = threading.Lock()
        self._pending: Dict[str, Tuple[int, Any, Any]] = {}
        self._generation = 0

    def save(self, key: str, value: Any) -> None:
        """Schedule ``value`` to be written once input goes idle."""
        with self._lock:
            self._cancel_locked(key)
            if is_blank(value):
                return

            self._generation += 1
            generation = self._generation
            timer = self._timer_factory(self.debounce_seconds, self._fire, args=(key, generation))
            timer.daemon = True
            self._pending[key] = (generation, value, timer)

        timer.start()

    def restore(self, key: str) -> Any:
        """Return the saved value for ``key`` or None when nothing usable is stored."""
        try:
            record = self.storage.read(key)
        except _STORAGE_ERRORS as exc:
            _LOGGER.warning("Could not read draft %s: %s", key, exc)
            return None

        if not isinstance(record, dict) or "value" not in record:
            return None
        return record["value"]

    def clear(self, key: str) -> None:
        """Drop the stored draft and any pending save."""
        with self._io_lock:
            with self._lock:
                self._cancel_locked(key)

            try:
                self.storage.delete(key)
            except _STORAGE_ERRORS as exc:
                _LOGGER.warning("Could not clear draft %s: %s", key, exc)

    def flush(self) -> None:
        """Write every pending value now, e.g. before shutdown."""
        with self._io_lock:
            with self._lock:
                pending = self._pending
                self._pending = {}
                for _, _, timer in pending.values():
                    timer.cancel()

            for key, (_, value, _) in pending.items():
                self._write(key, value)

    def _cancel_locked(self, key: str) -> None:
        entry = self._pending.pop(key, None)
        if entry is not None:
            entry[2].cancel()

    def _fire(self, key: str, generation: int) -> None:
        with self._io_lock:
            with self._lock:
                entry = self._pending.get(key)
                # A newer save or a clear replaced this timer.
                if entry is None or entry[0] != generation:
                    return
                del self._pending[key]

            self._write(key, entry[1])

    def _write(self, key: str, value: Any) -> None:
        record = {"key": key, "value": value, "savedAt": int(self._clock() * 1000)}
        try:
            self.storage.write(key, record)
        except _STORAGE_ERRORS as exc:
            _LOGGER.warning("Could not save draft %s: %s", key, exc)
