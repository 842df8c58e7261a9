"""Reset-with-undo state holder."""

from __future__ import annotations

import copy
import time
from typing import Any, Callable, Optional

DEFAULT_UNDO_SECONDS = 10.0


class ResettableState:
    """
    Holds a value that can be reset and then restored for a limited time.

    A reset snapshots the current value and opens an undo window of
    ``timeout`` seconds. Expiry is checked lazily against ``clock`` so no
    background timer is needed.
    """

    def __init__(
        self,
        initial: Any,
        on_reset: Optional[Callable[[Any], None]] = None,
        timeout: float = DEFAULT_UNDO_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._current = initial
        self._on_reset = on_reset
        self.timeout = timeout
        self._clock = clock
        self._snapshot: Any = None
        self._deadline: Optional[float] = None

    @property
    def current(self) -> Any:
        return self._current

    def set(self, value: Any) -> None:
        """Replace the value without touching the undo window."""
        self._current = value

    @property
    def undo_available(self) -> bool:
        self._expire_if_due()
        return self._deadline is not None

    @property
    def undo_deadline(self) -> Optional[float]:
        self._expire_if_due()
        return self._deadline

    def reset(self, new_value: Any, timeout: Optional[float] = None) -> None:
        self._snapshot = copy.deepcopy(self._current)
        self._deadline = self._clock() + (self.timeout if timeout is None else timeout)
        self._current = new_value
        self._notify(new_value)

    def undo(self) -> bool:
        """Restore the pre-reset value; False once the window has closed."""
        if not self.undo_available:
            return False

        restored = self._snapshot
        self.dismiss()
        self._current = restored
        self._notify(restored)
        return True

    def dismiss(self) -> None:
        self._snapshot = None
        self._deadline = None

    def _expire_if_due(self) -> None:
        if self._deadline is not None and self._clock() >= self._deadline:
            self.dismiss()

    def _notify(self, value: Any) -> None:
        if self._on_reset is not None:
            self._on_reset(value)
