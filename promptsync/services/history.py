"""
Bounded undo/redo history over the raw prompt text.

Tag-driven changes are recorded at once with ``push``. Typing goes through
``set``, which coalesces bursts: a typed text is only recorded once the
debounce window has passed without another ``set``, or when the history is
flushed (every undo, redo and push flushes first).
"""
from __future__ import annotations

import time
from collections.abc import Callable


class TextHistory:
    def __init__(
        self,
        initial: str = "",
        limit: int = 100,
        debounce: float = 0.6,
        clock: Callable[[], float] = time.monotonic,
    ):
        if limit < 1:
            raise ValueError("history limit must be at least 1")
        self._limit = limit
        self._debounce = debounce
        self._clock = clock
        self._states: list[str] = [initial]
        self._pointer = 0
        self._pending: str | None = None
        self._pending_at = 0.0

    # ---------- recording ----------
    def push(self, text: str) -> None:
        """Record ``text`` immediately; drops any redo branch."""
        self.flush()
        self._record(text)

    def set(self, text: str) -> None:
        """Typing update, recorded once the debounce window settles."""
        now = self._clock()
        if self._pending is not None and now - self._pending_at >= self._debounce:
            self._record(self._pending)
        self._pending = text
        self._pending_at = now

    def flush(self) -> None:
        """Record a pending typed text right away."""
        if self._pending is not None:
            pending, self._pending = self._pending, None
            self._record(pending)

    def _record(self, text: str) -> None:
        if self._states[self._pointer] == text:
            return
        del self._states[self._pointer + 1:]
        self._states.append(text)
        if len(self._states) > self._limit:
            del self._states[0]
        self._pointer = len(self._states) - 1

    # ---------- navigation ----------
    def undo(self) -> str | None:
        self.flush()
        if self._pointer == 0:
            return None
        self._pointer -= 1
        return self._states[self._pointer]

    def redo(self) -> str | None:
        self.flush()
        if self._pointer >= len(self._states) - 1:
            return None
        self._pointer += 1
        return self._states[self._pointer]

    def clear(self) -> None:
        self._states = [""]
        self._pointer = 0
        self._pending = None

    @property
    def present(self) -> str:
        return self._pending if self._pending is not None else self._states[self._pointer]

    @property
    def can_undo(self) -> bool:
        return self._pointer > 0 or (self._pending is not None and self._pending != self._states[self._pointer])

    @property
    def can_redo(self) -> bool:
        if self._pending is not None and self._pending != self._states[self._pointer]:
            return False
        return self._pointer < len(self._states) - 1

    def __len__(self) -> int:
        return len(self._states)
