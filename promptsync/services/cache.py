"""
Session resolution cache for prompt segments.

Maps the literal raw segment text (case-sensitive, brackets and weights
included) to its resolved data. Lives for the session only and is never
persisted; writes for a given key are idempotent, so last writer wins.
"""
from __future__ import annotations

from collections.abc import Iterable

from promptsync.types import CacheEntry, Tag


class SessionCache:
    """
    * content-addressed, O(1) look-ups keyed by literal segment text
    """

    def __init__(self):
        self._entries: dict[str, CacheEntry] = {}

    # ---------- public API ----------
    def get(self, raw: str) -> CacheEntry | None:
        return self._entries.get(raw)

    def put(self, raw: str, entry: CacheEntry) -> None:
        self._entries[raw] = entry

    def put_tag(self, tag: Tag) -> None:
        self._entries[tag.raw] = tag.to_cache_entry()

    def discard(self, raw: str) -> None:
        self._entries.pop(raw, None)

    def __contains__(self, raw: str) -> bool:
        return raw in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def set_disabled(self, raw: str, disabled: bool) -> bool:
        """Update the disabled flag of an existing entry; returns False on a miss."""
        entry = self._entries.get(raw)
        if entry is None:
            return False
        if entry.disabled != disabled:
            self._entries[raw] = entry.with_disabled(disabled)
        return True

    def reset_disabled(self, raws: Iterable[str]) -> int:
        """Clear the disabled flag for every given key; returns how many were reset."""
        reset = 0
        for raw in raws:
            entry = self._entries.get(raw)
            if entry is not None and entry.disabled:
                self._entries[raw] = entry.with_disabled(False)
                reset += 1
        return reset

    def clear(self) -> None:
        self._entries.clear()

    # (optional) diagnostics
    @property
    def cache_size(self) -> int:
        return len(self._entries)

    @property
    def disabled_count(self) -> int:
        return sum(1 for entry in self._entries.values() if entry.disabled)
