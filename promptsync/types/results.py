"""
Result types for prompt segment resolution.

This module contains result classes that provide Either-like error handling
and immutable data structures for service responses, resolution passes and
published engine state.
"""
from __future__ import annotations

from dataclasses import dataclass

from promptsync.types.tags import DictionaryEntry, Tag


@dataclass(frozen=True)
class ResolvedSegment:
    """One validated element of a resolution service response."""

    raw: str
    english_text: str
    translation: str
    category: str
    # True when the service omitted or mangled this element and a fallback was used
    fallback: bool = False


@dataclass(frozen=True)
class ServiceResult:
    """Parsed resolution service response - Either-like structure."""

    success: bool
    entries: tuple[ResolvedSegment, ...]
    error_message: str | None = None
    padded: int = 0

    @classmethod
    def success_with_entries(cls, entries: list[ResolvedSegment], padded: int = 0) -> ServiceResult:
        return cls(success=True, entries=tuple(entries), error_message=None, padded=padded)

    @classmethod
    def failure(cls, error_message: str) -> ServiceResult:
        return cls(success=False, entries=(), error_message=error_message, padded=0)

    def by_raw(self) -> dict[str, ResolvedSegment]:
        return {entry.raw: entry for entry in self.entries}


@dataclass(frozen=True)
class PassOutcome:
    """Result of one resolution pass."""

    generation: int
    tags: tuple[Tag, ...]
    stale: bool = False
    error_message: str | None = None
    service_calls: int = 0

    @classmethod
    def published(
        cls,
        generation: int,
        tags: list[Tag],
        service_calls: int = 0,
        error_message: str | None = None,
    ) -> PassOutcome:
        return cls(generation, tuple(tags), False, error_message, service_calls)

    @classmethod
    def dropped(cls, generation: int, service_calls: int = 0) -> PassOutcome:
        """Pass superseded by newer input; nothing was committed."""
        return cls(generation, (), True, None, service_calls)

    @property
    def success(self) -> bool:
        return not self.stale and self.error_message is None


@dataclass(frozen=True)
class EngineState:
    """Snapshot published to the host after every intent."""

    tags: tuple[Tag, ...]
    text: str
    error_message: str | None = None
    # The text was regenerated from the tags; echoing it back must not re-resolve
    derived_from_tags: bool = False


@dataclass(frozen=True)
class SearchHit:
    """Ranked dictionary search candidate (lower rank sorts first)."""

    key: str
    entry: DictionaryEntry
    rank: int
    learned: bool


@dataclass(frozen=True)
class CacheInfo:
    """Immutable cache information structure."""

    cache_size: int
    disabled_count: int
    dictionary_size: int
    learned_count: int
    dictionary_path: str | None = None
