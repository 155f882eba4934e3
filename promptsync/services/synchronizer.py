"""
Tag list / text synchronization service.

Owns the published tag list and the raw text it corresponds to. Resolution
passes commit into it through generation-guarded methods; host intents
(reorder, remove, toggle, language flip) mutate it directly and regenerate the
text from the tags' ``raw`` fields.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping

from promptsync.services.cache import SessionCache
from promptsync.services.segmentation import SegmentationService
from promptsync.types import CacheEntry, EngineState, PromptSyncConfig, Tag

logger = logging.getLogger(__name__)


class RaceGuard:
    """
    Monotonic generation counter over observed input snapshots.

    Every change of the input text bumps the generation. A resolution pass
    captures the generation when it starts and may only commit while that
    generation is still current; otherwise its results are dropped.
    """

    def __init__(self):
        self._generation = 0
        self._snapshot: str | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def snapshot(self) -> str | None:
        return self._snapshot

    def advance(self, snapshot: str) -> int:
        self._generation += 1
        self._snapshot = snapshot
        return self._generation

    def observe(self, snapshot: str) -> int:
        """Advance only if ``snapshot`` differs from the current one."""
        if snapshot != self._snapshot:
            return self.advance(snapshot)
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation


class Synchronizer:
    """Keeps the ordered tag list and the delimited text mutually consistent."""

    def __init__(
        self,
        config: PromptSyncConfig,
        segmentation: SegmentationService,
        cache: SessionCache,
        race_guard: RaceGuard,
        on_change: Callable[[EngineState], None] | None = None,
    ):
        self._config = config
        self._segmentation = segmentation
        self._cache = cache
        self._race_guard = race_guard
        self._on_change = on_change
        self._tags: list[Tag] = []
        self._text = ""
        self._derived = False
        self._error_message: str | None = None

    # ---------- state ----------
    @property
    def tags(self) -> tuple[Tag, ...]:
        return tuple(self._tags)

    @property
    def text(self) -> str:
        return self._text

    @property
    def derived_from_tags(self) -> bool:
        """True when the current text was regenerated from the tag list."""
        return self._derived

    def state(self) -> EngineState:
        return EngineState(
            tags=tuple(self._tags),
            text=self._text,
            error_message=self._error_message,
            derived_from_tags=self._derived,
        )

    def set_listener(self, on_change: Callable[[EngineState], None] | None) -> None:
        self._on_change = on_change

    def find(self, transient_id: str) -> Tag | None:
        for tag in self._tags:
            if tag.transient_id == transient_id:
                return tag
        return None

    def has_pending(self) -> bool:
        return any(tag.pending for tag in self._tags)

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.state())

    # ---------- text input ----------
    def observe_text(self, text: str) -> int:
        """Record host-typed text; returns the (possibly new) generation."""
        if text != self._text:
            self._text = text
            self._derived = False
        return self._race_guard.observe(text)

    # ---------- resolution commits (generation-guarded) ----------
    def publish(self, generation: int, tags: list[Tag], error_message: str | None = None) -> bool:
        """Replace the whole list with a freshly materialized one."""
        if not self._race_guard.is_current(generation):
            return False
        self._tags = list(tags)
        self._error_message = error_message
        self._notify()
        return True

    def apply_hint(self, generation: int, raw: str, english_text: str, translation: str) -> bool:
        """Show an early hint on the still-pending tags for ``raw``."""
        if not self._race_guard.is_current(generation):
            return False
        changed = False
        for index, tag in enumerate(self._tags):
            if tag.pending and tag.raw == raw:
                self._tags[index] = tag.evolve(english_text=english_text, translation=translation)
                changed = True
        if changed:
            self._notify()
        return changed

    def apply_resolutions(
        self,
        generation: int,
        updates: Mapping[str, CacheEntry],
        error_message: str | None = None,
    ) -> bool:
        """Fill pending tags from final results; a disabled flag set while pending is kept."""
        if not self._race_guard.is_current(generation):
            return False
        for index, tag in enumerate(self._tags):
            if not tag.pending or tag.raw not in updates:
                continue
            entry = updates[tag.raw]
            disabled = tag.disabled or entry.disabled
            if tag.disabled and not entry.disabled:
                self._cache.set_disabled(tag.raw, True)
            self._tags[index] = tag.evolve(
                english_text=entry.english_text,
                translation=entry.translation,
                category=entry.category,
                syntax_type=entry.syntax_type,
                disabled=disabled,
                pending=False,
            )
        self._error_message = error_message
        self._notify()
        return True

    def mark_pending(self, transient_id: str) -> Tag | None:
        """Flag one tag as being re-resolved (used by single-tag refresh)."""
        for index, tag in enumerate(self._tags):
            if tag.transient_id == transient_id:
                self._tags[index] = tag.evolve(pending=True)
                self._notify()
                return self._tags[index]
        return None

    def apply_refresh(self, transient_id: str, entry: CacheEntry | None) -> bool:
        """Finish a refresh for a tag that is still present; ``None`` just clears pending."""
        for index, tag in enumerate(self._tags):
            if tag.transient_id != transient_id:
                continue
            if entry is None:
                self._tags[index] = tag.evolve(pending=False)
            else:
                self._tags[index] = tag.evolve(
                    english_text=entry.english_text,
                    translation=entry.translation,
                    category=entry.category,
                    syntax_type=entry.syntax_type,
                    disabled=entry.disabled,
                    pending=False,
                )
            self._notify()
            return True
        return False

    # ---------- host intents ----------
    def reorder(self, from_index: int, to_index: int) -> bool:
        """Move one tag; no cache mutation."""
        count = len(self._tags)
        if not (0 <= from_index < count and 0 <= to_index < count):
            return False
        if from_index == to_index:
            return True
        tags = list(self._tags)
        moved = tags.pop(from_index)
        tags.insert(to_index, moved)
        self._commit(tags)
        return True

    def remove(self, transient_id: str) -> bool:
        tags = [tag for tag in self._tags if tag.transient_id != transient_id]
        if len(tags) == len(self._tags):
            return False
        removed = self.find(transient_id)
        if removed.disabled and all(tag.raw != removed.raw for tag in tags):
            self._cache.set_disabled(removed.raw, False)
        self._commit(tags)
        return True

    def toggle(self, transient_id: str) -> bool:
        return self.toggle_many([transient_id]) == 1

    def toggle_many(self, transient_ids: Iterable[str]) -> int:
        """Flip ``disabled`` on every listed tag and its cache entry."""
        wanted = set(transient_ids)
        toggled = 0
        tags = list(self._tags)
        for index, tag in enumerate(tags):
            if tag.transient_id in wanted:
                tags[index] = tag.evolve(disabled=not tag.disabled)
                self._cache.set_disabled(tag.raw, not tag.disabled)
                toggled += 1
        if toggled:
            self._commit(tags)
        return toggled

    def flip_language(self) -> int:
        """
        Rewrite every flippable tag's slot with the form that is not shown.

        A cache entry keyed by the target text is written first, so the pass
        triggered by the new text is a pure cache hit. Pending tags, tags with
        a single form, and targets that would not survive re-segmentation keep
        their current text.
        """
        tags = list(self._tags)
        flipped = 0
        for index, tag in enumerate(tags):
            target = self._flip_target(tag)
            if target is None:
                continue
            syntax = self._segmentation.detect_syntax(target)
            self._cache.put(
                target,
                CacheEntry(
                    english_text=tag.english_text,
                    translation=tag.translation,
                    category=tag.category,
                    syntax_type=syntax,
                    disabled=tag.disabled,
                ),
            )
            if tag.disabled:
                self._cache.set_disabled(tag.raw, False)
            tags[index] = tag.evolve(raw=target, syntax_type=syntax)
            flipped += 1
        if flipped:
            self._commit(tags)
        return flipped

    def _flip_target(self, tag: Tag) -> str | None:
        if tag.pending or tag.english_text == tag.translation:
            return None
        target = tag.english_text if tag.raw == tag.translation else tag.translation
        target = target.strip()
        if not target or target == tag.raw or target == self._config.pending_placeholder:
            return None
        if not self._segmentation.is_single_segment(target):
            return None
        return target

    def clear(self) -> None:
        self._tags = []
        self._text = ""
        self._derived = False
        self._error_message = None
        self._race_guard.advance("")
        self._notify()

    def _commit(self, tags: list[Tag]) -> None:
        self._tags = tags
        text = self._segmentation.join([tag.raw for tag in tags])
        if text != self._text:
            self._text = text
            self._race_guard.advance(text)
            logger.debug(f"text regenerated from tags (generation {self._race_guard.generation})")
        self._derived = True
        self._notify()
