"""
Layered segment resolver: session cache -> dictionary -> external service.

A pass has two halves. ``begin`` is synchronous: it segments the text,
materializes every segment from the cache or the dictionary (or as a pending
placeholder) and publishes the mixed list at once. ``finish`` awaits the
external service for the pending segments and commits through the
synchronizer, which drops the results if the input moved on meanwhile.

Segments already requested by an earlier pass are joined through a shared
future instead of being requested twice.
"""
from __future__ import annotations

import asyncio
import logging
from functools import partial

from promptsync.services.cache import SessionCache
from promptsync.services.dictionary import PromptDictionary
from promptsync.services.resolution import (
    PreTranslator,
    ResolutionRequest,
    ResolutionService,
    parse_resolution_payload,
)
from promptsync.services.segmentation import SegmentationService
from promptsync.services.synchronizer import RaceGuard, Synchronizer
from promptsync.types import CacheEntry, DictionaryEntry, PassOutcome, PromptSyncConfig, SyntaxType, Tag
from promptsync.utils.cjk import CJKDetector

logger = logging.getLogger(__name__)

NO_SERVICE_MESSAGE = "no resolution service configured"


class Resolver:
    def __init__(
        self,
        config: PromptSyncConfig,
        segmentation: SegmentationService,
        cache: SessionCache,
        dictionary: PromptDictionary,
        synchronizer: Synchronizer,
        race_guard: RaceGuard,
        service: ResolutionService | None = None,
        pre_translator: PreTranslator | None = None,
    ):
        self._config = config
        self._segmentation = segmentation
        self._cache = cache
        self._dictionary = dictionary
        self._synchronizer = synchronizer
        self._race_guard = race_guard
        self._service = service
        self._pre_translator = pre_translator
        self._cjk = CJKDetector(config.cjk_pattern)
        # raw segment -> future holding the owning batch's error message (None on success)
        self._in_flight: dict[str, asyncio.Future] = {}

    # ---------- materialization ----------
    def resolve_local(self, raw: str) -> CacheEntry | None:
        """Cache, then dictionary; a dictionary hit is written to the cache."""
        cached = self._cache.get(raw)
        if cached is not None:
            return cached

        core = self._segmentation.core_text(raw)
        found = self._dictionary.lookup(core.lower())
        if found is None:
            return None

        syntax = self._segmentation.detect_syntax(raw)
        if found.translation == core or syntax is not SyntaxType.NORMAL:
            english_text = raw
        else:
            english_text = core
        entry = CacheEntry(
            english_text=english_text,
            translation=found.translation,
            category=found.category,
            syntax_type=syntax,
        )
        self._cache.put(raw, entry)
        return entry

    def materialize(self, segments: list[str]) -> tuple[list[Tag], list[str]]:
        """Tags for ``segments`` plus the unique unresolved raws, in order."""
        tags: list[Tag] = []
        unresolved: list[str] = []
        for raw in segments:
            entry = self.resolve_local(raw)
            if entry is not None:
                tags.append(Tag.from_cache_entry(raw, entry))
                continue
            tags.append(
                Tag.placeholder(raw, self._segmentation.detect_syntax(raw), self._config.pending_placeholder),
            )
            if raw not in unresolved:
                unresolved.append(raw)
        return tags, unresolved

    # ---------- passes ----------
    def begin(self, text: str, generation: int) -> list[str]:
        """
        Synchronous half of a pass. Returns the unique raws still to resolve.

        Before materializing, every previously disabled tag whose raw text is
        gone from the new segments gets its cache ``disabled`` flag reset, so
        re-typing it later starts enabled.
        """
        segments = self._segmentation.split(text)
        previous = self._synchronizer.tags
        present = set(segments)
        reset = self._cache.reset_disabled(
            tag.raw for tag in previous if tag.disabled and tag.raw not in present
        )
        if reset:
            logger.debug(f"reset disabled flag on {reset} removed segment(s)")

        tags, unresolved = self.materialize(segments)
        # A pending tag has no cache entry yet, so its disabled flag lives only on the tag
        pending_disabled = {tag.raw for tag in previous if tag.pending and tag.disabled}
        if pending_disabled:
            tags = [
                tag.evolve(disabled=True) if tag.pending and tag.raw in pending_disabled else tag
                for tag in tags
            ]

        logger.debug(
            f"pass {generation}: {len(segments)} segment(s), {len(unresolved)} unresolved",
        )
        self._synchronizer.publish(generation, tags)
        return unresolved

    async def finish(self, generation: int, unresolved: list[str]) -> PassOutcome:
        """Asynchronous half of a pass: consult the service and commit if still current."""
        if not self._race_guard.is_current(generation):
            return PassOutcome.dropped(generation)
        if not unresolved:
            return PassOutcome.published(generation, list(self._synchronizer.tags))

        joined = {raw: self._in_flight[raw] for raw in unresolved if raw in self._in_flight}
        fresh = [raw for raw in unresolved if raw not in joined]
        errors: list[str] = []
        service_calls = 0

        if fresh:
            loop = asyncio.get_running_loop()
            own = {raw: loop.create_future() for raw in fresh}
            self._in_flight.update(own)
            error_message: str | None = None
            try:
                error_message, service_calls = await self._resolve_batch(generation, fresh)
            finally:
                for raw, future in own.items():
                    if self._in_flight.get(raw) is future:
                        del self._in_flight[raw]
                    if not future.done():
                        future.set_result(error_message)
            if error_message:
                errors.append(error_message)

        if joined:
            logger.debug(f"pass {generation}: joining {len(joined)} in-flight segment(s)")
            for joined_error in await asyncio.gather(*joined.values()):
                if joined_error and joined_error not in errors:
                    errors.append(joined_error)

        updates = {raw: self._cache.get(raw) or self._unknown_entry(raw) for raw in unresolved}
        error_message = "; ".join(errors) if errors else None
        if not self._synchronizer.apply_resolutions(generation, updates, error_message):
            logger.debug(f"pass {generation} is stale; results kept in cache only")
            return PassOutcome.dropped(generation, service_calls)
        return PassOutcome.published(generation, list(self._synchronizer.tags), service_calls, error_message)

    async def refresh(self, transient_id: str) -> Tag | None:
        """
        Re-resolve one tag through the external service alone.

        The tag's cache entry is dropped first; its disabled flag survives.
        On failure the previous entry is restored. Returns the updated tag, or
        ``None`` when the tag is gone or could not be refreshed.
        """
        tag = self._synchronizer.find(transient_id)
        if tag is None or tag.pending:
            return None
        raw = tag.raw
        self._cache.discard(raw)
        self._synchronizer.mark_pending(transient_id)

        # registered like a pass batch so a pass started meanwhile joins this request
        error_message: str | None = None
        future = asyncio.get_running_loop().create_future()
        self._in_flight[raw] = future
        try:
            error_message, _ = await self._resolve_batch(self._race_guard.generation, [raw])
        finally:
            if self._in_flight.get(raw) is future:
                del self._in_flight[raw]
            if not future.done():
                future.set_result(error_message)
        current = self._synchronizer.find(transient_id)
        disabled = current.disabled if current is not None else tag.disabled
        entry = self._cache.get(raw)
        if error_message or entry is None:
            logger.warning(f"refresh of {raw!r} failed: {error_message}")
            self._cache.put(raw, tag.to_cache_entry().with_disabled(disabled))
            self._synchronizer.apply_refresh(transient_id, None)
            return None

        entry = entry.with_disabled(disabled)
        self._cache.put(raw, entry)
        if not self._synchronizer.apply_refresh(transient_id, entry):
            return None
        return self._synchronizer.find(transient_id)

    # ---------- external service ----------
    async def _resolve_batch(self, generation: int, segments: list[str]) -> tuple[str | None, int]:
        """
        One service call for ``segments``; results go to the cache and the dictionary.

        Returns (error message or None, number of service calls made).
        """
        if self._service is None:
            return NO_SERVICE_MESSAGE, 0

        hints = await self._pre_translate(generation, segments)
        request = ResolutionRequest(
            segments=tuple(segments),
            categories=tuple(self._config.category_names),
            hints=hints or None,
            on_hint=partial(self._apply_hint, generation),
        )
        try:
            payload = await self._service.resolve(request)
        except Exception as e:
            logger.exception(f"resolution service failed for {len(segments)} segment(s)")
            return f"resolution service failed: {e}", 1

        result = parse_resolution_payload(
            payload,
            segments,
            self._config.category_names,
            self._config.fallback_category,
            self._config.unknown_category,
        )
        if not result.success:
            logger.warning(result.error_message)
            return result.error_message, 1
        if result.padded:
            logger.warning(f"resolution service returned {result.padded} missing or malformed element(s)")

        to_learn: list[tuple[str, DictionaryEntry]] = []
        for item in result.entries:
            syntax = self._segmentation.detect_syntax(item.raw)
            self._cache.put(
                item.raw,
                CacheEntry(
                    english_text=item.english_text,
                    translation=item.translation,
                    category=item.category,
                    syntax_type=syntax,
                ),
            )
            # LoRA references all normalize to the key "lora"
            if item.fallback or syntax is SyntaxType.LORA:
                continue
            to_learn.append(
                (
                    item.english_text,
                    DictionaryEntry(
                        translation=item.translation,
                        category=item.category,
                        syntax_type=None if syntax is SyntaxType.NORMAL else syntax,
                    ),
                ),
            )
        learned = self._dictionary.learn_batch(to_learn)
        if learned:
            logger.debug(f"learned {learned} dictionary entr{'y' if learned == 1 else 'ies'}")
        return None, 1

    async def _pre_translate(self, generation: int, segments: list[str]) -> dict[str, str]:
        if self._pre_translator is None:
            return {}
        try:
            translations = await self._pre_translator.translate(list(segments), self._config.target_language)
        except Exception as e:
            logger.warning(f"pre-translation failed, resolving without hints: {e}")
            return {}
        if len(translations) != len(segments):
            logger.warning(
                f"pre-translation returned {len(translations)} line(s) for {len(segments)} segment(s); ignoring it",
            )
            translations = list(segments)

        hints: dict[str, str] = {}
        for raw, hint in zip(segments, translations):
            hint = (hint or "").strip()
            if hint and hint != raw:
                hints[raw] = hint
                self._apply_hint(generation, raw, hint)
        return hints

    def _apply_hint(self, generation: int, raw: str, hint: str) -> None:
        if self._cjk.is_translation_side(hint):
            english_text, translation = raw, hint
        else:
            english_text, translation = hint, raw
        self._synchronizer.apply_hint(generation, raw, english_text, translation)

    def _unknown_entry(self, raw: str) -> CacheEntry:
        """Display record for a segment the service could not resolve; never cached."""
        return CacheEntry(
            english_text=raw,
            translation=raw,
            category=self._config.unknown_category,
            syntax_type=self._segmentation.detect_syntax(raw),
        )
