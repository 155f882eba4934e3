"""
Prompt Segment Synchronization Engine

This module keeps a free-form, comma/newline-delimited prompt and its structured
tag list mutually consistent while the user types, reorders, removes and
disables segments.

## Overview

The core functionality is provided by the `PromptSyncEngine` class, which runs
a layered resolution pipeline for every settled edit:

1. **Segmentation**: Split on runs of `,`, `，` or newlines, trim, drop empties
2. **Session Cache**: Literal segment text -> resolved record (zero latency)
3. **Dictionary**: Seed + learned entries keyed by the bracket-and-weight-stripped core
4. **External Service**: One batched call for the remaining unique segments
5. **Reconciliation**: Results are committed only if the input is still current

## Architecture

### Service Separation
- **SegmentationService**: Pure splitting, syntax classification and lookup keys
- **SessionCache**: Content-addressed, session-lifetime records
- **PromptDictionary**: Seed and learned entries with ranked pinyin-aware search
- **Resolver**: Cache -> dictionary -> service orchestration with in-flight sharing
- **Synchronizer**: Tag list <-> text mutations guarded by a generation counter
- **TextHistory**: Bounded undo/redo over the raw text

### Concurrency
Everything runs on one asyncio event loop. The only suspension points are the
resolution and pre-translation services; blocking HTTP adapters run in a worker
thread. Several passes may be in flight at once; a pass whose generation is no
longer current writes its results to the cache and the dictionary but never to
the published list.

## Usage Examples

```python
async def main():
    engine = PromptSyncEngine.from_env(on_change=print)

    # Typing is debounced (0.8 s settle delay by default)
    engine.edit_text("1girl, (masterpiece:1.2), <lora:x:0.8>")
    await engine.wait_idle()

    # Tag-driven edits regenerate the text immediately
    first = engine.tags[0]
    engine.toggle(first.transient_id)
    engine.reorder(0, 2)
    engine.flip_language()

    print(engine.text)             # regenerated, delimiter ", "
    print(engine.active_prompt())  # enabled tags' English forms
```

## Error Handling

Nothing in the engine raises for service problems:
- Service failure: pending tags resolve to the "Unknown" category and the state
  carries an `error_message`
- Malformed elements: padded with fallbacks, never raised
- Stale results: silently dropped from the published list
- Dictionary I/O failure: a warning, then seed + in-memory entries only

## Event Loop

Intents that start resolution work (`edit_text`, `submit_text`, `undo`,
`redo`, `refresh_tag` and any intent issued while tags are pending) schedule
tasks on the running event loop and must be called from within it.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable

from promptsync.services import (
    JsonDictionaryStore,
    PreTranslator,
    PromptDictionary,
    RaceGuard,
    ResolutionService,
    Resolver,
    SegmentationService,
    SegmentSpan,
    SessionCache,
    Synchronizer,
    TextHistory,
    build_services,
)
from promptsync.types import (
    CacheInfo,
    EngineState,
    PassOutcome,
    PromptSyncConfig,
    SearchHit,
    ServiceSettings,
    Tag,
)

logger = logging.getLogger(__name__)

# ════════════════════════════════════════════════════════════════════════════════
# MAIN PROMPT SYNCHRONIZATION ENGINE
# ════════════════════════════════════════════════════════════════════════════════


class PromptSyncEngine:
    """Facade over segmentation, resolution and tag/text synchronization."""

    def __init__(
        self,
        config: PromptSyncConfig | None = None,
        service: ResolutionService | None = None,
        pre_translator: PreTranslator | None = None,
        dictionary: PromptDictionary | None = None,
        cache: SessionCache | None = None,
        on_change: Callable[[EngineState], None] | None = None,
    ):
        self._config = config or PromptSyncConfig.create_default()
        self._segmentation = SegmentationService(self._config)
        self._cache = cache if cache is not None else SessionCache()
        if dictionary is None:
            store = JsonDictionaryStore(self._config.dictionary_path) if self._config.dictionary_path else None
            dictionary = PromptDictionary(self._config, self._segmentation.lookup_key, store)
        self._dictionary = dictionary
        self._race_guard = RaceGuard()
        self._synchronizer = Synchronizer(self._config, self._segmentation, self._cache, self._race_guard, on_change)
        self._resolver = Resolver(
            self._config,
            self._segmentation,
            self._cache,
            self._dictionary,
            self._synchronizer,
            self._race_guard,
            service=service,
            pre_translator=pre_translator,
        )
        self._history = TextHistory(limit=self._config.history_limit, debounce=self._config.history_debounce)

        self._debounce_task: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self._last_outcome: PassOutcome | None = None

    @classmethod
    def from_env(
        cls,
        on_change: Callable[[EngineState], None] | None = None,
        settings: ServiceSettings | None = None,
        **config_overrides,
    ) -> PromptSyncEngine:
        """Engine with configuration and backends taken from environment variables."""
        service, pre_translator = build_services(settings or ServiceSettings.from_env())
        return cls(
            PromptSyncConfig.from_env(**config_overrides),
            service=service,
            pre_translator=pre_translator,
            on_change=on_change,
        )

    # ---------- state ----------
    @property
    def config(self) -> PromptSyncConfig:
        return self._config

    @property
    def tags(self) -> tuple[Tag, ...]:
        return self._synchronizer.tags

    @property
    def text(self) -> str:
        return self._synchronizer.text

    @property
    def state(self) -> EngineState:
        return self._synchronizer.state()

    @property
    def last_outcome(self) -> PassOutcome | None:
        return self._last_outcome

    @property
    def history(self) -> TextHistory:
        return self._history

    def set_listener(self, on_change: Callable[[EngineState], None] | None) -> None:
        self._synchronizer.set_listener(on_change)

    # ---------- text input ----------
    def edit_text(self, text: str) -> None:
        """Host-typed text; resolution starts once the settle delay passes without edits."""
        if text == self._synchronizer.text:
            # Covers the echo of text regenerated from tags
            return
        self._synchronizer.observe_text(text)
        self._history.set(text)
        self._cancel_debounce()
        self._debounce_task = asyncio.get_running_loop().create_task(self._settle())

    def submit_text(self, text: str) -> asyncio.Task:
        """Replace the text and resolve it right away; the returned task yields a PassOutcome."""
        self._history.push(text)
        return self._apply_text(text)

    async def _settle(self) -> None:
        await asyncio.sleep(self._config.settle_delay)
        self._debounce_task = None
        self._start_pass()

    def _cancel_debounce(self) -> bool:
        if self._debounce_task is None:
            return False
        self._debounce_task.cancel()
        self._debounce_task = None
        return True

    def _flush_debounce(self) -> None:
        """Run a pending debounced pass now so an intent acts on the current text."""
        if self._cancel_debounce():
            self._start_pass()

    def _apply_text(self, text: str) -> asyncio.Task:
        self._cancel_debounce()
        self._synchronizer.observe_text(text)
        return self._start_pass()

    def _start_pass(self) -> asyncio.Task:
        generation = self._race_guard.generation
        unresolved = self._resolver.begin(self._synchronizer.text, generation)
        return self._track(self._resolver.finish(generation, unresolved), self._record_outcome)

    def _track(self, coro, on_done: Callable[[asyncio.Task], None] | None = None) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        if on_done is not None:
            task.add_done_callback(on_done)
        return task

    def _record_outcome(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        if task.exception() is not None:
            logger.error(f"resolution pass crashed: {task.exception()!r}")
            return
        outcome = task.result()
        if not outcome.stale:
            self._last_outcome = outcome

    async def wait_idle(self) -> None:
        """Wait until no debounce timer, pass or refresh is outstanding."""
        while True:
            pending = set(self._tasks)
            if self._debounce_task is not None:
                pending.add(self._debounce_task)
            if not pending:
                return
            await asyncio.wait(pending)

    # ---------- tag intents ----------
    def _handles(self, transient_ids: Iterable[str]) -> list[str]:
        """
        Flush a pending debounce, carrying tag handles across re-materialization.

        A handle is re-targeted to the tag with the same raw text at the same
        occurrence; handles whose tag vanished map to an empty id.
        """
        transient_ids = list(transient_ids)
        if self._debounce_task is None:
            return transient_ids
        keys = [self._occurrence(transient_id) for transient_id in transient_ids]
        self._flush_debounce()
        tags = self._synchronizer.tags
        handles: list[str] = []
        for key in keys:
            handles.append("")
            if key is None:
                continue
            raw, nth = key
            matches = [tag for tag in tags if tag.raw == raw]
            if nth < len(matches):
                handles[-1] = matches[nth].transient_id
        return handles

    def _occurrence(self, transient_id: str) -> tuple[str, int] | None:
        seen: dict[str, int] = {}
        for tag in self._synchronizer.tags:
            if tag.transient_id == transient_id:
                return tag.raw, seen.get(tag.raw, 0)
            seen[tag.raw] = seen.get(tag.raw, 0) + 1
        return None

    def _after_intent(self, generation: int) -> None:
        """Record the regenerated text; re-join in-flight work if the edit staled it."""
        self._history.push(self._synchronizer.text)
        if self._race_guard.generation != generation and self._synchronizer.has_pending():
            self._start_pass()

    def reorder(self, from_index: int, to_index: int) -> bool:
        self._flush_debounce()
        generation = self._race_guard.generation
        moved = self._synchronizer.reorder(from_index, to_index)
        if moved:
            self._after_intent(generation)
        return moved

    def remove(self, transient_id: str) -> bool:
        (handle,) = self._handles([transient_id])
        generation = self._race_guard.generation
        removed = self._synchronizer.remove(handle)
        if removed:
            self._after_intent(generation)
        return removed

    def toggle(self, transient_id: str) -> bool:
        (handle,) = self._handles([transient_id])
        generation = self._race_guard.generation
        toggled = self._synchronizer.toggle(handle)
        if toggled:
            self._after_intent(generation)
        return toggled

    def toggle_selection(self, start: int, end: int) -> int:
        """
        Toggle the tags under a caret (``start == end``) or a text selection.

        A caret touching a segment's edge counts as inside it; the first
        matching segment wins. A selection toggles every segment it overlaps.
        """
        self._flush_debounce()
        if start > end:
            start, end = end, start
        spans = self.segment_spans()
        if start == end:
            hit = [span for span in spans if span.contains(start)][:1]
        else:
            hit = [span for span in spans if span.overlaps(start, end)]
        tags = self._synchronizer.tags
        ids = [tags[span.index].transient_id for span in hit if span.index < len(tags)]
        if not ids:
            return 0
        generation = self._race_guard.generation
        toggled = self._synchronizer.toggle_many(ids)
        if toggled:
            self._after_intent(generation)
        return toggled

    def flip_language(self) -> int:
        """Swap every flippable segment between its English form and its translation."""
        self._flush_debounce()
        generation = self._race_guard.generation
        flipped = self._synchronizer.flip_language()
        if flipped:
            self._after_intent(generation)
        return flipped

    def clear(self) -> None:
        self._cancel_debounce()
        self._cache.reset_disabled(tag.raw for tag in self._synchronizer.tags if tag.disabled)
        self._synchronizer.clear()
        self._history.clear()

    def refresh_tag(self, transient_id: str) -> asyncio.Task:
        """Re-resolve one tag through the external service; the task yields the new tag or None."""
        (handle,) = self._handles([transient_id])
        return self._track(self._resolver.refresh(handle))

    # ---------- history ----------
    def undo(self) -> str | None:
        text = self._history.undo()
        if text is not None:
            self._apply_text(text)
        return text

    def redo(self) -> str | None:
        text = self._history.redo()
        if text is not None:
            self._apply_text(text)
        return text

    # ---------- queries ----------
    def segment_spans(self, text: str | None = None) -> list[SegmentSpan]:
        return self._segmentation.segment_spans(self._synchronizer.text if text is None else text)

    def active_prompt(self) -> str:
        """Enabled tags' English forms joined with the canonical delimiter."""
        return self._segmentation.join([tag.english_text for tag in self._synchronizer.tags if not tag.disabled])

    def search(self, query: str, limit: int = 20) -> list[SearchHit]:
        return self._dictionary.search(query, limit=limit)

    def export_dictionary(self, learned_only: bool = False) -> dict[str, dict[str, str]]:
        return self._dictionary.export_learned() if learned_only else self._dictionary.export_all()

    def clear_learned(self) -> None:
        self._dictionary.clear_learned()

    def get_cache_info(self) -> CacheInfo:
        store_path = self._dictionary.store_path
        return CacheInfo(
            cache_size=self._cache.cache_size,
            disabled_count=self._cache.disabled_count,
            dictionary_size=self._dictionary.size,
            learned_count=self._dictionary.learned_count,
            dictionary_path=str(store_path) if store_path is not None else None,
        )

    def clear_session_cache(self) -> None:
        self._cache.clear()
