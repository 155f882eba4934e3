"""
Persistent prompt dictionary.

Seed entries ship with the package and are never modified; learned entries are
added from resolution results and persisted as JSON. Lookups are keyed by the
lowercased, bracket-and-weight-stripped core text. Search additionally matches
Chinese translations by their pinyin spelling and initials.
"""
from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Iterable
from pathlib import Path

import pypinyin

from promptsync.exceptions import DictionaryStorageError
from promptsync.prompt_data import SEED_DICTIONARY
from promptsync.types import DictionaryEntry, PromptSyncConfig, SearchHit

logger = logging.getLogger(__name__)


def pinyin_keys(text: str) -> tuple[str, str]:
    """Return (full pinyin, initials) for ``text``; non-Han characters pass through."""
    compact = "".join(text.split())
    # whole-string conversion so phrase readings apply (长发 -> chang fa)
    full = "".join(pypinyin.lazy_pinyin(compact, style=pypinyin.Style.NORMAL)).lower()
    initials = "".join(pypinyin.lazy_pinyin(compact, style=pypinyin.Style.FIRST_LETTER)).lower()
    return full, initials


def seed_entries() -> dict[str, DictionaryEntry]:
    return {
        key: DictionaryEntry(translation=translation, category=category)
        for key, (translation, category) in SEED_DICTIONARY.items()
    }


class JsonDictionaryStore:
    """Learned entries as a single JSON object on disk."""

    def __init__(self, path: str | Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, DictionaryEntry]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open(encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise DictionaryStorageError(f"expected a JSON object in {self._path}")
            entries: dict[str, DictionaryEntry] = {}
            for key, value in data.items():
                if not isinstance(value, dict):
                    raise DictionaryStorageError(f"entry {key!r} in {self._path} is not a JSON object")
                entries[str(key)] = DictionaryEntry.from_dict(value)
            return entries
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise DictionaryStorageError(f"failed to load learned dictionary from {self._path}: {e}") from e

    def save(self, entries: dict[str, DictionaryEntry]) -> None:
        payload = {key: entry.to_dict() for key, entry in sorted(entries.items())}
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise DictionaryStorageError(f"failed to save learned dictionary to {self._path}: {e}") from e

    def delete(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            raise DictionaryStorageError(f"failed to remove learned dictionary {self._path}: {e}") from e


class PromptDictionary:
    """Seed + learned dictionary with case-insensitive lookup and ranked search."""

    def __init__(
        self,
        config: PromptSyncConfig,
        key_func: Callable[[str], str],
        store: JsonDictionaryStore | None = None,
        seed: dict[str, DictionaryEntry] | None = None,
    ):
        self._config = config
        self._key_func = key_func
        self._store = store
        self._seed = dict(seed) if seed is not None else seed_entries()
        self._learned: dict[str, DictionaryEntry] = {}
        self._persistent = store is not None
        self._excluded_categories = frozenset({config.fallback_category, config.unknown_category})
        self._load()

    def _load(self) -> None:
        if self._store is None:
            return
        try:
            loaded = self._store.load()
        except DictionaryStorageError as e:
            logger.warning(f"{e}. Continuing with the seed dictionary only for this session.")
            self._persistent = False
            return
        # Seed is the trusted source; stale learned copies of seed keys are ignored
        self._learned = {key: entry for key, entry in loaded.items() if key not in self._seed}

    def _save(self) -> None:
        if not self._persistent:
            return
        try:
            self._store.save(self._learned)
        except DictionaryStorageError as e:
            logger.warning(f"{e}. Learned entries are kept in memory only.")
            self._persistent = False

    # ---------- lookup ----------
    def lookup(self, key: str) -> DictionaryEntry | None:
        """Look up an already-normalized key (lowercased here for safety)."""
        normalized = key.lower().strip()
        if not normalized:
            return None
        return self._seed.get(normalized) or self._learned.get(normalized)

    def lookup_text(self, text: str) -> DictionaryEntry | None:
        return self.lookup(self._key_func(text))

    # ---------- learning ----------
    def _accept(self, key: str, entry: DictionaryEntry) -> bool:
        if not key or key in self._seed:
            return False
        if entry.category in self._excluded_categories:
            return False
        # Most recent resolution is authoritative; only identical entries are skipped
        return self._learned.get(key) != entry

    def learn(self, text: str, entry: DictionaryEntry) -> bool:
        """Learn one entry keyed by the normalized form of ``text``; returns True if stored."""
        key = self._key_func(text)
        if not self._accept(key, entry):
            return False
        self._learned[key] = entry
        self._save()
        return True

    def learn_batch(self, items: Iterable[tuple[str, DictionaryEntry]]) -> int:
        """Learn many entries with a single write; returns how many were stored."""
        changed = 0
        for text, entry in items:
            key = self._key_func(text)
            if self._accept(key, entry):
                self._learned[key] = entry
                changed += 1
        if changed:
            self._save()
        return changed

    def clear_learned(self) -> None:
        self._learned.clear()
        if self._store is None:
            return
        try:
            self._store.delete()
        except DictionaryStorageError as e:
            logger.warning(str(e))

    # ---------- search / export ----------
    def search(self, query: str, limit: int = 20) -> list[SearchHit]:
        """
        Ranked candidates for ``query``.

        Rank 0: exact key; 1: key prefix; 2: translation prefix or pinyin/initials
        prefix of the translation; 3: key substring; 4: translation substring.
        Ties sort by key length, then alphabetically.
        """
        q = query.strip().lower()
        if not q:
            return []
        q_compact = q.replace(" ", "")

        hits: list[SearchHit] = []
        for key, entry, learned in self._iter_entries():
            rank = self._rank(q, q_compact, key, entry)
            if rank is not None:
                hits.append(SearchHit(key=key, entry=entry, rank=rank, learned=learned))

        hits.sort(key=lambda hit: (hit.rank, len(hit.key), hit.key))
        return hits[:limit]

    def _rank(self, q: str, q_compact: str, key: str, entry: DictionaryEntry) -> int | None:
        if key == q:
            return 0
        if key.startswith(q):
            return 1
        translation = entry.translation.lower()
        if translation.startswith(q):
            return 2
        if q_compact.isascii() and q_compact.isalnum():
            full, initials = pinyin_keys(entry.translation)
            if full != translation and (full.startswith(q_compact) or initials.startswith(q_compact)):
                return 2
        if q in key:
            return 3
        if q in translation:
            return 4
        return None

    def _iter_entries(self):
        for key, entry in self._seed.items():
            yield key, entry, False
        for key, entry in self._learned.items():
            yield key, entry, True

    def export_all(self) -> dict[str, dict[str, str]]:
        """Seed and learned entries as a JSON-serializable map."""
        merged = {key: entry.to_dict() for key, entry in self._learned.items()}
        merged.update({key: entry.to_dict() for key, entry in self._seed.items()})
        return dict(sorted(merged.items()))

    def export_learned(self) -> dict[str, dict[str, str]]:
        return {key: entry.to_dict() for key, entry in sorted(self._learned.items())}

    def export_json(self) -> str:
        return json.dumps(self.export_all(), ensure_ascii=False, indent=2)

    # (optional) diagnostics
    @property
    def size(self) -> int:
        return len(self._seed) + len(self._learned)

    @property
    def learned_count(self) -> int:
        return len(self._learned)

    @property
    def persistent(self) -> bool:
        return self._persistent

    @property
    def store_path(self) -> Path | None:
        return self._store.path if self._store is not None else None
