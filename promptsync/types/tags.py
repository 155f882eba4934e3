"""
Tag and storage record types for prompt segment processing.

A segment's literal text is its content identity: cache entries are keyed by it
and a tag's ``raw`` field regenerates its slot in the delimited text. The
``transient_id`` of a tag is only a per-materialization handle for list diffing.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum


class SyntaxType(str, Enum):
    """Bracket syntax of a prompt segment."""

    NORMAL = "Normal"
    WEIGHTED = "Weighted"  # (), []
    DYNAMIC = "Dynamic"  # {}
    LORA = "LoRA"  # <...>


def new_transient_id() -> str:
    return f"tag-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class CategoryDef:
    """A semantic category the resolution service may assign."""

    id: str
    name: str
    description: str | None = None


@dataclass(frozen=True)
class CacheEntry:
    """Session cache record, keyed by the literal raw segment."""

    english_text: str
    translation: str
    category: str
    syntax_type: SyntaxType
    disabled: bool = False

    def with_disabled(self, disabled: bool) -> CacheEntry:
        return replace(self, disabled=disabled)


@dataclass(frozen=True)
class DictionaryEntry:
    """Persistent dictionary record, keyed by the normalized core text."""

    translation: str
    category: str
    syntax_type: SyntaxType | None = None

    def to_dict(self) -> dict[str, str]:
        data = {"translation": self.translation, "category": self.category}
        if self.syntax_type is not None:
            data["syntax_type"] = self.syntax_type.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> DictionaryEntry:
        # "syntaxType" is accepted for dictionaries exported by older tools
        syntax = data.get("syntax_type", data.get("syntaxType"))
        return cls(
            translation=str(data["translation"]),
            category=str(data["category"]),
            syntax_type=SyntaxType(syntax) if syntax else None,
        )


@dataclass(frozen=True)
class Tag:
    """Resolved (or pending) structured form of one segment."""

    raw: str
    english_text: str
    translation: str
    category: str
    syntax_type: SyntaxType
    disabled: bool = False
    pending: bool = False
    transient_id: str = field(default_factory=new_transient_id)

    @classmethod
    def from_cache_entry(cls, raw: str, entry: CacheEntry) -> Tag:
        return cls(
            raw=raw,
            english_text=entry.english_text,
            translation=entry.translation,
            category=entry.category,
            syntax_type=entry.syntax_type,
            disabled=entry.disabled,
        )

    @classmethod
    def placeholder(cls, raw: str, syntax_type: SyntaxType, placeholder: str) -> Tag:
        """Pending tag shown while the external service is consulted."""
        return cls(
            raw=raw,
            english_text=raw,
            translation=placeholder,
            category=placeholder,
            syntax_type=syntax_type,
            pending=True,
        )

    def to_cache_entry(self) -> CacheEntry:
        return CacheEntry(
            english_text=self.english_text,
            translation=self.translation,
            category=self.category,
            syntax_type=self.syntax_type,
            disabled=self.disabled,
        )

    def evolve(self, **changes) -> Tag:
        """Copy with changes; the transient id is kept unless overridden."""
        return replace(self, **changes)
