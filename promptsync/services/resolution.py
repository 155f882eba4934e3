"""
Resolution service contract and response validation.

A resolution service receives the unique unresolved segments of a pass and
answers with one ``{en, cn, cat}`` object per segment. Services are untrusted:
their decoded payload is validated here into a ``ServiceResult`` with explicit
fallback entries instead of being read optimistically.
"""
from __future__ import annotations

import json
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from promptsync.exceptions import ResolutionServiceError
from promptsync.types import ResolvedSegment, ServiceResult

HintCallback = Callable[[str, str], None]

_CODE_FENCE = re.compile(r"```(?:json)?\s*|```")


@dataclass(frozen=True)
class ResolutionRequest:
    """One batch of unique raw segments for the external service."""

    segments: tuple[str, ...]
    categories: tuple[str, ...]
    # raw segment -> pre-translated hint; switches the service to classification-only prompts
    hints: Mapping[str, str] | None = None
    # services that learn something early may report it here before returning
    on_hint: HintCallback | None = field(default=None, compare=False)

    def emit_hint(self, raw: str, hint: str) -> None:
        if self.on_hint is not None and hint:
            self.on_hint(raw, hint)


class ResolutionService(Protocol):
    """Protocol for resolution backends (dependency inversion)."""

    async def resolve(self, request: ResolutionRequest) -> Any:
        """Return the decoded JSON payload; raise ResolutionServiceError on failure."""
        ...


class PreTranslator(Protocol):
    """Protocol for optional machine pre-translation backends."""

    async def translate(self, texts: list[str], target_language: str) -> list[str]:
        """Return translations aligned with ``texts``; raise PreTranslationError on failure."""
        ...


def extract_json_payload(content: str) -> Any:
    """Decode a model answer, tolerating Markdown code fences around the JSON."""
    if not content or not content.strip():
        raise ResolutionServiceError("empty response content")
    cleaned = _CODE_FENCE.sub("", content).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ResolutionServiceError(f"response is not valid JSON: {e}") from e


def _text_field(item: Mapping[str, Any], keys: tuple[str, ...], default: str) -> str:
    for key in keys:
        value = item.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return default


def parse_resolution_payload(
    payload: Any,
    segments: list[str] | tuple[str, ...],
    categories: list[str] | tuple[str, ...],
    fallback_category: str,
    unknown_category: str,
) -> ServiceResult:
    """
    Validate a decoded service payload against the requested segments.

    Accepted shapes are a JSON array or an object wrapping it under ``tags``;
    anything else is a total failure. Elements are matched to segments by
    index. Missing or non-object elements become ``unknown`` fallbacks, and a
    category outside ``categories`` is replaced by ``fallback_category``.
    """
    if isinstance(payload, dict) and isinstance(payload.get("tags"), list):
        items = payload["tags"]
    elif isinstance(payload, list):
        items = payload
    else:
        return ServiceResult.failure(f"malformed response: expected an array, got {type(payload).__name__}")

    valid = frozenset(categories)
    entries: list[ResolvedSegment] = []
    padded = 0
    for index, segment in enumerate(segments):
        item = items[index] if index < len(items) else None
        if not isinstance(item, dict):
            padded += 1
            entries.append(
                ResolvedSegment(
                    raw=segment,
                    english_text=segment,
                    translation=segment,
                    category=unknown_category,
                    fallback=True,
                ),
            )
            continue

        category = _text_field(item, ("cat", "category"), fallback_category)
        if category not in valid:
            category = fallback_category
        entries.append(
            ResolvedSegment(
                raw=segment,
                english_text=_text_field(item, ("en", "englishText", "english_text"), segment),
                translation=_text_field(item, ("cn", "translation"), segment),
                category=category,
            ),
        )

    return ServiceResult.success_with_entries(entries, padded=padded)
