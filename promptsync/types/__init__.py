"""
Types package for prompt segment processing.

This package contains tag records, result types, configuration classes, and
other data structures used throughout the synchronization engine.
"""

from promptsync.types.config import PromptSyncConfig, ServiceSettings
from promptsync.types.results import (
    CacheInfo,
    EngineState,
    PassOutcome,
    ResolvedSegment,
    SearchHit,
    ServiceResult,
)
from promptsync.types.tags import CacheEntry, CategoryDef, DictionaryEntry, SyntaxType, Tag, new_transient_id

__all__ = [
    "CacheEntry",
    "CacheInfo",
    "CategoryDef",
    "DictionaryEntry",
    "EngineState",
    "PassOutcome",
    "PromptSyncConfig",
    "ResolvedSegment",
    "SearchHit",
    "ServiceResult",
    "ServiceSettings",
    "SyntaxType",
    "Tag",
    "new_transient_id",
]
