"""
Services package for prompt segment processing.

This package contains all service classes used by the synchronization
engine, organized by domain responsibility.
"""

from promptsync.services.cache import SessionCache
from promptsync.services.dictionary import JsonDictionaryStore, PromptDictionary, pinyin_keys, seed_entries
from promptsync.services.history import TextHistory
from promptsync.services.llm_providers import (
    ChatCompletionsResolutionService,
    GeminiResolutionService,
    LLMResolutionService,
    build_services,
)
from promptsync.services.pretranslation import BaiduPreTranslator, baidu_sign
from promptsync.services.resolution import (
    PreTranslator,
    ResolutionRequest,
    ResolutionService,
    extract_json_payload,
    parse_resolution_payload,
)
from promptsync.services.resolver import Resolver
from promptsync.services.segmentation import SegmentationService, SegmentSpan, detect_syntax
from promptsync.services.synchronizer import RaceGuard, Synchronizer
from promptsync.types import CacheInfo, EngineState, PassOutcome, PromptSyncConfig, ServiceResult, ServiceSettings

__all__ = [
    # Adapters
    "BaiduPreTranslator",
    # Types (re-exported for convenience)
    "CacheInfo",
    "ChatCompletionsResolutionService",
    "EngineState",
    "GeminiResolutionService",
    # Storage
    "JsonDictionaryStore",
    "LLMResolutionService",
    "PassOutcome",
    "PreTranslator",
    "PromptDictionary",
    "PromptSyncConfig",
    # Core services
    "RaceGuard",
    "ResolutionRequest",
    "ResolutionService",
    "Resolver",
    "SegmentSpan",
    "SegmentationService",
    "ServiceResult",
    "ServiceSettings",
    "SessionCache",
    "Synchronizer",
    "TextHistory",
    "baidu_sign",
    "build_services",
    "detect_syntax",
    "extract_json_payload",
    "parse_resolution_payload",
    "pinyin_keys",
    "seed_entries",
]
