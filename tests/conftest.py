"""Shared fixtures for the promptsync test suite."""

import asyncio
import sys
from pathlib import Path

import pytest

# Add the parent directory to path to import promptsync
sys.path.insert(0, str(Path(__file__).parent.parent))

from promptsync import PromptSyncEngine
from promptsync.prompt_data import CATEGORY_LORA, CATEGORY_SCENE
from promptsync.services import PromptDictionary, SegmentationService, seed_entries
from promptsync.types import DictionaryEntry, PromptSyncConfig


class FakeResolutionService:
    """
    Scriptable stand-in for an LLM backend.

    ``answers`` maps a raw segment to (en, cn, cat); unknown segments get a
    synthetic translation. ``gate`` (an asyncio.Event) holds every call until
    set; ``error`` is raised instead of answering; ``payload`` replaces the
    whole decoded answer; ``hints`` are emitted before waiting on the gate.
    """

    def __init__(self):
        self.answers: dict[str, tuple[str, str, str]] = {}
        self.calls = []
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None
        self.payload = None
        self.hints: dict[str, str] = {}

    async def resolve(self, request):
        self.calls.append(request)
        for raw in request.segments:
            if raw in self.hints:
                request.emit_hint(raw, self.hints[raw])
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if self.payload is not None:
            return self.payload
        return {"tags": [self._answer(raw) for raw in request.segments]}

    def _answer(self, raw):
        en, cn, cat = self.answers.get(raw, (raw, f"译:{raw}", CATEGORY_SCENE))
        return {"en": en, "cn": cn, "cat": cat}

    @property
    def requested(self):
        return [list(request.segments) for request in self.calls]


class FakePreTranslator:
    def __init__(self, translations=None, error=None, drop_last=False):
        self.translations = translations or {}
        self.error = error
        self.drop_last = drop_last
        self.calls = []

    async def translate(self, texts, target_language):
        self.calls.append((list(texts), target_language))
        if self.error is not None:
            raise self.error
        result = [self.translations.get(text, text) for text in texts]
        return result[:-1] if self.drop_last else result


@pytest.fixture
def config(tmp_path):
    return PromptSyncConfig.create_default(dictionary_path=tmp_path / "learned_dictionary.json", settle_delay=0.01)


@pytest.fixture
def segmentation(config):
    return SegmentationService(config)


@pytest.fixture
def service():
    return FakeResolutionService()


@pytest.fixture
def pre_translator():
    return FakePreTranslator()


@pytest.fixture
def lora_dictionary(config, segmentation):
    """Seed dictionary extended with an entry for the LoRA core key."""
    seed = seed_entries()
    seed["lora"] = DictionaryEntry(translation="LoRA模型", category=CATEGORY_LORA)
    return PromptDictionary(config, segmentation.lookup_key, store=None, seed=seed)


@pytest.fixture
def engine(config, service):
    return PromptSyncEngine(config, service=service)
