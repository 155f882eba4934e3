"""
LLM-backed resolution services.

Two REST backends share the same prompts: Google Gemini ``generateContent``
and any OpenAI-compatible ``/chat/completions`` endpoint. Both use a blocking
``requests`` session executed in a worker thread so the event loop stays free.

The standard instruction asks the model to translate and classify; when
pre-translated hints are supplied the hybrid instruction asks it only to
classify and keep the hint as the translation.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import requests

from promptsync.exceptions import ResolutionServiceError
from promptsync.services.pretranslation import BaiduPreTranslator
from promptsync.services.resolution import PreTranslator, ResolutionRequest, ResolutionService, extract_json_payload
from promptsync.types import ServiceSettings

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"


def standard_instruction(categories: list[str] | tuple[str, ...]) -> str:
    names = ", ".join(categories)
    return f"""Task: Translate and Classify ComfyUI prompt segments.

Input: JSON Array of strings.
Output: JSON Array of objects.

Rules:
1. Maintain exact order.
2. 'cat': Choose best fit from: [{names}].
3. 'en': English prompt. (Translate if input is Chinese).
4. 'cn': Chinese meaning. (Translate if input is English).
5. If segment is LoRA (<...>) or Dynamic ({{...}}), keep 'en' as is, just provide meaning in 'cn'.

Output JSON Keys:
- en: English Text
- cn: Chinese Translation
- cat: Category
"""


def hybrid_instruction(categories: list[str] | tuple[str, ...]) -> str:
    names = ", ".join(categories)
    return f"""Task: Classify prompt segments based on provided text and translation.

Input: JSON Array of objects: {{ "en": "EnglishText", "cn_hint": "PreTranslatedText" }}
Output: JSON Array of objects.

Rules:
1. 'cat': Choose best fit from: [{names}].
2. 'en': Refine the English text if needed, usually keep as is.
3. 'cn': Use the 'cn_hint' as the translation unless it is completely wrong.
4. Maintain exact order.

Output JSON Keys:
- en: English Text
- cn: Chinese Translation
- cat: Category
"""


# Gemini structured-output schema: {"tags": [{en, cn, cat}, ...]}
RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "tags": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "en": {"type": "STRING"},
                    "cn": {"type": "STRING"},
                    "cat": {"type": "STRING"},
                },
                "required": ["en", "cn", "cat"],
            },
        },
    },
}


class LLMResolutionService:
    """Base class: prompt construction plus the blocking-call-in-a-thread plumbing."""

    def __init__(self, timeout: float = 30.0, session: requests.Session | None = None):
        self._timeout = timeout
        self._session = session or requests.Session()

    def build_messages(self, request: ResolutionRequest) -> tuple[str, str]:
        """Return (system instruction, user content) for one request."""
        if request.hints:
            payload = [{"en": segment, "cn_hint": request.hints.get(segment, segment)} for segment in request.segments]
            return hybrid_instruction(request.categories), json.dumps(payload, ensure_ascii=False)
        return standard_instruction(request.categories), json.dumps(list(request.segments), ensure_ascii=False)

    async def resolve(self, request: ResolutionRequest) -> Any:
        if not request.segments:
            return []
        system_prompt, user_content = self.build_messages(request)
        content = await asyncio.to_thread(self._complete, system_prompt, user_content)
        return extract_json_payload(content)

    def _complete(self, system_prompt: str, user_content: str) -> str:
        """Blocking provider call returning the model's text answer."""
        raise NotImplementedError

    def _post(self, url: str, body: dict, headers: dict[str, str]) -> dict:
        try:
            resp = self._session.post(url, json=body, headers=headers, timeout=self._timeout)
        except requests.RequestException as e:
            raise ResolutionServiceError(f"request to {url} failed: {e}") from e
        if not resp.ok:
            raise ResolutionServiceError(f"provider error: {resp.status_code} {resp.reason}")
        try:
            return resp.json()
        except ValueError as e:
            raise ResolutionServiceError(f"provider returned invalid JSON: {e}") from e


class GeminiResolutionService(LLMResolutionService):
    """Gemini ``generateContent`` with JSON response MIME type and schema."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        timeout: float = 30.0,
        session: requests.Session | None = None,
        api_base: str = GEMINI_API_BASE,
    ):
        if not api_key:
            raise ValueError("Gemini resolution needs an API key")
        super().__init__(timeout=timeout, session=session)
        self._api_key = api_key
        self._model = model
        self._api_base = api_base.rstrip("/")

    def _complete(self, system_prompt: str, user_content: str) -> str:
        body = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_content}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }
        data = self._post(
            f"{self._api_base}/models/{self._model}:generateContent",
            body,
            {"Content-Type": "application/json", "x-goog-api-key": self._api_key},
        )
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise ResolutionServiceError("No response from AI") from e
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text:
            raise ResolutionServiceError("No response from AI")
        return text


class ChatCompletionsResolutionService(LLMResolutionService):
    """Any OpenAI-compatible ``/chat/completions`` endpoint with bearer auth."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        if not base_url or not api_key:
            raise ValueError("custom provider needs a base URL and an API key")
        super().__init__(timeout=timeout, session=session)
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._model = model

    def _complete(self, system_prompt: str, user_content: str) -> str:
        body = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
        }
        data = self._post(
            f"{self._base_url}/chat/completions",
            body,
            {"Content-Type": "application/json", "Authorization": f"Bearer {self._api_key}"},
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not content:
            raise ResolutionServiceError("Empty response from Custom Provider")
        return content


def build_services(settings: ServiceSettings) -> tuple[ResolutionService | None, PreTranslator | None]:
    """
    Pick the configured backends.

    A fully configured custom provider wins over Gemini; with neither
    configured no resolution service is returned and unknown segments
    resolve to the unknown category.
    """
    service: ResolutionService | None = None
    if settings.custom_configured:
        service = ChatCompletionsResolutionService(
            settings.custom_base_url,
            settings.custom_api_key,
            settings.custom_model,
            timeout=settings.request_timeout,
        )
    elif settings.gemini_api_key:
        service = GeminiResolutionService(
            settings.gemini_api_key,
            model=settings.gemini_model,
            timeout=settings.request_timeout,
        )
    else:
        logger.warning("No resolution service configured; unknown segments cannot be resolved.")

    pre_translator: PreTranslator | None = None
    if settings.baidu_configured:
        pre_translator = BaiduPreTranslator.from_settings(settings)
    return service, pre_translator
