"""
Baidu machine-translation adapter used as an optional pre-translation step.

Translations come back as hints: the resolution service then only classifies
the segments instead of translating them.
"""
from __future__ import annotations

import asyncio
import hashlib
import logging
import random

import requests

from promptsync.exceptions import PreTranslationError
from promptsync.types import ServiceSettings

logger = logging.getLogger(__name__)

BAIDU_TRANSLATE_URL = "https://fanyi-api.baidu.com/api/trans/vip/translate"


def baidu_sign(app_id: str, query: str, salt: str, secret_key: str) -> str:
    """MD5 hex digest of ``appid + q + salt + secret`` over UTF-8 bytes."""
    return hashlib.md5(f"{app_id}{query}{salt}{secret_key}".encode()).hexdigest()


class BaiduPreTranslator:
    """Translates a batch of segments in one request (newline-joined query)."""

    def __init__(
        self,
        app_id: str,
        secret_key: str,
        timeout: float = 10.0,
        session: requests.Session | None = None,
        url: str = BAIDU_TRANSLATE_URL,
    ):
        if not app_id or not secret_key:
            raise ValueError("Baidu pre-translation needs both an app id and a secret key")
        self._app_id = app_id
        self._secret_key = secret_key
        self._timeout = timeout
        self._session = session or requests.Session()
        self._url = url

    @classmethod
    def from_settings(cls, settings: ServiceSettings) -> BaiduPreTranslator:
        return cls(settings.baidu_app_id, settings.baidu_secret_key, timeout=settings.request_timeout)

    async def translate(self, texts: list[str], target_language: str) -> list[str]:
        if not texts:
            return []
        return await asyncio.to_thread(self._translate_sync, list(texts), target_language)

    def _translate_sync(self, texts: list[str], target_language: str) -> list[str]:
        query = "\n".join(texts)
        salt = str(random.randint(32768, 65536))
        params = {
            "q": query,
            "appid": self._app_id,
            "salt": salt,
            "from": "auto",
            "to": target_language,
            "sign": baidu_sign(self._app_id, query, salt, self._secret_key),
        }
        try:
            resp = self._session.get(self._url, params=params, timeout=self._timeout)
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as e:
            raise PreTranslationError(f"Baidu request failed: {e}") from e
        except ValueError as e:
            raise PreTranslationError(f"Baidu returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise PreTranslationError("Baidu returned an unexpected response structure")
        if data.get("error_code") and str(data["error_code"]) != "52000":
            raise PreTranslationError(f"Baidu API error {data['error_code']}: {data.get('error_msg', '')}")

        results = data.get("trans_result")
        if not isinstance(results, list):
            raise PreTranslationError("Baidu response has no trans_result")
        return [str(item.get("dst", "")) if isinstance(item, dict) else "" for item in results]
