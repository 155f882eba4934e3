"""
Configuration for prompt segment processing.

Precompiled patterns and tunables shared by every service, plus the settings
that select and authenticate the external resolution backends.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

from promptsync.paths import LEARNED_DICTIONARY_FILE
from promptsync.prompt_data import CATEGORY_OTHER, DEFAULT_CATEGORY_NAMES
from promptsync.types.tags import CategoryDef


def _parse_float(value: str | None, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "y", "on")


@dataclass(frozen=True)
class PromptSyncConfig:
    """Immutable configuration with precompiled patterns."""

    # Any run of ASCII comma, CJK comma or newline separates segments
    split_pattern: re.Pattern[str]
    # Leading and trailing bracket runs stripped before dictionary lookup
    lookup_strip_pattern: re.Pattern[str]
    cjk_pattern: re.Pattern[str]
    categories: tuple[CategoryDef, ...]
    join_delimiter: str = ", "
    settle_delay: float = 0.8
    fallback_category: str = CATEGORY_OTHER
    unknown_category: str = "Unknown"
    pending_placeholder: str = "..."
    target_language: str = "zh"
    dictionary_path: Path | None = None
    history_limit: int = 100
    history_debounce: float = 0.6

    @classmethod
    def create_default(cls, **overrides) -> PromptSyncConfig:
        values = {
            "split_pattern": re.compile(r"[,，\n]+"),
            "lookup_strip_pattern": re.compile(r"^[(\[{<]+|[)\]}>]+$"),
            "cjk_pattern": re.compile(r"[\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff\u3000-\u303f\uff00-\uffef]"),
            "categories": tuple(CategoryDef(id=cid, name=name) for cid, name in DEFAULT_CATEGORY_NAMES),
            "dictionary_path": LEARNED_DICTIONARY_FILE,
        }
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_env(cls, **overrides) -> PromptSyncConfig:
        """Default configuration with environment overrides applied."""
        env_values = {}
        dictionary_path = os.getenv("PROMPTSYNC_DICTIONARY_PATH")
        if dictionary_path:
            env_values["dictionary_path"] = Path(dictionary_path)
        if os.getenv("PROMPTSYNC_SETTLE_DELAY"):
            env_values["settle_delay"] = _parse_float(os.getenv("PROMPTSYNC_SETTLE_DELAY"), 0.8)
        env_values.update(overrides)
        return cls.create_default(**env_values)

    @property
    def category_names(self) -> list[str]:
        return [category.name for category in self.categories]


@dataclass(frozen=True)
class ServiceSettings:
    """Backend selection for the resolution and pre-translation services."""

    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    use_custom: bool = False
    custom_base_url: str = ""
    custom_api_key: str = ""
    custom_model: str = ""
    baidu_enabled: bool = False
    baidu_app_id: str = ""
    baidu_secret_key: str = ""
    request_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> ServiceSettings:
        custom_base_url = os.getenv("PROMPTSYNC_CUSTOM_BASE_URL", "")
        baidu_app_id = os.getenv("BAIDU_APP_ID", "")
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY", os.getenv("API_KEY", "")),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
            use_custom=_parse_bool(os.getenv("PROMPTSYNC_USE_CUSTOM"), bool(custom_base_url)),
            custom_base_url=custom_base_url,
            custom_api_key=os.getenv("PROMPTSYNC_CUSTOM_API_KEY", ""),
            custom_model=os.getenv("PROMPTSYNC_CUSTOM_MODEL", ""),
            baidu_enabled=_parse_bool(os.getenv("BAIDU_ENABLED"), bool(baidu_app_id)),
            baidu_app_id=baidu_app_id,
            baidu_secret_key=os.getenv("BAIDU_SECRET_KEY", ""),
            request_timeout=_parse_float(os.getenv("PROMPTSYNC_REQUEST_TIMEOUT"), 30.0),
        )

    @property
    def custom_configured(self) -> bool:
        return self.use_custom and bool(self.custom_base_url) and bool(self.custom_api_key)

    @property
    def baidu_configured(self) -> bool:
        return self.baidu_enabled and bool(self.baidu_app_id) and bool(self.baidu_secret_key)
