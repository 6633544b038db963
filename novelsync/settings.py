"""Runtime settings read from environment variables.

- LLM_API_KEY / OPENAI_API_KEY / GEMINI_API_KEY
- LLM_BASE_URL (defaults to the Gemini OpenAI-compatible endpoint when only GEMINI_API_KEY is set)
- LLM_MODEL (default: gemini-2.5-flash), LLM_TIMEOUT
- LLM_WEB_SEARCH ("1" to request web-search grounding). Off by default: Gemini's
  OpenAI-compatible endpoint does not accept web_search_options, so chapters
  and searches come back without source URLs unless a search-capable model
  (e.g. gpt-4o-search-preview) is configured.
- GITHUB_API_URL, GITHUB_TIMEOUT
- NOVELSYNC_TICK_DELAY, NOVELSYNC_INITIAL_DELAY, NOVELSYNC_PATH_PREFIX
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_PATH_PREFIX = "novels/my-novels/"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_flag(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    llm_api_key: Optional[str] = None
    llm_base_url: Optional[str] = None
    llm_model: str = "gemini-2.5-flash"
    llm_timeout: float = 60.0
    llm_web_search: bool = False
    github_api_url: str = "https://api.github.com"
    github_timeout: float = 20.0
    tick_delay: float = 2.0
    initial_delay: float = 0.5
    path_prefix: str = DEFAULT_PATH_PREFIX

    @classmethod
    def from_env(cls) -> "Settings":
        api_key = os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY") or os.getenv("GEMINI_API_KEY")
        # Only a Gemini key present: talk to Gemini through its OpenAI-compatible endpoint.
        gemini_only = bool(os.getenv("GEMINI_API_KEY")) and not (os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY"))
        base_url = os.getenv("LLM_BASE_URL") or (GEMINI_OPENAI_BASE_URL if gemini_only else None)
        return cls(
            llm_api_key=api_key,
            llm_base_url=base_url,
            llm_model=os.getenv("LLM_MODEL") or cls.llm_model,
            llm_timeout=_env_float("LLM_TIMEOUT", cls.llm_timeout),
            llm_web_search=_env_flag("LLM_WEB_SEARCH"),
            github_api_url=(os.getenv("GITHUB_API_URL") or cls.github_api_url).rstrip("/"),
            github_timeout=_env_float("GITHUB_TIMEOUT", cls.github_timeout),
            tick_delay=_env_float("NOVELSYNC_TICK_DELAY", cls.tick_delay),
            initial_delay=_env_float("NOVELSYNC_INITIAL_DELAY", cls.initial_delay),
            path_prefix=os.getenv("NOVELSYNC_PATH_PREFIX") or DEFAULT_PATH_PREFIX,
        )


_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings.from_env()
    return _settings_cache
