"""LLM client wrapper for OpenAI-compatible chat-completion endpoints.

Works with Google Gemini through its OpenAI-compatible endpoint or with any
other OpenAI-compatible base_url. Credentials are passed in explicitly; see
``novelsync.settings`` for the environment variables the app reads.

Usage:
    from novelsync.services.llm_client import get_llm_client
    client = get_llm_client()
    text, sources, model = client.generate([
        {"role": "user", "content": "Say hi"},
    ])
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

try:
    from openai import OpenAI
except Exception as _exc:  # pragma: no cover - import checked at runtime
    OpenAI = None
    _openai_import_error = _exc

from novelsync.settings import get_settings


def extract_citation_urls(message: Any) -> List[str]:
    """Return deduplicated ``url_citation`` URLs attached to a completion message.

    Handles both typed client objects and plain dicts.
    """
    annotations = getattr(message, "annotations", None)
    if annotations is None and isinstance(message, dict):
        annotations = message.get("annotations")
    urls: List[str] = []
    for ann in annotations or []:
        if isinstance(ann, dict):
            citation = ann.get("url_citation") or {}
            url = citation.get("url") if isinstance(citation, dict) else getattr(citation, "url", None)
        else:
            citation = getattr(ann, "url_citation", None)
            url = getattr(citation, "url", None) if citation is not None else None
        if url:
            urls.append(str(url))
    return list(dict.fromkeys(urls))


class LLMClient:
    def __init__(
        self,
        *,
        api_key: str,
        base_url: Optional[str] = None,
        model: str = "gemini-2.5-flash",
        timeout: float = 60.0,
        web_search: bool = False,
    ) -> None:
        if OpenAI is None:  # pragma: no cover
            raise RuntimeError(
                "The 'openai' package is not installed. Install with: pip install openai"
                f"\nImport error: {_openai_import_error!r}"
            )
        if not api_key:
            raise RuntimeError("Missing LLM API key. Set LLM_API_KEY or OPENAI_API_KEY or GEMINI_API_KEY.")
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.timeout = timeout
        self.web_search = web_search

        if self.base_url:
            self._client = OpenAI(api_key=self.api_key, base_url=self.base_url, timeout=self.timeout)
        else:
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)

    def generate(
        self,
        messages: List[Dict[str, Any]],
        *,
        temperature: float = 0.2,
        max_tokens: int = 1200,
        model: Optional[str] = None,
    ) -> Tuple[str, List[str], str]:
        """Generate a chat completion and return (text, source_urls, model).

        source_urls are the grounding citations the model attached, if any.
        """
        payload: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "max_tokens": int(max_tokens),
        }
        if self.web_search:
            # Search-enabled models reject sampling parameters.
            payload["web_search_options"] = {}
        else:
            payload["temperature"] = float(temperature)

        resp = self._client.chat.completions.create(**payload)
        if not resp.choices:
            return "", [], getattr(resp, "model", None) or payload["model"]
        message = resp.choices[0].message
        text = (message.content or "").strip()
        return text, extract_citation_urls(message), getattr(resp, "model", None) or payload["model"]


_client_cache: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    global _client_cache
    if _client_cache is None:
        settings = get_settings()
        _client_cache = LLMClient(
            api_key=settings.llm_api_key or "",
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            timeout=settings.llm_timeout,
            web_search=settings.llm_web_search,
        )
    return _client_cache
