"""Novel metadata and chapter text from the LLM provider.

Two queries are supported:

- ``find_novel(query)``: metadata plus the initial chapter list, parsed from a
  JSON object the model is asked to return (optionally wrapped in a fenced
  code block). Returns ``None`` when nothing usable comes back.
- ``fetch_chapter_text(novel_title, chapter_title)``: Markdown text of one
  chapter. Never raises; faults are turned into a diagnostic string so the
  crawl loop can always continue.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from novelsync.models.novel import NovelMetadata
from novelsync.services.crawl.base import fetch_placeholder
from novelsync.services.llm_client import get_llm_client

logger = logging.getLogger(__name__)

SEARCH_TEMPERATURE = 0.1
CONTENT_TEMPERATURE = 0.3
SEARCH_MAX_TOKENS = 2000
CONTENT_MAX_TOKENS = 8192
INITIAL_CHAPTER_COUNT = 20

NO_CONTENT_TEXT = "Error: No content generated."

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def strip_code_fence(text: str) -> str:
    """Return the body of the first fenced code block, or the trimmed text."""
    s = (text or "").strip()
    m = _FENCE_RE.search(s)
    if m:
        return m.group(1)
    return s


def dedupe_sources(urls: List[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for u in urls or []:
        if u and u not in seen:
            seen.add(u)
            out.append(u)
    return out


def build_search_prompt(query: str) -> str:
    return (
        f"Find detailed metadata for the novel '{query}'.\n"
        f"I need the exact title, author, a brief description, and a list of the first "
        f"{INITIAL_CHAPTER_COUNT} chapter titles.\n\n"
        "LANGUAGE RULE:\n"
        f"- If the query '{query}' is not in English (for example it contains Chinese characters), "
        "the returned title, author, description and chapters MUST be in that same language.\n"
        "- Do NOT translate the results into English.\n\n"
        "Respond with a VALID JSON object (and nothing else) using this structure:\n"
        '{"title": "Official Title", "author": "Author Name", "description": "Short synopsis", '
        '"totalChaptersEstimate": 1000, "chapters": ["Chapter 1: Name", "Chapter 2: Name"]}'
    )


def build_chapter_prompt(novel_title: str, chapter_title: str) -> str:
    return (
        "You are a web crawler and archiver.\n"
        f"Task: retrieve or reconstruct the full text of '{chapter_title}' from the novel '{novel_title}'.\n"
        "- If the text is found, output it verbatim.\n"
        "- If only summaries are found, write a detailed retelling of the chapter.\n"
        "- Format the output as clean Markdown with no intro or outro.\n"
        f'- Start with the header "# {chapter_title}".\n\n'
        "LANGUAGE RULE:\n"
        f"- The output MUST be in the language of the novel title '{novel_title}'. Do NOT translate it."
    )


def parse_metadata(text: str, sources: Optional[List[str]] = None) -> Optional[NovelMetadata]:
    """Parse a provider reply into NovelMetadata; None if it is not a usable object."""
    body = strip_code_fence(text)
    if not body:
        return None
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        logger.warning("Provider metadata is not valid JSON: %.200s", body)
        return None
    if not isinstance(data, dict):
        return None
    payload: Dict[str, Any] = dict(data)
    payload["sources"] = dedupe_sources(sources or [])
    try:
        return NovelMetadata.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Provider metadata failed validation: %s", exc)
        return None


def append_sources_footer(content: str, sources: List[str]) -> str:
    unique = dedupe_sources(sources)
    if not unique:
        return content
    lines = "\n".join(f"- <{s}>" for s in unique)
    return f"{content}\n\n---\n**Sources:**\n{lines}"


class NovelProvider:
    """Provider operations on top of an LLM client exposing ``generate``."""

    def __init__(self, llm=None) -> None:
        self._llm = llm

    @property
    def llm(self):
        if self._llm is None:
            self._llm = get_llm_client()
        return self._llm

    def find_novel(self, query: str) -> Optional[NovelMetadata]:
        query = (query or "").strip()
        if not query:
            return None
        try:
            text, sources, _ = self.llm.generate(
                [{"role": "user", "content": build_search_prompt(query)}],
                temperature=SEARCH_TEMPERATURE,
                max_tokens=SEARCH_MAX_TOKENS,
            )
        except Exception as exc:
            logger.error("Provider search error for %r: %s", query, exc)
            return None
        return parse_metadata(text, sources)

    def fetch_chapter_text(self, novel_title: str, chapter_title: str) -> str:
        try:
            text, sources, _ = self.llm.generate(
                [{"role": "user", "content": build_chapter_prompt(novel_title, chapter_title)}],
                temperature=CONTENT_TEMPERATURE,
                max_tokens=CONTENT_MAX_TOKENS,
            )
            content = text or NO_CONTENT_TEXT
            return append_sources_footer(content, sources)
        except Exception as exc:
            logger.error("Provider fetch error for %s: %s", chapter_title, exc)
            return fetch_placeholder(chapter_title, exc)
