from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol

from novelsync.exceptions import InvalidTransition
from novelsync.models.crawl import ChapterOut, ChapterStatus

_FORBIDDEN_RE = re.compile(r'[<>:"/\\|?*]+')
_NEWLINE_RE = re.compile(r"[\r\n]+")

TERMINAL_STATUSES = frozenset({ChapterStatus.SUCCESS, ChapterStatus.ERROR})

_ALLOWED = {
    ChapterStatus.PENDING: {ChapterStatus.CRAWLING},
    ChapterStatus.CRAWLING: {ChapterStatus.SUCCESS, ChapterStatus.ERROR},
    ChapterStatus.SUCCESS: set(),
    ChapterStatus.ERROR: set(),
}


def sanitize(text: str) -> str:
    """Make a title usable as one path segment.

    Removes ``< > : " / \\ | ? *`` and line breaks, then trims whitespace.
    Non-Latin letters are kept as they are.
    """
    s = _FORBIDDEN_RE.sub("", text or "")
    s = _NEWLINE_RE.sub("", s)
    return s.strip()


def chapter_file_name(chapter_id: int, chapter_title: str) -> str:
    return f"{chapter_id:03d}_{sanitize(chapter_title)}.md"


def compose_chapter_path(path_prefix: str, novel_title: str, chapter_id: int, chapter_title: str) -> str:
    """``<prefix>/<novel>/<NNN>_<chapter>.md`` with duplicate slashes collapsed."""
    novel_dir = sanitize(novel_title) or "untitled"
    raw = f"{path_prefix or ''}/{novel_dir}/{chapter_file_name(chapter_id, chapter_title)}"
    return re.sub(r"/+", "/", raw).lstrip("/")


def commit_message(chapter_title: str, novel_title: str) -> str:
    return f"Add {chapter_title} to {novel_title}"


def fetch_placeholder(chapter_title: str, exc: Optional[BaseException] = None) -> str:
    """Text committed in place of a chapter the provider could not deliver."""
    text = f"Error retrieving content for {chapter_title}."
    if exc is not None:
        text += f" \n\nSystem Error: {exc}"
    return text


@dataclass
class Chapter:
    """One queued chapter. Only the crawl controller changes status/content."""

    id: int
    title: str
    status: ChapterStatus = ChapterStatus.PENDING
    content: Optional[str] = None
    error: Optional[str] = None
    path: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(self, status: ChapterStatus) -> None:
        if status not in _ALLOWED[self.status]:
            raise InvalidTransition(f"chapter {self.id}: {self.status.value} -> {status.value}")
        self.status = status

    def to_out(self, *, include_content: bool = False) -> ChapterOut:
        return ChapterOut(
            id=self.id,
            title=self.title,
            status=self.status,
            path=self.path,
            error=self.error,
            content=self.content if include_content else None,
        )


def build_queue(titles: Iterable[str]) -> List[Chapter]:
    """Chapters in discovery order with ids starting at 1."""
    return [Chapter(id=i, title=t) for i, t in enumerate(titles, start=1)]


def compute_progress(queue: List[Chapter]) -> float:
    if not queue:
        return 0.0
    done = sum(1 for c in queue if c.is_terminal)
    return done / len(queue)


class ChapterSource(Protocol):
    def fetch_chapter_text(self, novel_title: str, chapter_title: str) -> str: ...


class ChapterStore(Protocol):
    def upload(self, path: str, content: str, message: str): ...
