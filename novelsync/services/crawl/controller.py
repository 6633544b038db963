"""Sequential crawl/persist controller.

One tick takes the first pending chapter, fetches its text from the provider,
writes it to the store and records the outcome. Ticks are separated by a fixed
delay; ``stop()`` is honoured between ticks, never in the middle of one.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

from novelsync.exceptions import CrawlStateError
from novelsync.models.crawl import ChapterStatus, SessionOut
from novelsync.models.novel import NovelMetadata
from novelsync.services.activity_log import ActivityLog
from novelsync.services.crawl.base import (
    Chapter,
    ChapterSource,
    ChapterStore,
    build_queue,
    commit_message,
    compose_chapter_path,
    compute_progress,
    fetch_placeholder,
)

logger = logging.getLogger(__name__)

DEFAULT_TICK_DELAY = 2.0
DEFAULT_INITIAL_DELAY = 0.5


class CrawlController:
    def __init__(
        self,
        novel: NovelMetadata,
        provider: ChapterSource,
        store: ChapterStore,
        *,
        path_prefix: str = "",
        tick_delay: float = DEFAULT_TICK_DELAY,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        activity: Optional[ActivityLog] = None,
        on_finish: Optional[Callable[["CrawlController"], None]] = None,
    ) -> None:
        self.novel = novel
        self.provider = provider
        self.store = store
        self.path_prefix = path_prefix
        self.tick_delay = max(float(tick_delay), 0.0)
        self.initial_delay = max(float(initial_delay), 0.0)
        self.activity = activity or ActivityLog()
        self.on_finish = on_finish

        self._queue: List[Chapter] = build_queue(novel.chapters)
        self._lock = threading.RLock()
        self._wake = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._finished = False
        self._progress = 0.0

    # --- state ---

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def busy(self) -> bool:
        """Running, or stopped with the last tick still in flight."""
        thread = self._thread
        return self.running or (thread is not None and thread.is_alive())

    @property
    def finished(self) -> bool:
        with self._lock:
            return self._finished

    @property
    def progress(self) -> float:
        with self._lock:
            return self._progress

    def snapshot(self, *, include_content: bool = False) -> SessionOut:
        with self._lock:
            return SessionOut(
                novel=self.novel,
                chapters=[c.to_out(include_content=include_content) for c in self._queue],
                running=self._running,
                finished=self._finished,
                progress=self._progress,
            )

    def next_pending(self) -> Optional[Chapter]:
        with self._lock:
            return next((c for c in self._queue if c.status == ChapterStatus.PENDING), None)

    # --- control ---

    def start(self, *, background: bool = True) -> None:
        """Begin (or resume) crawling from the first pending chapter."""
        with self._lock:
            if not self._queue:
                raise CrawlStateError("Chapter queue is empty")
            if self._running:
                raise CrawlStateError("A crawl is already running")
            if self._thread is not None and self._thread.is_alive():
                # Stopped, but the last tick has not committed yet.
                raise CrawlStateError("Previous crawl is still finishing its current chapter")
            self._running = True
            self._finished = False
            self._wake.clear()
        self.activity.info("Starting batch crawl process...")
        if background:
            self._thread = threading.Thread(target=self._loop, name="novelsync-crawl", daemon=True)
            self._thread.start()
        else:
            self._loop()

    def stop(self) -> None:
        with self._lock:
            was_running = self._running
            self._running = False
            # Set under the lock so a concurrent start() cannot clear it first.
            self._wake.set()
        if was_running:
            self.activity.warning("Crawling paused by user.")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Join the background loop; True once it has exited."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def _pause(self, delay: float) -> bool:
        """Sleep between ticks; True if a stop was requested."""
        if delay > 0:
            self._wake.wait(delay)
        return not self.running

    def _loop(self) -> None:
        try:
            if self._pause(self.initial_delay):
                return
            while self.running:
                if self.advance_one() is None:
                    break
                if self._pause(self.tick_delay):
                    if self.next_pending() is None:
                        # Stopped on the last chapter: close the session out.
                        self.advance_one()
                    break
        except Exception:
            logger.exception("Crawl loop aborted")
            self.activity.error("Crawl loop aborted unexpectedly; see server log.")
            raise
        finally:
            with self._lock:
                self._running = False

    # --- one tick ---

    def advance_one(self) -> Optional[Chapter]:
        """Process the first pending chapter; None when nothing is left."""
        with self._lock:
            chapter = self.next_pending()
            if chapter is None:
                self._finished = True
                self._running = False
            else:
                chapter.transition(ChapterStatus.CRAWLING)
        if chapter is None:
            self.activity.success("All scheduled chapters processed.")
            if self.on_finish is not None:
                self.on_finish(self)
            return None

        novel_title = self.novel.title
        self.activity.info(f"Fetching content: {chapter.title}")
        content = self._fetch(novel_title, chapter.title)

        path = compose_chapter_path(self.path_prefix, novel_title, chapter.id, chapter.title)
        self.activity.info(f"Uploading to GitHub: {chapter.title}")
        try:
            result = self.store.upload(path, content, commit_message(chapter.title, novel_title))
            ok, reason = bool(result.success), result.message
        except Exception as exc:
            logger.exception("Store upload raised for %s", path)
            ok, reason = False, str(exc) or exc.__class__.__name__

        with self._lock:
            chapter.path = path
            if ok:
                chapter.transition(ChapterStatus.SUCCESS)
                chapter.content = content
            else:
                chapter.transition(ChapterStatus.ERROR)
                chapter.error = reason or "Unknown error"
            self._progress = max(self._progress, compute_progress(self._queue))

        if ok:
            self.activity.success(f"Saved {chapter.title} successfully.")
        else:
            self.activity.error(f"Failed to save {chapter.title}: {chapter.error}")
        return chapter

    def _fetch(self, novel_title: str, chapter_title: str) -> str:
        try:
            content = self.provider.fetch_chapter_text(novel_title, chapter_title)
        except Exception as exc:
            logger.warning("Provider raised for %s: %s", chapter_title, exc)
            content = ""
        if not content or not content.strip():
            self.activity.warning(f"No content returned for {chapter_title}; saving placeholder.")
            return fetch_placeholder(chapter_title)
        return content
