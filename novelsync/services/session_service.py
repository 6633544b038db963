"""Application session: repository config, current novel and its crawl.

State flow: setup -> search -> preview -> crawling -> finished. A new search
replaces the novel and its queue; configuration lives in memory only.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from novelsync.exceptions import ConfigurationError, CrawlStateError
from novelsync.models.config import StoreConfig
from novelsync.models.crawl import AppState, StatusOut
from novelsync.models.novel import NovelMetadata
from novelsync.services.activity_log import ActivityLog
from novelsync.services.crawl.controller import CrawlController
from novelsync.services.github_store import GitHubStore
from novelsync.services.novel_provider import NovelProvider
from novelsync.settings import Settings, get_settings


class NovelSyncService:
    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        provider=None,
        store_factory: Optional[Callable[[StoreConfig], object]] = None,
        activity: Optional[ActivityLog] = None,
        background: bool = True,
    ) -> None:
        self.settings = settings or get_settings()
        self.provider = provider or NovelProvider()
        self.store_factory = store_factory or self._github_store
        self.activity = activity or ActivityLog()
        self.background = background

        self._lock = threading.RLock()
        self.state = AppState.SETUP
        self.config: Optional[StoreConfig] = None
        self.store = None
        self.novel: Optional[NovelMetadata] = None
        self.controller: Optional[CrawlController] = None
        # Controller dropped by reset() whose last chapter may still be in flight.
        self._draining: Optional[CrawlController] = None

    def _github_store(self, config: StoreConfig) -> GitHubStore:
        return GitHubStore(config, api_url=self.settings.github_api_url, timeout=self.settings.github_timeout)

    def _crawl_running(self) -> bool:
        if self._draining is not None and not self._draining.busy:
            self._draining = None
        return any(c is not None and c.busy for c in (self.controller, self._draining))

    # --- setup ---

    def configure(self, config: StoreConfig) -> bool:
        """Validate the repository and keep the config if it is reachable."""
        with self._lock:
            if self._crawl_running():
                raise CrawlStateError("Stop the running crawl before changing the repository")
            self.activity.info("Validating GitHub credentials...")
            store = self.store_factory(config)
            if not store.validate():
                _close(store)
                self.activity.error("Failed to connect to GitHub repository. Check token/permissions.")
                return False
            _close(self.store)
            self.config = config
            self.store = store
            self.activity.success(f"Connected to repo: {config.owner}/{config.repo}")
            # The old queue was bound to the previous store.
            self.novel = None
            self.controller = None
            self.state = AppState.SEARCH
            return True

    # --- search ---

    def search(self, query: str) -> Optional[NovelMetadata]:
        with self._lock:
            if self.config is None or self.store is None:
                raise ConfigurationError("Repository is not configured")
            if self._crawl_running():
                raise CrawlStateError("Stop the running crawl before starting a new search")
            query = (query or "").strip()
            if not query:
                raise ValueError("Search query is empty")

            self.activity.info(f'Searching for novel: "{query}"...')
            self.novel = None
            self.controller = None
            self.state = AppState.SEARCH
            store, path_prefix = self.store, self.config.path_prefix

        result = self.provider.find_novel(query)
        if result is None:
            self.activity.warning("No novel found or the provider refused to return data.")
            return None

        with self._lock:
            self.novel = result
            self.controller = CrawlController(
                result,
                self.provider,
                store,
                path_prefix=path_prefix,
                tick_delay=self.settings.tick_delay,
                initial_delay=self.settings.initial_delay,
                activity=self.activity,
                on_finish=self._on_finish,
            )
            self.activity.success(f"Found: {result.title} by {result.author or 'unknown author'}")
            self.activity.info(f"Found {len(result.chapters)} initial chapters available for scraping.")
            self.state = AppState.PREVIEW
            return result

    # --- crawl control ---

    def start(self) -> None:
        with self._lock:
            if self.controller is None:
                raise CrawlStateError("Search for a novel first")
            controller = self.controller
            previous, self.state = self.state, AppState.CRAWLING
        try:
            controller.start(background=self.background)
        except CrawlStateError:
            with self._lock:
                self.state = previous
            raise

    def stop(self) -> None:
        with self._lock:
            if self.controller is None:
                raise CrawlStateError("No crawl to stop")
            controller = self.controller
        controller.stop()

    def reset(self) -> None:
        """Drop the current novel and queue; keep the repository config."""
        with self._lock:
            if self.controller is not None:
                self.controller.stop()
                if self.controller.busy:
                    self._draining = self.controller
            self.novel = None
            self.controller = None
            self.state = AppState.SEARCH if self.config is not None else AppState.SETUP
            self.activity.info("Session reset.")

    def _on_finish(self, controller: CrawlController) -> None:
        with self._lock:
            if controller is self.controller:
                self.state = AppState.FINISHED

    def status(self, *, include_content: bool = False) -> StatusOut:
        with self._lock:
            controller = self.controller
            state = self.state
        if controller is None:
            return StatusOut(state=state)
        session = controller.snapshot(include_content=include_content)
        return StatusOut(state=state, session=session, progress_percent=session.progress_percent)

    def shutdown(self, timeout: float = 30.0) -> bool:
        """Stop crawling and let the chapter in flight commit; True if it did in time."""
        with self._lock:
            controllers = [c for c in (self.controller, self._draining) if c is not None]
        for c in controllers:
            c.stop()
        return all([c.wait(timeout) for c in controllers])


def _close(store) -> None:
    close = getattr(store, "close", None)
    if callable(close):
        close()


_service_cache: Optional[NovelSyncService] = None


def get_service() -> NovelSyncService:
    global _service_cache
    if _service_cache is None:
        _service_cache = NovelSyncService()
    return _service_cache
