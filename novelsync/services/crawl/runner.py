from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional

from novelsync.models.config import StoreConfig
from novelsync.models.crawl import ChapterStatus
from novelsync.services.activity_log import ActivityLog
from novelsync.services.crawl.controller import CrawlController
from novelsync.services.github_store import GitHubStore
from novelsync.services.novel_provider import NovelProvider
from novelsync.settings import get_settings


def run_crawl(
    query: str,
    config: StoreConfig,
    *,
    provider: Optional[NovelProvider] = None,
    store=None,
    tick_delay: Optional[float] = None,
    limit: Optional[int] = None,
    activity: Optional[ActivityLog] = None,
) -> int:
    """Search, then crawl every chapter in the foreground. Returns a process exit code."""
    settings = get_settings()
    provider = provider or NovelProvider()
    activity = activity or ActivityLog()
    own_store = store is None
    if own_store:
        store = GitHubStore(config, api_url=settings.github_api_url, timeout=settings.github_timeout)
    try:
        activity.info("Validating GitHub credentials...")
        if not store.validate():
            activity.error("Failed to connect to GitHub repository. Check token/permissions.")
            return 2
        activity.success(f"Connected to repo: {config.owner}/{config.repo}")

        activity.info(f'Searching for novel: "{query}"...')
        novel = provider.find_novel(query)
        if novel is None:
            activity.warning("No novel found or the provider refused to return data.")
            return 1
        if limit is not None:
            novel = novel.model_copy(update={"chapters": novel.chapters[: max(limit, 0)]})
        activity.success(f"Found: {novel.title} by {novel.author or 'unknown author'}")
        if not novel.chapters:
            activity.warning("No chapters to crawl.")
            return 1

        controller = CrawlController(
            novel,
            provider,
            store,
            path_prefix=config.path_prefix,
            tick_delay=settings.tick_delay if tick_delay is None else tick_delay,
            initial_delay=0.0,
            activity=activity,
        )
        try:
            controller.start(background=False)
        except KeyboardInterrupt:
            controller.stop()
            activity.warning("Interrupted; completed chapters were kept.")
            return 130
        failed = controller.snapshot().count(ChapterStatus.ERROR)
        return 0 if failed == 0 else 3
    finally:
        if own_store:
            store.close()


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(prog="novelsync", description="Crawl novel chapters into a GitHub repository")
    sub = parser.add_subparsers(dest="cmd", required=True)

    settings = get_settings()
    crawl = sub.add_parser("crawl", help="Search a novel and commit its chapters (foreground)")
    crawl.add_argument("query", help="Novel title or search text")
    crawl.add_argument("--owner", required=True, help="Repository owner")
    crawl.add_argument("--repo", required=True, help="Repository name")
    crawl.add_argument("--token", default=os.getenv("GITHUB_TOKEN"), help="GitHub token (default: $GITHUB_TOKEN)")
    crawl.add_argument("--path-prefix", default=settings.path_prefix, help="Folder inside the repository")
    crawl.add_argument("--delay", type=float, default=None, help="Seconds between chapters")
    crawl.add_argument("--limit", type=int, default=None, help="Only crawl the first N chapters")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)

    if args.cmd == "crawl":
        if not args.token:
            parser.error("a GitHub token is required (--token or GITHUB_TOKEN)")
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
        config = StoreConfig(token=args.token, owner=args.owner, repo=args.repo, path_prefix=args.path_prefix)
        return run_crawl(args.query, config, tick_delay=args.delay, limit=args.limit)

    if args.cmd == "serve":
        import uvicorn

        uvicorn.run("novelsync.main:app", host=args.host, port=args.port)
        return 0

    parser.error("unknown command")
    return 2


if __name__ == "__main__":
    sys.exit(main())
