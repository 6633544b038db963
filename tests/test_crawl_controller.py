import threading
import time

import pytest

from novelsync.exceptions import CrawlStateError
from novelsync.models.crawl import ChapterStatus
from novelsync.models.logs import LogLevel
from novelsync.models.novel import NovelMetadata
from novelsync.services.activity_log import ActivityLog
from novelsync.services.crawl.controller import CrawlController
from novelsync.services.github_store import UploadResult


class _FakeProvider:
    def __init__(self, texts=None, raise_for=()):
        self.texts = texts or {}
        self.raise_for = set(raise_for)
        self.calls = []

    def fetch_chapter_text(self, novel_title, chapter_title):
        self.calls.append((novel_title, chapter_title))
        if chapter_title in self.raise_for:
            raise RuntimeError("provider down")
        return self.texts.get(chapter_title, f"# {chapter_title}\n\nbody")


class _FakeStore:
    def __init__(self, fail_paths=(), on_upload=None):
        self.fail_paths = set(fail_paths)
        self.on_upload = on_upload
        self.uploads = []

    def upload(self, path, content, message):
        self.uploads.append((path, content, message))
        if self.on_upload is not None:
            self.on_upload(path)
        if path in self.fail_paths:
            return UploadResult(False, "sha mismatch")
        return UploadResult(True)


def _novel(n=3, title="Book"):
    return NovelMetadata(title=title, author="A", chapters=[f"Ch{i}" for i in range(1, n + 1)])


def _controller(novel, provider, store, **kw):
    kw.setdefault("tick_delay", 0)
    kw.setdefault("initial_delay", 0)
    return CrawlController(novel, provider, store, path_prefix="novels/", **kw)


def test_run_to_completion_marks_every_chapter_terminal():
    store = _FakeStore()
    c = _controller(_novel(4), _FakeProvider(), store)
    c.start(background=False)

    snap = c.snapshot(include_content=True)
    assert snap.finished is True
    assert snap.running is False
    assert snap.progress == 1.0
    assert [ch.status for ch in snap.chapters] == [ChapterStatus.SUCCESS] * 4
    assert [p for p, _, _ in store.uploads] == [
        "novels/Book/001_Ch1.md",
        "novels/Book/002_Ch2.md",
        "novels/Book/003_Ch3.md",
        "novels/Book/004_Ch4.md",
    ]
    assert store.uploads[0][2] == "Add Ch1 to Book"
    assert snap.chapters[0].content.startswith("# Ch1")


def test_at_most_one_chapter_crawling_and_progress_monotonic():
    observed = []
    holder = {}

    def _watch(path):
        snap = holder["c"].snapshot()
        observed.append((snap.count(ChapterStatus.CRAWLING), snap.progress))

    store = _FakeStore(on_upload=_watch)
    c = _controller(_novel(5), _FakeProvider(), store)
    holder["c"] = c
    c.start(background=False)

    assert [n for n, _ in observed] == [1] * 5
    # progress seen during upload k (1-based) reflects k-1 finished chapters
    assert [p for _, p in observed] == [0.0, 0.2, 0.4, 0.6, 0.8]
    assert c.progress == 1.0


def test_ids_are_stable_and_sequential():
    c = _controller(_novel(3), _FakeProvider(), _FakeStore())
    before = [ch.id for ch in c.snapshot().chapters]
    c.start(background=False)
    after = [ch.id for ch in c.snapshot().chapters]
    assert before == after == [1, 2, 3]


def test_empty_provider_result_still_persists_placeholder():
    store = _FakeStore()
    c = _controller(_novel(1), _FakeProvider(texts={"Ch1": ""}), store)
    chapter = c.advance_one()

    assert chapter.status == ChapterStatus.SUCCESS
    path, content, _ = store.uploads[0]
    assert path == "novels/Book/001_Ch1.md"
    assert content == "Error retrieving content for Ch1."
    assert c.advance_one() is None
    assert c.finished


def test_provider_exception_is_swallowed_into_placeholder():
    store = _FakeStore()
    c = _controller(_novel(2), _FakeProvider(raise_for={"Ch1"}), store)
    c.start(background=False)
    assert store.uploads[0][1].startswith("Error retrieving content for Ch1")
    assert c.snapshot().count(ChapterStatus.SUCCESS) == 2


def test_store_failure_marks_error_and_loop_continues():
    activity = ActivityLog()
    store = _FakeStore(fail_paths={"novels/Book/002_Ch2.md"})
    c = _controller(_novel(3), _FakeProvider(), store, activity=activity)
    c.start(background=False)

    snap = c.snapshot(include_content=True)
    assert [ch.status for ch in snap.chapters] == [
        ChapterStatus.SUCCESS,
        ChapterStatus.ERROR,
        ChapterStatus.SUCCESS,
    ]
    failed = snap.chapters[1]
    assert failed.content is None
    assert failed.error == "sha mismatch"
    assert snap.progress == 1.0
    errors = [e.message for e in activity.entries() if e.level == LogLevel.ERROR]
    assert errors == ["Failed to save Ch2: sha mismatch"]


def test_store_exception_marks_error():
    class _BrokenStore:
        def upload(self, path, content, message):
            raise ConnectionError("network unreachable")

    c = _controller(_novel(2), _FakeProvider(), _BrokenStore())
    c.start(background=False)
    snap = c.snapshot()
    assert snap.count(ChapterStatus.ERROR) == 2
    assert snap.chapters[0].error == "network unreachable"
    assert snap.finished


def test_stop_then_start_resumes_from_first_pending():
    holder = {}

    def _stop_after_second(path):
        if path.endswith("002_Ch2.md"):
            holder["c"].stop()

    store = _FakeStore(on_upload=_stop_after_second)
    c = _controller(_novel(5), _FakeProvider(), store)
    holder["c"] = c

    c.start(background=False)
    snap = c.snapshot()
    assert [ch.status for ch in snap.chapters] == [
        ChapterStatus.SUCCESS,
        ChapterStatus.SUCCESS,
        ChapterStatus.PENDING,
        ChapterStatus.PENDING,
        ChapterStatus.PENDING,
    ]
    assert snap.running is False
    assert snap.finished is False
    assert snap.progress == pytest.approx(0.4)

    store.on_upload = None
    c.start(background=False)
    assert [p.rsplit("/", 1)[-1] for p, _, _ in store.uploads] == [
        "001_Ch1.md",
        "002_Ch2.md",
        "003_Ch3.md",
        "004_Ch4.md",
        "005_Ch5.md",
    ]
    assert c.finished
    assert c.snapshot().count(ChapterStatus.SUCCESS) == 5


def test_start_requires_non_empty_queue():
    c = _controller(NovelMetadata(title="Empty", chapters=[]), _FakeProvider(), _FakeStore())
    with pytest.raises(CrawlStateError):
        c.start(background=False)


def test_background_run_and_double_start_rejected():
    entered = threading.Event()
    release = threading.Event()

    def _block(path):
        entered.set()
        release.wait(5)

    store = _FakeStore(on_upload=_block)
    c = _controller(_novel(2), _FakeProvider(), store)
    c.start()
    assert entered.wait(5)
    with pytest.raises(CrawlStateError):
        c.start()

    c.stop()
    # the first chapter is still in flight
    with pytest.raises(CrawlStateError):
        c.start()
    assert c.busy

    release.set()
    assert c.wait(5)
    snap = c.snapshot()
    assert [ch.status for ch in snap.chapters] == [ChapterStatus.SUCCESS, ChapterStatus.PENDING]
    assert not c.busy

    store.on_upload = None
    c.start()
    assert c.wait(5)
    assert c.finished


def test_finish_callback_and_logs():
    finished = []
    activity = ActivityLog()
    c = _controller(_novel(1), _FakeProvider(), _FakeStore(), activity=activity, on_finish=finished.append)
    c.start(background=False)
    assert finished == [c]
    messages = [e.message for e in activity.entries()]
    assert messages == [
        "Starting batch crawl process...",
        "Fetching content: Ch1",
        "Uploading to GitHub: Ch1",
        "Saved Ch1 successfully.",
        "All scheduled chapters processed.",
    ]


def _timed_store():
    stamps = []
    return _FakeStore(on_upload=lambda path: stamps.append(time.monotonic())), stamps


def test_ticks_are_paced_by_tick_delay_after_initial_delay():
    store, stamps = _timed_store()
    c = _controller(_novel(3), _FakeProvider(), store, tick_delay=0.1, initial_delay=0.15)
    started = time.monotonic()
    c.start()
    assert c.wait(5)

    assert len(stamps) == 3
    assert stamps[0] - started >= 0.12
    assert all(b - a >= 0.08 for a, b in zip(stamps, stamps[1:]))
    assert c.finished


def test_stop_interrupts_tick_delay():
    entered = threading.Event()
    store = _FakeStore(on_upload=lambda path: entered.set())
    c = _controller(_novel(3), _FakeProvider(), store, tick_delay=5)
    c.start()
    assert entered.wait(5)
    time.sleep(0.05)

    started = time.monotonic()
    c.stop()
    assert c.wait(2)
    assert time.monotonic() - started < 1
    assert len(store.uploads) == 1
    assert c.snapshot().count(ChapterStatus.PENDING) == 2
    assert not c.finished


def test_stop_interrupts_initial_delay():
    store = _FakeStore()
    c = _controller(_novel(2), _FakeProvider(), store, initial_delay=5)
    c.start()

    started = time.monotonic()
    c.stop()
    assert c.wait(2)
    assert time.monotonic() - started < 1
    assert store.uploads == []
    assert c.snapshot().count(ChapterStatus.PENDING) == 2


def test_start_during_stop_keeps_its_initial_delay():
    store, stamps = _timed_store()
    c = _controller(_novel(1), _FakeProvider(), store, initial_delay=0.3)
    real_set = c._wake.set
    starters = []

    def _set_with_racing_start():
        if not starters:
            t = threading.Thread(target=c.start)
            starters.append(t)
            t.start()
            # start() must wait for stop() to release the lock.
            t.join(0.1)
        real_set()

    c._wake.set = _set_with_racing_start
    c.stop()
    stopped = time.monotonic()

    starters[0].join(5)
    assert c.wait(5)
    assert len(stamps) == 1
    assert stamps[0] - stopped >= 0.2
    assert c.finished


def test_stop_during_last_chapter_still_finishes_session():
    holder = {}
    finished = []

    def _stop_on_last(path):
        if path.endswith("002_Ch2.md"):
            holder["c"].stop()

    c = _controller(_novel(2), _FakeProvider(), _FakeStore(on_upload=_stop_on_last), on_finish=finished.append)
    holder["c"] = c
    c.start(background=False)

    snap = c.snapshot()
    assert snap.finished is True
    assert snap.running is False
    assert [ch.status for ch in snap.chapters] == [ChapterStatus.SUCCESS, ChapterStatus.SUCCESS]
    assert finished == [c]
