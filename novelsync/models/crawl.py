from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from novelsync.models.novel import NovelMetadata


class ChapterStatus(str, Enum):
    PENDING = "pending"
    CRAWLING = "crawling"
    SUCCESS = "success"
    ERROR = "error"


class AppState(str, Enum):
    SETUP = "setup"
    SEARCH = "search"
    PREVIEW = "preview"
    CRAWLING = "crawling"
    FINISHED = "finished"


class ChapterOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    status: ChapterStatus
    path: Optional[str] = None
    error: Optional[str] = None
    content: Optional[str] = None


class SessionOut(BaseModel):
    """Read-only view of a crawl session, safe to hand to another thread."""

    model_config = ConfigDict(frozen=True)

    novel: NovelMetadata
    chapters: List[ChapterOut]
    running: bool
    finished: bool
    progress: float = Field(..., ge=0.0, le=1.0, description="Terminal chapters / total chapters")

    @property
    def progress_percent(self) -> float:
        return round(self.progress * 100, 1)

    def count(self, status: ChapterStatus) -> int:
        return sum(1 for c in self.chapters if c.status == status)


class StatusOut(BaseModel):
    state: AppState
    session: Optional[SessionOut] = None
    progress_percent: float = 0.0
