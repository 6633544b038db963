from fastapi import APIRouter, HTTPException, Query

from novelsync.exceptions import CrawlStateError
from novelsync.services.session_service import get_service


router = APIRouter(tags=["crawl"])


def _status(include_content: bool = False):
    return get_service().status(include_content=include_content).model_dump(mode="json")


@router.get("/crawl")
def crawl_status(include_content: bool = Query(False, description="Include saved chapter text")):
    return _status(include_content)


@router.post("/crawl/start")
def crawl_start():
    try:
        get_service().start()
    except CrawlStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return _status()


@router.post("/crawl/stop")
def crawl_stop():
    """Stop after the chapter in flight has been committed."""
    try:
        get_service().stop()
    except CrawlStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return _status()


@router.post("/crawl/reset")
def crawl_reset():
    get_service().reset()
    return _status()


@router.get("/logs")
def read_logs(since: int = Query(0, ge=0, description="Return entries after this sequence number")):
    entries = get_service().activity.entries(since=since)
    return {"entries": [e.model_dump(mode="json") for e in entries]}
