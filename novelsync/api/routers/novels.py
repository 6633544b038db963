from fastapi import APIRouter, HTTPException

from novelsync.exceptions import ConfigurationError, CrawlStateError
from novelsync.models.novel import SearchRequest
from novelsync.services.session_service import get_service


router = APIRouter(tags=["novels"])


@router.post("/novels/search")
def search_novel(req: SearchRequest):
    """Ask the provider for novel metadata and prepare the chapter queue.

    404 when nothing usable was found; the caller may search again.
    """
    service = get_service()
    try:
        novel = service.search(req.query)
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except CrawlStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if novel is None:
        raise HTTPException(status_code=404, detail="No novel found or the provider refused to return data.")
    status = service.status()
    return {
        "novel": novel.model_dump(by_alias=True),
        "chapters": [c.model_dump() for c in status.session.chapters] if status.session else [],
        "state": status.state.value,
    }
