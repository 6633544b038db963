from fastapi import APIRouter, HTTPException

from novelsync.exceptions import CrawlStateError
from novelsync.models.config import StoreConfig, StoreConfigOut
from novelsync.services.session_service import get_service


router = APIRouter(tags=["config"])


@router.get("/config")
def read_config():
    service = get_service()
    if service.config is None:
        return {"configured": False, "state": service.state.value}
    return {
        "configured": True,
        "state": service.state.value,
        "config": StoreConfigOut.from_config(service.config).model_dump(),
    }


@router.post("/config")
def save_config(config: StoreConfig):
    """Validate repository access and keep the config for this session."""
    service = get_service()
    try:
        ok = service.configure(config)
    except CrawlStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Repository validation failed: {exc}")
    if not ok:
        raise HTTPException(status_code=400, detail="Failed to connect to GitHub repository. Check token/permissions.")
    return {
        "ok": True,
        "state": service.state.value,
        "config": StoreConfigOut.from_config(config).model_dump(),
    }
