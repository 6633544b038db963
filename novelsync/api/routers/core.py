from fastapi import APIRouter

from novelsync import __version__

router = APIRouter(tags=["core"])


@router.get("/health")
def health():
    return {"ok": True, "version": __version__}
