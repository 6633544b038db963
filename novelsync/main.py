from contextlib import asynccontextmanager

from fastapi import FastAPI

from novelsync import __version__
from novelsync.services.session_service import get_service

# Routers
from novelsync.api.routers.core import router as core_router
from novelsync.api.routers.config import router as config_router
from novelsync.api.routers.novels import router as novels_router
from novelsync.api.routers.crawl import router as crawl_router

SHUTDOWN_GRACE = 30.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Stop a running crawl on shutdown and give the in-flight chapter time to commit."""
    try:
        yield
    finally:
        get_service().shutdown(timeout=SHUTDOWN_GRACE)


app = FastAPI(title="NovelSync", version=__version__, lifespan=lifespan)

app.include_router(core_router)
app.include_router(config_router)
app.include_router(novels_router)
app.include_router(crawl_router)
