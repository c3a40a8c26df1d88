# batchvoice/app/main.py
from __future__ import annotations
import logging
import sys
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from batchvoice import __version__
from batchvoice.app import deps
from batchvoice.app.config import settings
from batchvoice.app.routers.files import router as files_router
from batchvoice.app.routers.processing import router as processing_router
from batchvoice.app.routers.review import router as review_router
from batchvoice.app.routers.settings import router as settings_router
from batchvoice.app.routers.exports import router as exports_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Batch Voice Pipeline API", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-File-Count"],
)

app.include_router(files_router)
app.include_router(processing_router)
app.include_router(review_router)
app.include_router(settings_router)
app.include_router(exports_router)


@app.on_event("startup")
async def startup() -> None:
    service = deps.get_settings_service()
    service.load()
    voices = await service.refresh_voices(deps.get_speech_client())
    deps.get_engine()
    logger.info("Startup complete env=%s voices=%d", settings.APP_ENV, len(voices))


@app.on_event("shutdown")
async def shutdown() -> None:
    await deps.close_resources()


@app.get("/health")
def health():
    return {"ok": True}
