import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

import sitecfg.core.logging_config  # noqa: F401  Centralized logging (must be first)
from sitecfg.api.schemas import router as schemas_router
from sitecfg.api.settings import router as settings_router
from sitecfg.core.db import init_db
from sitecfg.core.service import get_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup logic
    await init_db()

    # Translation workers and DLQ scheduler
    service = get_service()
    await service.start()
    logger.info("Site config service ready.")

    yield

    # Shutdown logic
    await service.stop()


app = FastAPI(title="Site Config API", version="0.1.0", lifespan=lifespan)

app.include_router(settings_router)
app.include_router(schemas_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
