from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from .logging import setup_logging
from .config import settings
from .api.routes import router as api_router
from .pipeline.snapshots import StorageError
from . import scheduler

setup_logging()

@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.scheduler_enabled:
        scheduler.schedule_jobs()
    yield
    scheduler.shutdown()

app = FastAPI(title="stableflows", lifespan=lifespan)
app.include_router(api_router)

@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    return JSONResponse(status_code=503, content={"detail": f"storage_error: {exc}"})
