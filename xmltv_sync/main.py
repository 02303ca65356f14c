import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from xmltv_sync.config import setup_logging
from xmltv_sync.database import close_db, init_db
from xmltv_sync.routers import main_router
from xmltv_sync.services.scheduler_service import ingest_scheduler


setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the guide database and start the ingest schedule; undo both on exit"""
    logger.info("Starting XMLTV Sync")
    await init_db()
    try:
        ingest_scheduler.start()
    except Exception:
        logger.error("Scheduler failed to start", exc_info=True)
        await close_db()
        raise

    try:
        yield
    finally:
        logger.info("Shutting down XMLTV Sync")
        ingest_scheduler.shutdown()
        await close_db()


app = FastAPI(title="XMLTV Sync", version="0.1.0", lifespan=lifespan)
app.include_router(main_router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log rejected requests and return trimmed validation details"""
    errors = [
        {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
            "input": str(error.get("input", ""))[:100],
        }
        for error in exc.errors()
    ]
    logger.error("Validation error for %s %s: %s", request.method, request.url.path, errors)
    return JSONResponse(status_code=422, content={"detail": errors})
