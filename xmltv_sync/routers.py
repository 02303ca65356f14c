import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from xmltv_sync.database import get_db
from xmltv_sync.schemas import EPGRequest, EPGResponse, FeedChannelResponse
from xmltv_sync.services import (
    fetch_and_process,
    get_epg_data,
    get_feed_channels,
    ingest_scheduler,
)


logger = logging.getLogger(__name__)

main_router = APIRouter()


@main_router.get("/")
async def root() -> dict:
    """Service description and schedule"""
    return {
        "service": "XMLTV Sync",
        "version": "0.1.0",
        **ingest_scheduler.status(),
        "endpoints": {
            "fetch": "POST /fetch - ingest every configured source now",
            "epg": "POST /epg - broadcasts of local channels in a time range",
            "channels": "GET /channels - feed channel identities and their links",
            "health": "GET /health",
        },
    }


@main_router.get("/health")
async def health_check() -> dict:
    return {"status": "ok", **ingest_scheduler.status()}


@main_router.post("/fetch")
async def trigger_fetch() -> dict:
    """
    Ingest every configured source now

    Returns the per-source summary, or 500 when ingestion could not start
    """
    logger.info("Manual feed ingestion requested")
    result = await fetch_and_process()
    if "error" in result:
        raise HTTPException(status_code=500, detail=result["error"])
    return result


@main_router.post("/epg", response_model=EPGResponse)
async def get_epg(
    request: EPGRequest,
    db: Annotated[AsyncSession, Depends(get_db)]
) -> EPGResponse:
    return await get_epg_data(db, request)


@main_router.get("/channels", response_model=list[FeedChannelResponse])
async def list_feed_channels(
    db: Annotated[AsyncSession, Depends(get_db)]
) -> list[FeedChannelResponse]:
    return await get_feed_channels(db)
