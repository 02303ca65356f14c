"""
EPG Query Service

Read operations over the guide database for the HTTP API.
"""
from datetime import datetime, timezone
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from xmltv_sync.models import Broadcast, FeedChannel
from xmltv_sync.schemas import (
    BroadcastResponse,
    EPGRequest,
    EPGResponse,
    EpisodeNumberingResponse,
    FeedChannelResponse,
)
from xmltv_sync.services.entity_resolver import to_db_time
from xmltv_sync.utils.timezone import parse_iso8601_to_utc, stored_time_to_zone

logger = logging.getLogger(__name__)


async def get_epg_data(db: AsyncSession, request: EPGRequest) -> EPGResponse:
    """
    Get broadcasts for multiple local channels

    Args:
        db: Database session
        request: EPG request with channel ids, from_date, to_date, and timezone

    Returns:
        Broadcasts grouped by channel id with timestamps in requested timezone
    """
    logger.info("Received EPG request: %s channels, timezone=%s", len(request.channels), request.timezone)

    start_time = parse_iso8601_to_utc(request.from_date)
    end_time = parse_iso8601_to_utc(request.to_date)

    epg_data: dict[str, list[BroadcastResponse]] = {}
    total = 0
    for channel_id in dict.fromkeys(request.channels):
        rows = await _query_broadcasts_for_channel(db, channel_id, start_time, end_time)
        epg_data[str(channel_id)] = [_to_response(row, request.timezone) for row in rows]
        total += len(rows)

    channels_found = sum(1 for broadcasts in epg_data.values() if broadcasts)
    logger.info("EPG response: %s channels found, %s broadcasts", channels_found, total)

    return EPGResponse(
        timestamp=stored_time_to_zone(datetime.now(timezone.utc), request.timezone),
        timezone=request.timezone,
        channels_requested=len(request.channels),
        channels_found=channels_found,
        total_broadcasts=total,
        epg=epg_data,
    )


async def get_feed_channels(db: AsyncSession) -> list[FeedChannelResponse]:
    """List every feed channel identity and the local channels it feeds."""
    stmt = (
        select(FeedChannel)
        .options(selectinload(FeedChannel.channels))
        .order_by(FeedChannel.module_id, FeedChannel.feed_id)
    )
    result = await db.execute(stmt)
    return [
        FeedChannelResponse(
            module_id=row.module_id,
            feed_id=row.feed_id,
            name=row.name,
            icon_url=row.icon_url,
            number=row.number,
            channel_ids=[channel.id for channel in row.channels],
        )
        for row in result.scalars().all()
    ]


async def _query_broadcasts_for_channel(
    db: AsyncSession,
    channel_id: int,
    start_time: datetime,
    end_time: datetime
) -> list[Broadcast]:
    """Broadcasts of one channel starting inside [start_time, end_time)."""
    stmt = (
        select(Broadcast)
        .options(selectinload(Broadcast.episode), selectinload(Broadcast.serieslink))
        .where(
            Broadcast.channel_id == channel_id,
            Broadcast.start_time >= to_db_time(start_time),
            Broadcast.start_time < to_db_time(end_time),
        )
        .order_by(Broadcast.start_time)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


def _to_response(row: Broadcast, timezone_str: str) -> BroadcastResponse:
    episode = row.episode
    numbering = None
    if episode is not None:
        numbering = EpisodeNumberingResponse(
            season_num=episode.season_num,
            season_cnt=episode.season_cnt,
            episode_num=episode.episode_num,
            episode_cnt=episode.episode_cnt,
            part_num=episode.part_num,
            part_cnt=episode.part_cnt,
            onscreen=episode.onscreen,
        )

    return BroadcastResponse(
        id=row.id,
        start_time=stored_time_to_zone(row.start_time, timezone_str),
        stop_time=stored_time_to_zone(row.stop_time, timezone_str),
        title=(episode.title if episode else None) or {},
        subtitle=(episode.subtitle if episode else None) or {},
        description=row.description or {},
        genres=(episode.genres if episode else None) or [],
        numbering=numbering,
        series_uri=row.serieslink.uri if row.serieslink else None,
        is_hd=row.is_hd,
        is_widescreen=row.is_widescreen,
        is_repeat=row.is_repeat,
        is_new=row.is_new,
        is_subtitled=row.is_subtitled,
    )
