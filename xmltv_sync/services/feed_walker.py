"""
XMLTV "tv" document ingestion

Walks <channel> and <programme> nodes in document order and reconciles
them against the guide database. Malformed or stale entries are skipped;
nothing here raises for bad feed data.
"""
from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum

from xmltv_sync.document import Node
from xmltv_sync.models import Channel
from xmltv_sync.services.entity_resolver import EntityResolver
from xmltv_sync.services.episode_codec import parse_episode_info
from xmltv_sync.services.ingest_types import Dirty, IngestContext, IngestStats
from xmltv_sync.services.metadata_merger import (
    merge_broadcast_metadata,
    merge_description,
    merge_episode_metadata,
)
from xmltv_sync.services.time_codec import parse_xmltv_time


logger = logging.getLogger(__name__)


class TvNodeKind(str, Enum):
    CHANNEL = "channel"
    PROGRAMME = "programme"
    OTHER = ""

    @classmethod
    def of(cls, node: Node) -> "TvNodeKind":
        try:
            return cls(node.name)
        except ValueError:
            return cls.OTHER


def ingest_channel(resolver: EntityResolver, node: Node, stats: IngestStats) -> Dirty:
    """Create or update the feed channel identity declared by a <channel> node."""
    dirty = Dirty()
    feed_id = node.attr("id")
    if feed_id is None or node.children is None:
        logger.debug("Skipping channel without id or child tags")
        return dirty

    feed_channel, created = resolver.find_or_create_feed_channel(feed_id)
    dirty |= created

    name = node.child_cdata("display-name")
    if name is not None:
        dirty |= resolver.set_fields(feed_channel, name=name)

    icon = node.child("icon")
    if icon is not None and icon.attr("src") is not None:
        dirty |= resolver.set_fields(feed_channel, icon_url=icon.attr("src"))

    if dirty:
        resolver.mark_feed_channel_updated(feed_channel)
    stats.channels.record(created=created, modified=bool(dirty))
    return dirty


def ingest_programme_on_channel(
    resolver: EntityResolver,
    channel: Channel,
    tags: Node,
    start: datetime,
    stop: datetime,
) -> Dirty:
    """Reconcile one programme onto one local channel."""
    context = resolver.context
    stats = context.stats

    broadcast, created = resolver.find_broadcast(channel, start, stop, create=True)
    if broadcast is None:
        return Dirty()

    broadcast_dirty = Dirty()
    series_dirty = Dirty()
    episode_dirty = Dirty()

    # Description lands on the broadcast before the episode is known
    broadcast_dirty |= merge_description(resolver, broadcast, tags, context.default_language)
    broadcast_dirty |= merge_broadcast_metadata(resolver, broadcast, tags)

    info = parse_episode_info(context.module_id, tags)

    if info.series_uri:
        serieslink, series_created = resolver.find_serieslink_by_uri(info.series_uri, create=True)
        series_dirty |= series_created
        if serieslink is not None:
            broadcast_dirty |= resolver.set_broadcast_serieslink(broadcast, serieslink)
            stats.seasons.record(created=series_created, modified=bool(series_dirty))

    if info.episode_uri:
        episode, episode_created = resolver.find_episode_by_uri(info.episode_uri, create=True)
        if episode is not None:
            broadcast_dirty |= resolver.set_broadcast_episode(broadcast, episode)
    else:
        episode, episode_created = resolver.broadcast_episode(broadcast, create=True)
        broadcast_dirty |= episode_created

    if episode is not None:
        episode_dirty |= episode_created
        episode_dirty |= merge_episode_metadata(resolver, episode, tags, context.default_language)
        episode_dirty |= resolver.set_numbering(episode, info.numbering)
        stats.episodes.record(created=episode_created, modified=bool(episode_dirty))

    stats.broadcasts.record(created=created, modified=bool(broadcast_dirty | created))
    return broadcast_dirty | series_dirty | episode_dirty | created


def ingest_programme(resolver: EntityResolver, node: Node) -> Dirty:
    """Reconcile a <programme> node onto every local channel linked to its feed channel."""
    dirty = Dirty()
    context = resolver.context

    feed_id = node.attr("channel")
    if feed_id is None or node.children is None:
        logger.debug("Skipping programme without channel or child tags")
        return dirty

    feed_channel = resolver.find_feed_channel(feed_id)
    if feed_channel is None or not feed_channel.channels:
        logger.debug("Skipping programme on unknown or unlinked channel %s", feed_id)
        return dirty

    start_text = node.attr("start")
    stop_text = node.attr("stop")
    if start_text is None or stop_text is None:
        logger.debug("Skipping programme on %s without start/stop", feed_id)
        return dirty

    start = parse_xmltv_time(start_text, context.local_tz)
    stop = parse_xmltv_time(stop_text, context.local_tz)
    if not resolver.is_valid_window(start, stop):
        logger.debug("Skipping programme on %s with stale or invalid window %s - %s", feed_id, start_text, stop_text)
        return dirty

    for channel in list(feed_channel.channels):
        dirty |= ingest_programme_on_channel(resolver, channel, node, start, stop)
    return dirty


def walk_tv(resolver: EntityResolver, tv: Node) -> IngestStats:
    """
    Ingest every channel and programme of a "tv" document

    Args:
        resolver: Resolver bound to the session and context of this pass
        tv: The <tv> root node

    Returns:
        Statistics accumulated in the context of this pass
    """
    context: IngestContext = resolver.context
    stats = context.stats

    for node in tv:
        match TvNodeKind.of(node):
            case TvNodeKind.CHANNEL:
                ingest_channel(resolver, node, stats)
            case TvNodeKind.PROGRAMME:
                ingest_programme(resolver, node)
            case _:
                logger.debug("Ignoring <%s> node", node.name)

    logger.info(
        "Feed walk complete: channels %s, broadcasts %s, episodes %s, series links %s",
        stats.channels.to_dict(),
        stats.broadcasts.to_dict(),
        stats.episodes.to_dict(),
        stats.seasons.to_dict(),
    )
    return stats
