"""
Guide database operations for ingestion

Find-or-create lookups for feed channels, broadcasts, episodes and series
links, plus attribute setters that report whether anything changed.
All calls are synchronous and operate on one SQLAlchemy session.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from xmltv_sync.models import Broadcast, Channel, Episode, FeedChannel, SeriesLink, Service
from xmltv_sync.services.ingest_types import EpisodeNumbering, IngestContext


logger = logging.getLogger(__name__)

LangStr = dict[str, str]


def to_db_time(value: datetime) -> datetime:
    """Normalize an aware instant to the naive UTC form stored in the database."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class EntityResolver:
    """Keyed lookups and dirty-reporting setters against the guide database."""

    def __init__(self, session: Session, context: IngestContext) -> None:
        self.session = session
        self.context = context

    def _add(self, entity: Any) -> None:
        self.session.add(entity)
        self.session.flush()

    # Receivable channels and services

    def find_channel_by_name(self, name: str) -> Channel | None:
        """First local channel with exactly this name (lowest id wins)."""
        stmt = select(Channel).where(Channel.name == name).order_by(Channel.id).limit(1)
        return self.session.scalars(stmt).first()

    def find_service(self, service_id: int) -> Service | None:
        """First enabled service with this numeric service id."""
        stmt = (
            select(Service)
            .where(Service.service_id == service_id, Service.enabled.is_(True))
            .order_by(Service.id)
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    # Feed channel identities

    def find_feed_channel(self, feed_id: str) -> FeedChannel | None:
        stmt = select(FeedChannel).where(
            FeedChannel.module_id == self.context.module_id,
            FeedChannel.feed_id == feed_id,
        )
        return self.session.scalars(stmt).first()

    def find_or_create_feed_channel(self, feed_id: str) -> tuple[FeedChannel, bool]:
        feed_channel = self.find_feed_channel(feed_id)
        if feed_channel is not None:
            return feed_channel, False

        feed_channel = FeedChannel(module_id=self.context.module_id, feed_id=feed_id)
        self._add(feed_channel)
        logger.debug("Created feed channel %s/%s", self.context.module_id, feed_id)
        return feed_channel, True

    def link_feed_channel(self, feed_channel: FeedChannel, channel: Channel) -> bool:
        if any(linked is channel for linked in feed_channel.channels):
            return False
        feed_channel.channels.append(channel)
        logger.debug("Linked feed channel %s to channel %s", feed_channel.feed_id, channel.name)
        return True

    def mark_feed_channel_updated(self, feed_channel: FeedChannel) -> None:
        """Stamp the identity as updated and try to link it by name if it has no links."""
        feed_channel.updated_at = to_db_time(self.context.now)
        if not self.context.autolink or feed_channel.channels or not feed_channel.name:
            return

        stmt = (
            select(Channel)
            .where(func.lower(Channel.name) == feed_channel.name.lower())
            .order_by(Channel.id)
            .limit(1)
        )
        channel = self.session.scalars(stmt).first()
        if channel is not None:
            self.link_feed_channel(feed_channel, channel)

    # Broadcasts, episodes, series links

    def is_valid_window(self, start: datetime, stop: datetime) -> bool:
        return start < stop and stop > self.context.now

    def find_broadcast(
        self,
        channel: Channel,
        start: datetime,
        stop: datetime,
        create: bool = False,
    ) -> tuple[Broadcast | None, bool]:
        """
        Find the broadcast for an exact channel/start/stop triple

        Windows that are empty, inverted or already over are rejected
        without touching the database.

        Returns:
            Tuple of (broadcast or None, created)
        """
        if not self.is_valid_window(start, stop):
            return None, False

        start_db, stop_db = to_db_time(start), to_db_time(stop)
        stmt = select(Broadcast).where(
            Broadcast.channel_id == channel.id,
            Broadcast.start_time == start_db,
            Broadcast.stop_time == stop_db,
        )
        broadcast = self.session.scalars(stmt).first()
        if broadcast is not None or not create:
            return broadcast, False

        broadcast = Broadcast(channel=channel, start_time=start_db, stop_time=stop_db)
        self._add(broadcast)
        return broadcast, True

    def find_episode_by_uri(self, uri: str, create: bool = False) -> tuple[Episode | None, bool]:
        episode = self.session.scalars(select(Episode).where(Episode.uri == uri)).first()
        if episode is not None or not create:
            return episode, False

        episode = Episode(uri=uri)
        self._add(episode)
        return episode, True

    def broadcast_episode(self, broadcast: Broadcast, create: bool = False) -> tuple[Episode | None, bool]:
        """Episode of a broadcast, creating a broadcast-owned one if it has none."""
        if broadcast.episode is not None or not create:
            return broadcast.episode, False

        episode = Episode()
        self._add(episode)
        broadcast.episode = episode
        return episode, True

    def find_serieslink_by_uri(self, uri: str, create: bool = False) -> tuple[SeriesLink | None, bool]:
        serieslink = self.session.scalars(select(SeriesLink).where(SeriesLink.uri == uri)).first()
        if serieslink is not None or not create:
            return serieslink, False

        serieslink = SeriesLink(uri=uri)
        self._add(serieslink)
        return serieslink, True

    # Setters

    @staticmethod
    def set_fields(entity: Any, **values: Any) -> bool:
        """Assign each value that differs from the stored one. True if any did."""
        changed = False
        for name, value in values.items():
            if getattr(entity, name) != value:
                setattr(entity, name, value)
                changed = True
        return changed

    @staticmethod
    def merge_lang_str(entity: Any, name: str, variants: LangStr) -> bool:
        """Merge language variants into a language-keyed text attribute."""
        current: LangStr = dict(getattr(entity, name) or {})
        merged = dict(current)
        merged.update(variants)
        if merged == current:
            return False
        setattr(entity, name, merged)
        return True

    def set_genres(self, episode: Episode, genres: list[str]) -> bool:
        return self.set_fields(episode, genres=list(genres))

    def set_numbering(self, episode: Episode, numbering: EpisodeNumbering) -> bool:
        return self.set_fields(episode, **numbering.as_dict())

    def set_broadcast_episode(self, broadcast: Broadcast, episode: Episode) -> bool:
        """Point the broadcast at ``episode``, deleting the broadcast-owned episode it replaces."""
        previous = broadcast.episode
        if previous is episode:
            return False
        broadcast.episode = episode
        if previous is not None and previous.uri is None:
            # Episodes without uri have no other referrer
            self.session.delete(previous)
        return True

    def set_broadcast_serieslink(self, broadcast: Broadcast, serieslink: SeriesLink) -> bool:
        if broadcast.serieslink is serieslink:
            return False
        broadcast.serieslink = serieslink
        return True
