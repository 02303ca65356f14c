"""
SQLAlchemy ORM Models for the guide database

This module defines the local channel/service registry and the guide
entities (feed channels, broadcasts, episodes, series links).
"""
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models"""
    pass


feed_channel_links = Table(
    "feed_channel_links",
    Base.metadata,
    Column("feed_channel_id", ForeignKey("feed_channels.id", ondelete="CASCADE"), primary_key=True),
    Column("channel_id", ForeignKey("channels.id", ondelete="CASCADE"), primary_key=True),
)


class Channel(Base):
    """Locally known receivable channel"""
    __tablename__ = "channels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    icon_url: Mapped[str | None] = mapped_column(String, nullable=True)

    services: Mapped[list["Service"]] = relationship(back_populates="channel", order_by="Service.id")

    def __repr__(self) -> str:
        return f"<Channel(id={self.id}, name={self.name}, number={self.number})>"


class Service(Base):
    """Receivable service (tuning entry), optionally mapped onto a local channel"""
    __tablename__ = "services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    service_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    channel_id: Mapped[int | None] = mapped_column(
        ForeignKey("channels.id", ondelete="SET NULL"),
        nullable=True
    )

    channel: Mapped[Channel | None] = relationship(back_populates="services")

    @property
    def is_primary_epg(self) -> bool:
        """True when this is the enabled, highest priority service of its channel."""
        if self.channel is None or not self.enabled:
            return False
        candidates = [service for service in self.channel.services if service.enabled]
        best = max(candidates, key=lambda service: (service.priority, -service.id))
        return best is self

    def __repr__(self) -> str:
        return f"<Service(id={self.id}, service_id={self.service_id}, channel_id={self.channel_id})>"


class FeedChannel(Base):
    """Channel identity as declared by a feed, keyed per grabber module"""
    __tablename__ = "feed_channels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    module_id: Mapped[str] = mapped_column(String, nullable=False)
    feed_id: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    icon_url: Mapped[str | None] = mapped_column(String, nullable=True)
    number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    channels: Mapped[list[Channel]] = relationship(
        secondary=feed_channel_links,
        order_by=Channel.id,
    )

    __table_args__ = (
        UniqueConstraint("module_id", "feed_id", name="uq_feed_channel_module_id"),
    )

    def __repr__(self) -> str:
        return f"<FeedChannel(module_id={self.module_id}, feed_id={self.feed_id}, name={self.name})>"


class SeriesLink(Base):
    """Identity shared by all episodes of a series"""
    __tablename__ = "series_links"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uri: Mapped[str] = mapped_column(String, nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<SeriesLink(uri={self.uri})>"


class Episode(Base):
    """Content identity shared by every airing of one program instance"""
    __tablename__ = "episodes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # NULL for episodes owned by a single broadcast
    uri: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)
    title: Mapped[dict[str, str] | None] = mapped_column(JSON, nullable=True)
    subtitle: Mapped[dict[str, str] | None] = mapped_column(JSON, nullable=True)
    genres: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    season_num: Mapped[int | None] = mapped_column(Integer, nullable=True)
    season_cnt: Mapped[int | None] = mapped_column(Integer, nullable=True)
    episode_num: Mapped[int | None] = mapped_column(Integer, nullable=True)
    episode_cnt: Mapped[int | None] = mapped_column(Integer, nullable=True)
    part_num: Mapped[int | None] = mapped_column(Integer, nullable=True)
    part_cnt: Mapped[int | None] = mapped_column(Integer, nullable=True)
    onscreen: Mapped[str | None] = mapped_column(String, nullable=True)

    def __repr__(self) -> str:
        return f"<Episode(id={self.id}, uri={self.uri})>"


class Broadcast(Base):
    """One airing on one local channel in one exact time window"""
    __tablename__ = "broadcasts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel_id: Mapped[int] = mapped_column(
        ForeignKey("channels.id", ondelete="CASCADE"),
        nullable=False
    )
    # Naive UTC
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    stop_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    episode_id: Mapped[int | None] = mapped_column(ForeignKey("episodes.id"), nullable=True)
    serieslink_id: Mapped[int | None] = mapped_column(ForeignKey("series_links.id"), nullable=True)
    description: Mapped[dict[str, str] | None] = mapped_column(JSON, nullable=True)

    is_bw: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_hd: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_widescreen: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    aspect: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lines: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_repeat: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_new: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_subtitled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_deafsigned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_audio_desc: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    channel: Mapped[Channel] = relationship()
    episode: Mapped[Episode | None] = relationship()
    serieslink: Mapped[SeriesLink | None] = relationship()

    # Constraints
    __table_args__ = (
        UniqueConstraint("channel_id", "start_time", "stop_time", name="uq_broadcast_channel_window"),
        Index("idx_broadcasts_channel_time", "channel_id", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<Broadcast(id={self.id}, channel_id={self.channel_id}, start={self.start_time})>"
