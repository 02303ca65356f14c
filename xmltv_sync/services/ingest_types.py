"""
Shared dataclasses used across the ingestion pipeline.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, tzinfo


@dataclass(slots=True)
class Dirty:
    """
    Change indicator accumulated across setters.

    Combine with ``|=`` at each merge boundary. Once set it stays set for
    the lifetime of the value and cannot be cleared.
    """
    changed: bool = False

    def __ior__(self, other: Dirty | bool) -> Dirty:
        if other:
            self.changed = True
        return self

    def __or__(self, other: Dirty | bool) -> Dirty:
        return Dirty(self.changed or bool(other))

    __ror__ = __or__

    def __bool__(self) -> bool:
        return self.changed


@dataclass(slots=True)
class KindStats:
    """Seen / created / modified counters for one entity kind."""
    total: int = 0
    created: int = 0
    modified: int = 0

    def record(self, *, created: bool = False, modified: bool = False) -> None:
        self.total += 1
        if created:
            self.created += 1
        if modified:
            self.modified += 1

    def to_dict(self) -> dict[str, int]:
        return {"total": self.total, "created": self.created, "modified": self.modified}


@dataclass(slots=True)
class IngestStats:
    """Running totals for one "tv" document pass."""
    channels: KindStats = field(default_factory=KindStats)
    broadcasts: KindStats = field(default_factory=KindStats)
    episodes: KindStats = field(default_factory=KindStats)
    seasons: KindStats = field(default_factory=KindStats)

    def to_dict(self) -> dict[str, dict[str, int]]:
        return {
            "channels": self.channels.to_dict(),
            "broadcasts": self.broadcasts.to_dict(),
            "episodes": self.episodes.to_dict(),
            "series_links": self.seasons.to_dict(),
        }


@dataclass(slots=True)
class LineupResult:
    """Outcome of one lineup reconciliation pass."""
    entries: int = 0
    updated: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"entries": self.entries, "updated": self.updated}


@dataclass(slots=True)
class EpisodeNumbering:
    """Normalized episode numbering; ``None`` means unknown, values are 1-based."""
    season_num: int | None = None
    season_cnt: int | None = None
    episode_num: int | None = None
    episode_cnt: int | None = None
    part_num: int | None = None
    part_cnt: int | None = None
    onscreen: str | None = None

    def fill_from(self, other: EpisodeNumbering) -> None:
        """Copy fields from ``other`` that are still unknown here."""
        for item in fields(self):
            if getattr(self, item.name) is None:
                setattr(self, item.name, getattr(other, item.name))

    def as_dict(self) -> dict[str, int | str | None]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass(slots=True)
class LineupEntry:
    """Fields collected from one lineup-entry node. Empty string means absent."""
    preset: str = ""
    section: str = ""
    station_name: str = ""
    short_name: str = ""
    logo: str = ""
    commercial_free: str = ""
    video_format: str = ""
    aspect_ratio: str = ""
    network_id: str = ""
    service_id: str = ""
    lcn: str = ""
    service_name: str = ""
    encrypted: str = ""
    stb_preset: str | None = None


@dataclass(slots=True)
class LineupActions:
    """Channel metadata updates a lineup is allowed to apply."""
    renumber: bool = False
    rename: bool = False
    reicon: bool = False


@dataclass(slots=True)
class IngestContext:
    """
    Per-pass state owned by the caller of an ingestion.

    Carries the grabber module namespace, the processing clock and the
    options every stage needs, plus the statistics the pass accumulates.
    """
    module_id: str
    now: datetime
    local_tz: tzinfo | None = None
    default_language: str = "eng"
    actions: LineupActions = field(default_factory=LineupActions)
    autolink: bool = True
    stats: IngestStats = field(default_factory=IngestStats)
