from pydantic import BaseModel, Field, field_validator, model_validator
from zoneinfo import ZoneInfo

from xmltv_sync.utils.timezone import parse_iso8601_to_utc, DateFormatError


class EPGRequest(BaseModel):
    """Guide data request"""
    channels: list[int] = Field(..., min_length=1, description="Local channel ids")
    timezone: str = Field(default="UTC", description="Timezone for response timestamps (e.g., 'UTC', 'Europe/London')")
    from_date: str = Field(..., description="ISO8601 datetime for start of range (e.g., '2025-10-09T00:00:00Z')")
    to_date: str = Field(..., description="ISO8601 datetime for end of range (e.g., '2025-10-10T00:00:00Z')")

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Validate timezone string"""
        if v == "UTC":
            return v
        try:
            ZoneInfo(v)
            return v
        except (KeyError, ValueError):
            raise ValueError(f"Invalid timezone: {v}. Must be a valid IANA timezone (e.g., 'Europe/London') or 'UTC'")

    @field_validator('from_date', 'to_date')
    @classmethod
    def validate_date_format(cls, v: str) -> str:
        """Validate ISO8601 datetime format using centralized parser"""
        try:
            parse_iso8601_to_utc(v)
            return v
        except DateFormatError:
            raise ValueError(f"Invalid datetime format: {v}. Must be valid ISO8601 format (e.g., '2025-10-09T00:00:00Z')")

    @model_validator(mode='after')
    def validate_date_range(self):
        """Validate that from_date is before to_date"""
        if parse_iso8601_to_utc(self.from_date) >= parse_iso8601_to_utc(self.to_date):
            raise ValueError(f"from_date ({self.from_date}) must be before to_date ({self.to_date})")
        return self


class EpisodeNumberingResponse(BaseModel):
    """Episode numbering, null where unknown"""
    season_num: int | None = None
    season_cnt: int | None = None
    episode_num: int | None = None
    episode_cnt: int | None = None
    part_num: int | None = None
    part_cnt: int | None = None
    onscreen: str | None = None


class BroadcastResponse(BaseModel):
    """Single airing"""
    id: int
    start_time: str
    stop_time: str
    title: dict[str, str] = Field(default_factory=dict, description="Title by language")
    subtitle: dict[str, str] = Field(default_factory=dict, description="Subtitle by language")
    description: dict[str, str] = Field(default_factory=dict, description="Description by language")
    genres: list[str] = Field(default_factory=list)
    numbering: EpisodeNumberingResponse | None = None
    series_uri: str | None = None
    is_hd: bool = False
    is_widescreen: bool = False
    is_repeat: bool = False
    is_new: bool = False
    is_subtitled: bool = False


class EPGResponse(BaseModel):
    """Guide data response"""
    timestamp: str
    timezone: str = Field(..., description="Timezone used for all timestamps in response")
    channels_requested: int
    channels_found: int
    total_broadcasts: int
    epg: dict[str, list[BroadcastResponse]] = Field(..., description="Broadcasts grouped by local channel id")


class FeedChannelResponse(BaseModel):
    """Feed channel identity with its local links"""
    module_id: str
    feed_id: str
    name: str | None
    icon_url: str | None
    number: int | None
    channel_ids: list[int]
