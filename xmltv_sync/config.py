from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from croniter import croniter
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)


class CustomSettings(BaseSettings):
    """Application settings loaded from environment variables.

    Validates configuration at startup to catch misconfiguration early.
    """

    database_path: str = "./data/guide.db"
    epg_sources: list[str] | None = None
    epg_fetch_cron: str = "0 3 * * *"  # Daily at 3 AM
    epg_fetch_misfire_grace_sec: int = 3600  # Allow 1 hour to run missed jobs
    epg_parse_timeout_sec: int = 600  # XML parsing timeout, 0 disables timeout

    module_id: str = "xmltv"
    default_language: str = "eng"
    local_timezone: str | None = None  # Zone for timestamps without offset, host zone if unset

    channel_renumber: bool = False
    channel_rename: bool = False
    channel_reicon: bool = False
    channel_autolink: bool = True

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("epg_sources", mode="before")
    @classmethod
    def split_epg_sources(cls, value):
        """Accept a comma-separated string as well as a list."""
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, list):
            return []
        return [url.strip() for url in value if url and url.strip()]

    @field_validator("epg_sources", mode="after")
    @classmethod
    def validate_epg_sources(cls, value):
        """Only HTTP(S) sources can be downloaded."""
        invalid = [url for url in value or [] if not url.lower().startswith(("http://", "https://"))]
        if invalid:
            raise ValueError(f"EPG source URL must be HTTP/HTTPS: {', '.join(invalid)}")
        return value

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, value: str) -> str:
        """Create the database directory up front so startup fails early."""
        try:
            Path(value).parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ValueError(f"Cannot access database path '{value}': {exc}") from exc
        return value

    @field_validator("epg_parse_timeout_sec", "epg_fetch_misfire_grace_sec")
    @classmethod
    def validate_non_negative(cls, value: int, info) -> int:
        """Validate timeouts and grace periods (seconds)."""
        if value < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return value

    @field_validator("module_id")
    @classmethod
    def validate_module_id(cls, value: str) -> str:
        """Module id namespaces channel keys and URIs, so it must be a single token."""
        value = value.strip()
        if not value or any(ch.isspace() for ch in value):
            raise ValueError("module_id must be a non-empty token without whitespace")
        return value

    @field_validator("default_language")
    @classmethod
    def validate_default_language(cls, value: str) -> str:
        """Normalize default language code."""
        value = value.strip().lower()
        if not value:
            raise ValueError("default_language must not be empty")
        return value

    @field_validator("local_timezone")
    @classmethod
    def validate_local_timezone(cls, value: str | None) -> str | None:
        """Validate timezone is a known IANA zone."""
        if value is None or not value.strip():
            return None
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Invalid local_timezone '{value}': {exc}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate logging level name."""
        normalized = value.upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if normalized not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}")
        return normalized

    @field_validator("epg_fetch_cron")
    @classmethod
    def validate_cron_expression(cls, value: str) -> str:
        """Validate cron expression is valid."""
        try:
            croniter(value)
            return value
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Invalid cron expression '{value}': {exc}") from exc

    @model_validator(mode="after")
    def validate_epg_configuration(self):
        """Validate cross-field configuration."""
        if not self.epg_sources:
            logger.warning(
                "No EPG sources configured - EPG fetch will not retrieve any data"
            )

        return self

    def __init__(self, **data):
        """Initialize settings and log configuration."""
        super().__init__(**data)

        logger.info("Configuration loaded:")
        logger.info("  Database: %s", self.database_path)
        logger.info("  EPG Sources: %s configured", len(self.epg_sources or []))
        logger.info("  Fetch Schedule: %s", self.epg_fetch_cron)
        logger.info("  Fetch Misfire Grace: %ss", self.epg_fetch_misfire_grace_sec)
        logger.info(
            "  Parse Timeout: %s seconds",
            self.epg_parse_timeout_sec or "disabled",
        )
        logger.info("  Module: %s", self.module_id)
        logger.info("  Default Language: %s", self.default_language)
        logger.info("  Local Timezone: %s", self.local_timezone or "host")
        logger.info(
            "  Lineup Actions: renumber=%s rename=%s reicon=%s",
            self.channel_renumber,
            self.channel_rename,
            self.channel_reicon,
        )
        logger.info("  Channel Autolink: %s", self.channel_autolink)


settings = CustomSettings()


def setup_logging() -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
