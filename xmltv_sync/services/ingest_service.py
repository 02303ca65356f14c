"""
Feed Ingestion Service

Dispatches parsed feed documents to the tv walker or the lineup reconciler,
and coordinates downloading, parsing and ingesting of the configured sources.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from xmltv_sync.config import settings
from xmltv_sync.database import run_in_transaction
from xmltv_sync.document import Node, parse_document
from xmltv_sync.services.entity_resolver import EntityResolver
from xmltv_sync.services.feed_walker import walk_tv
from xmltv_sync.services.ingest_types import IngestContext, IngestStats, LineupActions, LineupResult
from xmltv_sync.services.lineup_service import LineupReconciler
from xmltv_sync.utils.file_operations import cleanup_temp_file, download_file
from xmltv_sync.utils.logging_helpers import log_section_end, log_section_start


logger = logging.getLogger(__name__)

# Global lock to prevent concurrent ingestion into the same database
_fetch_lock = asyncio.Lock()

IngestOutcome = IngestStats | LineupResult | None


def build_context(now: datetime | None = None) -> IngestContext:
    """Create a fresh per-pass context from the application settings."""
    return IngestContext(
        module_id=settings.module_id,
        now=now or datetime.now(timezone.utc),
        local_tz=ZoneInfo(settings.local_timezone) if settings.local_timezone else None,
        default_language=settings.default_language,
        actions=LineupActions(
            renumber=settings.channel_renumber,
            rename=settings.channel_rename,
            reicon=settings.channel_reicon,
        ),
        autolink=settings.channel_autolink,
    )


def ingest_document(session: Session, root: Node, context: IngestContext) -> IngestOutcome:
    """
    Ingest one parsed document inside an open session

    Args:
        session: Synchronous SQLAlchemy session (caller commits)
        root: Document root node
        context: Per-pass context

    Returns:
        IngestStats for a "tv" document, LineupResult for "xmltv-lineups",
        None for any other document shape
    """
    resolver = EntityResolver(session, context)

    match root.name:
        case "tv":
            return walk_tv(resolver, root)
        case "xmltv-lineups":
            return LineupReconciler(resolver).reconcile(root)
        case _:
            logger.warning("Ignoring document with unsupported root <%s>", root.name)
            return None


async def parse_document_async(
    file_path: Path | str,
    *,
    parse_timeout_seconds: int | None = None
) -> Node:
    """
    Parse a feed document asynchronously with timeout protection.

    File parsing is offloaded to thread pool to avoid blocking event loop.

    Raises:
        ValueError: If parsing times out
        etree.XMLSyntaxError: If XML is malformed
    """
    effective_timeout = parse_timeout_seconds if parse_timeout_seconds and parse_timeout_seconds > 0 else None
    timeout_display = f"{effective_timeout}s" if effective_timeout else "disabled"

    logger.debug("Offloading XML parsing to thread pool executor (timeout: %s)...", timeout_display)
    loop = asyncio.get_running_loop()
    parse_task = loop.run_in_executor(None, parse_document, Path(file_path))
    try:
        if effective_timeout:
            return await asyncio.wait_for(parse_task, timeout=effective_timeout)
        return await parse_task
    except asyncio.TimeoutError:
        logger.error("XML parsing timed out after %s for %s", timeout_display, file_path)
        raise ValueError("XML parsing timed out - file may be too large or malformed")


async def ingest_file(
    file_path: Path | str,
    context: IngestContext | None = None,
    *,
    parse_timeout_seconds: int | None = None
) -> IngestOutcome:
    """Parse a feed file and ingest it in a single transaction."""
    context = context or build_context()
    root = await parse_document_async(file_path, parse_timeout_seconds=parse_timeout_seconds)

    return await run_in_transaction(ingest_document, root, context)


@dataclass(slots=True)
class SourceSummary:
    index: int
    source_url: str
    sanitized_url: str
    started_at: datetime
    completed_at: datetime | None = None
    status: Literal["success", "failed"] = "success"
    document: str | None = None
    stats: dict = field(default_factory=dict)
    error: str | None = None

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return max(0.0, (self.completed_at - self.started_at).total_seconds())

    def to_dict(self) -> dict:
        payload = {
            "source_index": self.index,
            "sanitized_url": self.sanitized_url,
            "status": self.status,
            "document": self.document,
            "stats": self.stats,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
        }
        if self.error:
            payload["error"] = self.error
        return payload


class IngestPipeline:
    """Downloads each source and ingests it, one document at a time."""

    def __init__(self, sources: Sequence[str]) -> None:
        self.sources = [source for source in sources if source]
        self.total_sources = len(self.sources)
        self._parse_timeout = settings.epg_parse_timeout_sec

    async def run(self) -> dict:
        started_at = datetime.now(timezone.utc)
        summaries = []
        for index, source_url in enumerate(self.sources, start=1):
            summaries.append(await self._process_source(index, source_url))
        return self._build_result(started_at, summaries)

    async def _process_source(self, index: int, source_url: str) -> SourceSummary:
        sanitized_url = _sanitize_url_for_logging(source_url)
        summary = SourceSummary(
            index=index,
            source_url=source_url,
            sanitized_url=sanitized_url,
            started_at=datetime.now(timezone.utc),
        )
        log_section_start(logger, f"source {index}/{self.total_sources} ({sanitized_url})")

        temp_file = None
        try:
            temp_file = await download_file(source_url, f"xmltv_source_{index}.xml")
            outcome = await ingest_file(
                temp_file,
                build_context(),
                parse_timeout_seconds=self._parse_timeout,
            )
        except Exception as exc:
            logger.error(
                "[Source %s] Failed to process %s: %s",
                index,
                sanitized_url,
                exc,
                exc_info=True,
            )
            summary.status = "failed"
            summary.error = str(exc)
        else:
            if isinstance(outcome, IngestStats):
                summary.document = "tv"
            elif isinstance(outcome, LineupResult):
                summary.document = "xmltv-lineups"
            summary.stats = outcome.to_dict() if outcome is not None else {}
        finally:
            if temp_file:
                cleanup_temp_file(temp_file)

        summary.completed_at = datetime.now(timezone.utc)
        log_section_end(logger, f"source {index}/{self.total_sources} ({summary.status})")
        return summary

    def _build_result(self, started_at: datetime, summaries: list[SourceSummary]) -> dict:
        successes = sum(1 for summary in summaries if summary.status == "success")
        failures = sum(1 for summary in summaries if summary.status == "failed")

        return {
            "status": "success",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "started_at": started_at.isoformat(),
            "sources_processed": len(self.sources),
            "sources_succeeded": successes,
            "sources_failed": failures,
            "source_details": [summary.to_dict() for summary in summaries],
        }


def _sanitize_url_for_logging(url: str) -> str:
    """Remove credentials from URL for safe logging."""
    if "://" not in url:
        return url
    try:
        protocol, rest = url.split("://", 1)
        if "@" in rest:
            rest = rest.split("@", 1)[1]
            return f"{protocol}://***:***@{rest}"
        return url
    except (ValueError, IndexError):
        return url


async def fetch_and_process() -> dict:
    """
    Main entry point for feed ingestion with concurrency protection.

    Returns:
        Dictionary with ingestion statistics or error/skip message.
    """
    if _fetch_lock.locked():
        logger.warning("Feed ingestion already in progress, skipping this request")
        return {
            "status": "skipped",
            "message": "Feed ingestion already in progress",
        }

    async with _fetch_lock:
        logger.info("Feed ingestion started at %s", datetime.now(timezone.utc).isoformat())

        if not settings.epg_sources:
            logger.warning("EPG_SOURCES not configured - ingestion aborted")
            return {"error": "EPG_SOURCES not configured"}

        pipeline = IngestPipeline(settings.epg_sources)
        try:
            result = await pipeline.run()
            logger.info("Feed ingestion completed successfully")
            return result
        except RuntimeError as exc:
            logger.error("Feed ingestion failed: %s", exc, exc_info=True)
            return {"error": str(exc)}
        except Exception as exc:  # Catch-all to ensure API stability
            logger.error("Unexpected error during feed ingestion: %s", exc, exc_info=True)
            return {"error": str(exc)}
