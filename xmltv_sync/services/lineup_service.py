"""
XMLTV lineup reconciliation

Matches <lineup-entry> nodes of an "xmltv-lineups" document against the
local service/channel registry and applies the configured renumber,
rename and re-icon actions.

Entry classification, in order:
    radio section           skipped
    stb-preset present      vendor (Sky) lineup, matched by channel name only
    no usable service id    skipped
    regional section        skipped
    otherwise               matched by numeric service id
"""
from __future__ import annotations

import logging
import re
from typing import Any

from xmltv_sync.document import Node
from xmltv_sync.services.entity_resolver import EntityResolver
from xmltv_sync.services.ingest_types import Dirty, LineupEntry, LineupResult


logger = logging.getLogger(__name__)

RADIO_SECTION = "Radio channels"
REGIONAL_SECTION = "Regional"

_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")

# child node name -> LineupEntry attribute, per nesting level
_ENTRY_FIELDS = {"preset": "preset", "section": "section"}
_STATION_FIELDS = {
    "name": "station_name",
    "short-name": "short_name",
    "commercial-free": "commercial_free",
}
_VIDEO_FIELDS = {"format": "video_format", "aspect-ratio": "aspect_ratio"}
_DVB_FIELDS = {
    "original-network-id": "network_id",
    "service-id": "service_id",
    "lcn": "lcn",
    "service-name": "service_name",
    "encrypted": "encrypted",
}


def leading_int(text: str | None) -> int | None:
    """Integer prefix of ``text`` (surrounding whitespace and sign allowed), else None."""
    if not text:
        return None
    match = _LEADING_INT_RE.match(text)
    return int(match.group(1)) if match else None


def _copy_fields(entry: LineupEntry, node: Node, mapping: dict[str, str]) -> None:
    for child in node:
        attr = mapping.get(child.name)
        if attr is not None:
            setattr(entry, attr, child.cdata or "")


def parse_lineup_entry(node: Node) -> LineupEntry:
    """Collect the fields of one <lineup-entry> node."""
    entry = LineupEntry()
    _copy_fields(entry, node, _ENTRY_FIELDS)

    for child in node:
        match child.name:
            case "station":
                _copy_fields(entry, child, _STATION_FIELDS)
                logo = child.child("logo")
                if logo is not None:
                    entry.logo = logo.attr("url") or ""
                video = child.child("video")
                if video is not None:
                    _copy_fields(entry, video, _VIDEO_FIELDS)
            case "dvb-channel":
                _copy_fields(entry, child, _DVB_FIELDS)
            case "stb-channel":
                preset = child.child("stb-preset")
                if preset is not None:
                    entry.stb_preset = preset.cdata or ""

    return entry


class LineupReconciler:
    """Applies lineup entries to local channels and feed channel identities."""

    def __init__(self, resolver: EntityResolver) -> None:
        self.resolver = resolver
        self.actions = resolver.context.actions

    def action_values(self, entry: LineupEntry, renumber: bool = True) -> dict[str, Any]:
        """Channel fields the enabled actions set from ``entry``; blank or unusable values are left out."""
        values: dict[str, Any] = {}
        number = leading_int(entry.preset)
        if renumber and self.actions.renumber and number is not None and number > 0:
            values["number"] = number
        if self.actions.rename and entry.station_name:
            values["name"] = entry.station_name
        if self.actions.reicon and entry.logo:
            values["icon_url"] = entry.logo
        return values

    def update_by_name(self, entry: LineupEntry) -> bool:
        """Vendor lineup: find a local channel by display name and update it directly."""
        channel = self.resolver.find_channel_by_name(entry.station_name)
        if channel is None:
            logger.debug("No local channel named %r", entry.station_name)
            return False

        values = self.action_values(entry)
        if not values:
            return False
        self.resolver.set_fields(channel, **values)
        logger.debug("Updated channel %s (%s) from vendor lineup", channel.id, channel.name)
        return True

    def update_by_service(self, service_id: int, entry: LineupEntry) -> bool:
        """Match a receivable service by id; update its channel and the module's identity for it."""
        service = self.resolver.find_service(service_id)
        if service is None or service.channel is None:
            logger.debug("No mapped service with id %s", service_id)
            return False

        module_id = self.resolver.context.module_id
        feed_channel, _ = self.resolver.find_or_create_feed_channel(f"{module_id}-{service_id}")
        dirty = Dirty()
        dirty |= self.resolver.link_feed_channel(feed_channel, service.channel)

        # Only the primary service of a channel carries its number
        values = self.action_values(entry, renumber=service.is_primary_epg)
        dirty |= self.resolver.set_fields(feed_channel, **values)
        if dirty:
            self.resolver.mark_feed_channel_updated(feed_channel)

        if not values:
            return False
        self.resolver.set_fields(service.channel, **values)
        logger.debug("Updated channel %s from service %s (%s)", service.channel.id, service_id, service.name)
        return True

    def reconcile_entry(self, entry: LineupEntry) -> bool:
        if entry.section == RADIO_SECTION:
            logger.debug("Skipping radio entry %r", entry.station_name)
            return False

        if entry.stb_preset is not None:
            return self.update_by_name(entry)

        service_id = leading_int(entry.service_id) or 0
        if service_id == 0 or entry.section == REGIONAL_SECTION:
            logger.debug("Skipping entry %r (service id %s, section %r)", entry.station_name, service_id, entry.section)
            return False

        return self.update_by_service(service_id, entry)

    def reconcile(self, lineups: Node) -> LineupResult:
        """
        Reconcile an "xmltv-lineups" document

        Args:
            lineups: The <xmltv-lineups> root node

        Returns:
            Number of entries seen and number of entries that applied an update
        """
        result = LineupResult()

        lineup = lineups.child("xmltv-lineup")
        if lineup is None or lineup.children is None:
            logger.debug("Lineup document has no xmltv-lineup entries")
            return result

        for node in lineup.children_named("lineup-entry"):
            if node.children is None:
                continue
            result.entries += 1
            if self.reconcile_entry(parse_lineup_entry(node)):
                result.updated += 1

        logger.info("Updated %s channel name/number/icons from %s lineup entries", result.updated, result.entries)
        return result
