"""
Episode numbering notations

Three episode-num systems are understood:

xmltv_ns
    "season . episode . part", each field "X", "X/Y" or empty, zero-based.
    Whitespace anywhere is ignored. "1.0.0/1" is the first episode of the
    second season, part one of a single-part episode.

dd_progid
    Program identifier such as "EP01234567.0005". Everything except "SH"
    identifiers names an episode; "EP" identifiers also carry a series id
    before the last dot and the episode number after it.

onscreen
    Free text, kept verbatim.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from xmltv_sync.document import Node
from xmltv_sync.services.ingest_types import EpisodeNumbering


logger = logging.getLogger(__name__)

SERIES_ONLY_MARKER = "SH"
EPISODE_MARKER = "EP"

_DIGIT_RE = re.compile(r"[0-9]")
_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")


@dataclass(frozen=True, slots=True)
class NsField:
    """One xmltv_ns field, zero-based as written. None when omitted."""
    number: int | None = None
    count: int | None = None

    @property
    def stored_number(self) -> int | None:
        return self.number + 1 if self.number is not None else None

    @property
    def stored_count(self) -> int | None:
        return self.count + 1 if self.count is not None else None


@dataclass(slots=True)
class EpisodeInfo:
    """Everything derived from the episode-num nodes of one programme."""
    numbering: EpisodeNumbering = field(default_factory=EpisodeNumbering)
    episode_uri: str | None = None
    series_uri: str | None = None


def _scan_digits(text: str) -> int | None:
    digits = "".join(_DIGIT_RE.findall(text))
    return int(digits) if digits else None


def parse_ns_field(text: str) -> NsField:
    number_text, slash, count_text = text.partition("/")
    return NsField(
        number=_scan_digits(number_text),
        count=_scan_digits(count_text) if slash else None,
    )


def parse_xmltv_ns(text: str) -> EpisodeNumbering:
    """
    Parse xmltv_ns notation into 1-based numbering

    Examples:
        "1.0.0/1" -> season 2, episode 1, part 1 of 2
        "0.."     -> season 1, everything else unknown
    """
    parts = text.split(".")
    season, episode, part = (
        parse_ns_field(parts[index]) if index < len(parts) else NsField()
        for index in range(3)
    )
    return EpisodeNumbering(
        season_num=season.stored_number,
        season_cnt=season.stored_count,
        episode_num=episode.stored_number,
        episode_cnt=episode.stored_count,
        part_num=part.stored_number,
        part_cnt=part.stored_count,
    )


def parse_dd_progid(module_id: str, text: str, info: EpisodeInfo) -> None:
    """Apply a dd_progid identifier to ``info`` (episode uri, series uri, episode number)."""
    if len(text) < 2:
        return

    uri = f"ddprogid://{module_id}/{text}"

    if not text.startswith(SERIES_ONLY_MARKER):
        info.episode_uri = uri

    if text.startswith(EPISODE_MARKER):
        prefix, dot, suffix = text.rpartition(".")
        if not dot:
            return
        info.series_uri = f"ddprogid://{module_id}/{prefix}"
        match = _LEADING_INT_RE.match(suffix)
        if match:
            info.numbering.episode_num = int(match.group(1))


def parse_episode_info(module_id: str, tags: Iterable[Node]) -> EpisodeInfo:
    """
    Collect episode identity and numbering from a programme's child nodes

    Notations accumulate in document order; a field set by one notation is
    not overwritten by a later one, except the dd_progid episode number.
    """
    info = EpisodeInfo()

    for node in tags:
        if node.name != "episode-num":
            continue
        system = node.attr("system")
        if system is None or node.cdata is None:
            continue

        match system:
            case "onscreen":
                if info.numbering.onscreen is None:
                    info.numbering.onscreen = node.text if node.text is not None else node.cdata
            case "xmltv_ns":
                info.numbering.fill_from(parse_xmltv_ns(node.cdata))
            case "dd_progid":
                parse_dd_progid(module_id, node.cdata, info)
            case _:
                logger.debug("Ignoring episode-num system %r", system)

    return info
