"""
Programme metadata merging

Maps the descriptive child nodes of a <programme> onto broadcast and
episode attributes. Every setter reports whether it changed stored state;
the merge result is the OR of those reports.
"""
from __future__ import annotations

import logging
import re

from xmltv_sync.document import Node
from xmltv_sync.models import Broadcast, Episode
from xmltv_sync.services.entity_resolver import EntityResolver, LangStr
from xmltv_sync.services.ingest_types import Dirty


logger = logging.getLogger(__name__)

# (token, scan lines, aspect percent, forces HD), checked in order
_QUALITY_TOKENS: tuple[tuple[str, int, int, bool], ...] = (
    ("480", 480, 150, False),
    ("576", 576, 133, False),
    ("720", 720, 178, True),
    ("1080", 1080, 178, True),
)

_ASPECT_RE = re.compile(r"\s*(\d+)\s*:\s*(\d+)")

WIDESCREEN_MIN_ASPECT = 137


def parse_lang_str(tags: Node, name: str, default_language: str) -> LangStr | None:
    """
    Collect every <name> child as a language variant

    The first text seen for a language wins; nodes without a lang
    attribute count as ``default_language``.
    """
    variants: LangStr | None = None
    for node in tags.children_named(name):
        if node.cdata is None:
            continue
        if variants is None:
            variants = {}
        lang = node.attr("lang") or default_language
        variants.setdefault(lang, node.cdata)
    return variants


def parse_categories(tags: Node) -> list[str] | None:
    genres: list[str] | None = None
    for node in tags.children_named("category"):
        if genres is None:
            genres = []
        if node.cdata and node.cdata not in genres:
            genres.append(node.cdata)
    return genres


def merge_video_quality(resolver: EntityResolver, broadcast: Broadcast, video: Node | None) -> Dirty:
    """Colour, resolution and aspect flags from a <video> node."""
    dirty = Dirty()
    if video is None:
        return dirty

    hd = False
    lines = 0
    aspect = 0

    colour = video.child_cdata("colour")
    if colour is not None:
        dirty |= resolver.set_fields(broadcast, is_bw=colour == "no")

    quality = video.child_cdata("quality")
    if quality is not None:
        if "HD" in quality:
            hd = True
        else:
            for token, token_lines, token_aspect, token_hd in _QUALITY_TOKENS:
                if token in quality:
                    lines, aspect, hd = token_lines, token_aspect, token_hd
                    break

    aspect_text = video.child_cdata("aspect")
    if aspect_text is not None:
        match = _ASPECT_RE.match(aspect_text)
        if match and int(match.group(2)) > 0:
            aspect = (100 * int(match.group(1))) // int(match.group(2))

    dirty |= resolver.set_fields(broadcast, is_hd=hd)
    if aspect:
        dirty |= resolver.set_fields(
            broadcast,
            is_widescreen=hd or aspect > WIDESCREEN_MIN_ASPECT,
            aspect=aspect,
        )
    if lines:
        dirty |= resolver.set_fields(broadcast, lines=lines)

    return dirty


def merge_accessibility(resolver: EntityResolver, broadcast: Broadcast, tags: Node) -> Dirty:
    dirty = Dirty()
    for node in tags:
        match node.name:
            case "subtitles":
                kind = node.attr("type")
                if kind == "teletext":
                    dirty |= resolver.set_fields(broadcast, is_subtitled=True)
                elif kind == "deaf-signed":
                    dirty |= resolver.set_fields(broadcast, is_deafsigned=True)
            case "audio-described":
                dirty |= resolver.set_fields(broadcast, is_audio_desc=True)
    return dirty


def merge_broadcast_metadata(resolver: EntityResolver, broadcast: Broadcast, tags: Node) -> Dirty:
    """Quality, accessibility and repeat/new flags of one airing."""
    dirty = Dirty()
    dirty |= merge_video_quality(resolver, broadcast, tags.child("video"))
    dirty |= merge_accessibility(resolver, broadcast, tags)

    if tags.child("previously-shown") is not None:
        dirty |= resolver.set_fields(broadcast, is_repeat=True)
    elif tags.child("premiere") is not None or tags.child("new") is not None:
        dirty |= resolver.set_fields(broadcast, is_new=True)

    return dirty


def merge_description(
    resolver: EntityResolver,
    broadcast: Broadcast,
    tags: Node,
    default_language: str,
) -> Dirty:
    dirty = Dirty()
    description = parse_lang_str(tags, "desc", default_language)
    if description:
        dirty |= resolver.merge_lang_str(broadcast, "description", description)
    return dirty


def merge_episode_metadata(
    resolver: EntityResolver,
    episode: Episode,
    tags: Node,
    default_language: str,
) -> Dirty:
    """Titles, subtitles and genres of the content itself."""
    dirty = Dirty()

    title = parse_lang_str(tags, "title", default_language)
    if title:
        dirty |= resolver.merge_lang_str(episode, "title", title)

    subtitle = parse_lang_str(tags, "sub-title", default_language)
    if subtitle:
        dirty |= resolver.merge_lang_str(episode, "subtitle", subtitle)

    genres = parse_categories(tags)
    if genres is not None:
        dirty |= resolver.set_genres(episode, genres)

    return dirty
