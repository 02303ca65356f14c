"""
Feed document model

A read-only tag tree built from an XMLTV or XMLTV-lineups document.
Every node carries a name, optional attributes, optional character data
and optional ordered children.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from lxml import etree  # type: ignore


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Node:
    """Single element of the feed document."""
    name: str
    attrs: dict[str, str] | None = None
    cdata: str | None = None
    children: tuple[Node, ...] | None = None
    # Unstripped character data, for labels that must be kept as written
    text: str | None = None

    def attr(self, name: str) -> str | None:
        if not self.attrs:
            return None
        return self.attrs.get(name)

    def child(self, name: str) -> Node | None:
        """Return the first child with the given name."""
        for child in self.children or ():
            if child.name == name:
                return child
        return None

    def child_cdata(self, name: str) -> str | None:
        child = self.child(name)
        return child.cdata if child is not None else None

    def children_named(self, name: str) -> Iterator[Node]:
        return (child for child in self.children or () if child.name == name)

    def __iter__(self) -> Iterator[Node]:
        return iter(self.children or ())


def _build_node(element: etree._Element) -> Node:
    children = tuple(
        _build_node(child) for child in element if isinstance(child.tag, str)
    )
    raw = element.text if element.text and element.text.strip() else None
    attrs = {str(key): str(value) for key, value in element.attrib.items()}
    return Node(
        name=etree.QName(element).localname,
        attrs=attrs or None,
        cdata=raw.strip() if raw else None,
        children=children or None,
        text=raw,
    )


def parse_document(source: str | Path | bytes) -> Node:
    """
    Parse an XML document into a Node tree

    Args:
        source: Path to an XML file or raw XML bytes

    Returns:
        Root node of the document (e.g. "tv" or "xmltv-lineups")

    Raises:
        etree.XMLSyntaxError: If XML is malformed
        OSError: If file can't be read
    """
    parser = etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        remove_comments=True,
        remove_pis=True,
        huge_tree=True,
    )

    try:
        if isinstance(source, bytes):
            root = etree.fromstring(source, parser)
        else:
            logger.debug("Loading XML document from %s", source)
            root = etree.parse(str(source), parser).getroot()
    except etree.XMLSyntaxError as exc:
        logger.error("XML parsing error: %s", exc)
        raise

    node = _build_node(root)
    logger.debug(
        "XML document loaded (root tag: %s, %s top-level nodes)",
        node.name,
        len(node.children or ()),
    )
    return node
