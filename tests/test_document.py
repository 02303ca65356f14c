"""
Unit tests for the feed document tree.
"""
import pytest
from lxml import etree

from xmltv_sync.document import Node, parse_document


class TestParseDocument:
    """Test building Node trees from XML."""

    def test_tree_shape(self, tv_document):
        """Test root name, attributes and child order."""
        assert tv_document.name == "tv"
        assert tv_document.attr("generator-info-name") == "test"
        names = [node.name for node in tv_document]
        assert names == ["channel", "channel", "channel", "programme", "programme", "programme", "unknown-node"]

    def test_text_is_stripped(self):
        """Test character data is trimmed and whitespace-only text is dropped."""
        root = parse_document(b"<tv><channel id='a'>\n  <display-name>  One  </display-name>\n</channel></tv>")
        channel = root.child("channel")
        assert channel.cdata is None
        assert channel.child_cdata("display-name") == "One"
        assert channel.child("display-name").text == "  One  "
        assert channel.text is None

    def test_leaf_nodes(self):
        """Test empty elements have no attributes, text or children."""
        root = parse_document(b"<tv><premiere/></tv>")
        assert root.child("premiere") == Node("premiere")

    def test_comments_removed(self, tv_document):
        """Test comments do not appear as children."""
        assert all(isinstance(node, Node) and node.name for node in tv_document)

    def test_parse_from_path(self, tmp_path):
        """Test documents can be loaded from a file."""
        path = tmp_path / "guide.xml"
        path.write_bytes(b"<xmltv-lineups><xmltv-lineup/></xmltv-lineups>")
        root = parse_document(path)
        assert root.name == "xmltv-lineups"
        assert root.child("xmltv-lineup").children is None

    def test_malformed(self):
        """Test malformed XML raises."""
        with pytest.raises(etree.XMLSyntaxError):
            parse_document(b"<tv><channel></tv>")


class TestNode:
    """Test Node lookups."""

    def test_lookups(self):
        """Test attr, child and children_named on a small tree."""
        node = Node("programme", {"channel": "a"}, None, (
            Node("title", {"lang": "en"}, "One"),
            Node("title", {"lang": "fr"}, "Un"),
            Node("desc", None, "Text"),
        ))
        assert node.attr("channel") == "a"
        assert node.attr("missing") is None
        assert node.child("title").cdata == "One"
        assert node.child("missing") is None
        assert node.child_cdata("desc") == "Text"
        assert [child.cdata for child in node.children_named("title")] == ["One", "Un"]

    def test_empty_node(self):
        """Test lookups on a node without attributes or children."""
        node = Node("tv")
        assert node.attr("id") is None
        assert node.child("channel") is None
        assert list(node) == []
