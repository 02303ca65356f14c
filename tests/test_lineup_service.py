"""
Tests for lineup reconciliation against the local channel registry.
"""
from xmltv_sync.document import Node, parse_document
from xmltv_sync.services.entity_resolver import EntityResolver
from xmltv_sync.services.ingest_types import LineupActions, LineupEntry
from xmltv_sync.services.lineup_service import (
    LineupReconciler,
    leading_int,
    parse_lineup_entry,
)

from tests.conftest import make_context


def lineup(*entries):
    body = "".join(f"<lineup-entry>{entry}</lineup-entry>" for entry in entries)
    return parse_document(f"<xmltv-lineups><xmltv-lineup>{body}</xmltv-lineup></xmltv-lineups>".encode())


def dvb_entry(preset, name, service_id, section="Entertainment", logo="http://example.com/logo.png"):
    return (
        f"<preset>{preset}</preset><section>{section}</section>"
        f'<station><name>{name}</name><logo url="{logo}"/></station>'
        f"<dvb-channel><service-id>{service_id}</service-id></dvb-channel>"
    )


class TestParseEntry:
    """Test lineup-entry field collection."""

    def test_all_fields(self, lineup_document):
        """Test station, video and dvb fields are collected."""
        node = next(lineup_document.child("xmltv-lineup").children_named("lineup-entry"))
        assert parse_lineup_entry(node) == LineupEntry(
            preset="101",
            section="Entertainment",
            station_name="BBC One HD",
            short_name="BBC1",
            logo="http://example.com/bbc1-hd.png",
            video_format="HD",
            aspect_ratio="16:9",
            network_id="9018",
            service_id="4164",
            lcn="101",
            service_name="BBC One HD",
        )

    def test_stb_preset(self):
        """Test an stb-preset marks the entry as a vendor lineup entry."""
        node = Node("lineup-entry", None, None, (
            Node("stb-channel", None, None, (Node("stb-preset", None, "143"),)),
        ))
        assert parse_lineup_entry(node).stb_preset == "143"
        assert parse_lineup_entry(Node("lineup-entry", None, None, (Node("preset", None, "1"),))).stb_preset is None

    def test_leading_int(self):
        """Test integer prefixes."""
        test_cases = [("101", 101), (" 12abc", 12), ("-3", -3), ("", None), (None, None), ("n/a", None)]
        for text, expected in test_cases:
            assert leading_int(text) == expected, f"Failed for: {text!r}"


class TestReconcile:
    """Test entry classification and the applied actions."""

    def test_document(self, session, resolver, registry, lineup_document):
        """Test a mixed lineup updates only matching entries."""
        result = LineupReconciler(resolver).reconcile(lineup_document)
        assert result.to_dict() == {"entries": 6, "updated": 2}

        feed_channel = resolver.find_feed_channel("xmltv-4164")
        assert feed_channel.channels == [registry["bbc_one"]]
        assert feed_channel.number == 101
        assert feed_channel.name == "BBC One HD"
        assert feed_channel.icon_url == "http://example.com/bbc1-hd.png"
        assert feed_channel.updated_at is not None

        bbc_one = registry["bbc_one"]
        assert (bbc_one.number, bbc_one.name, bbc_one.icon_url) == (101, "BBC One HD", "http://example.com/bbc1-hd.png")

        itv = registry["itv"]
        assert (itv.number, itv.name, itv.icon_url) == (103, "ITV", "http://example.com/itv.png")

        # The vendor entry is matched by name only, never by its service id
        assert resolver.find_feed_channel("xmltv-4287") is None
        assert resolver.find_feed_channel("xmltv-9999") is None

    def test_radio_and_regional_skipped(self, resolver, registry):
        """Test radio and regional sections never update anything."""
        result = LineupReconciler(resolver).reconcile(lineup(
            dvb_entry("700", "BBC Radio 4", "4164", section="Radio channels"),
            dvb_entry("2", "BBC One Wales", "4164", section="Regional"),
        ))
        assert result.to_dict() == {"entries": 2, "updated": 0}
        assert resolver.find_feed_channel("xmltv-4164") is None

    def test_secondary_service_not_renumbered(self, resolver, registry):
        """Test only the primary service of a channel sets the number."""
        result = LineupReconciler(resolver).reconcile(lineup(
            dvb_entry("102", "BBC Two England", "4287"),
            dvb_entry("202", "BBC Two HD", "4288"),
        ))
        assert result.updated == 2

        secondary = resolver.find_feed_channel("xmltv-4287")
        assert secondary.number is None
        assert secondary.name == "BBC Two England"
        primary = resolver.find_feed_channel("xmltv-4288")
        assert primary.number == 202
        assert primary.channels == [registry["bbc_two"]]
        assert (registry["bbc_two"].number, registry["bbc_two"].name) == (202, "BBC Two HD")

    def test_secondary_service_keeps_channel_number(self, resolver, registry):
        """Test a secondary service renames its channel but leaves the number."""
        assert LineupReconciler(resolver).reconcile(lineup(dvb_entry("102", "BBC Two England", "4287"))).updated == 1
        bbc_two = registry["bbc_two"]
        assert (bbc_two.number, bbc_two.name) == (2, "BBC Two England")

    def test_unmapped_service(self, resolver, registry):
        """Test a service without local channel is not updated."""
        result = LineupReconciler(resolver).reconcile(lineup(dvb_entry("3", "ITV1", "8261")))
        assert result.to_dict() == {"entries": 1, "updated": 0}
        assert resolver.find_feed_channel("xmltv-8261") is None

    def test_actions_disabled(self, session, registry):
        """Test matched entries without enabled actions only link the identity."""
        resolver = EntityResolver(session, make_context(actions=LineupActions()))
        result = LineupReconciler(resolver).reconcile(lineup(
            dvb_entry("101", "BBC One HD", "4164"),
            dvb_entry("103", "ITV", "0") + "<stb-channel><stb-preset>103</stb-preset></stb-channel>",
        ))
        assert result.to_dict() == {"entries": 2, "updated": 0}

        feed_channel = resolver.find_feed_channel("xmltv-4164")
        assert feed_channel.channels == [registry["bbc_one"]]
        assert feed_channel.number is None
        assert feed_channel.name is None
        assert registry["itv"].number == 3
        assert (registry["bbc_one"].number, registry["bbc_one"].name) == (1, "BBC One")

    def test_single_action(self, session, registry):
        """Test each action is applied on its own."""
        resolver = EntityResolver(session, make_context(actions=LineupActions(reicon=True)))
        LineupReconciler(resolver).reconcile(lineup(dvb_entry("101", "BBC One HD", "4164", logo="http://x/1.png")))
        feed_channel = resolver.find_feed_channel("xmltv-4164")
        assert feed_channel.icon_url == "http://x/1.png"
        assert feed_channel.name is None
        assert feed_channel.number is None
        bbc_one = registry["bbc_one"]
        assert (bbc_one.number, bbc_one.name, bbc_one.icon_url) == (1, "BBC One", "http://x/1.png")

    def test_unusable_preset_not_applied(self, session, registry):
        """Test missing or non-positive presets never renumber a channel."""
        resolver = EntityResolver(session, make_context(actions=LineupActions(renumber=True)))
        result = LineupReconciler(resolver).reconcile(lineup(
            dvb_entry("n/a", "BBC One HD", "4164"),
            dvb_entry("0", "BBC Two HD", "4288"),
            "<station><name>ITV</name></station><stb-channel><stb-preset>103</stb-preset></stb-channel>",
        ))
        assert result.to_dict() == {"entries": 3, "updated": 0}
        assert resolver.find_feed_channel("xmltv-4164").number is None
        assert [registry[key].number for key in ("bbc_one", "bbc_two", "itv")] == [1, 2, 3]

    def test_unusable_preset_with_other_actions(self, resolver, registry):
        """Test an entry without a usable preset still applies rename and re-icon."""
        result = LineupReconciler(resolver).reconcile(lineup(dvb_entry("", "BBC One HD", "4164", logo="http://x/1.png")))
        assert result.updated == 1
        bbc_one = registry["bbc_one"]
        assert (bbc_one.number, bbc_one.name, bbc_one.icon_url) == (1, "BBC One HD", "http://x/1.png")

    def test_vendor_entry_unknown_name(self, resolver, registry):
        """Test vendor entries without a same-named channel are not updated."""
        result = LineupReconciler(resolver).reconcile(lineup(
            "<preset>500</preset><station><name>Sky One</name></station>"
            "<stb-channel><stb-preset>106</stb-preset></stb-channel>"
        ))
        assert result.to_dict() == {"entries": 1, "updated": 0}

    def test_empty_documents(self, resolver):
        """Test documents without a lineup or with empty entries."""
        reconciler = LineupReconciler(resolver)
        assert reconciler.reconcile(parse_document(b"<xmltv-lineups/>")).entries == 0
        result = reconciler.reconcile(parse_document(
            b"<xmltv-lineups><xmltv-lineup><lineup-entry/></xmltv-lineup></xmltv-lineups>"
        ))
        assert result.to_dict() == {"entries": 0, "updated": 0}
