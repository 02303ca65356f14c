"""
Unit tests for XMLTV timestamp parsing.
"""
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from xmltv_sync.services.time_codec import (
    EPOCH,
    TimestampFields,
    parse_xmltv_time,
    scan_timestamp,
)


class TestScanTimestamp:
    """Test field recognition."""

    def test_six_fields(self):
        """Test a bare civil timestamp."""
        fields = scan_timestamp("20080715003000")
        assert fields == TimestampFields(2008, 7, 15, 0, 30, 0)

    def test_seven_fields(self):
        """Test timestamp with offset, with and without separating space."""
        assert scan_timestamp("20080715003000 -0600").offset == -600
        assert scan_timestamp("20080715003000+0100").offset == 100

    def test_too_few_fields(self):
        """Test that short or non-numeric input is not recognized."""
        for text in ("", "2008", "200807150030", "garbage", "2008-07-15 00:30:00"):
            assert scan_timestamp(text) is None, f"Failed for: {text!r}"

    def test_offset_minutes(self):
        """Test HHMM offsets convert to signed minutes."""
        test_cases = [
            (None, 0),
            (0, 0),
            (100, 60),
            (-600, -360),
            (-130, -90),
            (545, 345),
        ]
        for offset, expected in test_cases:
            fields = TimestampFields(2023, 1, 1, 0, 0, 0, offset=offset)
            assert fields.offset_minutes == expected, f"Failed for: {offset}"


class TestParseXmltvTime:
    """Test conversion to absolute UTC instants."""

    def test_explicit_offsets(self):
        """Test that an explicit offset is subtracted from the civil time."""
        test_cases = [
            ("20230101120000 +0000", datetime(2023, 1, 1, 12, 0, tzinfo=timezone.utc)),
            ("20230101120000 +0100", datetime(2023, 1, 1, 11, 0, tzinfo=timezone.utc)),
            ("20230101120000 -0130", datetime(2023, 1, 1, 13, 30, tzinfo=timezone.utc)),
            ("20230101003000 +0200", datetime(2022, 12, 31, 22, 30, tzinfo=timezone.utc)),
        ]
        for text, expected in test_cases:
            assert parse_xmltv_time(text) == expected, f"Failed for: {text}"

    def test_offset_ignores_local_zone(self):
        """Test that the local zone is not consulted when an offset is present."""
        result = parse_xmltv_time("20230101120000 +0000", ZoneInfo("America/New_York"))
        assert result == datetime(2023, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_local_zone(self):
        """Test civil time without offset is read in the given zone."""
        assert parse_xmltv_time("20230101120000", ZoneInfo("Europe/London")) == datetime(
            2023, 1, 1, 12, 0, tzinfo=timezone.utc
        )
        assert parse_xmltv_time("20230701120000", ZoneInfo("Europe/London")) == datetime(
            2023, 7, 1, 11, 0, tzinfo=timezone.utc
        )
        assert parse_xmltv_time("20230101120000", ZoneInfo("America/New_York")) == datetime(
            2023, 1, 1, 17, 0, tzinfo=timezone.utc
        )

    def test_host_zone(self):
        """Test civil time without offset falls back to the host zone."""
        expected = datetime(2023, 1, 1, 12, 0).astimezone().astimezone(timezone.utc)
        assert parse_xmltv_time("20230101120000") == expected

    def test_result_is_utc(self):
        """Test every result carries the UTC zone."""
        result = parse_xmltv_time("20230101120000", ZoneInfo("Asia/Tokyo"))
        assert result.tzinfo == timezone.utc
        assert result == datetime(2023, 1, 1, 3, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "text",
        ["", "garbage", "2023", "20231301000000 +0000", "20230132000000", "20230101250000 +0000"],
    )
    def test_unparseable_yields_epoch(self, text):
        """Test that malformed or out-of-range timestamps map to the epoch."""
        assert parse_xmltv_time(text, timezone.utc) == EPOCH
