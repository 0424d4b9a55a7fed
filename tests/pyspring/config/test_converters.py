from datetime import datetime, timedelta, timezone

import pytest

from pyspring.config.converters import format_duration, format_time, parse_duration, parse_time


class TestParseDuration:
    """Tests for parse_duration."""

    @pytest.mark.parametrize("text,expected", [
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("500ms", timedelta(milliseconds=500)),
        ("1.5s", timedelta(seconds=1.5)),
        ("-2m", timedelta(minutes=-2)),
        ("10us", timedelta(microseconds=10)),
        ("0", timedelta(0)),
    ])
    def test_unit_notation(self, text, expected):
        assert parse_duration(text) == expected

    def test_iso_fallback(self):
        """Test ISO 8601 durations are accepted."""
        assert parse_duration("PT1M") == timedelta(minutes=1)

    @pytest.mark.parametrize("text", ["", "abc", "5 parsecs"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_duration(text)


class TestFormatDuration:
    """Tests for format_duration."""

    def test_zero(self):
        assert format_duration(timedelta(0)) == "0s"

    def test_sub_second(self):
        assert format_duration(timedelta(milliseconds=500)) == "500ms"
        assert format_duration(timedelta(microseconds=7)) == "7us"

    def test_hours(self):
        assert format_duration(timedelta(hours=2, seconds=5)) == "2h0m5s"

    def test_negative(self):
        assert format_duration(timedelta(seconds=-3)) == "-3s"

    def test_parse_reads_back(self):
        """Test formatted durations parse to the same value."""
        for td in (timedelta(hours=1, minutes=2, seconds=3.5), timedelta(milliseconds=250)):
            assert parse_duration(format_duration(td)) == td


class TestTime:
    """Tests for parse_time and format_time."""

    def test_default_layout(self):
        dt = parse_time("2021-03-04 10:20:30 +0000")
        assert dt == datetime(2021, 3, 4, 10, 20, 30, tzinfo=timezone.utc)

    def test_inline_layout(self):
        """Test '>>' overrides the layout."""
        assert parse_time("2021-03-04 >> %Y-%m-%d") == datetime(2021, 3, 4)

    def test_iso_fallback(self):
        assert parse_time("2021-03-04T10:20:30") == datetime(2021, 3, 4, 10, 20, 30)

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_time("yesterday")

    def test_format_aware(self):
        dt = datetime(2021, 3, 4, 10, 20, 30, tzinfo=timezone.utc)
        assert format_time(dt) == "2021-03-04 10:20:30 +0000"
