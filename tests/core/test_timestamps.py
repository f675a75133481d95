"""Tests for cronlease.core.timestamps."""

from datetime import UTC, datetime, timedelta, timezone

from cronlease.core.timestamps import ensure_utc, from_iso8601, to_iso8601, utc_now


class TestTimestamps:
    """Test UTC helpers."""

    def test_utc_now_is_aware(self):
        """utc_now returns an aware UTC datetime."""
        assert utc_now().tzinfo is UTC

    def test_ensure_utc_naive(self):
        """Naive datetimes are taken as UTC."""
        assert ensure_utc(datetime(2025, 2, 1)) == datetime(2025, 2, 1, tzinfo=UTC)

    def test_ensure_utc_converts_offset(self):
        """Offset datetimes are converted to UTC."""
        plus_two = timezone(timedelta(hours=2))
        result = ensure_utc(datetime(2025, 2, 1, 7, tzinfo=plus_two))
        assert result == datetime(2025, 2, 1, 5, tzinfo=UTC)
        assert result.utcoffset() == timedelta(0)

    def test_fixed_width_encoding(self):
        """Encoded instants always carry microseconds and offset."""
        assert to_iso8601(datetime(2025, 2, 1, tzinfo=UTC)) == "2025-02-01T00:00:00.000000+00:00"
        assert (
            to_iso8601(datetime(2025, 2, 1, 0, 0, 0, 5, tzinfo=UTC))
            == "2025-02-01T00:00:00.000005+00:00"
        )

    def test_text_order_matches_time_order(self):
        """Lexicographic order of encoded values equals time order."""
        base = datetime(2025, 2, 1, tzinfo=UTC)
        instants = [base + timedelta(microseconds=n * 333_333) for n in range(10)]
        encoded = [to_iso8601(i) for i in instants]
        assert sorted(encoded) == encoded

    def test_none_passthrough(self):
        """None encodes and decodes to None."""
        assert to_iso8601(None) is None
        assert from_iso8601(None) is None

    def test_decode(self):
        """Decoding yields an aware UTC datetime."""
        result = from_iso8601("2025-02-01T05:00:00.000000+00:00")
        assert result == datetime(2025, 2, 1, 5, tzinfo=UTC)
        assert result.tzinfo is not None
