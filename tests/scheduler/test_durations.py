"""Tests for duration string parsing."""

import pytest

from pacer.durations import parse_duration
from pacer.errors import DurationError


class TestParseDuration:
    """Supported duration spellings."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("30m", 30 * 60_000),
            ("1h", 3_600_000),
            ("1d", 86_400_000),
            ("10m", 600_000),
            ("500ms", 500),
            ("45s", 45_000),
            ("1h30m", 90 * 60_000),
            ("1h 15m", 75 * 60_000),
            ("2 hours", 7_200_000),
            ("3 days, 4 hours", 3 * 86_400_000 + 4 * 3_600_000),
            ("1.5h", 5_400_000),
            ("1w", 604_800_000),
            ("10 mins", 600_000),
            ("6H", 6 * 3_600_000),
        ],
    )
    def test_parses_units(self, text, expected):
        assert parse_duration(text) == expected

    def test_bare_number_is_milliseconds(self):
        assert parse_duration("250") == 250
        assert parse_duration(250) == 250

    def test_zero(self):
        assert parse_duration("0") == 0
        assert parse_duration("0s") == 0


class TestParseDurationErrors:
    """Malformed durations are rejected."""

    @pytest.mark.parametrize("text", ["", "   ", "soon", "10 fortnights", "h", "-5m", "5m later"])
    def test_rejects_malformed(self, text):
        with pytest.raises(DurationError):
            parse_duration(text)

    def test_rejects_negative_numbers(self):
        with pytest.raises(DurationError):
            parse_duration(-1)

    def test_rejects_booleans(self):
        with pytest.raises(DurationError):
            parse_duration(True)

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_duration("nope")
