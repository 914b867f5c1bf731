"""Tests for timestamp parsing and formatting."""

import math

import pytest

from clipsplit.errors import ParseError
from clipsplit.timecode import (
    calculate_duration,
    seconds_to_offset,
    seconds_to_timestamp,
    timestamp_to_seconds,
)


class TestTimestampToSeconds:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("01:02:03", 3723.0),
            ("00:00:00", 0.0),
            ("02:30", 150.0),
            ("45", 45.0),
            ("12.5", 12.5),
            ("00:01:02.250", 62.25),
        ],
    )
    def test_formats(self, text, expected):
        assert timestamp_to_seconds(text) == expected

    @pytest.mark.parametrize("text", ["abc", "00:xx:10", "", "1:2:3:4", "00::10", "nan"])
    def test_invalid(self, text):
        with pytest.raises(ParseError):
            timestamp_to_seconds(text)

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            timestamp_to_seconds("later")


class TestSecondsToTimestamp:
    def test_zero_padded(self):
        assert seconds_to_timestamp(3723) == "01:02:03"
        assert seconds_to_timestamp(0) == "00:00:00"

    def test_floors_fraction(self):
        assert seconds_to_timestamp(59.999) == "00:00:59"

    def test_hours_beyond_a_day(self):
        assert seconds_to_timestamp(100 * 3600) == "100:00:00"

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            seconds_to_timestamp(-1)

    @pytest.mark.parametrize("value", [0, 1, 59, 60, 3599, 3600, 86399, 7.9])
    def test_round_trip_floors(self, value):
        assert timestamp_to_seconds(seconds_to_timestamp(value)) == math.floor(value)


class TestCalculateDuration:
    def test_positive(self):
        assert calculate_duration("00:01:30", "00:02:00") == 30

    def test_negative_when_reversed(self):
        assert calculate_duration("00:02:00", "00:01:30") == -30

    def test_mixed_formats(self):
        assert calculate_duration("90", "02:00") == 30


class TestSecondsToOffset:
    def test_whole_seconds_match_timestamp(self):
        assert seconds_to_offset(3723) == "01:02:03"

    def test_keeps_milliseconds(self):
        assert seconds_to_offset(10.2) == "00:00:10.200"
        assert seconds_to_offset(3725.4) == "01:02:05.400"

    def test_rounds_to_millisecond(self):
        assert seconds_to_offset(59.9996) == "00:01:00"

    def test_parses_back(self):
        assert timestamp_to_seconds(seconds_to_offset(10.8)) == pytest.approx(10.8)

    def test_negative(self):
        with pytest.raises(ValueError):
            seconds_to_offset(-0.5)
