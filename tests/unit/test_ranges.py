"""
Unit tests for Range header resolution.
"""

import pytest

from webviewer.http.ranges import RangeKind, RangeOutcome, resolve_range


class TestResolveRange:
    """Tests for resolve_range()."""

    @pytest.mark.parametrize("header", [None, "", "   "])
    def test_missing_header_is_full(self, header):
        """No Range header means the whole body."""
        outcome = resolve_range(header, 1000)
        assert outcome.kind is RangeKind.FULL
        assert outcome.length == 1000
        assert outcome.content_range is None

    def test_bounded_range(self):
        outcome = resolve_range("bytes=0-99", 1000)

        assert outcome.kind is RangeKind.PARTIAL
        assert (outcome.start, outcome.end) == (0, 99)
        assert outcome.length == 100
        assert outcome.content_range == "bytes 0-99/1000"

    def test_single_byte_range(self):
        outcome = resolve_range("bytes=999-999", 1000)
        assert (outcome.start, outcome.end, outcome.length) == (999, 999, 1)

    def test_open_ended_range(self):
        """bytes=S- runs to the last byte."""
        outcome = resolve_range("bytes=500-", 1000)
        assert (outcome.start, outcome.end) == (500, 999)
        assert outcome.content_range == "bytes 500-999/1000"

    def test_suffix_range(self):
        """bytes=-N selects the last N bytes."""
        outcome = resolve_range("bytes=-200", 1000)
        assert (outcome.start, outcome.end) == (800, 999)
        assert outcome.length == 200

    def test_suffix_longer_than_body(self):
        """A suffix longer than the body selects all of it, still as 206."""
        outcome = resolve_range("bytes=-5000", 1000)
        assert outcome.kind is RangeKind.PARTIAL
        assert (outcome.start, outcome.end) == (0, 999)

    def test_end_past_last_byte_is_clamped(self):
        outcome = resolve_range("bytes=900-5000", 1000)
        assert (outcome.start, outcome.end) == (900, 999)
        assert outcome.content_range == "bytes 900-999/1000"

    @pytest.mark.parametrize("header", [
        "bytes=1000-1000",   # first byte past the end
        "bytes=1000-",
        "bytes=5000-6000",
        "bytes=50-10",       # start after end
        "bytes=-0",          # empty suffix
    ])
    def test_unsatisfiable(self, header):
        outcome = resolve_range(header, 1000)

        assert outcome.kind is RangeKind.UNSATISFIABLE
        assert outcome.length == 0
        assert outcome.content_range == "bytes */1000"

    def test_any_range_on_empty_body_is_unsatisfiable(self):
        assert resolve_range("bytes=0-0", 0).kind is RangeKind.UNSATISFIABLE
        assert resolve_range("bytes=-10", 0).kind is RangeKind.UNSATISFIABLE

    @pytest.mark.parametrize("header", [
        "bytes=0-99,200-299",   # multi-range
        "items=0-99",           # other unit
        "bytes 0-99",           # no "="
        "bytes=abc-def",
        "bytes=-",
        "bytes=1-2-3",
    ])
    def test_unsupported_or_malformed_falls_back_to_full(self, header):
        """Anything we don't understand is served as a normal 200."""
        outcome = resolve_range(header, 1000)
        assert outcome.kind is RangeKind.FULL

    def test_unit_and_whitespace_are_lenient(self):
        outcome = resolve_range(" Bytes = 10-19 ", 1000)
        assert (outcome.start, outcome.end) == (10, 19)


class TestRangeOutcome:
    """Tests for the RangeOutcome value object."""

    @pytest.mark.parametrize("start, end, total", [
        (-1, 5, 10),
        (5, 4, 10),
        (0, 10, 10),
    ])
    def test_partial_rejects_invalid_bounds(self, start, end, total):
        with pytest.raises(ValueError):
            RangeOutcome.partial(start, end, total)

    def test_is_immutable(self):
        outcome = RangeOutcome.full(10)
        with pytest.raises(AttributeError):
            outcome.total = 20
