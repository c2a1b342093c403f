"""Unit tests for reqmanager.core.revision and reqmanager.core.keys."""

from __future__ import annotations

import pytest

from reqmanager.core.keys import MalformedKeyError, join_key, split_key
from reqmanager.core.revision import format_revision, next_revision, parse_revision

# ---------------------------------------------------------------------------
# Revisions
# ---------------------------------------------------------------------------


class TestNextRevision:
    @pytest.mark.parametrize(
        "current,expected",
        [(None, 1), (0, 1), (1, 2), (5, 6)],
    )
    def test_next(self, current, expected):
        assert next_revision(current) == expected

    def test_negative_rejected(self):
        with pytest.raises(ValueError, match="must be >= 0"):
            next_revision(-1)


class TestParseRevision:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("1", 1),
            ("6", 6),
            ("007", 7),
            ("", None),
            (None, None),
            ("invalid", None),
            ("-1", None),
            ("+1", None),
            (" 1", None),
            ("1.0", None),
            ("٣", None),  # Arabic-Indic digit three
        ],
    )
    def test_parse(self, value, expected):
        assert parse_revision(value) == expected


class TestFormatRevision:
    def test_canonical_decimal(self):
        assert format_revision(6) == "6"

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            format_revision(-3)


# ---------------------------------------------------------------------------
# Store keys
# ---------------------------------------------------------------------------


class TestSplitKey:
    def test_namespaced(self):
        assert split_key("testns/test") == ("testns", "test")

    def test_cluster_scoped(self):
        assert split_key("test") == ("", "test")

    @pytest.mark.parametrize("key", ["", "abc/def/ghi", "ns/", "/"])
    def test_malformed(self, key):
        with pytest.raises(MalformedKeyError):
            split_key(key)

    def test_malformed_is_value_error(self):
        assert issubclass(MalformedKeyError, ValueError)


class TestJoinKey:
    def test_round_trip(self):
        assert join_key(*split_key("testns/test")) == "testns/test"

    def test_empty_namespace(self):
        assert join_key("", "test") == "test"
