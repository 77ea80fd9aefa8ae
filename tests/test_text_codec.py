"""
Tests for the Text Codec.

Tests serialization and tolerant parsing of the section/key text format.
"""

import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from inivault.codec.text_codec import (
    match_key,
    parse,
    parse_lines,
    parse_text,
    serialize,
)


# ===========================================================================
# Serialization Tests
# ===========================================================================

class TestSerialize:
    """Tests for serialize()."""

    @pytest.mark.unit
    def test_serialize_layout(self):
        """Each section is a header, its key lines and a blank line."""
        data = {"A": {"k": "v", "x": "1"}, "B": {}}
        assert serialize(data) == b"[A]\nk = v\nx = 1\n\n[B]\n\n"

    @pytest.mark.unit
    def test_serialize_empty_store(self):
        """An empty store serializes to nothing."""
        assert serialize({}) == b""

    @pytest.mark.unit
    def test_serialize_utf8(self):
        """Non-ASCII text is written as UTF-8."""
        assert serialize({"Größe": {"name": "café"}}) == "[Größe]\nname = café\n\n".encode("utf-8")

    @pytest.mark.unit
    def test_serialize_preserves_order(self):
        """Sections and keys are written in insertion order."""
        data = {"z": {"b": "2", "a": "1"}, "a": {"c": "3"}}
        text = serialize(data).decode("utf-8")
        assert text.index("[z]") < text.index("[a]")
        assert text.index("b = 2") < text.index("a = 1")


# ===========================================================================
# Parsing Tests
# ===========================================================================

class TestMatchKey:
    """Tests for match_key()."""

    @pytest.mark.unit
    def test_splits_on_first_equals(self):
        """Only the first '=' separates key from value."""
        assert match_key("url = http://x/?a=b") == ("url", "http://x/?a=b")

    @pytest.mark.unit
    def test_trims_both_sides(self):
        """Key and value are trimmed."""
        assert match_key("  name   =   value  ") == ("name", "value")

    @pytest.mark.unit
    @pytest.mark.parametrize("line", ["novalue =", "= nokey", "no separator", "  =  "])
    def test_unusable_lines(self, line):
        """Lines without a key, value or separator are rejected."""
        assert match_key(line) == ("", "")


class TestParse:
    """Tests for parse() and friends."""

    @pytest.mark.unit
    def test_round_trip(self):
        """parse(serialize(S)) reproduces S."""
        data = {
            "Window": {"width": "1280", "height": "720"},
            "User": {"name": "Alice Smith", "theme": "dark mode"},
        }
        assert parse(serialize(data)) == data

    @pytest.mark.unit
    def test_comments_and_blank_lines_ignored(self):
        """';' comments and blank lines are skipped."""
        text = b"; comment\n\n[A]\n; another = comment\nk = v\n   \n"
        assert parse(text) == {"A": {"k": "v"}}

    @pytest.mark.unit
    def test_keys_before_first_section_dropped(self):
        """Lines before any header have no section and are dropped."""
        assert parse(b"orphan = 1\n[A]\nk = v\n") == {"A": {"k": "v"}}

    @pytest.mark.unit
    def test_repeated_section_merges(self):
        """A second header with the same name merges into the first."""
        assert parse(b"[A]\na = 1\n[B]\nb = 2\n[A]\nc = 3\n") == {
            "A": {"a": "1", "c": "3"},
            "B": {"b": "2"},
        }

    @pytest.mark.unit
    def test_duplicate_key_last_wins(self):
        """The last occurrence of a key wins."""
        assert parse(b"[A]\nk = first\nk = second\n") == {"A": {"k": "second"}}

    @pytest.mark.unit
    def test_empty_section_kept(self):
        """A header with no keys yields an empty, present section."""
        assert parse(b"[Empty]\n") == {"Empty": {}}

    @pytest.mark.unit
    def test_malformed_lines_dropped(self):
        """Lines with empty key or value are dropped, the rest kept."""
        text = b"[A]\n= nokey\nnovalue =\nplain text\nk = v\n"
        assert parse(text) == {"A": {"k": "v"}}

    @pytest.mark.unit
    def test_unnamed_header_drops_following_keys(self):
        """Keys under '[]' are dropped until the next real header."""
        assert parse(b"[A]\na = 1\n[]\nb = 2\n[C]\nc = 3\n") == {
            "A": {"a": "1"},
            "C": {"c": "3"},
        }

    @pytest.mark.unit
    def test_section_name_trimmed(self):
        """Whitespace inside brackets is trimmed."""
        assert parse(b"[  Spaced  ]\nk = v\n") == {"Spaced": {"k": "v"}}

    @pytest.mark.unit
    def test_line_endings(self):
        """CRLF, LF and bare CR all split lines."""
        assert parse(b"[A]\r\na = 1\rb = 2\nc = 3") == {"A": {"a": "1", "b": "2", "c": "3"}}

    @pytest.mark.unit
    def test_bom_stripped(self):
        """A leading UTF-8 BOM does not hide the first header."""
        assert parse_text("\ufeff[A]\nk = v\n") == {"A": {"k": "v"}}

    @pytest.mark.unit
    def test_invalid_utf8_replaced(self):
        """Undecodable bytes do not abort parsing."""
        data = parse(b"[A]\nk = \xff\xfe\ngood = yes\n")
        assert data["A"]["good"] == "yes"
        assert "k" in data["A"]

    @pytest.mark.unit
    def test_parse_lines_accepts_iterable(self):
        """parse_lines() works on any iterable of lines."""
        assert parse_lines(iter(["[A]", "k = v"])) == {"A": {"k": "v"}}

    @pytest.mark.unit
    def test_empty_payload(self):
        """Empty input yields an empty store."""
        assert parse(b"") == {}
