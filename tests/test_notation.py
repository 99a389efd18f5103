"""
Unit tests for the path notation converter

Tests:
- Canonicalization of raw paths in any notation
- XML-style and JSON-style rendering and parsing
- Leaf extraction, leaf rename and token sanitization
"""

import pytest

from mapperstudio.paths import (
    PathType,
    format_path,
    from_json_path,
    from_xml_path,
    leaf,
    parse_path,
    rename_leaf,
    sanitize_token,
    to_canonical,
    to_json_path,
    to_xml_path,
)


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def canonical_paths():
    """Canonical paths with no illegal characters"""
    return [
        "a",
        "customer.legalName",
        "order.items.0.sku",
        "envelope.body.getQuote-response.price_1",
    ]


# ============================================================================
# CANONICALIZATION
# ============================================================================


class TestToCanonical:
    """Tests for to_canonical"""

    def test_slashes_become_dots(self):
        assert to_canonical("/customer/address/city") == "customer.address.city"

    def test_collapses_separator_runs(self):
        assert to_canonical("a..b//c./d") == "a.b.c.d"

    def test_trims_leading_and_trailing_separators(self):
        assert to_canonical(".a.b.") == "a.b"
        assert to_canonical("//a/b//") == "a.b"

    def test_array_index_becomes_segment(self):
        assert to_canonical("items[0].sku") == "items.0.sku"
        assert to_canonical("items[ 12 ]") == "items.12"

    def test_quoted_bracket_becomes_segment(self):
        assert to_canonical("customer['legal name']") == "customer.legal name"

    def test_other_brackets_are_dropped(self):
        assert to_canonical("items[*].sku") == "items.sku"
        assert to_canonical("/a/b[@type='x']/c") == "a.b.c"

    def test_empty_and_malformed_inputs(self):
        """Malformed input never raises"""
        assert to_canonical("") == ""
        assert to_canonical(None) == ""
        assert to_canonical("...///") == ""
        assert to_canonical("[") == "["
        assert to_canonical(42) == "42"

    @pytest.mark.parametrize(
        "raw",
        ["/a//b/", "a[0][1].b", "..x..", "$['q'].r", "  a . b  ", "[]", "a[*]/b"],
    )
    def test_idempotent(self, raw):
        once = to_canonical(raw)
        assert to_canonical(once) == once

    def test_canonical_never_contains_slash_or_edge_dots(self):
        for raw in ["/a/b", "a/./b", "./a/", "x//y"]:
            result = to_canonical(raw)
            assert "/" not in result
            assert not result.startswith(".")
            assert not result.endswith(".")
            assert ".." not in result


# ============================================================================
# NOTATIONS
# ============================================================================


class TestNotations:
    """Tests for XML/JSON path rendering and parsing"""

    def test_to_xml_path(self):
        assert to_xml_path("a.b.c") == "/a/b/c"
        assert to_xml_path("") == "/"

    def test_to_json_path(self):
        assert to_json_path("a.b.c") == "$.a.b.c"
        assert to_json_path("") == "$"

    def test_from_xml_path_tolerates_missing_slash(self):
        assert from_xml_path("/a/b") == "a.b"
        assert from_xml_path("a/b") == "a.b"
        assert from_xml_path("/") == ""
        assert from_xml_path(None) == ""

    def test_from_json_path_tolerates_missing_dollar(self):
        assert from_json_path("$.a.b") == "a.b"
        assert from_json_path("a.b") == "a.b"
        assert from_json_path("$") == ""
        assert from_json_path("$.items[3].sku") == "items.3.sku"

    def test_round_trips(self, canonical_paths):
        for path in canonical_paths:
            assert from_xml_path(to_xml_path(path)) == path
            assert from_json_path(to_json_path(path)) == path

    def test_format_and_parse_by_path_type(self):
        assert format_path("a.b", PathType.XML_PATH) == "/a/b"
        assert format_path("a.b", PathType.JSON_PATH) == "$.a.b"
        assert parse_path("/a/b", PathType.XML_PATH) == "a.b"
        assert parse_path("$.a.b", "JSON_PATH") == "a.b"

    def test_path_type_from_value_defaults_to_json(self):
        assert PathType.from_value("xml_path") is PathType.XML_PATH
        assert PathType.from_value(None) is PathType.JSON_PATH
        assert PathType.from_value("anything") is PathType.JSON_PATH


# ============================================================================
# LEAF AND TOKENS
# ============================================================================


class TestLeafAndTokens:
    """Tests for leaf, rename_leaf and sanitize_token"""

    def test_leaf(self):
        assert leaf("customer.legalName") == "legalName"
        assert leaf("") == ""
        assert leaf("", "-") == "-"

    def test_sanitize_token(self):
        assert sanitize_token("  full   name ") == "full_name"
        assert sanitize_token("a$b%c") == "abc"
        assert sanitize_token("x.y-z_1") == "x.y-z_1"
        assert sanitize_token(None) == ""

    def test_rename_leaf_replaces_only_last_segment(self):
        assert rename_leaf("customer.legalName", "full name") == "customer.full_name"

    def test_rename_leaf_on_empty_path(self):
        assert rename_leaf("", "  newField ") == "newField"

    def test_rename_leaf_with_unusable_token_keeps_leaf(self):
        assert rename_leaf("a.b", "$$$") == "a.b"

    def test_rename_leaf_sanitizes_before_substituting(self):
        assert rename_leaf("a.b", "c/d") == "a.cd"
