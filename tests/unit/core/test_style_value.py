"""Unit tests for core/style_value.py"""

import pytest

from flowbridge.core.style_value import (
    StyleProperty,
    embed_only_feature,
    inline_value_problem,
    is_truncated,
    is_valid_style_less,
    normalize_property,
    normalize_value,
    parse_style_less,
    sanitize_style_less,
    split_segments,
    to_map,
    to_style_less,
)


def test_parse_simple():
    """Well-formed declarations parse in order."""
    result = parse_style_less("color: red; padding: 4px 8px;")
    assert result.properties == [StyleProperty("color", "red"), StyleProperty("padding", "4px 8px")]
    assert result.warnings == []


@pytest.mark.parametrize("value", [None, "", 42])
def test_parse_non_string(value):
    """Empty or non-string input yields an empty result."""
    result = parse_style_less(value)
    assert result.properties == [] and result.warnings == []


def test_parse_never_raises_on_garbage():
    """Malformed segments are dropped with warnings."""
    result = parse_style_less("color red; 9x: 1; width: ; height: calc(100% - ; margin: 0")
    assert result.properties == [StyleProperty("margin", "0")]
    assert len(result.warnings) == 4


def test_gap_aliases():
    """Unprefixed gap properties map to their grid-* names."""
    result = parse_style_less("gap: 1rem; row-gap: 2px; column-gap: 3px;")
    assert [p.property for p in result.properties] == ["grid-gap", "grid-row-gap", "grid-column-gap"]


def test_important_stripped():
    """!important is removed with a warning."""
    result = parse_style_less("color: red !important;")
    assert result.properties == [StyleProperty("color", "red")]
    assert result.warnings == ["color: Removed !important flag"]


def test_unresolved_variable_dropped():
    """Values referencing var(--x) are dropped."""
    result = parse_style_less("color: var(--brand); margin: 0;")
    assert result.properties == [StyleProperty("margin", "0")]
    assert "unresolved" in result.warnings[0]


def test_custom_and_unsupported_properties_silent():
    """Custom properties and known-unsupported properties drop silently."""
    result = parse_style_less("--x: 1; scroll-behavior: smooth; display: block;")
    assert result.properties == [StyleProperty("display", "block")]
    assert result.warnings == []


@pytest.mark.parametrize("value,expected", [
    ("Inter,", True),
    ("rgba(0, 0,", True),
    ("calc(1px +", True),
    ("'Inter", True),
    ("url(a.png", True),
    ("rgba(0, 0, 0, 0.5)", False),
    ("'Inter', sans-serif", False),
])
def test_is_truncated(value, expected):
    """is_truncated flags values that look cut off."""
    assert is_truncated(value) is expected


def test_normalize_property():
    """normalize_property lower-cases and returns None for custom properties."""
    assert normalize_property(" Color ") == "color"
    assert normalize_property("--brand") is None


def test_normalize_value_collapses_whitespace():
    """normalize_value collapses internal whitespace."""
    assert normalize_value("  1px   solid\tred ") == ("1px solid red", None)


def test_round_trip_and_map():
    """Serialization keeps order; to_map lets later declarations win."""
    props = parse_style_less("color: red; margin: 0; color: blue;").properties
    assert to_style_less(props) == "color: red; margin: 0; color: blue;"
    assert to_map(props) == {"color": "blue", "margin": "0"}


@pytest.mark.parametrize("text,expected", [
    ("color: red;", True),
    ("color red", False),
    ("a: { b", False),
    ("", False),
])
def test_is_valid_style_less(text, expected):
    """is_valid_style_less checks for a colon and balanced braces."""
    assert is_valid_style_less(text) is expected


def test_sanitize_style_less():
    """sanitize_style_less rewrites to only the valid declarations."""
    assert sanitize_style_less("gap: 1rem; color: var(--x); width: 10px !important") == "grid-gap: 1rem; width: 10px;"


def test_split_segments_keeps_parens_and_quotes():
    """Semicolons inside url(), calls, or quotes do not end a segment."""
    text = 'a: url("x;y"); b: f(1;2); c: \'p;q\''
    assert split_segments(text) == ['a: url("x;y")', " b: f(1;2)", " c: 'p;q'"]


@pytest.mark.parametrize("prop,value,expected", [
    ("backdrop-filter", "blur(4px)", "backdrop-filter"),
    ("text-wrap", "balance", "text-wrap: balance"),
    ("color", "oklch(0.7 0.1 200)", "oklch color"),
    ("background", "color-mix(in srgb, red, blue)", "color-mix"),
    ("text-wrap", "wrap", None),
    ("color", "red", None),
])
def test_embed_only_feature(prop, value, expected):
    """Features with no styleLess equivalent are named."""
    assert embed_only_feature(prop, value) == expected


@pytest.mark.parametrize("value,expected", [
    ('url("data:image/svg+xml;utf8,x")', "contains ';'"),
    ("calc(1px +", "truncated"),
    ("1rem", None),
])
def test_inline_value_problem(value, expected):
    """Values that would not survive inside styleLess are flagged."""
    assert inline_value_problem(value) == expected
