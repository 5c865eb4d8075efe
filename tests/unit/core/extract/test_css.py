"""Unit tests for core/extract/css.py"""

import pytest

from flowbridge.core.extract.css import (
    CssExtractionOptions,
    extract_css_for_section,
    find_block_end,
    iter_blocks,
    iter_rules,
    strip_comments,
)


def test_strip_comments():
    """strip_comments removes every /* */ comment."""
    assert strip_comments("/* a */.x{}/* b\nc */") == ".x{}"


def test_find_block_end():
    """find_block_end matches nested braces."""
    text = "@media x { .a { color: red; } } .b {}"
    assert text[:find_block_end(text, text.index("{"))] == "@media x { .a { color: red; } }"
    assert find_block_end("{ {", 0) is None


def test_iter_blocks():
    """iter_blocks splits rules, at-rule blocks, and bare at-rules."""
    css = "@import url(a.css);\n.a, .b { color: red; }\n@media (max-width: 767px) { .a { color: blue; } }"
    blocks = iter_blocks(css)
    assert [b.prelude for b in blocks] == ["@import url(a.css)", ".a, .b", "@media (max-width: 767px)"]
    assert blocks[0].is_at_rule and blocks[0].body == ""
    assert blocks[1].selectors == [".a", ".b"]


def test_iter_blocks_unbalanced_dropped():
    """Unbalanced trailing input is dropped."""
    blocks = iter_blocks(".a { color: red; } .b { color: blue;")
    assert [b.prelude for b in blocks] == [".a"]


def test_iter_rules_descends_into_media():
    """iter_rules yields media-scoped rules with their query."""
    css = ".a { x: 1; } @media (min-width: 1280px) { .a { x: 2; } .b { x: 3; } }"
    rules = [(q, r.prelude) for q, r in iter_rules(css)]
    assert rules == [(None, ".a"), ("(min-width: 1280px)", ".a"), ("(min-width: 1280px)", ".b")]


def test_class_match_is_exact():
    """A class rule for .btn-primary is not pulled in by class btn."""
    css = ".btn { a: 1; }\n.btn-primary { b: 2; }"
    out = extract_css_for_section(css, ["btn"])
    assert ".btn { a: 1; }" in out
    assert "btn-primary" not in out


def test_toggles(sample_css):
    """Root, reset and body rules follow their toggles."""
    on = extract_css_for_section(sample_css, [])
    assert ":root" in on and "box-sizing" in on and "body { margin: 0; }" in on
    off = extract_css_for_section(sample_css, [], CssExtractionOptions(
        include_root=False, include_reset=False, include_body=False))
    assert off == ""


def test_html_and_img_off_by_default():
    """html and img rules are only included when enabled."""
    css = "html { font-size: 16px; }\nimg { max-width: 100%; }"
    assert extract_css_for_section(css, []) == ""
    opts = CssExtractionOptions(include_html=True, include_img=True)
    assert extract_css_for_section(css, [], opts) == css.replace("\n", "\n\n")


def test_bare_tag_group_needs_present_tag():
    """Grouped bare-tag rules are included only when a listed tag is present."""
    css = "h1, h2 { line-height: 1.2; }"
    assert extract_css_for_section(css, [], tags={"p"}) == ""
    assert extract_css_for_section(css, [], tags={"H2"}) == css


def test_dedupe():
    """Identical rules are emitted once when dedupe is on."""
    css = ".a { x: 1; }\n.a { x: 1; }"
    assert extract_css_for_section(css, ["a"]) == ".a { x: 1; }"
    assert extract_css_for_section(css, ["a"], CssExtractionOptions(dedupe=False)).count(".a") == 2


def test_keyframes_only_when_used():
    """@keyframes come along only if a picked rule animates with them."""
    css = "@keyframes spin { to { rotate: 1turn; } }\n.a { x: 1; }\n.b { animation: spin 1s; }"
    assert "@keyframes" not in extract_css_for_section(css, ["a"])
    assert "@keyframes spin" in extract_css_for_section(css, ["b"])
