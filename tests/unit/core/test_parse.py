"""Unit tests for core/parse.py"""

import pytest
from pathlib import Path

from flowbridge.core.models import ParsedPage
from flowbridge.core.parse import (
    discover_files,
    extract_body,
    extract_scripts,
    extract_styles,
    extract_title,
    parse_file,
    parse_page,
)


@pytest.mark.parametrize("html,expected", [
    ("<title>Flow Party - Landing</title>", "Flow Party"),
    ("<title>  Plain  </title>", "Plain"),
    ("<title></title>", "Untitled"),
    ("<p>no title</p>", "Untitled"),
])
def test_extract_title(html, expected):
    """extract_title keeps the text before ' - ' and defaults to 'Untitled'."""
    assert extract_title(html) == expected


def test_extract_styles_joins_blocks():
    """extract_styles concatenates every <style> block in order."""
    html = "<style>.a { color: red; }</style><p></p><style media='print'>.b { color: blue; }</style>"
    assert extract_styles(html) == ".a { color: red; }\n.b { color: blue; }"


def test_extract_scripts_skips_src(sample_page):
    """extract_scripts keeps inline scripts and ignores external ones."""
    js = extract_scripts(sample_page)
    assert 'console.log("ready");' in js
    assert "cdn.example.com" not in js


def test_extract_body_without_body_tag():
    """extract_body falls back to the whole input when no <body> exists."""
    assert extract_body("<section>x</section>") == "<section>x</section>"


def test_discover_files_single(tmp_path):
    """discover_files returns a list with one file when given a page path."""
    f = tmp_path / "index.html"
    f.write_text("<p></p>")
    assert discover_files(f) == [f]


def test_discover_files_non_html_skipped(tmp_path):
    """discover_files ignores files that are not .html/.htm."""
    (tmp_path / "notes.txt").write_text("text")
    (tmp_path / "style.css").write_text(".a{}")
    assert discover_files(tmp_path) == []


def test_discover_files_dir(tmp_path):
    """discover_files finds .html and .htm files recursively, sorted."""
    (tmp_path / "b.html").write_text("b")
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "a.htm").write_text("a")
    files = discover_files(tmp_path)
    assert files == sorted(files)
    assert len(files) == 2


def test_parse_page(sample_page):
    """parse_page fills every ParsedPage field."""
    page = parse_page(sample_page)
    assert isinstance(page, ParsedPage)
    assert page.title == "Flow Party"
    assert ".hero-section" in page.css
    assert "console.log" in page.js
    assert page.body.startswith("<nav")
    assert [s.id for s in page.sections] == ["nav", "hero-section", "features-section", "pricing", "footer"]


def test_parse_file(tmp_path, sample_page):
    """parse_file reads the page from disk."""
    f = tmp_path / "landing.html"
    f.write_text(sample_page, encoding="utf-8")
    page = parse_file(f)
    assert page.title == "Flow Party"
    assert len(page.sections) == 5


def test_parse_file_missing(tmp_path):
    """parse_file propagates OSError for a missing file."""
    with pytest.raises(OSError):
        parse_file(Path(tmp_path / "missing.html"))
