"""File discovery and page-level parsing: title, styles, scripts, sections"""

import re
from pathlib import Path
from typing import Optional

from flowbridge.core.extract.sections import DetectionOptions, detect_sections
from flowbridge.core.models import ParsedPage


TITLE_RE = re.compile(r'<title[^>]*>([\s\S]*?)</title>', re.IGNORECASE)
STYLE_RE = re.compile(r'<style[^>]*>([\s\S]*?)</style>', re.IGNORECASE)
SCRIPT_RE = re.compile(r'<script(?![^>]*\bsrc\s*=)[^>]*>([\s\S]*?)</script>', re.IGNORECASE)
BODY_RE = re.compile(r'<body[^>]*>([\s\S]*?)</body>', re.IGNORECASE)
HTML_EXTENSIONS = {'.html', '.htm'}


def extract_title(html: str) -> str:
    """Text of <title>, cut at the first ' - '; 'Untitled' when absent."""
    m = TITLE_RE.search(html)
    if not m:
        return "Untitled"
    title = m.group(1).split(" - ")[0].strip()
    return title or "Untitled"


def extract_styles(html: str) -> str:
    return "\n".join(m.strip() for m in STYLE_RE.findall(html) if m.strip())


def extract_scripts(html: str) -> str:
    return "\n".join(m.strip() for m in SCRIPT_RE.findall(html) if m.strip())


def extract_body(html: str) -> str:
    m = BODY_RE.search(html)
    return m.group(1).strip() if m else html


def discover_files(path: Path) -> list[Path]:
    """Return sorted .html/.htm files under path, or [path] if a single file."""
    if path.is_file():
        return [path] if path.suffix.lower() in HTML_EXTENSIONS else []
    return sorted(p for p in path.rglob('*') if p.suffix.lower() in HTML_EXTENSIONS)


def parse_page(html: str, options: Optional[DetectionOptions] = None) -> ParsedPage:
    """Parse page markup into title, stylesheet, scripts, body and sections."""
    options = options or DetectionOptions()
    css = extract_styles(html)
    body = extract_body(html)
    return ParsedPage(
        title=extract_title(html),
        css=css,
        js=extract_scripts(html),
        body=body,
        sections=detect_sections(body, css, options),
    )


def parse_file(path: Path, options: Optional[DetectionOptions] = None) -> ParsedPage:
    """Parse a single page file."""
    return parse_page(path.read_text(encoding='utf-8'), options)
