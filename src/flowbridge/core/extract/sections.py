"""Page section detection by comment markers, semantic tags, and implicit containers"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel

from flowbridge.core.extract.css import CssExtractionOptions, extract_css_for_section
from flowbridge.core.models import Section
from flowbridge.core.utils.slug import unique_slug


logger = logging.getLogger(__name__)

SEMANTIC_TAGS = ("section", "nav", "header", "footer")
COMMENT_TARGET_TAGS = ("section", "nav", "header", "footer", "div", "main", "article", "aside")

COMMENT_MARKER_RE = re.compile(
    r'<!--\s*([^<>]*?)\s*-->\s*(?=<(' + "|".join(COMMENT_TARGET_TAGS) + r')\b)',
    re.IGNORECASE,
)
SEMANTIC_OPEN_RE = re.compile(r'<(' + "|".join(SEMANTIC_TAGS) + r')\b[^>]*>', re.IGNORECASE)
DIV_OPEN_RE = re.compile(r'<div\b[^>]*>', re.IGNORECASE)
CLASS_ATTR_RE = re.compile(r'\bclass\s*=\s*(?:"([^"]*)"|\'([^\']*)\')', re.IGNORECASE)
ID_ATTR_RE = re.compile(r'\bid\s*=\s*(?:"([^"]*)"|\'([^\']*)\')', re.IGNORECASE)
TAG_NAME_RE = re.compile(r'<([a-zA-Z][a-zA-Z0-9]*)\b')


class DetectionOptions(BaseModel):
    detect_implicit:  bool = True
    implicit_pattern: str = r"-section$"
    implicit_names:   list[str] = []        # exact leading-class names also treated as sections
    css:              CssExtractionOptions = CssExtractionOptions()


@dataclass
class _Claim:
    start:   int
    end:     int
    tag:     str
    comment: Optional[str] = None


def _attr(pattern: re.Pattern, open_tag: str) -> str:
    m = pattern.search(open_tag)
    if not m:
        return ""
    return (m.group(1) if m.group(1) is not None else m.group(2)).strip()


def find_element_end(html: str, tag: str, start: int) -> Optional[int]:
    """Index just past the close tag matching the element opened at `start`.

    Nested same-tag pairs are counted; returns None when the element never closes.
    """
    token_re = re.compile(r'<(/?)' + re.escape(tag) + r'\b[^>]*?(/?)>', re.IGNORECASE)
    depth = 0
    for m in token_re.finditer(html, start):
        closing, self_closing = m.group(1), m.group(2)
        if closing:
            depth -= 1
            if depth == 0:
                return m.end()
        elif not self_closing:
            depth += 1
    return None


def extract_class_names(html: str) -> list[str]:
    """Every distinct class referenced in the markup, in first-seen order."""
    names: list[str] = []
    for m in CLASS_ATTR_RE.finditer(html):
        value = m.group(1) if m.group(1) is not None else m.group(2)
        names.extend(value.split())
    return list(dict.fromkeys(names))


def extract_tag_names(html: str) -> set[str]:
    return {t.lower() for t in TAG_NAME_RE.findall(html)}


def format_section_name(raw: str) -> str:
    """'hero-section' -> 'Hero'; 'pricing_table' -> 'Pricing Table'."""
    name = re.sub(r'[-_\s]*section$', '', raw.strip(), flags=re.IGNORECASE)
    name = re.sub(r'[-_]+', ' ', name).strip()
    return name.title() if name else "Untitled Section"


def _inside(pos: int, claims: list[_Claim]) -> bool:
    return any(c.start <= pos < c.end for c in claims)


def _claim(html: str, start: int, tag: str, claims: list[_Claim], comment: Optional[str] = None) -> None:
    end = find_element_end(html, tag.lower(), start)
    if end is None:
        logger.warning("Unclosed <%s> at offset %d; skipped", tag, start)
        return
    claims.append(_Claim(start, end, tag.lower(), comment))


def _is_implicit(class_value: str, options: DetectionOptions) -> bool:
    classes = class_value.split()
    if not classes:
        return False
    leading = classes[0]
    return bool(re.search(options.implicit_pattern, leading)) or leading in options.implicit_names


def detect_sections(html: str, css: str = "", options: Optional[DetectionOptions] = None) -> list[Section]:
    """Split page markup into sections, each with the CSS subset it needs.

    Comment-named elements are claimed first, then unclaimed semantic elements,
    then (optionally) div containers whose leading class matches the implicit
    pattern. Anything lying inside an earlier claim is not emitted again.
    """
    options = options or DetectionOptions()
    claims: list[_Claim] = []

    for m in COMMENT_MARKER_RE.finditer(html):
        start = m.end()
        if _inside(start, claims):
            continue
        name = m.group(1).strip()
        _claim(html, start, m.group(2), claims, comment=name if re.search(r"\w", name) else None)

    for m in SEMANTIC_OPEN_RE.finditer(html):
        if _inside(m.start(), claims):
            continue
        _claim(html, m.start(), m.group(1), claims)

    if options.detect_implicit:
        for m in DIV_OPEN_RE.finditer(html):
            if _inside(m.start(), claims):
                continue
            if _is_implicit(_attr(CLASS_ATTR_RE, m.group(0)), options):
                _claim(html, m.start(), "div", claims)

    claims.sort(key=lambda c: c.start)
    sections: list[Section] = []
    used_ids: set[str] = set()

    for c in claims:
        element = html[c.start:c.end]
        open_tag = element[:element.find(">") + 1]
        class_value = _attr(CLASS_ATTR_RE, open_tag)
        leading_class = class_value.split()[0] if class_value else ""
        id_attr = _attr(ID_ATTR_RE, open_tag)

        raw_name = c.comment or leading_class or id_attr or c.tag
        section_id = unique_slug(leading_class or id_attr or raw_name, used_ids, fallback="section")

        class_names = extract_class_names(element)
        sections.append(Section(
            id=section_id,
            name=c.comment or format_section_name(raw_name),
            tag_name=c.tag,
            class_name=class_value,
            html=element,
            class_names=class_names,
            css=extract_css_for_section(css, class_names, options.css, extract_tag_names(element)) if css else "",
        ))

    logger.debug("Detected %d section(s)", len(sections))
    return sections
