"""Stylesheet block scanning and per-section CSS extraction"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from pydantic import BaseModel


logger = logging.getLogger(__name__)

COMMENT_RE = re.compile(r'/\*[\s\S]*?\*/')
BARE_TAG_RE = re.compile(r'^[a-z][a-z0-9]*(?::{1,2}[\w-]+(?:\([^)]*\))?)*$', re.IGNORECASE)
ANIMATION_RE = re.compile(r'animation(?:-name)?\s*:\s*([^;}]+)', re.IGNORECASE)
KEYFRAMES_RE = re.compile(r'^@(?:-webkit-)?keyframes\s+([\w-]+)', re.IGNORECASE)


class CssExtractionOptions(BaseModel):
    include_root:      bool = True
    include_reset:     bool = True
    include_body:      bool = True
    include_html:      bool = False
    include_img:       bool = False
    include_keyframes: bool = True
    dedupe:            bool = True
    alt_root_selector: str = ".fp-root"


@dataclass
class CssBlock:
    """One top-level stylesheet statement: a rule, an at-rule block, or a bare at-rule."""
    prelude: str            # selector list or at-rule header, trimmed
    body:    str            # text between the outer braces ("" for bare at-rules)
    text:    str            # full source text
    start:   int

    @property
    def is_at_rule(self) -> bool:
        return self.prelude.startswith("@")

    @property
    def selectors(self) -> list[str]:
        return [s.strip() for s in self.prelude.split(",") if s.strip()]


def strip_comments(css: str) -> str:
    return COMMENT_RE.sub("", css)


def find_block_end(text: str, open_index: int) -> Optional[int]:
    """Index just past the brace matching text[open_index] == '{', or None if unbalanced."""
    depth = 0
    for i in range(open_index, len(text)):
        ch = text[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def iter_blocks(css: str) -> list[CssBlock]:
    """Split a stylesheet into top-level blocks with brace matching.

    Unbalanced trailing input is dropped with a warning.
    """
    css = strip_comments(css)
    blocks: list[CssBlock] = []
    pos = 0
    length = len(css)

    while pos < length:
        while pos < length and (css[pos].isspace() or css[pos] in ";}"):
            pos += 1
        if pos >= length:
            break

        brace = css.find("{", pos)
        semi = css.find(";", pos)
        # bare at-rule such as @import / @charset
        if css[pos] == "@" and semi != -1 and (brace == -1 or semi < brace):
            text = css[pos:semi + 1]
            blocks.append(CssBlock(text[:-1].strip(), "", text, pos))
            pos = semi + 1
            continue
        if brace == -1:
            logger.debug("Trailing CSS without a block dropped: %r", css[pos:pos + 40])
            break

        end = find_block_end(css, brace)
        if end is None:
            logger.warning("Unbalanced braces after %r; rest of stylesheet dropped", css[pos:brace].strip()[:40])
            break
        blocks.append(CssBlock(
            prelude=css[pos:brace].strip(),
            body=css[brace + 1:end - 1],
            text=css[pos:end],
            start=pos,
        ))
        pos = end

    return blocks


def iter_rules(css: str) -> Iterable[tuple[Optional[str], CssBlock]]:
    """Yield (media_query, rule) for every style rule, descending one level into @media."""
    for block in iter_blocks(css):
        if block.prelude.lower().startswith("@media"):
            query = block.prelude[len("@media"):].strip()
            for inner in iter_blocks(block.body):
                yield query, inner
        else:
            yield None, block


def class_pattern(class_name: str) -> re.Pattern:
    return re.compile(r'\.' + re.escape(class_name) + r'(?![\w-])')


def references_class(text: str, patterns: list[re.Pattern]) -> bool:
    return any(p.search(text) for p in patterns)


def _is_bare(selector: str, name: str) -> bool:
    return re.fullmatch(re.escape(name) + r'\s*', selector, re.IGNORECASE) is not None


def extract_css_for_section(
    css: str,
    class_names: list[str],
    options: Optional[CssExtractionOptions] = None,
    tags: Optional[set[str]] = None,
    ) -> str:
    """Pull the subset of a stylesheet that a section's classes and tags need.

    Covers class rules (simple, compound, descendant, pseudo), grouped bare-tag
    rules for tags present in the section, media queries that reference a
    gathered class, and @keyframes named by an animation already pulled in.
    """
    options = options or CssExtractionOptions()
    tags = {t.lower() for t in (tags or set())}
    patterns = [class_pattern(c) for c in class_names]
    picked: list[str] = []
    seen: set[str] = set()

    def push(text: str) -> None:
        key = text.strip()
        if not key:
            return
        if options.dedupe:
            if key in seen:
                return
            seen.add(key)
        picked.append(key)

    keyframes: list[tuple[str, str]] = []
    for block in iter_blocks(css):
        prelude = block.prelude
        lowered = prelude.lower()

        if block.is_at_rule:
            m = KEYFRAMES_RE.match(prelude)
            if m:
                keyframes.append((m.group(1), block.text))
            elif lowered.startswith("@media") and references_class(block.body, patterns):
                push(block.text)
            continue

        selectors = block.selectors
        if _is_bare(prelude, ":root") or _is_bare(prelude, options.alt_root_selector):
            if options.include_root:
                push(block.text)
        elif prelude.startswith("*"):
            if options.include_reset:
                push(block.text)
        elif _is_bare(prelude, "body"):
            if options.include_body:
                push(block.text)
        elif _is_bare(prelude, "html"):
            if options.include_html:
                push(block.text)
        elif _is_bare(prelude, "img"):
            if options.include_img:
                push(block.text)
        elif references_class(prelude, patterns):
            push(block.text)
        elif selectors and all(BARE_TAG_RE.match(s) for s in selectors):
            names = {re.split(r'[:\s]', s, maxsplit=1)[0].lower() for s in selectors}
            if names & tags:
                push(block.text)

    if options.include_keyframes and keyframes:
        used = set()
        for text in picked:
            for m in ANIMATION_RE.finditer(text):
                used.update(re.findall(r'[\w-]+', m.group(1)))
        for name, text in keyframes:
            if name in used:
                push(text)

    return "\n\n".join(picked)
