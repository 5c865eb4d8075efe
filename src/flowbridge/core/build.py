"""Deterministic node/style graph builder for one section"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from bs4.element import PreformattedString
from pydantic import BaseModel, Field

from flowbridge.core.models import (
    Attr,
    Document,
    ImageAttr,
    LinkData,
    Node,
    NodeData,
    Payload,
    Section,
    Style,
    StyleVariant,
)
from flowbridge.core.routing import RoutedRule, RoutingTrace, route_css
from flowbridge.core.style_value import parse_style_less, to_map, to_style_less, StyleProperty
from flowbridge.core.utils.slug import slugify
from flowbridge.core.vocabulary import Vocabulary


logger = logging.getLogger(__name__)

NODE_TYPES = {
    "h1": "Heading", "h2": "Heading", "h3": "Heading",
    "h4": "Heading", "h5": "Heading", "h6": "Heading",
    "p": "Paragraph",
    "a": "Link",
    "img": "Image",
    "ul": "List", "ol": "List",
    "li": "ListItem",
    "section": "Section",
    "video": "Video",
}
DROPPED_TAGS = frozenset({"script", "style", "meta", "link", "head", "title", "noscript", "base"})
NORMALIZED_TAGS = frozenset({"html", "body", "main", "form", "label", "button"})
PREFIX_RE = re.compile(r'^([a-z]+)-')


class BuildOptions(BaseModel):
    id_prefix:         Optional[str] = None
    namespace:         str = ""
    alt_root_selector: str = ".fp-root"
    vocabulary:        Vocabulary = Field(default_factory=Vocabulary)


@dataclass
class BuildResult:
    document:  Document
    embed_css: str
    trace:     RoutingTrace
    warnings:  list[str] = field(default_factory=list)
    root_ids:  list[str] = field(default_factory=list)


class IdGenerator:
    """`<prefix>-<base>-NNN` ids with an independent counter per base."""

    def __init__(self, prefix: str = "wf"):
        self.prefix = prefix
        self._counters: dict[str, int] = {}

    def next(self, base: str) -> str:
        base = slugify(base) or "node"
        self._counters[base] = self._counters.get(base, 0) + 1
        return f"{self.prefix}-{base}-{self._counters[base]:03d}"


def derive_prefix(section: Section, override: Optional[str] = None) -> str:
    """Explicit prefix, else the leading `xx-` of the section's first class, else 'wf'."""
    if override:
        return override
    first = section.class_name.split()[0] if section.class_name.split() else ""
    m = PREFIX_RE.match(first)
    return m.group(1) if m else "wf"


class _StyleTable:
    """Name-keyed style accumulator; declarations merge with later-wins semantics."""

    def __init__(self, namespace: str, vocabulary: Vocabulary):
        self.namespace = namespace
        self.vocabulary = vocabulary
        self.styles: dict[str, Style] = {}
        self.warnings: list[str] = []

    def get(self, name: str) -> Style:
        if name not in self.styles:
            self.styles[name] = Style(id=name, name=name, namespace=self.namespace)
        return self.styles[name]

    def _merge(self, existing: str, addition: str) -> str:
        parsed = parse_style_less(f"{existing} {addition}")
        self.warnings.extend(parsed.warnings)
        merged = to_map(parsed.properties)
        return to_style_less([StyleProperty(p, v) for p, v in merged.items()])

    def apply(self, rule: RoutedRule) -> None:
        target = rule.target
        name = target.modifier or target.base
        style = self.get(name)
        if target.modifier:
            base = self.get(target.base)
            style.comb = self.vocabulary.combo_marker
            if name not in base.children:
                base.children.append(name)

        breakpoint = rule.breakpoint.mapped if rule.breakpoint else None
        key = self.vocabulary.variant_key(breakpoint, target.state)
        if key is None:
            style.style_less = self._merge(style.style_less, rule.native_output or "")
            return
        if not self.vocabulary.is_valid_key(key):
            self.warnings.append(f'Skipped variant "{key}" on "{name}": not in vocabulary')
            return
        variant = style.variants.get(key, StyleVariant())
        style.variants[key] = StyleVariant(style_less=self._merge(variant.style_less, rule.native_output or ""))


class _TreeWalker:
    def __init__(self, ids: IdGenerator, styles: _StyleTable):
        self.ids = ids
        self.styles = styles
        self.nodes: list[Node] = []

    def _text(self, value: str) -> Node:
        node = Node(id=self.ids.next("text"), text=True, v=value)
        self.nodes.append(node)
        return node

    def walk(self, element) -> Optional[str]:
        if isinstance(element, (Comment, PreformattedString)):
            return None
        if isinstance(element, NavigableString):
            value = re.sub(r'\s+', ' ', str(element))
            if not value.strip():
                return None
            return self._text(value).id
        if not isinstance(element, Tag):
            return None

        tag = element.name.lower()
        if tag in DROPPED_TAGS:
            return None
        if tag == "br":
            return self._text("\n").id
        if tag in NORMALIZED_TAGS:
            tag = "div"

        classes = [c for c in (element.get("class") or []) if c]
        for c in classes:
            self.styles.get(c)

        node = Node(
            id=self.ids.next(classes[0] if classes else tag),
            type=NODE_TYPES.get(tag, "Block"),
            tag=tag,
            classes=classes,
            children=[],
            data=self._data(element, tag),
        )
        self.nodes.append(node)

        for child in element.children:
            child_id = self.walk(child)
            if child_id:
                node.children.append(child_id)
        return node.id

    def _data(self, element: Tag, tag: str) -> NodeData:
        xattr = [
            Attr(name=name, value=" ".join(value) if isinstance(value, list) else str(value))
            for name, value in element.attrs.items()
            if name == "id" or name.startswith("data-") or name.startswith("aria-")
        ]
        data = NodeData(tag=tag, text=False, xattr=xattr)
        if tag == "a":
            data.link = LinkData(url=element.get("href") or "#", target=element.get("target"))
        elif tag == "img":
            data.attr = ImageAttr(src=element.get("src"), alt=element.get("alt", ""), loading=element.get("loading"))
        return data


def build_document(section: Section, options: Optional[BuildOptions] = None) -> BuildResult:
    """Convert one section into a Document plus the CSS that must ship as an embed.

    Never raises on malformed markup or CSS; unusable fragments are dropped and
    reported in `warnings`.
    """
    options = options or BuildOptions()
    vocabulary = options.vocabulary
    trace = route_css(section.css, vocabulary, options.alt_root_selector)
    styles = _StyleTable(options.namespace, vocabulary)

    for rule in trace.rules:
        if rule.destination in ("native", "split") and rule.target and rule.native_output is not None:
            styles.apply(rule)

    walker = _TreeWalker(IdGenerator(derive_prefix(section, options.id_prefix)), styles)
    soup = BeautifulSoup(section.html, "html.parser")
    root_ids = [node_id for node_id in (walker.walk(child) for child in soup.children) if node_id]

    document = Document(payload=Payload(nodes=walker.nodes, styles=list(styles.styles.values())))
    logger.debug("Built section %s: %d node(s), %d style(s)", section.id,
                 len(walker.nodes), len(styles.styles))
    return BuildResult(
        document=document,
        embed_css=trace.embed_css(),
        trace=trace,
        warnings=styles.warnings,
        root_ids=root_ids,
    )
