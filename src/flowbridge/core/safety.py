"""Safety gate: sanitize and verify a Document before any consumer sees it.

Passes run in order, each on its own deep copy:

1. structural sanitation (line breaks, variant keys, orphaned states, reserved names)
2. identity integrity (duplicate node/style ids)
3. cycle cutting (node and style children)
4. referential integrity (classes, children, combos, single root)
5. nesting depth policy
6. inline CSS the destination cannot hold moves to the CSS embed
7. embed budgeting (per-kind byte sizes, chunking, raw HTML cleanup)

Cycles are cut after identity repair; until ids are unique a cycle through a
duplicate is invisible to the id index.

The gate never raises on bad input. A document that fails the shape check is
replaced by an empty one and the report is `block`.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from flowbridge.core.chunking import ChunkedEmbed, byte_size, chunk_embed, chunker_for
from flowbridge.core.graph import DocumentGraph
from flowbridge.core.models import DOCUMENT_TYPE, Document, Node, NodeData, SafetyReport, Style
from flowbridge.core.style_value import PROPERTY_NAME_RE, embed_only_feature, inline_value_problem, split_segments
from flowbridge.core.vocabulary import Vocabulary


logger = logging.getLogger(__name__)

BR_RE = re.compile(r'<br\s*/?>', re.IGNORECASE)
CLASS_IDENT_RE = re.compile(r'^-?[A-Za-z_][\w-]*$')
INLINE_HANDLER_RE = re.compile(r'\s+on[a-z]+\s*=\s*(?:"[^"]*"|\'[^\']*\'|[^\s>]+)', re.IGNORECASE)
FORBIDDEN_ROOT_TAGS = [
    ("doctype", re.compile(r'<!doctype[^>]*>', re.IGNORECASE)),
    ("html",    re.compile(r'</?html\b[^>]*>', re.IGNORECASE)),
    ("head",    re.compile(r'</?head\b[^>]*>', re.IGNORECASE)),
    ("body",    re.compile(r'</?body\b[^>]*>', re.IGNORECASE)),
]
EMBED_KINDS = ("css", "js", "html")
WRAPPER_NODE_ID = "root-wrapper"
WRAPPER_STYLE_NAME = "multi-root-wrapper"
WRAPPER_STYLE_LESS = "display: block; width: 100%;"


class GateOptions(BaseModel):
    soft_limit:         int = 40_960
    hard_limit:         int = 51_200
    allow_chunking:     bool = True
    safe_depth:         int = 30
    max_depth:          int = 50
    reserved_prefix:    str = "w-"
    replacement_prefix: str = "custom-"
    vocabulary:         Vocabulary = Field(default_factory=Vocabulary)


class EmbedContent(BaseModel):
    """Side-channel code that ships next to the document rather than inside it."""
    css:  str = ""
    js:   str = ""
    html: str = ""


@dataclass
class GateResult:
    document:             Document
    report:               SafetyReport
    sanitization_applied: bool
    embeds:               EmbedContent = field(default_factory=EmbedContent)
    chunks:               dict[str, ChunkedEmbed] = field(default_factory=dict)

    @property
    def blocked(self) -> bool:
        return self.report.status == "block"


def check_shape(value: Union[Document, dict, str, Any]) -> tuple[Optional[Document], Optional[str]]:
    """Return (document, None) when value has the document shape, else (None, reason)."""
    if isinstance(value, Document):
        return value.model_copy(deep=True), None
    if isinstance(value, (str, bytes)):
        try:
            value = json.loads(value)
        except ValueError:
            return None, "Invalid JSON - cannot parse payload"
    if not isinstance(value, dict):
        return None, "Payload is not an object"
    if value.get("type") != DOCUMENT_TYPE:
        return None, f'Unexpected document type "{value.get("type")}"'
    payload = value.get("payload")
    if not isinstance(payload, dict):
        return None, "Missing payload object"
    for key in ("nodes", "styles"):
        if not isinstance(payload.get(key), list):
            return None, f"payload.{key} must be an array"
    try:
        return Document.model_validate(value), None
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(p) for p in first["loc"])
        return None, f"Invalid document at {where}: {first['msg']}"


def _next_free(base: str, taken: set[str], start: int = 2) -> str:
    n = start
    while f"{base}-{n}" in taken:
        n += 1
    return f"{base}-{n}"


# --- pass 1: structural sanitation ---

def _rename_reserved(doc: Document, options: GateOptions, report: SafetyReport) -> None:
    prefix, replacement = options.reserved_prefix, options.replacement_prefix
    if not prefix:
        return
    style_ids = {s.id for s in doc.payload.styles}
    style_names = {s.name for s in doc.payload.styles}
    id_map: dict[str, str] = {}
    name_map: dict[str, str] = {}

    for style in doc.payload.styles:
        if style.name.startswith(prefix):
            new_name = replacement + style.name[len(prefix):]
            if new_name in style_names:
                new_name = _next_free(new_name, style_names)
            style_names.add(new_name)
            name_map[style.name] = new_name
            report.auto_fixes.append(f'Renamed reserved class "{style.name}" -> "{new_name}"')
            style.name = new_name
        if style.id.startswith(prefix):
            new_id = replacement + style.id[len(prefix):]
            if new_id in style_ids:
                new_id = _next_free(new_id, style_ids)
            style_ids.add(new_id)
            id_map[style.id] = new_id
            if style.id not in name_map:
                report.auto_fixes.append(f'Renamed reserved style id "{style.id}" -> "{new_id}"')
            style.id = new_id

    node_ids = {n.id for n in doc.payload.nodes}
    node_map: dict[str, str] = {}
    for node in doc.payload.nodes:
        if node.id.startswith(prefix):
            new_id = replacement + node.id[len(prefix):]
            if new_id in node_ids:
                new_id = _next_free(new_id, node_ids)
            node_ids.add(new_id)
            node_map[node.id] = new_id
            report.auto_fixes.append(f'Renamed reserved node id "{node.id}" -> "{new_id}"')
            node.id = new_id

    if not (id_map or name_map or node_map):
        return
    for node in doc.payload.nodes:
        if node.classes:
            node.classes = [id_map.get(c, name_map.get(c, c)) for c in node.classes]
        if node.children:
            node.children = [node_map.get(c, c) for c in node.children]
    for style in doc.payload.styles:
        style.children = [id_map.get(c, name_map.get(c, c)) for c in style.children]
    report.warnings.append(
        f"Reserved prefix \"{prefix}\" is owned by the destination; "
        f"{len(name_map) + len(node_map)} name(s) renamed to \"{replacement}...\""
    )


def _remove_orphaned_states(doc: Document, report: SafetyReport) -> None:
    """Drop `base:state` styles whose base class is absent, with every reference to them."""
    bases = {s.name for s in doc.payload.styles if ":" not in s.name}
    removed: set[str] = set()
    kept: list[Style] = []
    for style in doc.payload.styles:
        base = style.name.split(":")[0]
        if ":" in style.name and base not in bases:
            removed.update((style.id, style.name))
            report.auto_fixes.append(f'Removed orphaned state style "{style.name}" (missing base class "{base}")')
        else:
            kept.append(style)
    if not removed:
        return
    doc.payload.styles = kept
    for node in doc.payload.nodes:
        if node.classes:
            node.classes = [c for c in node.classes if c not in removed]
    for style in kept:
        style.children = [c for c in style.children if c not in removed]


def sanitize_structure(document: Document, options: GateOptions, report: SafetyReport) -> Document:
    doc = document.model_copy(deep=True)

    for node in DocumentGraph(doc).iter_text_nodes():
        if BR_RE.search(node.v):
            node.v = BR_RE.sub("\n", node.v)
            report.auto_fixes.append(f"Replaced <br> with a line break in text node {node.id}")

    # node-id keys (ghost variants) are outside the vocabulary and go here too
    for style in doc.payload.styles:
        for key in list(style.variants):
            if not options.vocabulary.is_valid_key(key):
                del style.variants[key]
                report.auto_fixes.append(f'Removed unsupported variant "{key}" from style "{style.name}"')

    _remove_orphaned_states(doc, report)
    _rename_reserved(doc, options, report)
    return doc


# --- pass 2: identity integrity ---

def repair_identity(document: Document, report: SafetyReport) -> Document:
    """Regenerate duplicate ids as `<id>-2`, `-3`, ... and rewrite references positionally."""
    doc = document.model_copy(deep=True)

    taken = {n.id for n in doc.payload.nodes}
    node_instances: dict[str, list[str]] = {}
    for node in doc.payload.nodes:
        instances = node_instances.setdefault(node.id, [])
        if instances:
            new_id = _next_free(node.id, taken)
            taken.add(new_id)
            report.auto_fixes.append(f'Regenerated duplicate node id "{node.id}" -> "{new_id}"')
            instances.append(new_id)
            node.id = new_id
        else:
            instances.append(node.id)

    duplicated = {k: v for k, v in node_instances.items() if len(v) > 1}
    if duplicated:
        seen: dict[str, int] = {}
        for node in doc.payload.nodes:
            if not node.children:
                continue
            rewritten = []
            for child in node.children:
                if child in duplicated:
                    i = seen.get(child, 0)
                    seen[child] = i + 1
                    instances = duplicated[child]
                    rewritten.append(instances[i] if i < len(instances) else instances[0])
                else:
                    rewritten.append(child)
            node.children = rewritten

    taken = {s.id for s in doc.payload.styles}
    style_instances: dict[str, list[str]] = {}
    for style in doc.payload.styles:
        instances = style_instances.setdefault(style.id, [])
        if instances:
            new_id = _next_free(style.id, taken)
            taken.add(new_id)
            report.auto_fixes.append(f'Regenerated duplicate style id "{style.id}" -> "{new_id}"')
            instances.append(new_id)
            style.id = new_id
        else:
            instances.append(style.id)

    duplicated = {k: v for k, v in style_instances.items() if len(v) > 1}
    if duplicated:
        seen = {}
        for node in doc.payload.nodes:
            if not node.classes:
                continue
            rewritten = []
            for ref in dict.fromkeys(node.classes):
                if ref in duplicated:
                    i = seen.get(ref, 0)
                    seen[ref] = i + 1
                    instances = duplicated[ref]
                    rewritten.append(instances[i] if i < len(instances) else instances[0])
                else:
                    rewritten.append(ref)
            node.classes = rewritten
    return doc


# --- pass 3: cycles ---

def break_cycles(document: Document, report: SafetyReport) -> Document:
    doc = document.model_copy(deep=True)
    graph = DocumentGraph(doc)
    for parent, child in graph.break_node_cycles():
        report.auto_fixes.append(f"Cut node cycle edge {parent} -> {child}")
        report.warnings.append(f"Node {parent} referenced ancestor {child} as a child")
    for parent, child in graph.break_style_cycles():
        report.auto_fixes.append(f"Cut style cycle edge {parent} -> {child}")
        report.warnings.append(f"Style {parent} referenced ancestor {child} as a child")
    return doc


# --- pass 4: referential integrity ---

def repair_references(document: Document, options: GateOptions, report: SafetyReport) -> Document:
    doc = document.model_copy(deep=True)
    graph = DocumentGraph(doc)
    synthesized: list[Style] = []

    for node in doc.payload.nodes:
        if node.classes:
            resolved: list[str] = []
            for ref in node.classes:
                if graph.style(ref) is not None:
                    target = ref
                elif graph.style_by_name(ref) is not None:
                    target = graph.style_by_name(ref).id
                    report.auto_fixes.append(f'Remapped class name "{ref}" to style id "{target}" on node {node.id}')
                elif CLASS_IDENT_RE.match(ref):
                    style = Style(id=ref, name=ref)
                    doc.payload.styles.append(style)
                    graph.reindex()
                    synthesized.append(style)
                    target = ref
                    report.auto_fixes.append(f'Created empty style for missing class "{ref}"')
                else:
                    report.auto_fixes.append(f'Dropped invalid class reference "{ref}" from node {node.id}')
                    continue
                if target not in resolved:
                    resolved.append(target)
            node.classes = resolved

        if node.children:
            kept = [c for c in node.children if graph.node(c) is not None]
            for missing in (c for c in node.children if graph.node(c) is None):
                report.auto_fixes.append(f'Dropped missing child "{missing}" from node {node.id}')
            node.children = kept

    for style in doc.payload.styles:
        children: list[str] = []
        for ref in style.children:
            target = graph.style(ref) or graph.style_by_name(ref)
            if target is None:
                report.auto_fixes.append(f'Dropped unresolved child style "{ref}" from "{style.name}"')
            elif target.id not in children:
                children.append(target.id)
        style.children = children

    listed = {c for s in doc.payload.styles for c in s.children}
    for style in doc.payload.styles:
        if style.comb and style.id not in listed:
            report.warnings.append(f'Combo style "{style.name}" is not listed by any base style')

    if synthesized:
        logger.debug("Synthesized %d placeholder style(s)", len(synthesized))
    return doc


def wrap_multiple_roots(document: Document, report: SafetyReport) -> Document:
    """Give a document with several element roots a single wrapper root; text roots are ignored."""
    doc = document.model_copy(deep=True)
    graph = DocumentGraph(doc)
    roots = [graph.nodes[slot].id for slot in graph.root_slots() if not graph.nodes[slot].text]
    if len(roots) <= 1:
        return doc

    style = graph.style_by_name(WRAPPER_STYLE_NAME)
    if style is None:
        style_id = WRAPPER_STYLE_NAME
        if graph.style(style_id) is not None:
            style_id = _next_free(style_id, {s.id for s in graph.styles})
        style = Style(id=style_id, name=WRAPPER_STYLE_NAME, style_less=WRAPPER_STYLE_LESS)
        doc.payload.styles.append(style)

    wrapper_id = WRAPPER_NODE_ID
    if graph.node(wrapper_id) is not None:
        wrapper_id = _next_free(wrapper_id, {n.id for n in graph.nodes})
    doc.payload.nodes.insert(0, Node(
        id=wrapper_id, type="Block", tag="div", classes=[style.id], children=roots,
        data=NodeData(tag="div", text=False, displayName="Content Wrapper (delete after pasting)"),
    ))
    report.auto_fixes.append(f"Wrapped {len(roots)} root elements in {wrapper_id}")
    return doc


# --- pass 5: depth ---

def check_depth(document: Document, options: GateOptions, report: SafetyReport) -> int:
    depth = DocumentGraph(document).max_depth()
    if depth > options.max_depth:
        report.warnings.append(f"Node tree is {depth} levels deep (recommended maximum {options.max_depth})")
    elif depth > options.safe_depth:
        logger.debug("Node tree depth %d exceeds safe depth %d", depth, options.safe_depth)
    return depth


# --- pass 6: inline CSS ---

def _partition_inline(style_less: str) -> tuple[list[str], list[tuple[str, str]], list[str]]:
    """Split styleLess into (kept, moved-with-reason, dropped) declarations."""
    kept, moved, dropped = [], [], []
    for segment in split_segments(style_less or ""):
        declaration = segment.strip()
        if not declaration:
            continue
        prop, sep, value = declaration.partition(":")
        prop, value = prop.strip(), value.strip()
        if not sep or not value or not PROPERTY_NAME_RE.match(prop):
            dropped.append(declaration)
            continue
        text = f"{prop}: {value}"
        feature = embed_only_feature(prop, value)
        problem = inline_value_problem(value)
        if feature:
            moved.append((text, feature))
        elif problem == "truncated":
            dropped.append(declaration)
        elif problem:
            moved.append((text, f"value {problem}"))
        else:
            kept.append(text)
    return kept, moved, dropped


def _variant_target(name: str, key: Optional[str], vocabulary: Vocabulary) -> tuple[str, Optional[str]]:
    """(selector, media query) a style's base or variant declarations apply under."""
    if key is None:
        return f".{name}", None
    breakpoint, state = None, key
    if key in vocabulary.breakpoints:
        breakpoint, state = key, None
    else:
        bp, sep, st = key.partition("_")
        if sep and bp in vocabulary.breakpoints:
            breakpoint, state = bp, st
    selector = f".{name}"
    if state:
        pseudo = next((p for p, k in vocabulary.pseudo_states.items() if k == state), state)
        selector += f":{pseudo}"
    bp = vocabulary.breakpoints.get(breakpoint) if breakpoint else None
    media = f"({bp.kind}-width: {bp.width}px)" if bp and bp.kind != "base" else None
    return selector, media


def extract_inline_css(document: Document, embeds: EmbedContent, options: GateOptions,
                       report: SafetyReport) -> tuple[Document, EmbedContent]:
    """Move declarations a styleLess string cannot carry into the CSS embed.

    Embed-only features and values holding a `;` are moved as rules on the
    style's selector; fragments with no usable property or a truncated value
    are dropped. A styleLess with nothing to move is left byte-for-byte intact.
    """
    doc = document.model_copy(deep=True)
    embeds = embeds.model_copy()
    rules: list[str] = []

    for style in doc.payload.styles:
        holders = [(None, style)] + list(style.variants.items())
        for key, holder in holders:
            kept, moved, dropped = _partition_inline(holder.style_less)
            if not (moved or dropped):
                continue
            holder.style_less = " ".join(f"{d};" for d in kept)
            where = f'style "{style.name}"' + (f' variant "{key}"' if key else "")
            for declaration in dropped:
                report.auto_fixes.append(f'Dropped invalid declaration "{declaration[:40]}" from {where}')
            if not moved:
                continue
            for declaration, reason in moved:
                prop = declaration.partition(":")[0]
                report.auto_fixes.append(f'Moved "{prop}" from {where} to the CSS embed ({reason})')
            selector, media = _variant_target(style.name, key, options.vocabulary)
            rule = f"{selector} {{ {' '.join(f'{d};' for d, _ in moved)} }}"
            rules.append(f"@media {media} {{ {rule} }}" if media else rule)

    if rules:
        embeds.css = "\n\n".join([embeds.css, *rules] if embeds.css else rules)
    return doc, embeds


# --- pass 7: embeds ---

def sanitize_embed_html(html: str) -> tuple[str, list[str]]:
    """Strip inline on* handlers and document-level tags; returns (html, changes)."""
    changes = []
    cleaned = INLINE_HANDLER_RE.sub("", html)
    if cleaned != html:
        changes.append("Removed inline event handlers")
    removed = []
    for label, pattern in FORBIDDEN_ROOT_TAGS:
        if pattern.search(cleaned):
            cleaned = pattern.sub("", cleaned)
            removed.append(label)
    if removed:
        changes.append(f"Removed forbidden root tags: {', '.join(removed)}")
    return (cleaned.strip() if changes else html), changes


def _embed_node_html(node) -> Optional[str]:
    embed = (node.data.embed if node.data else None) or {}
    meta = embed.get("meta") if isinstance(embed, dict) else None
    if isinstance(meta, dict) and isinstance(meta.get("html"), str):
        return meta["html"]
    return node.v if isinstance(node.v, str) else None


def _budget(label: str, content: str, kind: str, options: GateOptions, report: SafetyReport,
            chunks: dict[str, ChunkedEmbed]) -> None:
    size = byte_size(content)
    report.embed_size.sizes[label] = size
    if size < options.soft_limit:
        return
    if size < options.hard_limit:
        report.embed_size.warnings.append(
            f"{label} embed is {size:,} bytes (soft limit {options.soft_limit:,})")
        return
    chunker = chunker_for(kind) if options.allow_chunking else None
    if chunker is not None:
        chunked = chunk_embed(content, kind, options.soft_limit)
        if chunked.fits(options.soft_limit):
            chunks[label] = chunked
            report.embed_size.warnings.append(
                f"{label} embed is {size:,} bytes and needs chunking into {len(chunked.chunks)} parts")
            report.embed_size.warnings.extend(chunked.instructions())
            return
    report.embed_size.errors.append(
        f"{label} embed is {size:,} bytes; exceeds hard limit {options.hard_limit:,}")


def budget_embeds(document: Document, embeds: EmbedContent, options: GateOptions,
                  report: SafetyReport) -> tuple[Document, EmbedContent, dict[str, ChunkedEmbed]]:
    doc = document.model_copy(deep=True)
    embeds = embeds.model_copy()
    chunks: dict[str, ChunkedEmbed] = {}

    if embeds.html:
        embeds.html, changes = sanitize_embed_html(embeds.html)
        report.auto_fixes.extend(f"HTML embed: {c}" for c in changes)

    for kind in EMBED_KINDS:
        _budget(kind, getattr(embeds, kind), kind, options, report, chunks)

    for node in doc.payload.nodes:
        if node.type != "HtmlEmbed":
            continue
        raw = _embed_node_html(node)
        if not raw:
            continue
        cleaned, changes = sanitize_embed_html(raw)
        if changes:
            meta = node.data.embed.get("meta") if node.data and isinstance(node.data.embed, dict) else None
            if isinstance(meta, dict) and "html" in meta:
                meta["html"] = cleaned
            if isinstance(node.v, str):
                node.v = cleaned
            report.auto_fixes.extend(f"HtmlEmbed {node.id}: {c}" for c in changes)
        _budget(f"node:{node.id}", cleaned, "html", options, report, chunks)

    return doc, embeds, chunks


def run_safety_gate(
    document: Union[Document, dict, str],
    embeds: Optional[EmbedContent] = None,
    options: Optional[GateOptions] = None,
    ) -> GateResult:
    """Sanitize a candidate document and report what was fixed, flagged, or fatal."""
    options = options or GateOptions()
    embeds = embeds or EmbedContent()

    parsed, error = check_shape(document)
    if parsed is None:
        logger.warning("Document failed shape check: %s", error)
        report = SafetyReport(status="block", fatal_issues=[error])
        return GateResult(document=Document(), report=report, sanitization_applied=False, embeds=embeds)

    report = SafetyReport()
    doc = sanitize_structure(parsed, options, report)
    doc = repair_identity(doc, report)
    doc = break_cycles(doc, report)
    doc = repair_references(doc, options, report)
    doc = wrap_multiple_roots(doc, report)
    check_depth(doc, options, report)
    doc, embeds = extract_inline_css(doc, embeds, options, report)
    doc, embeds, chunks = budget_embeds(doc, embeds, options, report)

    report.fatal_issues.extend(report.embed_size.errors)
    if report.fatal_issues:
        report.status = "block"
    elif report.auto_fixes or report.warnings or report.embed_size.warnings:
        report.status = "warn"
    logger.debug("Safety gate: %s (%d fix(es), %d warning(s), %d fatal)", report.status,
                 len(report.auto_fixes), len(report.warnings), len(report.fatal_issues))
    return GateResult(
        document=doc,
        report=report,
        sanitization_applied=bool(report.auto_fixes),
        embeds=embeds,
        chunks=chunks,
    )
