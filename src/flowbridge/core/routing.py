"""CSS routing: decide per rule and per property whether CSS becomes a native style or an embed.

Every decision is recorded on a RoutingTrace so a caller can explain why a given
rule ended up where it did.
"""

import logging
import re
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from flowbridge.core.extract.css import CssBlock, iter_blocks
from flowbridge.core.style_value import (
    IMPORTANT_RE,
    VAR_REF_RE,
    StyleProperty,
    embed_only_feature,
    inline_value_problem,
    normalize_property,
    normalize_value,
    split_segments,
    to_style_less,
)
from flowbridge.core.vocabulary import DEFAULT_VOCABULARY, Vocabulary


logger = logging.getLogger(__name__)

Destination = Literal["native", "embed", "split"]
Category = Literal["at-rule", "root", "media", "base", "pseudo", "combinator", "attribute"]

SIMPLE_SELECTOR_RE = re.compile(
    r'\.(?P<base>-?[A-Za-z_][\w-]*)'
    r'(?:\.(?P<modifier>-?[A-Za-z_][\w-]*))?'
    r'(?:(?P<colons>::?)(?P<pseudo>[\w-]+))?'
)
WIDTH_QUERY_RE = re.compile(
    r'\(\s*(?P<kind>max|min)-width\s*:\s*(?P<value>\d+(?:\.\d+)?)(?P<unit>px|em|rem)?\s*\)',
    re.IGNORECASE,
)
MEDIA_PREFIX_RE = re.compile(r'^(?:only\s+)?(?:screen|all)\s+and\s+', re.IGNORECASE)
VENDOR_PREFIX_RE = re.compile(r'^-(webkit|moz|ms|o)-', re.IGNORECASE)
PSEUDO_ELEMENTS = frozenset({"before", "after", "first-line", "first-letter", "marker", "backdrop"})


class RoutingReason(BaseModel):
    type:   str
    detail: Optional[str] = None
    target: Optional[str] = None


class PropertyTransform(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    from_:  str = Field(alias="from")
    to:     str
    reason: str


class RoutedProperty(BaseModel):
    property:    str
    value:       str
    destination: Literal["native", "embed"]
    reason:      str
    transformed: Optional[PropertyTransform] = None


class BreakpointMapping(BaseModel):
    original:       str
    mapped:         str
    was_rounded:    bool = False
    original_width: Optional[int] = None
    mapped_width:   Optional[int] = None


class SelectorTarget(BaseModel):
    """The class a native rule lands on: `.base`, `.base.modifier`, optional state."""
    base:     str
    modifier: Optional[str] = None
    state:    Optional[str] = None


class RoutedRule(BaseModel):
    id:            str
    selector:      str
    original_css:  str
    destination:   Destination
    category:      Category = "base"
    reasons:       list[RoutingReason] = []
    properties:    list[RoutedProperty] = []
    breakpoint:    Optional[BreakpointMapping] = None
    target:        Optional[SelectorTarget] = None
    native_output: Optional[str] = None
    embed_output:  Optional[str] = None


class RoutingSummary(BaseModel):
    total_rules:         int = 0
    native_rules:        int = 0
    embed_rules:         int = 0
    split_rules:         int = 0
    breakpoint_mappings: int = 0
    at_rules_extracted:  int = 0


class RoutingTrace(BaseModel):
    original_css: str = ""
    rules:        list[RoutedRule] = []
    summary:      RoutingSummary = Field(default_factory=RoutingSummary)

    def rules_by_destination(self, destination: str) -> list[RoutedRule]:
        return [r for r in self.rules if r.destination == destination]

    def rules_by_category(self, category: str) -> list[RoutedRule]:
        return [r for r in self.rules if r.category == category]

    def embed_css(self) -> str:
        """Embed remainders of every rule, in source order, each emitted once."""
        parts = [r.embed_output for r in self.rules if r.embed_output]
        return "\n\n".join(dict.fromkeys(parts))


class CSSRoutingTracer:
    """Accumulates routed rules; `finalize` produces the trace with summary counts."""

    def __init__(self):
        self.rules: list[RoutedRule] = []
        self._counter = 0

    def _next_id(self) -> str:
        rule_id = f"rule-{self._counter}"
        self._counter += 1
        return rule_id

    def trace_rule(self, selector: str, original_css: str, destination: Destination,
                   reasons: list[RoutingReason], category: Category = "base", **kwargs) -> RoutedRule:
        rule = RoutedRule(id=self._next_id(), selector=selector, original_css=original_css,
                          destination=destination, reasons=reasons, category=category, **kwargs)
        self.rules.append(rule)
        return rule

    def trace_at_rule(self, name: str, text: str, at_rule: str) -> RoutedRule:
        return self.trace_rule(name, text, "embed", [RoutingReason(type="at-rule", detail=at_rule)],
                               category="at-rule", embed_output=text.strip())

    def trace_root(self, selector: str, text: str) -> RoutedRule:
        return self.trace_rule(selector, text, "embed", [RoutingReason(type="root-variables")],
                               category="root", embed_output=text.strip())

    def finalize(self, original_css: str) -> RoutingTrace:
        summary = RoutingSummary(total_rules=len(self.rules))
        for rule in self.rules:
            if rule.destination == "native":
                summary.native_rules += 1
            elif rule.destination == "embed":
                summary.embed_rules += 1
            else:
                summary.split_rules += 1
            if rule.breakpoint:
                summary.breakpoint_mappings += 1
            if rule.category in ("at-rule", "root"):
                summary.at_rules_extracted += 1
        return RoutingTrace(original_css=original_css, rules=list(self.rules), summary=summary)


def split_declarations(body: str) -> list[tuple[str, str]]:
    """Split a declaration block on `;` outside parentheses and quotes."""
    declarations = []
    for part in split_segments(body):
        prop, sep, value = part.partition(":")
        if sep and prop.strip() and value.strip():
            declarations.append((prop.strip(), value.strip()))
    return declarations


def classify_selector(selector: str, vocabulary: Vocabulary) -> tuple[Destination, Category, RoutingReason, Optional[SelectorTarget]]:
    """Route one selector (no commas). Native only for `.a`, `.a.b`, and vocabulary states."""
    s = selector.strip()
    m = SIMPLE_SELECTOR_RE.fullmatch(s)
    if m:
        base, modifier, pseudo = m.group("base"), m.group("modifier"), m.group("pseudo")
        if pseudo:
            state = vocabulary.state_for(pseudo)
            if state:
                return ("native", "pseudo", RoutingReason(type="native-state", detail=state),
                        SelectorTarget(base=base, modifier=modifier, state=state))
            if m.group("colons") == "::" or pseudo.lower() in PSEUDO_ELEMENTS:
                return "embed", "pseudo", RoutingReason(type="pseudo-element", detail=f"::{pseudo}"), None
            return "embed", "pseudo", RoutingReason(type="pseudo-class-complex", detail=f":{pseudo}"), None
        if modifier:
            return ("native", "base", RoutingReason(type="combo-class", detail=f".{base}.{modifier}"),
                    SelectorTarget(base=base, modifier=modifier))
        return "native", "base", RoutingReason(type="standard-class"), SelectorTarget(base=base)

    structural = re.sub(r'\([^)]*\)', '', re.sub(r'\[[^\]]*\]', '[]', s))
    combinator = re.search(r'\s*([>+~])\s*', structural)
    if combinator:
        return "embed", "combinator", RoutingReason(type="combinator", detail=combinator.group(1)), None
    if re.search(r'\S\s+\S', structural):
        return "embed", "combinator", RoutingReason(type="descendant-selector"), None
    attribute = re.search(r'\[([^\]=~|^$*]+)', s)
    if attribute:
        return "embed", "attribute", RoutingReason(type="attribute-selector", detail=attribute.group(1).strip()), None
    if "#" in s:
        return "embed", "base", RoutingReason(type="id-selector"), None
    element = re.search(r'::([\w-]+)', s)
    if element:
        return "embed", "pseudo", RoutingReason(type="pseudo-element", detail=f"::{element.group(1)}"), None
    pseudo_class = re.search(r':([\w-]+(?:\([^)]*\))?)', s)
    if pseudo_class:
        return "embed", "pseudo", RoutingReason(type="pseudo-class-complex", detail=f":{pseudo_class.group(1)}"), None
    if not s.startswith("."):
        tag = re.match(r'[\w*-]+', s)
        return "embed", "base", RoutingReason(type="tag-selector", detail=tag.group(0) if tag else s), None
    return "embed", "base", RoutingReason(type="compound-selector"), None


def map_media_query(query: str, vocabulary: Vocabulary) -> Optional[BreakpointMapping]:
    """Map a single max-/min-width query onto the vocabulary; None when non-standard."""
    q = MEDIA_PREFIX_RE.sub("", query.strip())
    m = WIDTH_QUERY_RE.fullmatch(q)
    if not m:
        return None
    value = float(m.group("value"))
    if (m.group("unit") or "px").lower() in ("em", "rem"):
        value *= 16
    width = int(value)
    kind = m.group("kind").lower()
    mapped = vocabulary.map_width(kind, width)
    if mapped is None:
        return None
    name, mapped_width = mapped
    return BreakpointMapping(
        original=query.strip(), mapped=name, was_rounded=mapped_width != width,
        original_width=width, mapped_width=mapped_width,
    )


def _wrap(selector: str, declarations: list[tuple[str, str]], media: Optional[str]) -> str:
    body = " ".join(f"{p}: {v};" for p, v in declarations)
    rule = f"{selector} {{ {body} }}"
    return f"@media {media} {{ {rule} }}" if media else rule


def _route_declarations(rule: RoutedRule, body: str, media: Optional[str]) -> None:
    """Partition a native rule's declarations; mixed results mark the rule `split`."""
    native: list[StyleProperty] = []
    embedded: list[tuple[str, str]] = []

    for prop, value in split_declarations(body):
        if prop.startswith("--") or VAR_REF_RE.search(value):
            rule.properties.append(RoutedProperty(property=prop, value=value, destination="embed",
                                                  reason="css-variable"))
            embedded.append((prop, value))
            continue
        vendor = VENDOR_PREFIX_RE.match(prop)
        if vendor:
            rule.properties.append(RoutedProperty(property=prop, value=value, destination="embed",
                                                  reason="vendor-prefix"))
            embedded.append((prop, value))
            continue
        normalized = normalize_property(prop)
        if normalized is None:
            rule.properties.append(RoutedProperty(property=prop, value=value, destination="embed",
                                                  reason="unsupported-property"))
            embedded.append((prop, value))
            continue

        feature = embed_only_feature(normalized, value)
        if feature:
            rule.properties.append(RoutedProperty(property=prop, value=value, destination="embed",
                                                  reason="unsupported-value"))
            embedded.append((prop, value))
            continue

        clean, _ = normalize_value(value)
        if inline_value_problem(clean):
            rule.properties.append(RoutedProperty(property=prop, value=value, destination="embed",
                                                  reason="invalid-inline-value"))
            embedded.append((prop, value))
            continue
        transformed = None
        if normalized != prop.lower():
            transformed = PropertyTransform(from_=prop, to=normalized, reason="property alias")
        elif IMPORTANT_RE.search(value):
            transformed = PropertyTransform(from_=value, to=clean, reason="!important removed")
        rule.properties.append(RoutedProperty(property=normalized, value=clean, destination="native",
                                              reason="standard-property", transformed=transformed))
        native.append(StyleProperty(normalized, clean))

    if embedded and native:
        rule.destination = "split"
    elif embedded:
        rule.destination = "embed"
    if embedded:
        rule.reasons.append(RoutingReason(type=rule.properties[-1].reason if not native else "split-declarations"))
        rule.embed_output = _wrap(rule.selector, embedded, media)
    rule.native_output = to_style_less(native) if native else ("" if not embedded else None)


def _route_style_rule(tracer: CSSRoutingTracer, block: CssBlock, vocabulary: Vocabulary,
                      media: Optional[str], mapping: Optional[BreakpointMapping]) -> None:
    for selector in block.selectors:
        destination, category, reason, target = classify_selector(selector, vocabulary)
        reasons = [reason]
        if mapping:
            category = "media"
            reasons.append(RoutingReason(type="breakpoint-mapped", detail=mapping.original, target=mapping.mapped))
        rule = tracer.trace_rule(selector, f"{selector} {{{block.body}}}", destination, reasons,
                                 category=category, breakpoint=mapping, target=target)
        if destination == "native":
            _route_declarations(rule, block.body, media)
        else:
            rule.embed_output = _wrap(selector, split_declarations(block.body), media)


def _is_root(selector: str, alt_root_selector: str) -> bool:
    return all(s in (":root", alt_root_selector) for s in (p.strip() for p in selector.split(",")))


def route_css(css: str, vocabulary: Optional[Vocabulary] = None, alt_root_selector: str = ".fp-root") -> RoutingTrace:
    """Route every rule of a stylesheet and return the full trace."""
    vocabulary = vocabulary or DEFAULT_VOCABULARY
    tracer = CSSRoutingTracer()

    for block in iter_blocks(css):
        if block.is_at_rule:
            name = re.match(r'@([\w-]+)', block.prelude)
            at_rule = name.group(1).lower() if name else block.prelude
            if at_rule != "media":
                tracer.trace_at_rule(block.prelude, block.text, at_rule)
                continue
            query = block.prelude[len("@media"):].strip()
            mapping = map_media_query(query, vocabulary)
            if mapping is None:
                tracer.trace_rule(block.prelude, block.text, "embed",
                                  [RoutingReason(type="breakpoint-nonstandard", detail=query)],
                                  category="media", embed_output=block.text.strip())
                continue
            for inner in iter_blocks(block.body):
                if inner.is_at_rule:
                    tracer.trace_rule(inner.prelude, inner.text, "embed",
                                      [RoutingReason(type="at-rule", detail=inner.prelude)],
                                      category="media", embed_output=f"@media {query} {{ {inner.text.strip()} }}")
                else:
                    _route_style_rule(tracer, inner, vocabulary, query, mapping)
        elif _is_root(block.prelude, alt_root_selector):
            tracer.trace_root(block.prelude, block.text)
        else:
            _route_style_rule(tracer, block, vocabulary, None, None)

    trace = tracer.finalize(css)
    logger.debug("Routed %d rule(s): %d native, %d embed, %d split", trace.summary.total_rules,
                 trace.summary.native_rules, trace.summary.embed_rules, trace.summary.split_rules)
    return trace


REASON_TEMPLATES = {
    "pseudo-element":         "Pseudo-element ({detail}) requires embed",
    "pseudo-class-complex":   "Complex pseudo-class ({detail}) requires embed",
    "at-rule":                "At-rule (@{detail}) requires embed",
    "combinator":             "Combinator ({detail}) requires embed",
    "id-selector":            "ID selector requires embed",
    "tag-selector":           "Tag selector ({detail}) requires embed",
    "attribute-selector":     "Attribute selector ({detail}) requires embed",
    "descendant-selector":    "Descendant selector (.parent .child) requires embed",
    "compound-selector":      "Compound selector with more than one modifier requires embed",
    "vendor-prefix":          "Vendor-prefixed property requires embed",
    "css-variable":           "CSS variable requires embed",
    "unsupported-property":   "Unsupported property requires embed",
    "unsupported-value":      "Value uses a feature with no native equivalent; requires embed",
    "invalid-inline-value":   "Value cannot be written inline (semicolon or truncation); requires embed",
    "split-declarations":     "Some declarations require embed; rule split",
    "standard-class":         "Class selector - native",
    "combo-class":            "Combo class ({detail}) - native",
    "native-state":           "State ({detail}) supported natively",
    "breakpoint-mapped":      "Breakpoint mapped: {detail} -> {target}",
    "breakpoint-nonstandard": "Non-standard breakpoint ({detail}) - moved to embed",
    "root-variables":         "CSS custom properties (:root) - moved to embed",
}


def format_reason(reason: RoutingReason) -> str:
    """Human-readable one-liner for a routing reason."""
    template = REASON_TEMPLATES.get(reason.type)
    if template is None:
        return "Unknown reason"
    return template.format(detail=reason.detail or "", target=reason.target or "")
