"""Parser for inline styleLess property strings.

styleLess is the destination's CSS-like inline syntax: `prop: value;` pairs
with no braces. Parsing is total: malformed segments are dropped and reported
as warnings, never raised.
"""

import logging
import re
from dataclasses import dataclass, field


logger = logging.getLogger(__name__)

PROPERTY_NAME_RE = re.compile(r'^[A-Za-z_-][A-Za-z0-9_-]*$')
VAR_REF_RE = re.compile(r'var\(\s*--', re.IGNORECASE)
IMPORTANT_RE = re.compile(r'!\s*important', re.IGNORECASE)
UNRESOLVED_VAR_WARNING = "Contains unresolved CSS variable"

TRUNCATED_VALUE_PATTERNS = [
    re.compile(r',\s*$'),                           # incomplete list
    re.compile(r'\(\s*$'),                          # incomplete function call
    re.compile(r'rgba?\s*\(\s*\d+\s*,?\s*$', re.IGNORECASE),
    re.compile(r'hsla?\s*\(\s*\d+\s*,?\s*$', re.IGNORECASE),
    re.compile(r'[+\-*/]\s*$'),                     # dangling operator
]

EMPTY_VALUES = {"", "undefined", "null", "nan"}

# Unprefixed gap properties -> the grid-* names the destination expects
PROPERTY_ALIASES: dict[str, str] = {
    "gap":        "grid-gap",
    "row-gap":    "grid-row-gap",
    "column-gap": "grid-column-gap",
}

# Features the destination cannot hold inline; they ship as embed CSS
EMBED_ONLY_PROPERTIES = frozenset({"backdrop-filter", "accent-color"})
EMBED_ONLY_VALUES = {
    "oklch color": re.compile(r'\boklch\(', re.IGNORECASE),
    "color-mix":   re.compile(r'\bcolor-mix\(', re.IGNORECASE),
}

# Expected noise; dropped without a warning
UNSUPPORTED_PROPERTIES = frozenset({
    "-moz-appearance",
    "-ms-overflow-style",
    "-o-transform",
    "scroll-behavior",
    "scroll-snap-type",
    "scroll-snap-align",
    "isolation",
    "container-type",
    "container-name",
})


@dataclass(frozen=True)
class StyleProperty:
    property: str
    value:    str


@dataclass
class ParseResult:
    properties: list[StyleProperty] = field(default_factory=list)
    warnings:   list[str] = field(default_factory=list)


def is_truncated(value: str) -> bool:
    """True if a value looks cut off: dangling comma/operator/paren, unmatched call or quote."""
    trimmed = value.strip()
    if any(p.search(trimmed) for p in TRUNCATED_VALUE_PATTERNS):
        return True
    if trimmed.count("(") > trimmed.count(")"):
        return True
    return trimmed.count("'") % 2 != 0 or trimmed.count('"') % 2 != 0


def split_segments(text: str) -> list[str]:
    """Split on `;` outside parentheses and quotes; segments are returned unstripped."""
    parts, buf, depth, quote = [], [], 0, None
    for ch in text:
        if quote:
            if ch == quote:
                quote = None
        elif ch in "'\"":
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(depth - 1, 0)
        elif ch == ";" and depth == 0:
            parts.append("".join(buf))
            buf = []
            continue
        buf.append(ch)
    parts.append("".join(buf))
    return parts


def embed_only_feature(prop: str, value: str) -> str | None:
    """Name of the feature that keeps a declaration out of styleLess, or None."""
    prop = prop.strip().lower()
    if prop in EMBED_ONLY_PROPERTIES:
        return prop
    if prop == "text-wrap" and value.strip().lower().startswith("balance"):
        return "text-wrap: balance"
    for name, pattern in EMBED_ONLY_VALUES.items():
        if pattern.search(value):
            return name
    return None


def inline_value_problem(value: str) -> str | None:
    """Why a value cannot survive a styleLess round trip, or None.

    styleLess splits on every `;`, so a semicolon inside `url()` or quotes
    would cut the declaration in two.
    """
    if ";" in value:
        return "contains ';'"
    if is_truncated(value):
        return "truncated"
    return None


def normalize_property(name: str) -> str | None:
    """Lower-case and alias a property name; None for custom or unsupported properties."""
    prop = name.strip().lower()
    if prop.startswith("--") or prop in UNSUPPORTED_PROPERTIES or not PROPERTY_NAME_RE.match(prop):
        return None
    return PROPERTY_ALIASES.get(prop, prop)


def normalize_value(value: str) -> tuple[str, str | None]:
    """Return (normalized_value, warning). An unresolved var() empties the value."""
    result = value.strip()
    warning = None
    if IMPORTANT_RE.search(result):
        result = IMPORTANT_RE.sub("", result).strip()
        warning = "Removed !important flag"
    if VAR_REF_RE.search(result):
        return "", UNRESOLVED_VAR_WARNING
    return re.sub(r'\s+', ' ', result), warning


def parse_style_less(style_less: str) -> ParseResult:
    """Parse a styleLess string into validated (property, value) pairs."""
    result = ParseResult()
    if not style_less or not isinstance(style_less, str):
        return result

    for segment in style_less.split(";"):
        declaration = segment.strip()
        if not declaration:
            continue

        prop_raw, sep, value_raw = declaration.partition(":")
        if not sep:
            result.warnings.append(f'Skipped invalid declaration (no colon): "{declaration[:30]}"')
            continue
        if not PROPERTY_NAME_RE.match(prop_raw.strip()):
            result.warnings.append(f'Skipped invalid property name: "{prop_raw.strip()}"')
            continue

        prop = normalize_property(prop_raw)
        if prop is None:
            continue

        value, warning = normalize_value(value_raw)
        if warning:
            result.warnings.append(f"{prop}: {warning}")
        if warning == UNRESOLVED_VAR_WARNING:
            continue
        if value.lower() in EMPTY_VALUES:
            result.warnings.append(f'Skipped empty value for property: "{prop}"')
            continue
        if is_truncated(value):
            result.warnings.append(f'Skipped truncated value for "{prop}": "{value[:30]}"')
            continue

        result.properties.append(StyleProperty(prop, value))

    if result.warnings:
        logger.debug("styleLess parse dropped/adjusted %d declaration(s)", len(result.warnings))
    return result


def to_style_less(properties: list[StyleProperty]) -> str:
    """Serialize pairs back to `prop: value;` form."""
    return " ".join(f"{p.property}: {p.value};" for p in properties)


def to_map(properties: list[StyleProperty]) -> dict[str, str]:
    """Property map; later declarations win."""
    return {p.property: p.value for p in properties}


def is_valid_style_less(style_less: str) -> bool:
    """Cheap shape check: at least one colon and balanced braces."""
    if not style_less or not isinstance(style_less, str):
        return False
    text = style_less.strip()
    return ":" in text and text.count("{") == text.count("}")


def sanitize_style_less(style_less: str) -> str:
    return to_style_less(parse_style_less(style_less).properties)
