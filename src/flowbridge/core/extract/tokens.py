"""Design-token extraction from root-scope custom properties"""

import logging
import re
from typing import Optional
from urllib.parse import quote_plus

from flowbridge.core.extract.css import iter_rules
from flowbridge.core.models import FontSet, TokenManifest, TokenVariable
from flowbridge.core.utils.slug import slugify


logger = logging.getLogger(__name__)

CUSTOM_PROPERTY_RE = re.compile(r'--([\w-]+)\s*:\s*([^;]+);?')
COLOR_VALUE_RE = re.compile(r'^(#|rgba?\(|hsla?\(|oklch\(|oklab\(|lab\(|lch\(|color\(|var\(--)', re.IGNORECASE)
COLOR_KEYWORDS = {"transparent", "currentcolor", "inherit", "white", "black"}
COLOR_NAME_HINTS = ("bg", "text", "border", "accent", "dark", "light", "card", "muted", "color", "primary", "secondary")
DARK_SCOPE_RE = re.compile(r'\[data-theme\s*=\s*["\']?dark["\']?\]|\.dark\b|\.theme-dark\b', re.IGNORECASE)

# (light handle, dark handle, display path)
MODE_PAIRS = [
    ("--light-bg",   "--dark-bg",         "Colors / Background / Base"),
    ("--text-dark",  "--text-light",      "Colors / Text / Primary"),
    ("--text-muted", "--text-muted-dark", "Colors / Text / Muted"),
]

GOOGLE_FONTS_CSS2 = "https://fonts.googleapis.com/css2"


def derive_namespace(name: str) -> str:
    """'Flow Party' -> 'fp'; single words keep their first three letters."""
    words = name.split()
    if not words:
        return ""
    if len(words) == 1:
        return words[0][:3].lower()
    return "".join(w[0].lower() for w in words)


def _segment(text: str) -> str:
    words = [w for w in re.split(r'[-_]', text) if w]
    return " ".join(w.capitalize() for w in words) or "Default"


def _color_path(name: str) -> str:
    lowered = name.lower()
    if "bg" in lowered:
        return f"Colors / Background / {_segment(re.sub(r'^bg-?|-?bg$', '', lowered) or 'base')}"
    for prefix, group in (("text-", "Text"), ("dark-", "Dark"), ("light-", "Light"), ("accent-", "Accent")):
        if lowered.startswith(prefix):
            return f"Colors / {group} / {_segment(lowered[len(prefix):])}"
    if lowered == "border":
        return "Colors / Border / Default"
    return f"Colors / Other / {_segment(lowered)}"


def classify_variable(name: str, value: str) -> Optional[tuple[str, str]]:
    """Return (type, path) for a custom property, or None when it is not a token."""
    lowered = name.lower()
    if lowered.startswith("font-"):
        return "font-family", f"Typography / {_segment(lowered[len('font-'):])}"
    v = value.strip().lower()
    if COLOR_VALUE_RE.match(v) or v in COLOR_KEYWORDS or any(h in lowered for h in COLOR_NAME_HINTS):
        return "color", _color_path(name)
    return None


def _is_root_scope(selector: str, alt_root_selector: str) -> bool:
    s = selector.strip()
    if s in (":root", alt_root_selector, "html"):
        return True
    stripped = DARK_SCOPE_RE.sub("", s).strip()
    return s != stripped and stripped in ("", ":root", alt_root_selector, "html")


def _root_blocks(css: str, alt_root_selector: str) -> list[tuple[bool, str]]:
    """(is_override, body) for each root-scope block in source order."""
    blocks = []
    for query, rule in iter_rules(css):
        if rule.is_at_rule:
            continue
        if not all(_is_root_scope(s, alt_root_selector) for s in rule.selectors):
            continue
        override = bool(DARK_SCOPE_RE.search(rule.prelude)) or (
            query is not None and "dark" in query.lower())
        blocks.append((override, rule.body))
    return blocks


def _declarations(body: str) -> list[tuple[str, str]]:
    return [(m.group(1), m.group(2).strip()) for m in CUSTOM_PROPERTY_RE.finditer(body)]


def _pair_modes(variables: list[TokenVariable]) -> list[TokenVariable]:
    by_var = {v.css_var: v for v in variables}
    paired: list[TokenVariable] = []
    consumed: set[str] = set()
    for light, dark, path in MODE_PAIRS:
        lv, dv = by_var.get(light), by_var.get(dark)
        if lv and dv and lv.value is not None and dv.value is not None:
            paired.append(TokenVariable(
                css_var=light, path=path, type="color",
                values={"light": lv.value, "dark": dv.value},
            ))
            consumed.update((light, dark))
    return paired + [v for v in variables if v.css_var not in consumed]


def extract_tokens(
    css: str,
    name: str = "Design System",
    alt_root_selector: str = ".fp-root",
    ) -> TokenManifest:
    """Build a TokenManifest from the root-scope custom properties in a stylesheet.

    The first non-override root block supplies base values; a later dark-scope
    block that redeclares a property turns that variable into a light/dark pair.
    """
    blocks = _root_blocks(css, alt_root_selector)
    manifest = TokenManifest(name=name, slug=slugify(name), namespace=derive_namespace(name))
    if not blocks:
        logger.warning("No root-scope custom-property block found")
        return manifest

    base: dict[str, str] = {}
    overrides: dict[str, str] = {}
    for is_override, body in blocks:
        for prop, value in _declarations(body):
            if is_override:
                overrides[prop] = value
            else:
                base.setdefault(prop, value)

    variables: list[TokenVariable] = []
    for prop, value in base.items():
        if prop.startswith("radius-"):
            continue
        classified = classify_variable(prop, value)
        if classified is None:
            logger.debug("Skipped uncategorized custom property --%s", prop)
            continue
        kind, path = classified
        if prop in overrides and overrides[prop] != value:
            variables.append(TokenVariable(
                css_var=f"--{prop}", path=path, type=kind,
                values={"light": value, "dark": overrides[prop]},
            ))
        else:
            variables.append(TokenVariable(css_var=f"--{prop}", path=path, type=kind, value=value))

    variables = _pair_modes(variables)
    manifest.variables = variables
    if any(v.values for v in variables):
        manifest.modes = ["light", "dark"]

    families = font_families_from_tokens(variables)
    if families:
        manifest.fonts = FontSet(
            google_fonts=google_fonts_url(families),
            head_snippet=font_head_snippet(families),
            families=families,
        )
    logger.debug("Extracted %d token(s) from %d root block(s)", len(variables), len(blocks))
    return manifest


def font_families_from_tokens(variables: list[TokenVariable]) -> list[str]:
    """First family of each font-family token, quotes removed, deduplicated."""
    families: list[str] = []
    for v in variables:
        if v.type != "font-family" or not v.value:
            continue
        family = v.value.split(",")[0].strip().strip("'\"")
        if family and family not in families:
            families.append(family)
    return families


def google_fonts_url(families: list[str]) -> str:
    if not families:
        return ""
    params = "&".join(f"family={quote_plus(f)}" for f in families)
    return f"{GOOGLE_FONTS_CSS2}?{params}&display=swap"


def font_head_snippet(families: list[str]) -> str:
    """Preconnect and stylesheet <link> tags for the given Google families."""
    if not families:
        return ""
    return (
        '<link rel="preconnect" href="https://fonts.googleapis.com">\n'
        '<link rel="preconnect" href="https://fonts.gstatic.com" crossorigin>\n'
        f'<link href="{google_fonts_url(families)}" rel="stylesheet">'
    )
