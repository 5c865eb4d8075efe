"""Font reference scanning and destination compatibility classification"""

import logging
import re
from typing import Literal
from urllib.parse import unquote_plus

from pydantic import BaseModel

from flowbridge.core.models import DetectedFont


logger = logging.getLogger(__name__)

SYSTEM_FONTS = frozenset({
    "Arial", "Helvetica", "Times New Roman", "Times", "Courier New", "Courier",
    "Verdana", "Georgia", "Palatino", "Garamond", "Bookman", "Comic Sans MS",
    "Trebuchet MS", "Impact", "Tahoma", "system-ui", "-apple-system",
    "BlinkMacSystemFont", "Segoe UI",
})

GENERIC_FAMILIES = frozenset({"sans-serif", "serif", "monospace", "cursive", "fantasy", "inherit", "initial"})

# Common subset; the destination offers the full Google catalogue
GOOGLE_FONTS = frozenset({
    "Roboto", "Open Sans", "Lato", "Montserrat", "Oswald", "Source Sans Pro",
    "Raleway", "PT Sans", "Merriweather", "Nunito", "Poppins", "Inter",
    "Playfair Display", "Ubuntu", "Rubik", "Work Sans", "Mukta", "Noto Sans",
    "Fira Sans", "Quicksand", "DM Sans", "Space Grotesk", "Manrope",
})

LEGACY_GOOGLE_RE = re.compile(r'https?://fonts\.googleapis\.com/css\?family=([^\'")\s>]+)', re.IGNORECASE)
CSS2_GOOGLE_RE = re.compile(r'https?://fonts\.googleapis\.com/css2\?([^\'")\s>]+)', re.IGNORECASE)
ADOBE_RE = re.compile(r'https?://use\.typekit\.net/([\w-]+)\.css', re.IGNORECASE)
FONT_FACE_RE = re.compile(r'@font-face\s*\{([^}]*)\}', re.IGNORECASE)
FONT_FAMILY_DECL_RE = re.compile(r'(?<![\w-])font-family\s*:\s*([^;{}]+)', re.IGNORECASE)


class FontChecklistItem(BaseModel):
    name:               str
    status:             Literal["available", "missing", "unknown"]
    warning:            bool = False
    installation_guide: str


class FontSummary(BaseModel):
    total:        int = 0
    available:    int = 0
    missing:      int = 0
    google_fonts: int = 0
    custom_fonts: int = 0


def parse_weight(weight: str) -> int:
    weight = weight.strip().lower()
    if weight == "normal":
        return 400
    if weight == "bold":
        return 700
    digits = re.match(r'\d+', weight)
    return int(digits.group(0)) if digits else 400


def _google(family: str, url: str, weights: list[int], styles: list[str]) -> DetectedFont:
    return DetectedFont(family=family, source="google", url=url, weights=weights or [400],
                        styles=styles or ["normal"], compatible=True)


def parse_legacy_google_url(params: str) -> list[DetectedFont]:
    """family=Roboto:400,700italic|Open+Sans:300"""
    fonts = []
    for spec in unquote_plus(params.split("&")[0]).split("|"):
        name, _, weights_raw = spec.partition(":")
        family = name.strip()
        if not family:
            continue
        weights = [parse_weight(w.replace("italic", "") or "400") for w in weights_raw.split(",") if w] if weights_raw else [400]
        styles = ["normal", "italic"] if "italic" in weights_raw else ["normal"]
        fonts.append(_google(family, f"https://fonts.googleapis.com/css?family={spec}", weights, styles))
    return fonts


def parse_css2_google_url(query: str) -> list[DetectedFont]:
    """family=Roboto:wght@400;700&family=Open+Sans:ital,wght@0,400;1,700"""
    fonts = []
    for part in query.split("&"):
        key, _, value = part.partition("=")
        if key != "family" or not value:
            continue
        value = unquote_plus(value)
        name, _, axes = value.partition(":")
        weights: list[int] = []
        styles = ["normal"]
        if "@" in axes:
            axis_names, _, tuples = axes.partition("@")
            names = axis_names.split(",")
            for t in tuples.split(";"):
                values = dict(zip(names, t.split(",")))
                if "wght" in values:
                    weights.append(parse_weight(values["wght"].split("..")[0]))
                if values.get("ital") == "1" and "italic" not in styles:
                    styles.append("italic")
        fonts.append(_google(name.strip(), f"https://fonts.googleapis.com/css2?family={value}",
                             list(dict.fromkeys(weights)), styles))
    return fonts


def classify_family(family: str) -> tuple[str, bool]:
    """(source, compatible) for a bare family name."""
    if family in GOOGLE_FONTS:
        return "google", True
    if family in SYSTEM_FONTS:
        return "system", True
    return "custom", False


def detect_fonts(css: str) -> list[DetectedFont]:
    """Every font family referenced by imports, links, @font-face, or font-family declarations.

    `css` may be a stylesheet or full page markup; `<link href>` URLs are scanned
    the same way as `@import` URLs.
    """
    fonts: dict[str, DetectedFont] = {}

    def add(font: DetectedFont) -> None:
        existing = fonts.get(font.family)
        if existing is None:
            fonts[font.family] = font
            return
        existing.weights = sorted(set(existing.weights) | set(font.weights))
        existing.styles = list(dict.fromkeys(existing.styles + font.styles))

    for m in LEGACY_GOOGLE_RE.finditer(css):
        for font in parse_legacy_google_url(m.group(1)):
            add(font)
    for m in CSS2_GOOGLE_RE.finditer(css):
        for font in parse_css2_google_url(m.group(1).replace("&amp;", "&")):
            add(font)
    for m in ADOBE_RE.finditer(css):
        add(DetectedFont(family=f"Adobe Fonts kit {m.group(1)}", source="adobe", url=m.group(0)))

    for m in FONT_FACE_RE.finditer(css):
        body = m.group(1)
        family_m = re.search(r'font-family\s*:\s*[\'"]?([^\'";]+)', body, re.IGNORECASE)
        if not family_m:
            continue
        weight_m = re.search(r'font-weight\s*:\s*([\w]+)', body, re.IGNORECASE)
        style_m = re.search(r'font-style\s*:\s*(normal|italic|oblique)', body, re.IGNORECASE)
        family = family_m.group(1).strip()
        source, compatible = classify_family(family)
        add(DetectedFont(
            family=family, source=source, compatible=compatible,
            weights=[parse_weight(weight_m.group(1)) if weight_m else 400],
            styles=[style_m.group(1).lower() if style_m else "normal"],
        ))

    for m in FONT_FAMILY_DECL_RE.finditer(css):
        for raw in m.group(1).split(","):
            family = raw.strip().strip("'\"").strip()
            if not family or family.lower() in GENERIC_FAMILIES or family.startswith("var("):
                continue
            if family in fonts:
                continue
            source, compatible = classify_family(family)
            fonts[family] = DetectedFont(family=family, source=source, compatible=compatible,
                                         weights=[400], styles=["normal"])

    logger.debug("Detected %d font famil(ies)", len(fonts))
    return list(fonts.values())


def build_font_checklist(fonts: list[DetectedFont]) -> list[FontChecklistItem]:
    """Installation checklist: what the destination already has and what must be added."""
    items = []
    for font in fonts:
        if font.source == "google":
            items.append(FontChecklistItem(
                name=font.family, status="available",
                installation_guide=f'Add "{font.family}" from the Google Fonts list in the site font settings.',
            ))
        elif font.source == "system":
            items.append(FontChecklistItem(
                name=font.family, status="available",
                installation_guide="System font; no installation required.",
            ))
        elif font.source == "adobe":
            items.append(FontChecklistItem(
                name=font.family, status="missing", warning=True,
                installation_guide="Add the Adobe Fonts kit stylesheet to the site head code.",
            ))
        else:
            weights = ", ".join(str(w) for w in font.weights) or "400"
            items.append(FontChecklistItem(
                name=font.family, status="missing", warning=True,
                installation_guide=f'Upload the font files for "{font.family}" (weights: {weights}).',
            ))
    return items


def font_summary(fonts: list[DetectedFont]) -> FontSummary:
    return FontSummary(
        total=len(fonts),
        available=sum(1 for f in fonts if f.compatible),
        missing=sum(1 for f in fonts if not f.compatible),
        google_fonts=sum(1 for f in fonts if f.source == "google"),
        custom_fonts=sum(1 for f in fonts if f.source == "custom"),
    )
