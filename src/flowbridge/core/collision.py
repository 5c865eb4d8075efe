"""Destination collision detection and variable-reference remapping"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Literal, Optional

from pydantic import BaseModel

from flowbridge.core.models import Document


VAR_NAME_RE = re.compile(r'var\(\s*(--[\w-]+)')


class DestinationCapabilities(ABC):
    """What a live destination already declares; queried once per detection run."""

    @abstractmethod
    def list_style_names(self) -> list[str]:
        raise NotImplementedError

    @abstractmethod
    def list_variable_names(self) -> list[str]:
        raise NotImplementedError


@dataclass
class StaticDestination(DestinationCapabilities):
    """In-memory snapshot of a destination's styles and variables."""
    style_names:    list[str] = field(default_factory=list)
    variable_names: list[str] = field(default_factory=list)

    def list_style_names(self) -> list[str]:
        return list(self.style_names)

    def list_variable_names(self) -> list[str]:
        return list(self.variable_names)


class StyleCollision(BaseModel):
    name:   str
    action: Literal["skip"] = "skip"


class MissingVariable(BaseModel):
    name:   str                 # as referenced, e.g. "--brand"
    styles: list[str] = []      # style names that reference it


class CollisionReport(BaseModel):
    style_collisions:  list[StyleCollision] = []
    missing_variables: list[MissingVariable] = []

    @property
    def has_collisions(self) -> bool:
        return bool(self.style_collisions or self.missing_variables)


def _bare(name: str) -> str:
    return name[2:] if name.startswith("--") else name


def extract_variable_references(style_less: str) -> list[str]:
    return list(dict.fromkeys(VAR_NAME_RE.findall(style_less or "")))


def detect_collisions(document: Document, destination: DestinationCapabilities) -> CollisionReport:
    """Existing style names (existing wins) and variable references the destination lacks."""
    existing_styles = set(destination.list_style_names())
    available = {_bare(v) for v in destination.list_variable_names()}
    report = CollisionReport()

    missing: dict[str, list[str]] = {}
    for style in document.payload.styles:
        if style.name in existing_styles:
            report.style_collisions.append(StyleCollision(name=style.name))
        texts = [style.style_less] + [v.style_less for v in style.variants.values()]
        for ref in (r for text in texts for r in extract_variable_references(text)):
            if _bare(ref) not in available:
                users = missing.setdefault(ref, [])
                if style.name not in users:
                    users.append(style.name)

    report.missing_variables = [MissingVariable(name=k, styles=v) for k, v in missing.items()]
    return report


def _lookup(mapping: dict[str, str], name: str) -> Optional[str]:
    mapped = mapping.get(name) or mapping.get(_bare(name))
    return _bare(mapped) if mapped else None


def _call_end(text: str, open_index: int) -> Optional[int]:
    """Index just past the `)` matching text[open_index] == '(', or None if unbalanced."""
    depth = 0
    for i in range(open_index, len(text)):
        if text[i] == "(":
            depth += 1
        elif text[i] == ")":
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def remap_variable_references(style_less: str, mapping: dict[str, str]) -> str:
    """Rewrite `var(--token, fallback)` to `var(--<mapped>)`; unmapped references stay as they are.

    Mapping keys may be given with or without the leading `--`.
    """
    text = style_less or ""
    out: list[str] = []
    pos = 0
    while True:
        m = VAR_NAME_RE.search(text, pos)
        if m is None:
            break
        target = _lookup(mapping, m.group(1))
        end = _call_end(text, m.start() + len("var")) if target else None
        if end is None:
            out.append(text[pos:m.end()])
            pos = m.end()
            continue
        out.append(text[pos:m.start()])
        out.append(f"var(--{target})")
        pos = end
    out.append(text[pos:])
    return "".join(out)


def remap_document_variables(document: Document, mapping: dict[str, str]) -> Document:
    """Copy of document with every base and variant styleLess remapped."""
    doc = document.model_copy(deep=True)
    for style in doc.payload.styles:
        style.style_less = remap_variable_references(style.style_less, mapping)
        for variant in style.variants.values():
            variant.style_less = remap_variable_references(variant.style_less, mapping)
    return doc
