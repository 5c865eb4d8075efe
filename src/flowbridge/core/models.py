"""Data models for sections, tokens, and the clipboard document tree"""

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


DOCUMENT_TYPE = "@webflow/XscpData"


class Section(BaseModel):
    """One detected page region with the CSS subset it needs."""
    model_config = ConfigDict(frozen=True)

    id:          str
    name:        str
    tag_name:    str
    class_name:  str = ""
    html:        str
    class_names: list[str] = []
    css:         str = ""


@dataclass
class ParsedPage:
    """Internal page parse result; not serialized."""
    title:       str
    css:         str                # every <style> block joined
    js:          str                # inline (non-src) scripts joined
    body:        str
    sections:    list[Section] = field(default_factory=list)


# --- design tokens ---

class TokenVariable(BaseModel):
    css_var: str                                # stable handle, e.g. "--text-dark"
    path:    str                                # display path, e.g. "Colors / Text / Dark"
    type:    Literal["color", "font-family"]
    value:   Optional[str] = None
    values:  Optional[dict[str, str]] = None    # per-mode values, e.g. {"light": .., "dark": ..}


class FontSet(BaseModel):
    google_fonts: str = ""
    head_snippet: str = ""
    families:     list[str] = []


class TokenManifest(BaseModel):
    """Token extraction unit handed downstream; scoped to one conversion."""
    schema_version: str = "1.0"
    name:           str
    slug:           str
    namespace:      str
    modes:          list[str] = []
    variables:      list[TokenVariable] = []
    fonts:          Optional[FontSet] = None


class DetectedFont(BaseModel):
    family:     str
    source:     Literal["google", "system", "adobe", "custom"]
    url:        Optional[str] = None
    weights:    list[int] = []
    styles:     list[str] = []
    compatible: bool = False


# --- document tree ---

class Attr(BaseModel):
    name:  str
    value: str


class LinkData(BaseModel):
    model_config = ConfigDict(extra="allow")
    mode:   str = "external"
    url:    str = "#"
    target: Optional[str] = None


class ImageAttr(BaseModel):
    model_config = ConfigDict(extra="allow")
    src:     Optional[str] = None
    alt:     Optional[str] = None
    loading: Optional[str] = None


class NodeData(BaseModel):
    model_config = ConfigDict(extra="allow")
    tag:   Optional[str] = None
    text:  Optional[bool] = None
    xattr: Optional[list[Attr]] = None
    link:  Optional[LinkData] = None
    attr:  Optional[ImageAttr] = None
    embed: Optional[dict[str, Any]] = None


class Node(BaseModel):
    """One element or text run; children are ids, never nested nodes."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id:       str = Field(alias="_id")
    type:     Optional[str] = None
    tag:      Optional[str] = None
    classes:  Optional[list[str]] = None
    children: Optional[list[str]] = None
    text:     Optional[bool] = None
    v:        Optional[str] = None
    data:     Optional[NodeData] = None


class StyleVariant(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    style_less: str = Field(default="", alias="styleLess")


class Style(BaseModel):
    """One named, reusable property set (an output class)."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id:         str = Field(alias="_id")
    fake:       bool = False
    type:       str = "class"
    name:       str
    namespace:  str = ""
    comb:       str = ""
    style_less: str = Field(default="", alias="styleLess")
    variants:   dict[str, StyleVariant] = {}
    children:   list[str] = []


def _empty_ix2() -> dict[str, Any]:
    return {"interactions": [], "events": [], "actionLists": []}


class Payload(BaseModel):
    model_config = ConfigDict(extra="allow")
    nodes:  list[Node] = []
    styles: list[Style] = []
    assets: list[Any] = []
    ix1:    list[Any] = []
    ix2:    dict[str, Any] = Field(default_factory=_empty_ix2)


class Meta(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")
    unlinked_symbol_count:       int = Field(default=0, alias="unlinkedSymbolCount")
    dropped_links:               int = Field(default=0, alias="droppedLinks")
    dyn_bind_removed_count:      int = Field(default=0, alias="dynBindRemovedCount")
    dyn_list_bind_removed_count: int = Field(default=0, alias="dynListBindRemovedCount")
    pagination_removed_count:    int = Field(default=0, alias="paginationRemovedCount")


class Document(BaseModel):
    """Top-level clipboard container; each pipeline stage works on its own copy."""
    model_config = ConfigDict(populate_by_name=True)

    type:    str = DOCUMENT_TYPE
    payload: Payload = Field(default_factory=Payload)
    meta:    Meta = Field(default_factory=Meta)

    def to_dict(self) -> dict[str, Any]:
        """Serialized form with wire field names (`_id`, `styleLess`, ...)."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self, indent: Optional[int] = None) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent)


# --- safety report ---

class EmbedSizeReport(BaseModel):
    errors:   list[str] = []
    warnings: list[str] = []
    sizes:    dict[str, int] = {}


class SafetyReport(BaseModel):
    """Gate outcome; serialize with `by_alias=True` for the wire field names."""
    model_config = ConfigDict(populate_by_name=True)

    status:       Literal["ok", "warn", "block"] = "ok"
    fatal_issues: list[str] = Field(default=[], alias="fatalIssues")
    auto_fixes:   list[str] = Field(default=[], alias="autoFixes")
    warnings:     list[str] = []
    embed_size:   EmbedSizeReport = Field(default_factory=EmbedSizeReport, alias="embedSize")
