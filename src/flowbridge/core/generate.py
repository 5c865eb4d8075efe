"""Section conversion with an optional external generation service and deterministic fallback"""

import json
import logging
from dataclasses import dataclass, field
from typing import Literal, Optional

import httpx

from flowbridge.core.build import BuildOptions, build_document, derive_prefix
from flowbridge.core.models import Document, ImageAttr, LinkData, NodeData, Section
from flowbridge.core.routing import route_css
from flowbridge.core.safety import check_shape
from flowbridge.errors import GenerationError


logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE_URL = "https://placehold.co/600x400"


class GenerationClient:
    """Client for a service that turns section markup + CSS into a candidate Document.

    Request: `{html, css, idPrefix, sectionName}`. Response: `{webflowJson}`,
    either an object or a JSON string. Every failure surfaces as GenerationError.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._url = url
        self._client = httpx.Client(
            headers={"content-type": "application/json"},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def generate(self, section: Section, id_prefix: str) -> Document:
        body = {
            "html": section.html,
            "css": section.css,
            "idPrefix": id_prefix,
            "sectionName": section.name,
        }
        try:
            response = self._client.post(self._url, json=body)
        except httpx.TimeoutException as exc:
            raise GenerationError(f"Request timed out: {exc}", cause=exc) from exc
        except httpx.HTTPError as exc:
            raise GenerationError(f"Network error: {exc}", cause=exc) from exc

        if not response.is_success:
            raise GenerationError(f"Service returned HTTP {response.status_code}",
                                  status_code=response.status_code)
        try:
            raw = response.json()
        except ValueError as exc:
            raise GenerationError("Service returned a malformed body", cause=exc) from exc

        candidate = raw.get("webflowJson") if isinstance(raw, dict) else None
        if not candidate:
            raise GenerationError("Service returned an empty document")
        if isinstance(candidate, str):
            try:
                candidate = json.loads(candidate)
            except ValueError as exc:
                raise GenerationError("Service document is not valid JSON", cause=exc) from exc

        document, error = check_shape(candidate)
        if document is None:
            raise GenerationError(f"Service document failed shape check: {error}")
        return document

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GenerationClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


@dataclass
class ConversionResult:
    document:  Document
    source:    Literal["service", "fallback"]
    embed_css: str = ""
    fixes:     list[str] = field(default_factory=list)
    warnings:  list[str] = field(default_factory=list)


def patch_required_data(document: Document) -> list[str]:
    """Give link and image nodes missing their data sub-object an explicit placeholder."""
    fixes = []
    for node in document.payload.nodes:
        if node.type == "Link" and not (node.data and node.data.link):
            node.data = node.data or NodeData(tag="a")
            node.data.link = LinkData(url="#")
            fixes.append(f'Added placeholder link data (url "#") to node {node.id}')
        elif node.type == "Image" and not (node.data and node.data.attr):
            node.data = node.data or NodeData(tag="img")
            node.data.attr = ImageAttr(src=PLACEHOLDER_IMAGE_URL, alt="")
            fixes.append(f"Added placeholder image data to node {node.id}")
    return fixes


def convert_section(
    section: Section,
    client: Optional[GenerationClient] = None,
    options: Optional[BuildOptions] = None,
    ) -> ConversionResult:
    """Convert a section, preferring the service and falling back to the local builder."""
    options = options or BuildOptions()
    warnings: list[str] = []

    if client is not None:
        try:
            document = client.generate(section, derive_prefix(section, options.id_prefix))
        except GenerationError as e:
            logger.warning("Generation failed for section %s, using fallback: %s", section.id, e)
            warnings.append(f"Generation service failed: {e}")
        else:
            fixes = patch_required_data(document)
            trace = route_css(section.css, options.vocabulary, options.alt_root_selector)
            return ConversionResult(document=document, source="service",
                                    embed_css=trace.embed_css(), fixes=fixes)

    built = build_document(section, options)
    fixes = patch_required_data(built.document)
    return ConversionResult(
        document=built.document,
        source="fallback",
        embed_css=built.embed_css,
        fixes=fixes,
        warnings=warnings + built.warnings,
    )
