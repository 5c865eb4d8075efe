"""Unit tests for core/generate.py"""

import json

import httpx
import pytest

from flowbridge.core.build import BuildOptions, build_document
from flowbridge.core.generate import (
    PLACEHOLDER_IMAGE_URL,
    GenerationClient,
    convert_section,
    patch_required_data,
)
from flowbridge.core.models import DOCUMENT_TYPE, Document, Node, Payload
from flowbridge.errors import GenerationError


URL = "http://generator.test/convert"


def _client(handler) -> GenerationClient:
    return GenerationClient(URL, timeout=5.0, transport=httpx.MockTransport(handler))


@pytest.fixture(name="service_doc")
def service_doc_fixture():
    return {
        "type": DOCUMENT_TYPE,
        "payload": {
            "nodes": [
                {"_id": "svc-root", "type": "Block", "tag": "div", "classes": [], "children": ["svc-link", "svc-img"]},
                {"_id": "svc-link", "type": "Link", "tag": "a", "classes": [], "children": []},
                {"_id": "svc-img", "type": "Image", "tag": "img", "classes": [], "children": []},
            ],
            "styles": [],
        },
    }


def test_generate_posts_section(hero_section, service_doc):
    """The request carries html, css, idPrefix and sectionName."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(json.loads(request.content))
        return httpx.Response(200, json={"webflowJson": service_doc})

    with _client(handler) as client:
        document = client.generate(hero_section, "fp")
    assert seen == {"html": hero_section.html, "css": hero_section.css, "idPrefix": "fp", "sectionName": "Hero"}
    assert [n.id for n in document.payload.nodes] == ["svc-root", "svc-link", "svc-img"]


def test_generate_accepts_string_document(hero_section, service_doc):
    """webflowJson may arrive as a JSON string."""
    def handler(request):
        return httpx.Response(200, json={"webflowJson": json.dumps(service_doc)})

    with _client(handler) as client:
        assert len(client.generate(hero_section, "fp").payload.nodes) == 3


@pytest.mark.parametrize("response,message", [
    (httpx.Response(500, text="boom"), "Service returned HTTP 500"),
    (httpx.Response(200, text="<html>"), "Service returned a malformed body"),
    (httpx.Response(200, json={"webflowJson": None}), "Service returned an empty document"),
    (httpx.Response(200, json={"webflowJson": "{nope"}), "Service document is not valid JSON"),
    (httpx.Response(200, json={"webflowJson": {"type": "x"}}), "Service document failed shape check"),
])
def test_generate_failures(hero_section, response, message):
    """Bad responses surface as GenerationError."""
    with _client(lambda request: response) as client:
        with pytest.raises(GenerationError, match=message):
            client.generate(hero_section, "fp")


def test_generate_http_status_recorded(hero_section):
    """Non-2xx errors keep the status code."""
    with _client(lambda request: httpx.Response(503)) as client:
        with pytest.raises(GenerationError) as exc_info:
            client.generate(hero_section, "fp")
    assert exc_info.value.status_code == 503


def test_generate_timeout(hero_section):
    """Timeouts are wrapped with their cause."""
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    with _client(handler) as client:
        with pytest.raises(GenerationError, match="timed out") as exc_info:
            client.generate(hero_section, "fp")
    assert isinstance(exc_info.value.cause, httpx.ReadTimeout)


def test_generate_network_error(hero_section):
    """Connection failures are wrapped."""
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with _client(handler) as client:
        with pytest.raises(GenerationError, match="Network error"):
            client.generate(hero_section, "fp")


def test_patch_required_data():
    """Links without link data and images without attrs get placeholders."""
    doc = Document(payload=Payload(nodes=[
        Node(id="l", type="Link", tag="a"),
        Node(id="i", type="Image", tag="img"),
        Node(id="b", type="Block", tag="div"),
    ]))
    fixes = patch_required_data(doc)
    assert doc.payload.nodes[0].data.link.url == "#"
    assert doc.payload.nodes[1].data.attr.src == PLACEHOLDER_IMAGE_URL
    assert doc.payload.nodes[2].data is None
    assert len(fixes) == 2


def test_convert_section_without_client(hero_section):
    """No client means the local builder runs."""
    result = convert_section(hero_section, options=BuildOptions(id_prefix="fp"))
    assert result.source == "fallback"
    assert result.fixes == []
    assert result.document.to_json() == build_document(hero_section, BuildOptions(id_prefix="fp")).document.to_json()
    assert "::before" in result.embed_css


def test_convert_section_uses_service(hero_section, service_doc):
    """A good service document is used and patched."""
    with _client(lambda request: httpx.Response(200, json={"webflowJson": service_doc})) as client:
        result = convert_section(hero_section, client)
    assert result.source == "service"
    assert len(result.fixes) == 2
    assert "::before" in result.embed_css


def test_convert_section_falls_back(hero_section):
    """Service failure falls back to the builder with a warning."""
    with _client(lambda request: httpx.Response(500)) as client:
        result = convert_section(hero_section, client)
    assert result.source == "fallback"
    assert result.warnings[0] == "Generation service failed: Service returned HTTP 500"
    assert result.document.payload.nodes
