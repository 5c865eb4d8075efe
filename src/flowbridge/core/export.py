"""Export: write converted documents, embed code, safety reports, token manifests, and font checklists"""

import json
from pathlib import Path
from typing import TYPE_CHECKING

from flowbridge.core.chunking import ChunkedEmbed
from flowbridge.core.extract.fonts import build_font_checklist, font_summary
from flowbridge.core.models import DetectedFont, TokenManifest

if TYPE_CHECKING:
    from flowbridge.core.pipeline import SectionOutcome
    from flowbridge.core.safety import GateResult


def _write_chunks(chunked: ChunkedEmbed, output_dir: Path, stem: str, suffix: str) -> list[Path]:
    """One file per part: `<stem>.<n>.<suffix>`, numbered from 1."""
    paths = []
    for chunk in chunked.chunks:
        path = output_dir / f"{stem}.{chunk.index + 1}.{suffix}"
        path.write_text(chunk.content, encoding='utf-8')
        paths.append(path)
    return paths


def build_report(outcome: "SectionOutcome") -> dict:
    """Report sidecar: section identity, conversion source, and the gate report."""
    return {
        "section": {"id": outcome.section.id, "name": outcome.section.name},
        "source": outcome.conversion.source,
        "conversionWarnings": outcome.conversion.warnings,
        "sanitizationApplied": outcome.gate.sanitization_applied,
        "report": outcome.gate.report.model_dump(by_alias=True),
        "chunks": {k: [c.size for c in v.chunks] for k, v in outcome.gate.chunks.items()},
    }


def write_section(outcome: "SectionOutcome", output_dir: Path) -> tuple[Path, Path, Path]:
    """Write `<id>.json`, `<id>.embed.css`, and `<id>.report.json` for one section.

    Blocked sections still get a report; their document file holds the empty
    document the gate returned. A CSS embed the gate chunked is also written
    part by part as `<id>.embed.<n>.css`. Returns (document_path, css_path, report_path).
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    section_id = outcome.section.id
    doc_path = output_dir / f"{section_id}.json"
    css_path = output_dir / f"{section_id}.embed.css"
    report_path = output_dir / f"{section_id}.report.json"

    doc_path.write_text(outcome.gate.document.to_json(indent=2), encoding='utf-8')
    css_path.write_text(outcome.gate.embeds.css, encoding='utf-8')
    if "css" in outcome.gate.chunks:
        _write_chunks(outcome.gate.chunks["css"], output_dir, f"{section_id}.embed", "css")
    report_path.write_text(json.dumps(build_report(outcome), indent=2), encoding='utf-8')
    return doc_path, css_path, report_path


def write_page_script(gate: "GateResult", output_dir: Path) -> list[Path]:
    """Write the page's inline script embed as `page.embed.js` (plus parts when chunked)."""
    if not gate.embeds.js:
        return []
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / "page.embed.js"
    path.write_text(gate.embeds.js, encoding='utf-8')
    paths = [path]
    if "js" in gate.chunks:
        paths.extend(_write_chunks(gate.chunks["js"], output_dir, "page.embed", "js"))
    return paths


def write_fonts(fonts: list[DetectedFont], path: Path) -> Path:
    """Font summary plus the installation checklist for every detected family."""
    path.parent.mkdir(parents=True, exist_ok=True)
    body = {
        "summary": font_summary(fonts).model_dump(),
        "checklist": [item.model_dump() for item in build_font_checklist(fonts)],
        "fonts": [f.model_dump(exclude_none=True) for f in fonts],
    }
    path.write_text(json.dumps(body, indent=2), encoding='utf-8')
    return path


def write_manifest(manifest: TokenManifest, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(manifest.model_dump_json(indent=2, exclude_none=True), encoding='utf-8')
    return path
