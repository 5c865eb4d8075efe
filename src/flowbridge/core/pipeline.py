"""Pipeline step functions: parse, convert, gate, and export orchestration"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from flowbridge.config import Settings
from flowbridge.core.export import write_fonts, write_manifest, write_page_script, write_section
from flowbridge.core.extract.fonts import detect_fonts
from flowbridge.core.extract.tokens import extract_tokens
from flowbridge.core.generate import ConversionResult, GenerationClient, convert_section
from flowbridge.core.models import DetectedFont, Document, ParsedPage, Section, TokenManifest
from flowbridge.core.parse import discover_files, parse_page
from flowbridge.core.safety import EmbedContent, GateResult, run_safety_gate


logger = logging.getLogger(__name__)


@dataclass
class SectionOutcome:
    section:    Section
    conversion: ConversionResult
    gate:       GateResult


@dataclass
class PipelineResult:
    page:     ParsedPage
    manifest: TokenManifest
    fonts:    list[DetectedFont] = field(default_factory=list)
    outcomes: list[SectionOutcome] = field(default_factory=list)
    script:   Optional[GateResult] = None      # page-level inline script embed


def run_section(
    section: Section,
    settings: Settings,
    client: Optional[GenerationClient] = None,
    ) -> SectionOutcome:
    """Convert one section and pass the result through the safety gate."""
    conversion = convert_section(section, client, settings.build_options())
    gate = run_safety_gate(
        conversion.document,
        EmbedContent(css=conversion.embed_css),
        settings.gate_options(),
    )
    if conversion.fixes:
        gate.report.auto_fixes[:0] = conversion.fixes
        if gate.report.status == "ok":
            gate.report.status = "warn"
    return SectionOutcome(section=section, conversion=conversion, gate=gate)


def run_pipeline(
    html: str,
    settings: Settings,
    client: Optional[GenerationClient] = None,
    workers: int = 1,
    ) -> PipelineResult:
    """Parse a page, extract tokens and fonts, convert every section, and gate the page script.

    Sections are independent; with workers > 1 they convert on a thread pool and
    outcomes keep source order.
    """
    page = parse_page(html, settings.detection_options())
    manifest = extract_tokens(page.css, page.title, settings.alt_root_selector)
    fonts = detect_fonts(html)

    if workers > 1 and len(page.sections) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(lambda s: run_section(s, settings, client), page.sections))
    else:
        outcomes = [run_section(s, settings, client) for s in page.sections]

    script = None
    if page.js:
        script = run_safety_gate(Document(), EmbedContent(js=page.js), settings.gate_options())
        if script.blocked:
            logger.warning("Page script embed blocked: %s", "; ".join(script.report.fatal_issues))

    blocked = sum(1 for o in outcomes if o.gate.blocked)
    logger.info("Converted %d section(s), %d blocked", len(outcomes), blocked)
    return PipelineResult(page=page, manifest=manifest, fonts=fonts, outcomes=outcomes, script=script)


def run_convert(
    path: str,
    settings: Settings,
    output_dir: Path,
    client: Optional[GenerationClient] = None,
    workers: int = 1,
    ) -> list[tuple[str, Path]]:
    """Convert every page under path and write outputs. Returns (section_id, document_path) pairs."""
    results = []
    for p in discover_files(Path(path)):
        try:
            result = run_pipeline(p.read_text(encoding='utf-8'), settings, client, workers)
        except Exception as e:
            raise RuntimeError(f"Failed to convert {p}: {e}") from e
        page_dir = output_dir / p.stem
        write_manifest(result.manifest, page_dir / "tokens.json")
        write_fonts(result.fonts, page_dir / "fonts.json")
        if result.script and not result.script.blocked:
            write_page_script(result.script, page_dir)
        for outcome in result.outcomes:
            doc_path, _, _ = write_section(outcome, page_dir)
            results.append((outcome.section.id, doc_path))
    return results
