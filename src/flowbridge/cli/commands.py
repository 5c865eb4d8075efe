"""CLI command implementations"""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer

from flowbridge.config import Settings, load_config
from flowbridge.core.export import write_manifest
from flowbridge.core.extract.tokens import extract_tokens
from flowbridge.core.generate import GenerationClient
from flowbridge.core.parse import parse_file, parse_page
from flowbridge.core.pipeline import run_convert
from flowbridge.core.routing import format_reason, route_css
from flowbridge.core.safety import EmbedContent, run_safety_gate


def _fail(msg: str, cause: Exception = None) -> None:
    """Print a user-friendly error to stderr and exit 1."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(1)


def _settings(overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling and configure logging."""
    try:
        settings = load_config(overrides=overrides)
    except ValueError as e:
        _fail(str(e))
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")
    return settings


def _read(path: Optional[str]) -> str:
    if not path:
        return ""
    try:
        return Path(path).read_text(encoding='utf-8')
    except OSError as e:
        _fail(f"Cannot read {path}", e)


def sections_cmd(
    page: Annotated[str, typer.Argument(help="HTML page to scan")],
    ):
    """List the sections detected in a page."""
    settings = _settings()
    try:
        parsed = parse_file(Path(page), settings.detection_options())
    except OSError as e:
        _fail(f"Cannot read {page}", e)
    for s in parsed.sections:
        typer.echo(f"  {s.id:<24} {s.name:<24} <{s.tag_name}> {len(s.class_names)} class(es)")
    typer.echo(f"Found {len(parsed.sections)} section(s) in {parsed.title}")


def tokens_cmd(
    page: Annotated[str, typer.Argument(help="HTML page or CSS file")],
    name: Annotated[Optional[str], typer.Option("--name", help="Design system name; defaults to the page title")] = None,
    out: Annotated[Optional[str], typer.Option("--out", help="Write the manifest here instead of stdout")] = None,
    ):
    """Extract design tokens from root-scope custom properties."""
    settings = _settings()
    text = _read(page)
    if page.endswith(".css"):
        css, title = text, "Design System"
    else:
        parsed = parse_page(text, settings.detection_options())
        css, title = parsed.css, parsed.title
    manifest = extract_tokens(css, name or title, settings.alt_root_selector)
    if out:
        path = write_manifest(manifest, Path(out))
        typer.echo(f"Wrote {len(manifest.variables)} token(s) to {path}")
    else:
        typer.echo(manifest.model_dump_json(indent=2, exclude_none=True))


def convert_cmd(
    path: Annotated[str, typer.Argument(help="HTML file or directory to convert")],
    out: Annotated[Optional[str], typer.Option("--out-dir", help="Output directory")] = None,
    service_url: Annotated[Optional[str], typer.Option("--service-url", help="Generation service endpoint")] = None,
    workers: Annotated[int, typer.Option("--workers", min=1, help="Sections converted in parallel")] = 1,
    ):
    """Run the full pipeline: parse -> convert -> safety gate -> export."""
    settings = _settings(overrides={"output_dir": out, "generation_url": service_url})
    output_dir = Path(settings.output_dir)
    client = (GenerationClient(settings.generation_url, settings.generation_timeout)
              if settings.generation_url else None)
    try:
        results = run_convert(path, settings, output_dir, client, workers)
    except RuntimeError as e:
        _fail(str(e))
    finally:
        if client:
            client.close()
    for section_id, doc_path in results:
        typer.echo(f"  {section_id} -> {doc_path}")
    typer.echo(f"Converted {len(results)} section(s) to {output_dir}/")


def check_cmd(
    document: Annotated[str, typer.Argument(help="Document JSON file")],
    css: Annotated[Optional[str], typer.Option("--css", help="CSS embed file")] = None,
    js: Annotated[Optional[str], typer.Option("--js", help="JS embed file")] = None,
    html: Annotated[Optional[str], typer.Option("--html", help="HTML embed file")] = None,
    ):
    """Run the safety gate on an existing document; exits 1 when blocked."""
    settings = _settings()
    embeds = EmbedContent(css=_read(css), js=_read(js), html=_read(html))
    result = run_safety_gate(_read(document), embeds, settings.gate_options())
    report = result.report
    for issue in report.fatal_issues:
        typer.echo(f"  fatal: {issue}")
    for fix in report.auto_fixes:
        typer.echo(f"  fixed: {fix}")
    for warning in report.warnings + report.embed_size.warnings:
        typer.echo(f"  warning: {warning}")
    typer.echo(f"Status: {report.status}")
    if result.blocked:
        raise typer.Exit(1)


def trace_cmd(
    path: Annotated[str, typer.Argument(help="HTML page or CSS file")],
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Print every rule with its reasons")] = False,
    ):
    """Show where each CSS rule is routed (native, embed, or split) and why."""
    settings = _settings()
    text = _read(path)
    css = text if path.endswith(".css") else parse_page(text, settings.detection_options()).css
    trace = route_css(css, settings.vocabulary(), settings.alt_root_selector)
    if verbose:
        for rule in trace.rules:
            reasons = "; ".join(format_reason(r) for r in rule.reasons)
            typer.echo(f"  [{rule.destination:<6}] {rule.selector}: {reasons}")
    s = trace.summary
    typer.echo(
        f"Routed {s.total_rules} rule(s) - "
        f"{s.native_rules} native, "
        f"{s.embed_rules} embed, "
        f"{s.split_rules} split, "
        f"{s.breakpoint_mappings} breakpoint mapping(s)"
    )
