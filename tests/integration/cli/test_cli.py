"""Integration tests for the CLI commands"""

import json

import pytest
from typer.testing import CliRunner

from flowbridge.cli.cli import app


PAGE = """\
<html><head><title>Demo - Site</title>
<style>
:root { --brand: #ff5500; --font-body: 'Inter', sans-serif; }
.hero-section { padding: 2rem; }
.hero-title { color: #111; }
.hero-title::after { content: ''; }
</style></head>
<body>
<section class="hero-section"><h1 class="hero-title">Hi</h1></section>
<footer class="footer"><p>Bye</p></footer>
</body></html>
"""


@pytest.fixture(name="runner")
def runner_fixture():
    return CliRunner()


@pytest.fixture(autouse=True)
def chdir_tmp(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)


@pytest.fixture(name="page")
def page_fixture(tmp_path):
    f = tmp_path / "demo.html"
    f.write_text(PAGE)
    return f


# --- sections ---

def test_sections_cmd(runner, page):
    """sections lists each detected section."""
    result = runner.invoke(app, ["sections", str(page)])
    assert result.exit_code == 0, result.output
    assert "hero-section" in result.output
    assert "Found 2 section(s) in Demo" in result.output


def test_sections_cmd_missing_file(runner, tmp_path):
    """A missing page exits 1 with an error."""
    result = runner.invoke(app, ["sections", str(tmp_path / "nope.html")])
    assert result.exit_code == 1
    assert "Error: Cannot read" in result.output


def test_invalid_config_exits(runner, tmp_path, page):
    """A broken config.yaml is reported before any work runs."""
    (tmp_path / "config.yaml").write_text("key: [unclosed\n")
    result = runner.invoke(app, ["sections", str(page)])
    assert result.exit_code == 1
    assert "Invalid config.yaml" in result.output


# --- tokens ---

def test_tokens_cmd_stdout(runner, page):
    """tokens prints the manifest as JSON."""
    result = runner.invoke(app, ["tokens", str(page)])
    assert result.exit_code == 0, result.output
    manifest = json.loads(result.output)
    assert manifest["name"] == "Demo"
    assert [v["css_var"] for v in manifest["variables"]] == ["--brand", "--font-body"]
    assert manifest["fonts"]["families"] == ["Inter"]


def test_tokens_cmd_css_file_with_out(runner, tmp_path):
    """A .css input is read directly and --out writes a file."""
    css = tmp_path / "tokens.css"
    css.write_text(":root { --brand: #123; }")
    out = tmp_path / "out" / "tokens.json"
    result = runner.invoke(app, ["tokens", str(css), "--name", "Flow Party", "--out", str(out)])
    assert result.exit_code == 0, result.output
    assert "Wrote 1 token(s)" in result.output
    assert json.loads(out.read_text())["namespace"] == "fp"


# --- convert ---

def test_convert_cmd(runner, page, tmp_path):
    """convert writes documents for every section."""
    out = tmp_path / "build"
    result = runner.invoke(app, ["convert", str(page), "--out-dir", str(out), "--workers", "2"])
    assert result.exit_code == 0, result.output
    assert "Converted 2 section(s)" in result.output
    assert (out / "demo" / "hero-section.json").exists()
    assert (out / "demo" / "footer.report.json").exists()


def test_convert_cmd_env_output_dir(runner, page, tmp_path, monkeypatch):
    """FLOWBRIDGE_OUTPUT_DIR picks the output directory."""
    monkeypatch.setenv("FLOWBRIDGE_OUTPUT_DIR", str(tmp_path / "envout"))
    result = runner.invoke(app, ["convert", str(page)])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "envout" / "demo" / "tokens.json").exists()


def test_convert_cmd_service_fallback(runner, page, tmp_path):
    """An unreachable service falls back to the local builder."""
    out = tmp_path / "build"
    result = runner.invoke(app, ["convert", str(page), "--out-dir", str(out),
                                 "--service-url", "http://127.0.0.1:9/convert"])
    assert result.exit_code == 0, result.output
    report = json.loads((out / "demo" / "hero-section.report.json").read_text())
    assert report["source"] == "fallback"
    assert report["conversionWarnings"][0].startswith("Generation service failed")


# --- check ---

def test_check_cmd_ok(runner, page, tmp_path):
    """check passes a converted document."""
    out = tmp_path / "build"
    runner.invoke(app, ["convert", str(page), "--out-dir", str(out)])
    result = runner.invoke(app, ["check", str(out / "demo" / "footer.json")])
    assert result.exit_code == 0, result.output
    assert "Status: ok" in result.output


def test_check_cmd_blocks_bad_json(runner, tmp_path):
    """check exits 1 for a document that is not JSON."""
    doc = tmp_path / "bad.json"
    doc.write_text("{not json")
    result = runner.invoke(app, ["check", str(doc)])
    assert result.exit_code == 1
    assert "fatal: Invalid JSON - cannot parse payload" in result.output
    assert "Status: block" in result.output


def test_check_cmd_oversized_html(runner, tmp_path):
    """An HTML embed over the hard limit blocks."""
    doc = tmp_path / "doc.json"
    doc.write_text(json.dumps({"type": "@webflow/XscpData", "payload": {"nodes": [], "styles": []}}))
    html = tmp_path / "embed.html"
    html.write_text("<div>" + "x" * 60_000 + "</div>")
    result = runner.invoke(app, ["check", str(doc), "--html", str(html)])
    assert result.exit_code == 1
    assert "exceeds hard limit" in result.output


# --- trace ---

def test_trace_cmd(runner, page):
    """trace summarizes routing destinations."""
    result = runner.invoke(app, ["trace", str(page)])
    assert result.exit_code == 0, result.output
    assert "Routed 4 rule(s) - 2 native, 2 embed, 0 split" in result.output


def test_trace_cmd_verbose(runner, tmp_path):
    """--verbose prints each rule with its reasons."""
    css = tmp_path / "site.css"
    css.write_text(".a > .b { color: red; }")
    result = runner.invoke(app, ["trace", str(css), "-v"])
    assert result.exit_code == 0, result.output
    assert "[embed ] .a > .b: Combinator (>) requires embed" in result.output
