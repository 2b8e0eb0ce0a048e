"""Tests for the docir command line."""

from __future__ import annotations

import json

from click.testing import CliRunner

from docir.cli import main
from docir.parser.schema import validate_ir_document


def _write(tmp_path, name: str, body: str):
    path = tmp_path / name
    path.write_text(body, encoding="utf-8")
    return path


def test_cli_writes_ir_json(tmp_path) -> None:
    source = _write(tmp_path, "guide.md", "# Guide\n\n### Setup\n\nInstall it.\n")
    output = tmp_path / "out" / "guide.json"

    result = CliRunner().invoke(main, [str(source), "-o", str(output)])

    assert result.exit_code == 0, result.output
    data = json.loads(output.read_text(encoding="utf-8"))
    assert validate_ir_document(data)
    assert data["title"] == "guide"
    assert data["sections"][0]["blocks"][1]["content"]["level"] == 2
    assert "Cleanup: Applied 1 fixes across 1 operations" in result.output
    assert f"Wrote: {output}" in result.output


def test_cli_model_and_preview(tmp_path) -> None:
    source = _write(tmp_path, "page.html", "<h1>Hello</h1><p>World</p>")
    output = tmp_path / "model.json"
    preview = tmp_path / "preview.html"

    result = CliRunner().invoke(main, [str(source), "-o", str(output), "--model", "--preview", str(preview)])

    assert result.exit_code == 0, result.output
    data = json.loads(output.read_text(encoding="utf-8"))
    assert data["sections"][0]["flows"][0]["blocks"][0]["id"] == "block-1"
    assert '<p class="doc-paragraph">World</p>' in preview.read_text(encoding="utf-8")


def test_cli_no_cleanup(tmp_path) -> None:
    source = _write(tmp_path, "deep.md", "# A\n\n### B\n")
    output = tmp_path / "deep.json"

    result = CliRunner().invoke(main, [str(source), "-o", str(output), "--no-cleanup"])

    assert result.exit_code == 0, result.output
    data = json.loads(output.read_text(encoding="utf-8"))
    assert data["sections"][0]["blocks"][1]["content"]["level"] == 3
    assert "Cleanup:" not in result.output


def test_cli_rejects_unsupported_type(tmp_path) -> None:
    source = _write(tmp_path, "slides.key", "binary")

    result = CliRunner().invoke(main, [str(source), "-o", str(tmp_path / "x.json")])

    assert result.exit_code != 0
    assert "Unsupported input type: slides.key" in result.output


def test_cli_pdf_falls_back_to_placeholder(tmp_path) -> None:
    source = tmp_path / "scan.pdf"
    source.write_bytes(b"%PDF-1.7")
    output = tmp_path / "scan.json"

    result = CliRunner().invoke(main, [str(source), "-o", str(output)])

    assert result.exit_code == 0, result.output
    data = json.loads(output.read_text(encoding="utf-8"))
    assert data["sections"][0]["blocks"][0]["content"].startswith("Could not import scan.pdf")
