"""Tests for the ingest orchestrator."""

from __future__ import annotations

import json

import pytest

from docir.config import IngestOptions, PdfConvertOptions
from docir.errors import ExternalConversionFailure, MalformedInput, UnsupportedFormat
from docir.external import ExportJob
from docir.parser.base import create_ir_block, create_ir_document, create_ir_section
from docir.parser.schema import ir_document_to_dict, validate_ir_document
from docir.pipeline import SUPPORTED_EXTENSIONS, export_document, get_parser, ingest_file, ingest_text, run_pipeline


class _Upload:
    """Minimal browser-style file object."""

    def __init__(self, name: str, data: bytes = b"") -> None:
        self.name = name
        self._data = data
        self.reads = 0

    def read(self) -> bytes:
        self.reads += 1
        return self._data


def _assert_valid(doc) -> None:
    assert validate_ir_document(json.loads(json.dumps(ir_document_to_dict(doc))))
    for section in doc.sections:
        assert [b.order for b in section.blocks] == list(range(1, len(section.blocks) + 1))


# ---------------------------------------------------------------------------
# Format dispatch
# ---------------------------------------------------------------------------

def test_unsupported_extension_rejected_before_reading() -> None:
    upload = _Upload("data.xyz", b"irrelevant")

    with pytest.raises(UnsupportedFormat) as excinfo:
        ingest_file(upload)

    assert upload.reads == 0
    assert "data.xyz" in str(excinfo.value)
    assert excinfo.value.extension == "xyz"


def test_supported_extensions() -> None:
    assert set(SUPPORTED_EXTENSIONS) == {"txt", "text", "md", "markdown", "html", "htm", "json", "docx", "pdf"}
    with pytest.raises(UnsupportedFormat):
        get_parser("rtf")


@pytest.mark.parametrize(
    ("filename", "body"),
    [
        ("notes.txt", "INTRODUCTION\n\nSome text that wraps onto\nthe next line.\n\n- a\n- b\n"),
        ("readme.md", "# Title\n\nBody with a note[^1].\n\n| A | B |\n|---|---|\n| 1 | 2 |\n\n[^1]: The note.\n"),
        ("page.html", "<html><head><title>Page</title></head><body><h1>Hi</h1><p>Text</p><ul><li>x</li></ul></body></html>"),
        ("data.json", '{"rows": [1, 2, 3]}'),
    ],
)
def test_every_format_produces_valid_ir(tmp_path, filename, body) -> None:
    path = tmp_path / filename
    path.write_text(body, encoding="utf-8")

    doc = ingest_file(path)

    _assert_valid(doc)
    assert doc.sections and doc.sections[0].blocks


def test_file_object_input() -> None:
    doc = ingest_file(_Upload("upload.md", b"# Hello\n\nWorld"))

    assert doc.title == "upload"
    assert [b.type for b in doc.sections[0].blocks] == ["heading", "paragraph"]


def test_malformed_json_names_file_and_stage(tmp_path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(MalformedInput) as excinfo:
        ingest_file(path)

    assert "broken.json" in str(excinfo.value)
    assert str(excinfo.value).startswith("ingest failed for")


# ---------------------------------------------------------------------------
# Cleanup
# ---------------------------------------------------------------------------

def test_cleanup_audit_stored_in_metadata() -> None:
    doc = ingest_file(_Upload("deep.md", b"# A\n\n### B\n"))

    assert [b.content.level for b in doc.sections[0].blocks] == [1, 2]
    assert doc.metadata.custom["cleanup"] == {
        "summary": "Applied 1 fixes across 1 operations",
        "auditLog": [{"type": "fix-hierarchy", "count": 1, "description": "Fixed 1 heading hierarchy issues"}],
    }


def test_cleanup_can_be_skipped_with_camel_case_options() -> None:
    doc = ingest_file(_Upload("deep.md", b"# A\n\n### B\n"), {"runCleanup": False})

    assert [b.content.level for b in doc.sections[0].blocks] == [1, 3]
    assert "cleanup" not in doc.metadata.custom


def test_cleanup_options_mapping_is_honoured() -> None:
    options = {"cleanupOptions": {"fixHierarchy": False}}
    doc = ingest_file(_Upload("deep.md", b"# A\n\n### B\n"), options)

    assert [b.content.level for b in doc.sections[0].blocks] == [1, 3]


def test_ingest_text() -> None:
    doc = ingest_text("- a\n- b", "md")

    assert doc.title == "Imported Document"
    assert doc.sections[0].blocks[0].type == "list"
    with pytest.raises(UnsupportedFormat):
        ingest_text("x", "rtf")


# ---------------------------------------------------------------------------
# External converters
# ---------------------------------------------------------------------------

def test_pdf_without_converter_yields_placeholder() -> None:
    with pytest.raises(ExternalConversionFailure) as excinfo:
        ingest_file(_Upload("scan.pdf", b"%PDF-1.7"))

    placeholder = excinfo.value.placeholder
    assert placeholder is not None
    assert placeholder.title == "scan"
    assert placeholder.sections[0].blocks[0].content == "Could not import scan.pdf: no PDF converter configured"
    _assert_valid(placeholder)


def test_pdf_converter_result_is_renumbered_and_cleaned() -> None:
    seen = {}

    def convert(data, *, filename, options):
        seen.update(data=data, filename=filename, options=options)
        doc = create_ir_document("Scanned")
        section = create_ir_section()
        section.blocks = [
            create_ir_block("paragraph", "The scanned sentence is broken", order=7),
            create_ir_block("paragraph", "across two lines.", order=3),
        ]
        doc.sections.append(section)
        return doc

    doc = ingest_file(_Upload("scan.pdf", b"%PDF"), pdf_converter=convert, pdf_options=PdfConvertOptions(language="deu"))

    assert seen["data"] == b"%PDF"
    assert seen["filename"] == "scan.pdf"
    assert seen["options"].language == "deu"
    assert [(b.order, b.content) for b in doc.sections[0].blocks] == [(1, "The scanned sentence is broken across two lines.")]


def test_failing_converter_without_placeholder() -> None:
    def convert(data, *, filename, options):
        raise RuntimeError("OCR engine crashed")

    with pytest.raises(ExternalConversionFailure) as excinfo:
        ingest_file(_Upload("scan.pdf", b"%PDF"), IngestOptions(placeholder_on_failure=False), pdf_converter=convert)

    assert excinfo.value.placeholder is None
    assert "OCR engine crashed" in str(excinfo.value)
    assert "scan.pdf" in str(excinfo.value)


def test_docx_converter_output_is_parsed() -> None:
    def convert(data, *, filename):
        assert data == b"PK\x03\x04"
        return "<h1>Report</h1><ul><li>a</li></ul><ul><li>b</li></ul>"

    doc = ingest_file(_Upload("report.docx", b"PK\x03\x04"), docx_converter=convert)

    blocks = doc.sections[0].blocks
    assert [b.type for b in blocks] == ["heading", "list"]
    assert [item.content for item in blocks[1].content.items] == ["a", "b"]


def test_docx_without_converter_fails() -> None:
    with pytest.raises(ExternalConversionFailure) as excinfo:
        ingest_file(_Upload("report.docx", b"PK\x03\x04binary"))

    assert "no DOCX converter configured" in str(excinfo.value)


# ---------------------------------------------------------------------------
# Full pipeline and export
# ---------------------------------------------------------------------------

def test_run_pipeline(tmp_path) -> None:
    path = tmp_path / "guide.md"
    path.write_text("# Guide\n\nNote: Back up first.\n\n### Steps\n\n1. One\n2. Two\n", encoding="utf-8")

    result = run_pipeline(path)

    assert result.cleanup is not None
    assert result.document.metadata.custom["cleanup"] == result.cleanup.to_dict()
    types = [b.type for b in result.model.iter_blocks()]
    assert types == ["heading", "callout", "heading", "ordered-list"]
    assert result.model.title == "guide"


def test_export_document_uses_engine() -> None:
    class Engine:
        def export(self, document, *, format, options=None, on_progress=None):
            return ExportJob(id="job-1", format=format, status="queued")

    model = run_pipeline(_Upload("a.txt", b"hello")).model
    job = export_document(model, Engine(), format="pdf")

    assert job == ExportJob(id="job-1", format="pdf", status="queued")


def test_export_failure_is_wrapped() -> None:
    class Engine:
        def export(self, document, *, format, options=None, on_progress=None):
            raise ValueError("disk full")

    model = run_pipeline(_Upload("a.txt", b"hello")).model
    with pytest.raises(ExternalConversionFailure) as excinfo:
        export_document(model, Engine(), format="pdf")

    assert "disk full" in str(excinfo.value)
