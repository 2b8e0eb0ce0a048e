"""Ingest orchestrator: pick a parser by extension, then clean and map."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path, PurePath
from typing import IO, Any, Mapping, Union

from docir.cleanup import CleanupResult, clean_ir_document
from docir.config import IngestOptions, PdfConvertOptions
from docir.errors import ExternalConversionFailure, IngestError, UnsupportedFormat
from docir.external import DocxConverter, ExportEngine, ExportJob, PdfConverter
from docir.mapper import InternalDocument, map_ir_to_internal_model
from docir.parser import DocxHTMLParser, HTMLParser, JSONParser, MarkdownParser, PlainTextParser
from docir.parser.base import IRDocument, Parser, create_ir_block, create_ir_document, create_ir_section
from docir.parser.common import document_title, renumber

logger = logging.getLogger(__name__)

FileInput = Union[str, Path, IO[Any]]

PARSERS: dict[str, type] = {
    "txt": PlainTextParser,
    "text": PlainTextParser,
    "md": MarkdownParser,
    "markdown": MarkdownParser,
    "html": HTMLParser,
    "htm": HTMLParser,
    "json": JSONParser,
    "docx": DocxHTMLParser,
}
SUPPORTED_EXTENSIONS: tuple[str, ...] = (*PARSERS, "pdf")


@dataclass(slots=True)
class PipelineResult:
    document: IRDocument
    model: InternalDocument
    cleanup: CleanupResult | None = None


def file_extension(name: str) -> str:
    return PurePath(name).suffix.lower().lstrip(".")


def get_parser(fmt: str, filename: str = "") -> Parser:
    """Instantiate the parser registered for *fmt*."""
    parser_cls = PARSERS.get(fmt.lower().lstrip("."))
    if parser_cls is None:
        raise UnsupportedFormat(filename or f"<{fmt}>", fmt)
    return parser_cls()


def _coerce_options(options: IngestOptions | Mapping[str, Any] | None) -> IngestOptions:
    if options is None:
        return IngestOptions()
    if isinstance(options, Mapping):
        return IngestOptions.from_mapping(options)
    return options


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def ingest_file(
    file: FileInput,
    options: IngestOptions | Mapping[str, Any] | None = None,
    *,
    docx_converter: DocxConverter | None = None,
    pdf_converter: PdfConverter | None = None,
    pdf_options: PdfConvertOptions | None = None,
) -> IRDocument:
    """Ingest a path or a file-like object with ``name`` and ``read()``.

    The extension is checked before anything is read. Unless disabled in
    *options*, the cleanup pass runs and its audit is stored under
    ``metadata.custom["cleanup"]``.
    """
    options = _coerce_options(options)
    name = _file_name(file)
    ext = file_extension(name)
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormat(name, ext)

    data = _read(file)
    logger.debug("ingesting %s as %s (%d bytes)", name, ext, len(data))

    if ext == "pdf":
        doc = _convert_pdf(data, name, options, pdf_converter, pdf_options or PdfConvertOptions())
    else:
        text = _convert_docx(data, name, options, docx_converter) if ext == "docx" else _decode(data)
        parser = get_parser(ext, name)
        try:
            doc = parser.parse(text, name=name, options=options)
        except IngestError:
            raise
        except Exception as exc:
            raise IngestError(name, str(exc), stage="ingest") from exc

    if options.run_cleanup:
        doc = _run_cleanup(doc, name, options).document
    return doc


def ingest_text(
    text: str,
    fmt: str = "txt",
    options: IngestOptions | Mapping[str, Any] | None = None,
    *,
    name: str = "",
) -> IRDocument:
    """Ingest pasted text of a given format (``txt``, ``md``, ``html``, ``json``)."""
    options = _coerce_options(options)
    doc = get_parser(fmt, name).parse(text, name=name, options=options)
    if options.run_cleanup:
        doc = _run_cleanup(doc, name or f"<{fmt}>", options).document
    return doc


def run_pipeline(
    file: FileInput,
    options: IngestOptions | Mapping[str, Any] | None = None,
    **converters: Any,
) -> PipelineResult:
    """Ingest, clean and map one file; failures name the file and the stage."""
    options = _coerce_options(options)
    name = _file_name(file)
    doc = ingest_file(file, replace(options, run_cleanup=False), **converters)

    cleanup = None
    if options.run_cleanup:
        cleanup = _run_cleanup(doc, name, options)
        doc = cleanup.document

    try:
        model = map_ir_to_internal_model(doc)
    except Exception as exc:
        raise IngestError(name, str(exc), stage="map") from exc
    return PipelineResult(document=doc, model=model, cleanup=cleanup)


def export_document(
    model: InternalDocument,
    engine: ExportEngine,
    *,
    format: str,
    options: dict[str, Any] | None = None,
) -> ExportJob:
    """Hand a mapped document to an external export engine."""
    try:
        return engine.export(model, format=format, options=options or {})
    except Exception as exc:
        raise ExternalConversionFailure(model.title, f"export to {format} failed: {exc}") from exc


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _file_name(file: FileInput) -> str:
    if isinstance(file, (str, Path)):
        return str(file)
    return str(getattr(file, "name", "") or "")


def _read(file: FileInput) -> bytes:
    if isinstance(file, (str, Path)):
        return Path(file).read_bytes()
    data = file.read()
    if isinstance(data, str):
        return data.encode("utf-8")
    return data


def _decode(data: bytes) -> str:
    return data.decode("utf-8-sig", errors="replace")


def _run_cleanup(doc: IRDocument, name: str, options: IngestOptions) -> CleanupResult:
    try:
        result = clean_ir_document(doc, options.cleanup_options)
    except Exception as exc:
        raise IngestError(name, str(exc), stage="cleanup") from exc
    result.document.metadata.custom["cleanup"] = result.to_dict()
    logger.info("%s: %s", name, result.summary)
    return result


def _convert_docx(data: bytes, name: str, options: IngestOptions, converter: DocxConverter | None) -> str:
    if converter is None:
        text = _decode(data)
        # Already converted to HTML upstream.
        if text.lstrip().startswith("<"):
            return text
        raise _conversion_failure(name, "no DOCX converter configured", options)
    try:
        return converter(data, filename=name)
    except Exception as exc:
        logger.warning("DOCX conversion failed for %s: %s", name, exc)
        raise _conversion_failure(name, f"DOCX conversion failed: {exc}", options) from exc


def _convert_pdf(
    data: bytes,
    name: str,
    options: IngestOptions,
    converter: PdfConverter | None,
    pdf_options: PdfConvertOptions,
) -> IRDocument:
    if converter is None:
        raise _conversion_failure(name, "no PDF converter configured", options)
    try:
        doc = converter(data, filename=name, options=pdf_options)
    except Exception as exc:
        logger.warning("PDF conversion failed for %s: %s", name, exc)
        raise _conversion_failure(name, f"PDF conversion failed: {exc}", options) from exc
    if not isinstance(doc, IRDocument):
        raise _conversion_failure(name, "PDF converter did not return an IR document", options)
    return renumber(doc)


def _conversion_failure(name: str, reason: str, options: IngestOptions) -> ExternalConversionFailure:
    placeholder = placeholder_document(name, reason) if options.placeholder_on_failure else None
    return ExternalConversionFailure(name, reason, placeholder=placeholder)


def placeholder_document(name: str, reason: str) -> IRDocument:
    """A one-paragraph document stating why *name* could not be converted."""
    title = document_title(name)
    doc = create_ir_document(title)
    section = create_ir_section(title=title)
    section.blocks.append(create_ir_block("paragraph", f"Could not import {PurePath(name).name}: {reason}"))
    doc.sections.append(section)
    return doc

