"""Interfaces of the external converters and export engine this package consumes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Protocol

from docir.config import PdfConvertOptions

if TYPE_CHECKING:  # pragma: no cover
    from docir.mapper import InternalDocument
    from docir.parser.base import IRDocument


class DocxConverter(Protocol):
    """Turn DOCX bytes into style-mapped HTML (see ``docx_parser.DOCX_STYLE_MAP``)."""

    def __call__(self, data: bytes, *, filename: str) -> str: ...


class PdfConverter(Protocol):
    """Turn PDF bytes into an IR document, with optional OCR."""

    def __call__(self, data: bytes, *, filename: str, options: PdfConvertOptions) -> IRDocument: ...


@dataclass(slots=True)
class ExportJob:
    id: str
    format: str
    status: str = "pending"
    progress: float = 0.0


class ExportEngine(Protocol):
    """Downstream renderer that accepts a mapped document."""

    def export(
        self,
        document: InternalDocument,
        *,
        format: str,
        options: dict[str, Any] | None = None,
        on_progress: Callable[[ExportJob], None] | None = None,
    ) -> ExportJob: ...
