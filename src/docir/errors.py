"""Error taxonomy for the ingest pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from docir.parser.base import IRDocument


class IngestError(Exception):
    """Base error; always names the offending file and the failing stage."""

    def __init__(self, filename: str, reason: str, *, stage: str = "ingest") -> None:
        self.filename = filename
        self.reason = reason
        self.stage = stage
        super().__init__(f"{stage} failed for {filename}: {reason}")


class UnsupportedFormat(IngestError):
    def __init__(self, filename: str, extension: str) -> None:
        self.extension = extension
        label = f".{extension}" if extension else "(no extension)"
        super().__init__(filename, f"unsupported file type {label}")


class MalformedInput(IngestError):
    pass


class ExternalConversionFailure(IngestError):
    """An external DOCX/PDF converter failed or is not configured.

    ``placeholder`` optionally holds a one-paragraph document stating the
    failure, so callers can still show something.
    """

    def __init__(self, filename: str, reason: str, *, placeholder: IRDocument | None = None) -> None:
        self.placeholder = placeholder
        super().__init__(filename, reason)
