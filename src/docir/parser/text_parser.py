"""Plain-text parser: line scan with structural heading heuristics."""

from __future__ import annotations

from docir.config import IngestOptions

from .base import IRDocument
from .blocks import ParseContext, parse_line_blocks
from .common import build_document, document_title


class PlainTextParser:
    """Parse plain text (or pasted text) into the IR.

    Lines are scanned with the same block parsers as Markdown, but inline
    syntax is left untouched and unmarked lines such as ``CHAPTER 3`` or
    ``INTRODUCTION`` are recognised as headings.
    """

    def parse(self, text: str, *, name: str = "", options: IngestOptions | None = None) -> IRDocument:
        options = options or IngestOptions()
        ctx = ParseContext(
            markdown=False,
            generate_anchors=options.generate_anchors,
            extract_images=options.extract_images,
            extract_tables=options.extract_tables,
        )
        lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
        blocks = parse_line_blocks(lines, ctx)
        return build_document(document_title(name), blocks, options)
