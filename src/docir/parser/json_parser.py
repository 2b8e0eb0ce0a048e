"""JSON parser: IR passthrough, or arbitrary JSON shown as a code block."""

from __future__ import annotations

import json
import logging

from docir.config import IngestOptions
from docir.errors import MalformedInput

from .base import Code, IRDocument, create_ir_block
from .common import build_document, document_title
from .schema import ir_document_from_dict, validate_ir_document

logger = logging.getLogger(__name__)


class JSONParser:
    """Parse JSON text.

    Text that already validates as a serialized IR document is loaded as-is.
    Any other JSON value becomes a single ``code`` block with language
    ``json``. Text that is not JSON at all raises :class:`MalformedInput`.
    """

    def parse(self, text: str, *, name: str = "", options: IngestOptions | None = None) -> IRDocument:
        options = options or IngestOptions()
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedInput(name or "<json>", f"invalid JSON at line {exc.lineno} column {exc.colno}: {exc.msg}") from exc

        if validate_ir_document(data):
            logger.debug("%s: JSON is already an IR document", name or "<json>")
            return ir_document_from_dict(data)

        logger.debug("%s: wrapping generic JSON as a code block", name or "<json>")
        pretty = json.dumps(data, indent=2, ensure_ascii=False)
        block = create_ir_block("code", Code(content=pretty, language="json", inline=False))
        return build_document(document_title(name), [block], options)
