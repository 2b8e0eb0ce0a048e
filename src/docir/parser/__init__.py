"""Parser package."""

from .base import (
    AssetRef,
    Callout,
    Code,
    Divider,
    Figure,
    Footnote,
    FootnoteRef,
    Heading,
    InlineMark,
    IRBlock,
    IRDocument,
    IRMetadata,
    IRSection,
    ListContent,
    ListItem,
    Quote,
    Table,
    create_ir_block,
    create_ir_callout,
    create_ir_document,
    create_ir_figure,
    create_ir_heading,
    create_ir_list,
    create_ir_quote,
    create_ir_section,
    create_ir_table,
)
from .docx_parser import DocxHTMLParser
from .html_parser import HTMLParser
from .json_parser import JSONParser
from .md_parser import MarkdownParser
from .schema import ir_document_from_dict, ir_document_to_dict, validate_ir_document
from .text_parser import PlainTextParser

__all__ = [
    "AssetRef",
    "Callout",
    "Code",
    "Divider",
    "Figure",
    "Footnote",
    "FootnoteRef",
    "Heading",
    "InlineMark",
    "IRBlock",
    "IRDocument",
    "IRMetadata",
    "IRSection",
    "ListContent",
    "ListItem",
    "Quote",
    "Table",
    "create_ir_block",
    "create_ir_callout",
    "create_ir_document",
    "create_ir_figure",
    "create_ir_heading",
    "create_ir_list",
    "create_ir_quote",
    "create_ir_section",
    "create_ir_table",
    "DocxHTMLParser",
    "HTMLParser",
    "JSONParser",
    "MarkdownParser",
    "PlainTextParser",
    "ir_document_from_dict",
    "ir_document_to_dict",
    "validate_ir_document",
]
