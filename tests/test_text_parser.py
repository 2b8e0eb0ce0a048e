"""Tests for the plain-text parser."""

from __future__ import annotations

from docir.config import IngestOptions
from docir.parser.text_parser import PlainTextParser


def _orders(doc) -> list[list[int]]:
    return [[block.order for block in section.blocks] for section in doc.sections]


def test_plain_text_structure() -> None:
    text = "CHAPTER 1\n\nThis is the opening paragraph.\nIt continues here.\n\n- a\n- b\n- c\n"
    doc = PlainTextParser().parse(text, name="notes.txt")

    assert doc.title == "notes"
    assert len(doc.sections) == 1
    blocks = doc.sections[0].blocks
    assert [b.type for b in blocks] == ["heading", "paragraph", "list"]
    assert blocks[0].content.level == 1
    assert blocks[1].content == "This is the opening paragraph.\nIt continues here."
    assert [item.content for item in blocks[2].content.items] == ["a", "b", "c"]
    assert _orders(doc) == [[1, 2, 3]]


def test_untitled_text_gets_default_title() -> None:
    doc = PlainTextParser().parse("hello")

    assert doc.title == "Imported Document"


def test_crlf_line_endings() -> None:
    doc = PlainTextParser().parse("first\r\nsecond\r\n\r\nthird")

    assert [b.content for b in doc.sections[0].blocks] == ["first\nsecond", "third"]


def test_inline_markdown_is_left_alone() -> None:
    doc = PlainTextParser().parse("Some **stars** here")

    block = doc.sections[0].blocks[0]
    assert block.content == "Some **stars** here"
    assert block.marks == []


def test_all_caps_heading_and_word_count() -> None:
    doc = PlainTextParser().parse("INTRODUCTION\n\nThree words here.")

    blocks = doc.sections[0].blocks
    assert blocks[0].type == "heading"
    assert blocks[0].content.level == 2
    assert doc.metadata.custom["wordCount"] == 4


def test_short_paragraph_coalescing() -> None:
    text = "Short one.\n\nShort two.\n\nA much longer paragraph that definitely exceeds the fifty character threshold."
    doc = PlainTextParser().parse(text, options=IngestOptions(merge_short_paragraphs=True))

    blocks = doc.sections[0].blocks
    assert [b.content for b in blocks][0] == "Short one. Short two."
    assert len(blocks) == 2
    assert _orders(doc) == [[1, 2]]


def test_coalescing_is_off_by_default() -> None:
    doc = PlainTextParser().parse("Short one.\n\nShort two.")

    assert len(doc.sections[0].blocks) == 2
