"""Tests for the line-oriented block parsers.

Covers:
- Precedence order and paragraph fallback
- Structural heading heuristics for plain text
- Tables (header detection, ragged rows, alignment)
- Blockquote callouts and citations
- Lists (flat, nested, ordered vs numbered headings)
- Fenced code and images
"""

from __future__ import annotations

from docir.parser.base import Callout, Code, Figure, Heading, ListContent, Quote, Table
from docir.parser.blocks import (
    ParseContext,
    callout_kind,
    detect_structural_heading,
    parse_line_blocks,
    split_table_row,
)

MD = ParseContext(markdown=True)
TXT = ParseContext(markdown=False)


# ---------------------------------------------------------------------------
# Headings
# ---------------------------------------------------------------------------

def test_structural_heading_levels() -> None:
    assert detect_structural_heading("CHAPTER 3") == 1
    assert detect_structural_heading("Chapter 12 The End") == 1
    assert detect_structural_heading("Part 2") == 1
    assert detect_structural_heading("Section 4 Results") == 2
    assert detect_structural_heading("3. Methods") == 2
    assert detect_structural_heading("INTRODUCTION") == 2


def test_structural_heading_rejects_plain_and_marked_lines() -> None:
    assert detect_structural_heading("just a sentence") is None
    assert detect_structural_heading("- LIST ITEM") is None
    assert detect_structural_heading("> QUOTED") is None
    assert detect_structural_heading("| A | B |") is None
    assert detect_structural_heading("X" * 70) is None


def test_atx_heading_in_markdown() -> None:
    blocks = parse_line_blocks(["## Getting *started*"], MD)

    assert len(blocks) == 1
    assert blocks[0].type == "heading"
    assert blocks[0].content == Heading(level=2, text="Getting started")
    assert [m.type for m in blocks[0].marks] == ["italic"]


def test_markdown_does_not_use_structural_headings() -> None:
    blocks = parse_line_blocks(["INTRODUCTION"], MD)

    assert blocks[0].type == "paragraph"


def test_numbered_line_followed_by_numbered_line_is_a_list() -> None:
    blocks = parse_line_blocks(["1. First", "2. Second"], TXT)

    assert len(blocks) == 1
    assert blocks[0].type == "list"
    assert blocks[0].content.type == "ordered"
    assert [item.content for item in blocks[0].content.items] == ["First", "Second"]


def test_numbered_line_before_prose_is_a_heading() -> None:
    blocks = parse_line_blocks(["1. Introduction", "", "Some opening words."], TXT)

    assert blocks[0].type == "heading"
    assert blocks[0].content.level == 2
    assert blocks[0].content.text == "1. Introduction"
    assert blocks[1].type == "paragraph"


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

def test_ragged_markdown_table_is_tolerated() -> None:
    lines = ["| A | B | C |", "|---|---|---|", "| 1 | 2 |"]
    blocks = parse_line_blocks(lines, MD)

    assert len(blocks) == 1
    table = blocks[0].content
    assert isinstance(table, Table)
    assert table.headers == ["A", "B", "C"]
    assert table.header_row is True
    assert len(table.rows[0]) == 2


def test_table_without_separator_has_no_header_row() -> None:
    blocks = parse_line_blocks(["| a | b |", "| c | d |"], TXT)

    table = blocks[0].content
    assert table.header_row is False
    assert table.headers == []
    assert table.rows == [["a", "b"], ["c", "d"]]


def test_single_pipe_line_is_not_a_table() -> None:
    blocks = parse_line_blocks(["| lonely | row |"], MD)

    assert blocks[0].type == "paragraph"


def test_table_alignment_from_separator() -> None:
    lines = ["| L | C | R |", "|:--|:-:|--:|", "| 1 | 2 | 3 |"]
    table = parse_line_blocks(lines, MD)[0].content

    assert table.alignment == ["left", "center", "right"]


def test_split_table_row_handles_escaped_pipes() -> None:
    assert split_table_row(r"| a \| b | c |") == ["a | b", "c"]


# ---------------------------------------------------------------------------
# Quotes and callouts
# ---------------------------------------------------------------------------

def test_labeled_blockquote_becomes_callout() -> None:
    blocks = parse_line_blocks(["> **Warning:** Be careful"], MD)

    assert blocks[0].type == "callout"
    assert blocks[0].content == Callout(type="warning", content="Be careful", title="Warning")


def test_callout_label_mapping() -> None:
    assert callout_kind("Tip") == "info"
    assert callout_kind("Important") == "info"
    assert callout_kind("Caution") == "warning"
    assert callout_kind("Alert") == "error"
    assert callout_kind("Check") == "success"
    assert callout_kind("Note") == "note"


def test_github_alert_blockquote_becomes_callout() -> None:
    blocks = parse_line_blocks(["> [!TIP]", "> Use the shortcut."], MD)

    assert blocks[0].type == "callout"
    assert blocks[0].content.type == "info"
    assert blocks[0].content.title == "Tip"
    assert blocks[0].content.content == "Use the shortcut."


def test_quote_with_citation() -> None:
    blocks = parse_line_blocks(["> Stay hungry -- Steve Jobs"], MD)

    assert blocks[0].content == Quote(content="Stay hungry", citation="Steve Jobs")


def test_multiline_quote_without_label() -> None:
    blocks = parse_line_blocks(["> first line", "> second line"], MD)

    assert blocks[0].type == "quote"
    assert blocks[0].content.content == "first line second line"
    assert blocks[0].content.citation is None


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------

def test_plain_text_bullet_list() -> None:
    blocks = parse_line_blocks(["- a", "- b", "- c"], TXT)

    assert len(blocks) == 1
    content = blocks[0].content
    assert isinstance(content, ListContent)
    assert content.type == "unordered"
    assert [item.content for item in content.items] == ["a", "b", "c"]


def test_nested_list_is_a_tree() -> None:
    blocks = parse_line_blocks(["- a", "  - b", "  - c", "- d"], MD)

    items = blocks[0].content.items
    assert [item.content for item in items] == ["a", "d"]
    assert [child.content for child in items[0].children.items] == ["b", "c"]
    assert items[1].children is None


def test_nested_marker_change_keeps_earlier_children() -> None:
    blocks = parse_line_blocks(["- a", "  - b", "  1. c", "- d"], MD)

    assert len(blocks) == 1
    items = blocks[0].content.items
    assert [item.content for item in items] == ["a", "d"]
    assert [child.content for child in items[0].children.items] == ["b", "c"]


def test_list_stops_at_different_marker_type() -> None:
    blocks = parse_line_blocks(["- a", "- b", "1. one"], MD)

    assert [b.content.type for b in blocks] == ["unordered", "ordered"]


def test_task_list_items() -> None:
    blocks = parse_line_blocks(["- [x] done", "- [ ] todo"], MD)

    content = blocks[0].content
    assert content.type == "task"
    assert [(item.content, item.checked) for item in content.items] == [("done", True), ("todo", False)]


def test_loose_list_is_not_tight() -> None:
    blocks = parse_line_blocks(["- a", "", "- b"], MD)

    assert len(blocks) == 1
    assert blocks[0].content.tight is False


# ---------------------------------------------------------------------------
# Code, dividers, images, paragraphs
# ---------------------------------------------------------------------------

def test_fenced_code_captures_language() -> None:
    blocks = parse_line_blocks(["```Python", "print(1)", "", "x = 2", "```", "after"], MD)

    assert blocks[0].content == Code(content="print(1)\n\nx = 2", language="python", inline=False)
    assert blocks[1].content == "after"


def test_unterminated_fence_runs_to_end() -> None:
    blocks = parse_line_blocks(["```", "a", "b"], MD)

    assert len(blocks) == 1
    assert blocks[0].content.content == "a\nb"


def test_divider() -> None:
    blocks = parse_line_blocks(["before", "", "***", "", "after"], MD)

    assert [b.type for b in blocks] == ["paragraph", "divider", "paragraph"]


def test_image_line_becomes_figure() -> None:
    blocks = parse_line_blocks(['![Logo](img/logo.png "The logo")'], MD)

    figure = blocks[0].content
    assert isinstance(figure, Figure)
    assert figure.caption == "The logo"
    assert figure.alt == "Logo"
    assert figure.image.filename == "logo.png"
    assert figure.image.mime_type == "image/png"
    assert figure.image.url == "img/logo.png"


def test_images_ignored_when_extraction_disabled() -> None:
    blocks = parse_line_blocks(["![Logo](logo.png)"], ParseContext(markdown=True, extract_images=False))

    assert blocks[0].type == "paragraph"


def test_paragraph_runs_until_blank_or_marker() -> None:
    lines = ["first line", "second line", "# Heading", "third"]
    blocks = parse_line_blocks(lines, MD)

    assert [b.type for b in blocks] == ["paragraph", "heading", "paragraph"]
    assert blocks[0].content == "first line second line"


def test_plain_text_paragraph_keeps_line_breaks() -> None:
    blocks = parse_line_blocks(["first line", "second line"], TXT)

    assert blocks[0].content == "first line\nsecond line"


def test_inline_marks_collected() -> None:
    blocks = parse_line_blocks(["Some **bold**, `code` and a [link](https://example.com)."], MD)

    block = blocks[0]
    assert block.content == "Some bold, code and a link."
    types = [m.type for m in block.marks]
    assert "bold" in types and "code" in types and "link" in types
    link = next(m for m in block.marks if m.type == "link")
    assert link.attrs["href"] == "https://example.com"


def test_preserve_formatting_keeps_markdown_syntax() -> None:
    blocks = parse_line_blocks(["Some **bold** text"], ParseContext(markdown=True, preserve_formatting=True))

    assert blocks[0].content == "Some **bold** text"
    assert [m.type for m in blocks[0].marks] == ["bold"]


def test_blank_lines_are_never_blocks() -> None:
    assert parse_line_blocks(["", "   ", ""], TXT) == []
