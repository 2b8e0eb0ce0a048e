"""Line-oriented block parsers shared by the plain-text and Markdown ingesters.

Every parser has the shape ``(lines, index, ctx) -> ParseResult | None``;
``None`` means the pattern does not start at ``index``. ``parse_line_blocks``
tries them in precedence order and falls back to a paragraph.
"""

from __future__ import annotations

import mimetypes
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Callable
from urllib.parse import urlparse

from .base import (
    AssetRef,
    Callout,
    Code,
    Divider,
    InlineMark,
    IRBlock,
    ListContent,
    ListItem,
    Quote,
    create_ir_block,
    create_ir_figure,
    create_ir_heading,
    create_ir_table,
    new_id,
)


@dataclass(slots=True)
class ParseContext:
    markdown: bool = False
    preserve_formatting: bool = False
    generate_anchors: bool = False
    extract_images: bool = True
    extract_tables: bool = True


@dataclass(slots=True)
class ParseResult:
    block: IRBlock
    next_index: int


LineParser = Callable[[list[str], int, ParseContext], "ParseResult | None"]


# ---------------------------------------------------------------------------
# Shared heuristics
# ---------------------------------------------------------------------------

CALLOUT_LABELS: dict[str, str] = {
    "note": "note",
    "tip": "info",
    "important": "info",
    "info": "info",
    "warning": "warning",
    "caution": "warning",
    "danger": "note",
    "error": "error",
    "alert": "error",
    "success": "success",
    "check": "success",
}


def callout_kind(label: str) -> str:
    return CALLOUT_LABELS.get(label.strip().lower(), "note")


def is_callout_label(label: str) -> bool:
    return label.strip().lower() in CALLOUT_LABELS


_CHAPTER_RE = re.compile(r"^(?:Chapter|CHAPTER)\s+\d+")
_PART_RE = re.compile(r"^(?:Part|PART)\s+\d+")
_SECTION_RE = re.compile(r"^(?:Section|SECTION)\s+\d+")
_NUMBERED_RE = re.compile(r"^\d+\.\s")


def detect_structural_heading(line: str) -> int | None:
    """Heading level for an unmarked plain-text line, or None."""
    text = line.strip()
    if not text or _starts_marked_block(text) or is_table_line(text):
        return None
    if _CHAPTER_RE.match(text) or _PART_RE.match(text):
        return 1
    if _SECTION_RE.match(text) or _NUMBERED_RE.match(text):
        return 2
    if is_all_caps(text):
        return 2
    return None


def is_all_caps(text: str) -> bool:
    letters = [ch for ch in text if ch.isalpha()]
    return len(text) < 60 and len(letters) >= 2 and text == text.upper()


# ---------------------------------------------------------------------------
# Inline formatting
# ---------------------------------------------------------------------------

_INLINE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("bold", re.compile(r"\*\*(?=\S)(.+?)\*\*|__(?=\S)(.+?)__")),
    ("italic", re.compile(r"(?<![*\w])\*(?=[^\s*])(.+?)\*(?![*\w])|(?<![_\w])_(?=[^\s_])(.+?)_(?![_\w])")),
    ("strikethrough", re.compile(r"~~(.+?)~~")),
    ("code", re.compile(r"`([^`]+)`")),
)
_LINK_RE = re.compile(r"(?<!!)\[([^\]]+)\]\(([^)\s]+)(?:\s+\"[^\"]*\")?\)")
FOOTNOTE_MARKER_RE = re.compile(r"\[fn:(\d+)\]")


def inline_marks(text: str) -> list[InlineMark]:
    """Block-level marks for the Markdown inline syntax present in *text*."""
    marks: list[InlineMark] = []
    for mark_type, pattern in _INLINE_PATTERNS:
        if pattern.search(text):
            marks.append(InlineMark(type=mark_type))
    for m in _LINK_RE.finditer(text):
        marks.append(InlineMark(type="link", attrs={"href": m.group(2), "text": m.group(1)}))
    for m in FOOTNOTE_MARKER_RE.finditer(text):
        marks.append(InlineMark(type="footnote", attrs={"number": int(m.group(1))}))
    return marks


def clean_inline_md(text: str) -> str:
    """Strip common inline Markdown formatting to plain text."""
    text = re.sub(r"\*\*\*(.+?)\*\*\*", r"\1", text)
    text = re.sub(r"\*\*(.+?)\*\*", r"\1", text)
    text = re.sub(r"(?<![*\w])\*(?=[^\s*])(.+?)\*(?![*\w])", r"\1", text)
    text = re.sub(r"___(.+?)___", r"\1", text)
    text = re.sub(r"__(.+?)__", r"\1", text)
    text = re.sub(r"(?<![_\w])_(?=[^\s_])(.+?)_(?![_\w])", r"\1", text)
    text = re.sub(r"`([^`]+)`", r"\1", text)
    text = _LINK_RE.sub(r"\1", text)
    text = re.sub(r"~~(.+?)~~", r"\1", text)
    text = re.sub(r"[ \t]+", " ", text)
    return text.strip()


def _inline(text: str, ctx: ParseContext) -> tuple[str, list[InlineMark]]:
    if not ctx.markdown:
        return text.strip(), []
    marks = inline_marks(text)
    if ctx.preserve_formatting:
        return text.strip(), marks
    return clean_inline_md(text), marks


# ---------------------------------------------------------------------------
# Line classification
# ---------------------------------------------------------------------------

_ATX_RE = re.compile(r"^(#{1,6})\s+(.*?)(?:\s+#+)?(?:\s*\{[^}]*\})?\s*$")
_HR_RE = re.compile(r"^([-*_])(?:\s*\1){2,}\s*$")
_FENCE_RE = re.compile(r"^(`{3,}|~{3,})\s*([^\s`]*)")
_SEPARATOR_RE = re.compile(r"^\|?\s*:?-+:?\s*(?:\|\s*:?-+:?\s*)*\|?$")
_BULLET_RE = re.compile(r"^([ \t]*)([-*+])\s+(.*)$")
_ORDERED_RE = re.compile(r"^([ \t]*)(\d+)\.\s+(.*)$")
_TASK_RE = re.compile(r"^\[([ xX])\]\s+(.*)$")
IMAGE_RE = re.compile(r"!\[([^\]]*)\]\(\s*([^)\s]+)(?:\s+\"([^\"]*)\")?\s*\)")
_QUOTE_CITATION_RE = re.compile(r"^(.*\S)\s+(?:--|—)\s+(\S.*)$", re.DOTALL)
_LABELED_RE = re.compile(r"^\*\*([A-Za-z]+)(?::\*\*|\*\*\s*:)\s*(.*)$", re.DOTALL)
_ALERT_RE = re.compile(r"^\[!([A-Za-z]+)\]\s*(.*)$", re.DOTALL)


def is_table_line(line: str) -> bool:
    return line.strip().count("|") >= 2


def _list_match(line: str) -> tuple[str, int, str] | None:
    """Return (kind, indent, text) for a list item line."""
    if _HR_RE.match(line.strip()):
        return None
    m = _BULLET_RE.match(line)
    if m:
        return "unordered", len(m.group(1).expandtabs(4)), m.group(3)
    m = _ORDERED_RE.match(line)
    if m:
        return "ordered", len(m.group(1).expandtabs(4)), m.group(3)
    return None


def _starts_marked_block(text: str) -> bool:
    return bool(
        _ATX_RE.match(text)
        or _HR_RE.match(text)
        or _FENCE_RE.match(text)
        or text.startswith(">")
        or _BULLET_RE.match(text)
        or text.startswith("|")
    )


def _interrupts_paragraph(lines: list[str], index: int, ctx: ParseContext) -> bool:
    line = lines[index]
    text = line.strip()
    if not text:
        return True
    if _ATX_RE.match(text) or _HR_RE.match(text) or _FENCE_RE.match(text) or text.startswith(">"):
        return True
    if _list_match(line):
        return True
    if ctx.extract_tables and is_table_line(text) and index + 1 < len(lines) and is_table_line(lines[index + 1]):
        return True
    if ctx.extract_images and IMAGE_RE.fullmatch(text):
        return True
    return False


def _next_non_blank(lines: list[str], index: int) -> str | None:
    for line in lines[index:]:
        if line.strip():
            return line
    return None


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------

def parse_heading(lines: list[str], index: int, ctx: ParseContext) -> ParseResult | None:
    text = lines[index].strip()
    m = _ATX_RE.match(text)
    if m:
        heading_text, marks = _inline(m.group(2), ctx)
        heading = create_ir_heading(len(m.group(1)), heading_text, anchor=ctx.generate_anchors)
        return ParseResult(create_ir_block("heading", heading, marks=marks), index + 1)

    if ctx.markdown:
        return None

    level = detect_structural_heading(text)
    if level is None:
        return None
    if _NUMBERED_RE.match(text):
        following = _next_non_blank(lines, index + 1)
        if following is not None and _ORDERED_RE.match(following):
            return None
    heading = create_ir_heading(level, text, anchor=ctx.generate_anchors)
    return ParseResult(create_ir_block("heading", heading), index + 1)


def parse_divider(lines: list[str], index: int, ctx: ParseContext) -> ParseResult | None:
    if not _HR_RE.match(lines[index].strip()):
        return None
    return ParseResult(create_ir_block("divider", Divider()), index + 1)


def parse_fenced_code(lines: list[str], index: int, ctx: ParseContext) -> ParseResult | None:
    m = _FENCE_RE.match(lines[index].strip())
    if not m:
        return None
    marker = m.group(1)
    language = m.group(2).strip().lower() or None
    body: list[str] = []
    i = index + 1
    while i < len(lines):
        stripped = lines[i].strip()
        if stripped.startswith(marker[0] * len(marker)) and not stripped.strip(marker[0]):
            i += 1
            break
        body.append(lines[i])
        i += 1
    code = Code(content="\n".join(body).rstrip(), language=language, inline=False)
    return ParseResult(create_ir_block("code", code), i)


def parse_table(lines: list[str], index: int, ctx: ParseContext) -> ParseResult | None:
    if not ctx.extract_tables:
        return None
    run: list[str] = []
    i = index
    while i < len(lines) and is_table_line(lines[i]):
        run.append(lines[i].strip())
        i += 1
    if len(run) < 2:
        return None

    if _SEPARATOR_RE.match(run[1]):
        headers = [_inline(cell, ctx)[0] for cell in split_table_row(run[0])]
        rows = [[_inline(cell, ctx)[0] for cell in split_table_row(line)] for line in run[2:]]
        table = create_ir_table(headers, rows)
        table.alignment = _alignment(run[1], len(headers))
    else:
        rows = [[_inline(cell, ctx)[0] for cell in split_table_row(line)] for line in run]
        table = create_ir_table([], rows, header_row=False)
    return ParseResult(create_ir_block("table", table), i)


def split_table_row(line: str) -> list[str]:
    row = line.strip()
    if row.startswith("|"):
        row = row[1:]
    if row.endswith("|") and not row.endswith("\\|"):
        row = row[:-1]
    cells = re.split(r"(?<!\\)\|", row)
    return [cell.strip().replace("\\|", "|") for cell in cells]


def _alignment(separator: str, width: int) -> list[str]:
    out: list[str] = []
    for cell in split_table_row(separator):
        if cell.startswith(":") and cell.endswith(":"):
            out.append("center")
        elif cell.endswith(":"):
            out.append("right")
        else:
            out.append("left")
    return (out + ["left"] * width)[:width]


def parse_quote(lines: list[str], index: int, ctx: ParseContext) -> ParseResult | None:
    if not lines[index].strip().startswith(">"):
        return None
    parts: list[str] = []
    i = index
    while i < len(lines) and lines[i].strip().startswith(">"):
        parts.append(re.sub(r"^>\s?", "", lines[i].strip()))
        i += 1
    flattened = " ".join(part.strip() for part in parts if part.strip())
    return ParseResult(quote_or_callout(flattened, ctx), i)


def quote_or_callout(flattened: str, ctx: ParseContext | None = None) -> IRBlock:
    """Classify flattened blockquote text as a labeled callout or a quote."""
    ctx = ctx or ParseContext(markdown=True)
    m = _LABELED_RE.match(flattened) or _ALERT_RE.match(flattened)
    if m and is_callout_label(m.group(1)):
        label = m.group(1)
        title = label if m.re is _LABELED_RE else label.capitalize()
        body, marks = _inline(m.group(2), ctx)
        callout = Callout(type=callout_kind(label), content=body, title=title)
        return create_ir_block("callout", callout, marks=marks)

    text, marks = _inline(flattened, ctx)
    m = _QUOTE_CITATION_RE.match(text)
    if m:
        return create_ir_block("quote", Quote(content=m.group(1), citation=m.group(2).strip()), marks=marks)
    return create_ir_block("quote", Quote(content=text), marks=marks)


def parse_list(lines: list[str], index: int, ctx: ParseContext) -> ParseResult | None:
    first = _list_match(lines[index])
    if first is None:
        return None
    content, next_index, marks = _collect_list(lines, index, ctx)
    if not content.items:
        return None
    return ParseResult(create_ir_block("list", content, marks=marks), next_index)


def _collect_list(lines: list[str], index: int, ctx: ParseContext) -> tuple[ListContent, int, list[InlineMark]]:
    kind, base, _ = _list_match(lines[index])  # type: ignore[misc]
    content = ListContent(type=kind)
    marks: list[InlineMark] = []
    saw_blank = False
    i = index
    while i < len(lines):
        line = lines[i]
        if not line.strip():
            saw_blank = True
            i += 1
            continue
        match = _list_match(line)
        expanded = line.expandtabs(4)
        indent = len(expanded) - len(expanded.lstrip())
        if match is not None:
            item_kind, item_indent, text = match
            if item_indent < base:
                break
            if item_indent > base and content.items:
                child, i, child_marks = _collect_list(lines, i, ctx)
                marks.extend(child_marks)
                parent = content.items[-1]
                if parent.children is None:
                    parent.children = child
                else:
                    # A marker change under one parent continues the same child list.
                    parent.children.items.extend(child.items)
                continue
            if item_kind != kind:
                break
            content.items.append(_list_item(text, ctx, marks))
            if saw_blank:
                content.tight = False
            saw_blank = False
            i += 1
            continue
        if indent > base and content.items and not saw_blank:
            extra, extra_marks = _inline(line, ctx)
            marks.extend(extra_marks)
            content.items[-1].content = f"{content.items[-1].content} {extra}".strip()
            i += 1
            continue
        break

    if any(item.checked is not None for item in content.items) and content.type == "unordered":
        content.type = "task"
    return content, i, marks


def _list_item(text: str, ctx: ParseContext, marks: list[InlineMark]) -> ListItem:
    checked: bool | None = None
    if ctx.markdown:
        m = _TASK_RE.match(text)
        if m:
            checked = m.group(1).lower() == "x"
            text = m.group(2)
    cleaned, item_marks = _inline(text, ctx)
    marks.extend(item_marks)
    return ListItem(content=cleaned, checked=checked)


def parse_image(lines: list[str], index: int, ctx: ParseContext) -> ParseResult | None:
    if not ctx.extract_images:
        return None
    m = IMAGE_RE.fullmatch(lines[index].strip())
    if not m:
        return None
    return ParseResult(figure_block(m.group(2), alt=m.group(1), caption=m.group(3)), index + 1)


def figure_block(src: str, *, alt: str | None = None, caption: str | None = None) -> IRBlock:
    alt = alt or None
    asset = make_asset(src, alt=alt or "", title=caption)
    figure = create_ir_figure(asset, caption=caption or alt, alt=alt)
    return create_ir_block("figure", figure)


def make_asset(src: str, *, alt: str = "", title: str | None = None) -> AssetRef:
    path = urlparse(src).path if "://" in src else src
    filename = PurePosixPath(path).name or src
    mime, _ = mimetypes.guess_type(filename)
    return AssetRef(
        id=new_id("asset"),
        filename=filename,
        mime_type=mime or "application/octet-stream",
        url=src,
        alt=alt,
        title=title,
    )


def parse_paragraph(lines: list[str], index: int, ctx: ParseContext) -> ParseResult:
    collected = [lines[index].strip()]
    i = index + 1
    while i < len(lines) and not _interrupts_paragraph(lines, i, ctx):
        collected.append(lines[i].strip())
        i += 1
    joiner = " " if ctx.markdown else "\n"
    text, marks = _inline(joiner.join(collected), ctx)
    return ParseResult(create_ir_block("paragraph", text, marks=marks), i)


LINE_PARSERS: tuple[LineParser, ...] = (
    parse_heading,
    parse_divider,
    parse_fenced_code,
    parse_table,
    parse_quote,
    parse_list,
    parse_image,
)


def parse_line_blocks(lines: list[str], ctx: ParseContext) -> list[IRBlock]:
    """Drive the block parsers over *lines*; blank lines only separate blocks."""
    blocks: list[IRBlock] = []
    i = 0
    while i < len(lines):
        if not lines[i].strip():
            i += 1
            continue
        for parser in LINE_PARSERS:
            result = parser(lines, i, ctx)
            if result is not None:
                break
        else:
            result = parse_paragraph(lines, i, ctx)
        if _keep(result.block):
            blocks.append(result.block)
        i = max(result.next_index, i + 1)
    return blocks


def _keep(block: IRBlock) -> bool:
    if block.type == "paragraph":
        return bool(block.content.strip())
    return True
