"""Markdown parser with heuristic extraction into the document IR."""

from __future__ import annotations

import re

from docir.config import IngestOptions

from .base import Footnote, IRBlock, IRDocument, create_ir_block, new_id
from .blocks import IMAGE_RE, ParseContext, figure_block, parse_line_blocks
from .common import build_document, document_title


class MarkdownParser:
    """Parse Markdown text into the IR."""

    def parse(self, text: str, *, name: str = "", options: IngestOptions | None = None) -> IRDocument:
        options = options or IngestOptions()
        frontmatter, body = _split_frontmatter(text.replace("\r\n", "\n"))
        meta = _parse_frontmatter(frontmatter)

        footnote_defs = _extract_footnote_definitions(body)
        body = _remove_footnote_definitions(body)
        label_to_number = _number_footnotes(body, [label for label, _ in footnote_defs])
        body = _rewrite_footnote_refs(body, label_to_number)

        ctx = ParseContext(
            markdown=True,
            preserve_formatting=options.preserve_formatting,
            generate_anchors=options.generate_anchors,
            extract_images=options.extract_images,
            extract_tables=options.extract_tables,
        )
        blocks = parse_line_blocks(body.split("\n"), ctx)
        if options.extract_images:
            blocks = _split_inline_images(blocks)

        footnotes = _build_footnotes(footnote_defs, label_to_number, blocks)
        doc = build_document(document_title(name, meta.get("title")), blocks, options, footnotes=footnotes)

        doc.metadata.author = ", ".join(meta.get("authors", [])) or None
        doc.metadata.tags = meta.get("tags", [])
        doc.metadata.description = meta.get("description")
        doc.metadata.language = meta.get("language")
        if meta.get("date"):
            doc.metadata.custom["date"] = meta["date"]
        return doc


# ---------------------------------------------------------------------------
# YAML frontmatter
# ---------------------------------------------------------------------------

def _split_frontmatter(text: str) -> tuple[str, str]:
    """Split leading YAML frontmatter from body text."""
    if not text.startswith("---\n"):
        return "", text
    end = text.find("\n---", 3)
    if end == -1:
        return "", text
    line_end = text.find("\n", end + 1)
    body = text[line_end + 1:] if line_end != -1 else ""
    return text[4:end].strip(), body


def _parse_frontmatter(raw: str) -> dict:
    """Minimal YAML-like frontmatter parser (no pyyaml dependency)."""
    if not raw:
        return {}

    result: dict = {}
    for line in raw.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        m = re.match(r"^([a-zA-Z_]\w*)\s*:\s*(.*)", line)
        if not m:
            continue

        key = m.group(1).lower()
        value = _unquote(m.group(2).strip())

        if key in ("title", "description", "language", "date"):
            result[key] = value or None
        elif key in ("author", "authors"):
            result["authors"] = _parse_list_value(value, split_and=True)
        elif key in ("tags", "keywords"):
            result["tags"] = _parse_list_value(value)

    return result


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] in ('"', "'") and value[-1] == value[0]:
        return value[1:-1]
    return value


def _parse_list_value(value: str, *, split_and: bool = False) -> list[str]:
    """Parse a comma-separated string or inline YAML list."""
    if value.startswith("[") and value.endswith("]"):
        value = value[1:-1]
    pattern = r",\s*|\s+and\s+" if split_and else r",\s*"
    parts = re.split(pattern, value)
    return [p.strip().strip("\"'") for p in parts if p.strip()]


# ---------------------------------------------------------------------------
# Footnotes
# ---------------------------------------------------------------------------

_FOOTNOTE_DEF_RE = re.compile(r"^\[\^([^\]]+)\]:\s*(.+)$", re.MULTILINE)
_FOOTNOTE_REF_RE = re.compile(r"\[\^([^\]]+)\]")


def _extract_footnote_definitions(text: str) -> list[tuple[str, str]]:
    """Extract ``[^label]: content`` definitions."""
    return [(m.group(1), m.group(2).strip()) for m in _FOOTNOTE_DEF_RE.finditer(text)]


def _remove_footnote_definitions(text: str) -> str:
    return _FOOTNOTE_DEF_RE.sub("", text)


def _number_footnotes(body: str, labels: list[str]) -> dict[str, int]:
    """Number defined footnotes by first reference, then by definition order."""
    defined = set(labels)
    numbers: dict[str, int] = {}
    for m in _FOOTNOTE_REF_RE.finditer(body):
        label = m.group(1)
        if label in defined and label not in numbers:
            numbers[label] = len(numbers) + 1
    for label in labels:
        if label not in numbers:
            numbers[label] = len(numbers) + 1
    return numbers


def _rewrite_footnote_refs(text: str, label_to_number: dict[str, int]) -> str:
    """Replace ``[^label]`` references with ``[fn:N]`` markers."""
    def _replace(m: re.Match[str]) -> str:
        number = label_to_number.get(m.group(1))
        if number is not None:
            return f"[fn:{number}]"
        return m.group(0)

    return _FOOTNOTE_REF_RE.sub(_replace, text)


def _build_footnotes(
    definitions: list[tuple[str, str]], label_to_number: dict[str, int], blocks: list[IRBlock]
) -> list[Footnote]:
    backlinks: dict[int, list[str]] = {}
    for block in blocks:
        for mark in block.marks:
            if mark.type == "footnote":
                links = backlinks.setdefault(mark.attrs["number"], [])
                if block.id not in links:
                    links.append(block.id)

    notes: dict[int, Footnote] = {}
    for label, content in definitions:
        number = label_to_number[label]
        if number in notes:
            continue
        notes[number] = Footnote(
            id=new_id("fn"),
            number=number,
            content=content,
            backlinks=backlinks.get(number, []),
        )
    return [notes[number] for number in sorted(notes)]


# ---------------------------------------------------------------------------
# Inline images
# ---------------------------------------------------------------------------

def _split_inline_images(blocks: list[IRBlock]) -> list[IRBlock]:
    """Pull ``![alt](src)`` out of paragraphs into figure blocks that follow them."""
    out: list[IRBlock] = []
    for block in blocks:
        if block.type != "paragraph" or not isinstance(block.content, str) or not IMAGE_RE.search(block.content):
            out.append(block)
            continue
        figures = [
            figure_block(m.group(2), alt=m.group(1), caption=m.group(3)) for m in IMAGE_RE.finditer(block.content)
        ]
        remaining = re.sub(r"[ \t]{2,}", " ", IMAGE_RE.sub("", block.content)).strip()
        if remaining:
            out.append(create_ir_block("paragraph", remaining, marks=block.marks, attrs=block.attrs))
        out.extend(figures)
    return out
