"""Post-steps shared by every format ingester."""

from __future__ import annotations

import re
from pathlib import PurePath
from typing import Callable

from docir.config import IngestOptions

from .base import (
    Callout,
    Figure,
    Footnote,
    FootnoteRef,
    Heading,
    InlineMark,
    IRBlock,
    IRDocument,
    IRSection,
    ListContent,
    Quote,
    Table,
    create_ir_document,
    create_ir_section,
    new_id,
    slugify,
)
from .blocks import FOOTNOTE_MARKER_RE

DEFAULT_TITLE = "Imported Document"


def document_title(name: str | None, explicit: str | None = None) -> str:
    if explicit and explicit.strip():
        return explicit.strip()
    if name:
        stem = PurePath(name).stem
        if stem:
            return stem
    return DEFAULT_TITLE


def coalesce_short_paragraphs(
    blocks: list[IRBlock], threshold: int, aliases: dict[str, str] | None = None
) -> list[IRBlock]:
    """Join runs of consecutive paragraphs shorter than *threshold* with a space.

    *aliases* receives merged-away block id -> surviving block id.
    """
    out: list[IRBlock] = []
    run: list[IRBlock] = []

    def flush() -> None:
        if not run:
            return
        head = run[0]
        for block in run[1:]:
            head.content = f"{head.content} {block.content}"
            head.marks.extend(mark for mark in block.marks if mark not in head.marks)
            if aliases is not None:
                aliases[block.id] = head.id
        out.append(head)
        run.clear()

    for block in blocks:
        if _is_short_paragraph(block, threshold):
            run.append(block)
            continue
        flush()
        out.append(block)
    flush()
    return out


def _is_short_paragraph(block: IRBlock, threshold: int) -> bool:
    return block.type == "paragraph" and isinstance(block.content, str) and len(block.content) < threshold


def build_document(
    title: str,
    blocks: list[IRBlock],
    options: IngestOptions,
    *,
    footnotes: list[Footnote] | None = None,
) -> IRDocument:
    """Assemble ingested blocks into a document with dense block order."""
    aliases: dict[str, str] = {}
    if options.merge_short_paragraphs:
        blocks = coalesce_short_paragraphs(blocks, options.short_paragraph_threshold, aliases)

    doc = create_ir_document(title)
    if options.split_sections:
        doc.sections = split_on_top_headings(blocks)
    else:
        section = create_ir_section(title=title, order=1)
        section.blocks = blocks
        doc.sections = [section]

    if footnotes:
        _attach_footnotes(doc.sections, footnotes, aliases)

    if options.generate_anchors:
        dedupe_anchors(doc)
    if options.extract_assets:
        doc.assets = [block.content.image for block in iter_blocks(doc) if isinstance(block.content, Figure)]

    renumber(doc)
    doc.metadata.custom["wordCount"] = word_count(doc)
    return doc


def split_on_top_headings(blocks: list[IRBlock]) -> list[IRSection]:
    sections: list[IRSection] = []
    current = create_ir_section(order=1)
    for block in blocks:
        if block.type == "heading" and isinstance(block.content, Heading) and block.content.level == 1:
            if current.blocks:
                sections.append(current)
            title = FOOTNOTE_MARKER_RE.sub("", block.content.text).strip()
            current = create_ir_section(title=title, order=len(sections) + 1)
        current.blocks.append(block)
    if current.blocks or not sections:
        sections.append(current)
    return sections


def _attach_footnotes(sections: list[IRSection], footnotes: list[Footnote], aliases: dict[str, str]) -> None:
    """Give each section the footnotes referenced from it, numbered per section.

    ``[fn:N]`` markers and footnote marks inside a section are rewritten to
    the section-local numbers. A note referenced from several sections is
    listed in each of them; unreferenced notes go to the last section.
    """
    for note in footnotes:
        note.backlinks = list(dict.fromkeys(aliases.get(link, link) for link in note.backlinks))
    if len(sections) == 1:
        sections[0].notes.extend(footnotes)
        return

    by_number = {note.number: note for note in footnotes}
    placed: set[int] = set()
    for section in sections:
        seen: list[int] = []

        def _collect(text: str) -> str:
            seen.extend(int(m.group(1)) for m in FOOTNOTE_MARKER_RE.finditer(text))
            return text

        for block in section.blocks:
            rewrite_block_text(block, _collect)
            seen.extend(mark.attrs.get("number") for mark in block.marks if mark.type == "footnote")
            if isinstance(block.content, FootnoteRef):
                seen.append(block.content.number)
        local: dict[int, int] = {}
        for number in seen:
            if number in by_number and number not in local:
                local[number] = len(local) + 1
        if not local:
            continue

        block_ids = {block.id for block in section.blocks}
        for number, new_number in local.items():
            note = by_number[number]
            section.notes.append(
                Footnote(
                    id=note.id if number not in placed else new_id("fn"),
                    number=new_number,
                    content=note.content,
                    backlinks=[link for link in note.backlinks if link in block_ids],
                )
            )
            placed.add(number)

        def _marker(m: re.Match[str]) -> str:
            number = int(m.group(1))
            return f"[fn:{local.get(number, number)}]"

        for block in section.blocks:
            rewrite_block_text(block, lambda text: FOOTNOTE_MARKER_RE.sub(_marker, text))
            block.marks = [_renumber_mark(mark, local) for mark in block.marks]
            if isinstance(block.content, FootnoteRef) and block.content.number in local:
                block.content.number = local[block.content.number]

    last = sections[-1]
    for note in footnotes:
        if note.number not in placed:
            last.notes.append(Footnote(id=note.id, number=len(last.notes) + 1, content=note.content, backlinks=[]))


def _renumber_mark(mark: InlineMark, local: dict[int, int]) -> InlineMark:
    number = mark.attrs.get("number")
    if mark.type != "footnote" or number not in local:
        return mark
    return InlineMark(type=mark.type, attrs={**mark.attrs, "number": local[number]})


def rewrite_block_text(block: IRBlock, rewrite: Callable[[str], str]) -> None:
    """Apply *rewrite* to every text field of *block* in place."""
    content = block.content
    if isinstance(content, str):
        block.content = rewrite(content)
    elif isinstance(content, Heading):
        content.text = rewrite(content.text)
    elif isinstance(content, Quote):
        content.content = rewrite(content.content)
        if content.citation:
            content.citation = rewrite(content.citation)
    elif isinstance(content, (Callout, FootnoteRef)):
        content.content = rewrite(content.content)
    elif isinstance(content, ListContent):
        _rewrite_items(content, rewrite)
    elif isinstance(content, Table):
        content.headers = [rewrite(cell) for cell in content.headers]
        content.rows = [[rewrite(cell) for cell in row] for row in content.rows]
        if content.caption:
            content.caption = rewrite(content.caption)
    elif isinstance(content, Figure) and content.caption:
        content.caption = rewrite(content.caption)


def _rewrite_items(content: ListContent, rewrite: Callable[[str], str]) -> None:
    for item in content.items:
        item.content = rewrite(item.content)
        if item.children:
            _rewrite_items(item.children, rewrite)


def renumber(doc: IRDocument) -> IRDocument:
    """Reassign dense 1..N block order (and section order) in place."""
    for section_index, section in enumerate(doc.sections, start=1):
        section.order = section_index
        for block_index, block in enumerate(section.blocks, start=1):
            block.order = block_index
    return doc


def iter_blocks(doc: IRDocument):
    for section in doc.sections:
        yield from section.blocks


def dedupe_anchors(doc: IRDocument) -> None:
    used: set[str] = set()
    for block in iter_blocks(doc):
        if not isinstance(block.content, Heading):
            continue
        base = block.content.anchor or slugify(block.content.text) or "section"
        anchor = base
        idx = 2
        while anchor in used:
            anchor = f"{base}-{idx}"
            idx += 1
        used.add(anchor)
        block.content.anchor = anchor


def word_count(doc: IRDocument) -> int:
    total = 0
    for block in iter_blocks(doc):
        for text in _block_texts(block.content):
            total += len(re.findall(r"\S+", text))
    return total


def _block_texts(content) -> list[str]:
    if isinstance(content, str):
        return [content]
    if isinstance(content, Heading):
        return [content.text]
    if isinstance(content, Quote):
        return [content.content]
    if isinstance(content, Callout):
        return [content.title or "", content.content]
    if isinstance(content, FootnoteRef):
        return [content.content]
    if isinstance(content, ListContent):
        texts: list[str] = []
        for item in content.items:
            texts.append(item.content)
            if item.children:
                texts.extend(_block_texts(item.children))
        return texts
    if isinstance(content, Table):
        return list(content.headers) + [cell for row in content.rows for cell in row]
    return []
