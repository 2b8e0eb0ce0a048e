"""Map the IR into the editor's internal document model (sections, flows, blocks)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from docir.parser.base import (
    FIGURE_SIZES,
    Callout,
    Code,
    Figure,
    FootnoteRef,
    Heading,
    IRBlock,
    IRDocument,
    IRSection,
    ListContent,
    Quote,
    Table,
    new_id,
    utcnow,
)

logger = logging.getLogger(__name__)

CALLOUT_ICONS = {
    "info": "ℹ️",
    "tip": "ℹ️",
    "warning": "⚠️",
    "danger": "⚠️",
    "error": "❌",
    "success": "✅",
    "note": "📝",
}
DEFAULT_FIGURE_SIZE = "column-width"


@dataclass(slots=True)
class InternalBlock:
    id: str
    type: str
    order: int
    content: Any
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "order": self.order,
            "content": self.content,
            "metadata": self.metadata,
        }


@dataclass(slots=True)
class Flow:
    id: str
    name: str = "Main Flow"
    type: str = "linear"
    order: int = 1
    blocks: list[InternalBlock] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "order": self.order,
            "blocks": [block.to_dict() for block in self.blocks],
        }


@dataclass(slots=True)
class InternalFootnote:
    id: str
    number: int
    content: str
    source_block_id: str = "unknown"

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "number": self.number, "content": self.content, "sourceBlockId": self.source_block_id}


@dataclass(slots=True)
class InternalSection:
    id: str
    name: str
    order: int
    page_master: str | None = None
    footnotes: list[InternalFootnote] = field(default_factory=list)
    flows: list[Flow] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "order": self.order,
            "pageMaster": self.page_master,
            "footnotes": [note.to_dict() for note in self.footnotes],
            "flows": [flow.to_dict() for flow in self.flows],
        }


@dataclass(slots=True)
class InternalDocument:
    id: str
    title: str
    description: str | None = None
    sections: list[InternalSection] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "sections": [section.to_dict() for section in self.sections],
            "metadata": self.metadata,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def iter_blocks(self):
        for section in self.sections:
            for flow in section.flows:
                yield from flow.blocks


class IRMapper:
    """Convert an IR document into an :class:`InternalDocument`.

    Ids are generated fresh from counters that reset on every
    :meth:`map_document` call, so one mapper never leaks state between
    documents and IR ids are never reused.
    """

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._block_counter = 0
        self._section_counter = 0
        self._flow_counter = 0
        self._footnote_counter = 0
        self._figure_counter = 0
        self._table_counter = 0

    def map_document(self, doc: IRDocument) -> InternalDocument:
        self._reset()
        now = utcnow()
        created = doc.metadata.created or now
        modified = doc.metadata.modified or created
        return InternalDocument(
            id=new_id("doc"),
            title=doc.title,
            description=doc.metadata.description,
            sections=[self._map_section(section, index) for index, section in enumerate(doc.sections, start=1)],
            metadata={"author": doc.metadata.author, "version": 1, "tags": list(doc.metadata.tags)},
            created_at=created.isoformat(),
            updated_at=modified.isoformat(),
        )

    def _map_section(self, section: IRSection, index: int) -> InternalSection:
        self._section_counter += 1
        self._flow_counter += 1
        id_map: dict[str, str] = {}
        blocks: list[InternalBlock] = []
        for order, block in enumerate(section.blocks, start=1):
            mapped = self._map_block(block, order)
            id_map[block.id] = mapped.id
            blocks.append(mapped)

        footnotes = []
        for note in section.notes:
            self._footnote_counter += 1
            source = id_map.get(note.backlinks[0], "unknown") if note.backlinks else "unknown"
            footnotes.append(
                InternalFootnote(
                    id=f"footnote-{self._footnote_counter}",
                    number=note.number,
                    content=note.content,
                    source_block_id=source,
                )
            )

        return InternalSection(
            id=f"section-{self._section_counter}",
            name=section.title or f"Section {index}",
            order=section.order,
            footnotes=footnotes,
            flows=[Flow(id=f"flow-{self._flow_counter}", blocks=blocks)],
        )

    def _map_block(self, block: IRBlock, order: int) -> InternalBlock:
        self._block_counter += 1
        metadata = dict(block.attrs)
        metadata["marks"] = [{"type": mark.type, **({"attrs": mark.attrs} if mark.attrs else {})} for mark in block.marks]
        out = InternalBlock(id=f"block-{self._block_counter}", type=block.type, order=order, content=None, metadata=metadata)

        if not block.has_expected_content():
            logger.warning("mapper: block %s has type %r but %s content; passed through", block.id, block.type, type(block.content).__name__)
            out.content = block.content
            return out

        content = block.content
        if isinstance(content, Heading):
            out.content = content.text
            metadata["level"] = content.level
            if content.anchor:
                metadata["anchor"] = content.anchor
        elif isinstance(content, ListContent):
            out.type = "ordered-list" if content.type == "ordered" else "unordered-list"
            out.content = flatten_list(content)
            if content.type == "task":
                metadata["task"] = True
        elif isinstance(content, Table):
            self._table_counter += 1
            out.content = {
                "headers": list(content.headers),
                "rows": [list(row) for row in content.rows],
                "caption": content.caption or "",
                "number": self._table_counter,
                "hasHeaderRow": content.header_row,
            }
        elif isinstance(content, Figure):
            self._figure_counter += 1
            out.content = {
                "imageUrl": content.image.url or "",
                "altText": content.alt or content.image.alt or "",
                "caption": content.caption or "",
                "size": content.size if content.size in FIGURE_SIZES else DEFAULT_FIGURE_SIZE,
                "aspectLock": True,
                "number": self._figure_counter,
            }
        elif isinstance(content, Callout):
            out.content = {
                "type": content.type,
                "title": content.title or "",
                "content": content.content,
                "icon": CALLOUT_ICONS.get(content.type, CALLOUT_ICONS["info"]),
            }
        elif isinstance(content, Quote):
            text = content.content
            if content.citation:
                text += f" — {content.citation}"
            if content.author:
                text += f" ({content.author})"
            out.content = text
        elif isinstance(content, Code):
            # The internal model has no code block.
            out.type = "paragraph"
            out.content = code_to_text(content)
            if content.language:
                metadata["language"] = content.language
        elif isinstance(content, FootnoteRef):
            out.type = "paragraph"
            out.content = f"[{content.number}] {content.content}".strip()
        elif block.type == "divider":
            out.content = "---"
        else:
            out.content = content
        return out


def flatten_list(content: ListContent, depth: int = 0) -> list[str]:
    """Flatten a list tree into strings indented two spaces per level."""
    items: list[str] = []
    for item in content.items:
        prefix = ""
        if item.checked is not None:
            prefix = "[x] " if item.checked else "[ ] "
        items.append(f"{'  ' * depth}{prefix}{item.content}")
        if item.children:
            items.extend(flatten_list(item.children, depth + 1))
    return items


def code_to_text(code: Code) -> str:
    if code.inline:
        return f"`{code.content}`"
    return f"```{code.language or ''}\n{code.content}\n```"


def map_ir_to_internal_model(doc: IRDocument) -> InternalDocument:
    return IRMapper().map_document(doc)
