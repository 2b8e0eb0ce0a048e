"""Core intermediate representation (IR) for ingested documents."""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Protocol

BlockType = Literal[
    "heading",
    "paragraph",
    "list",
    "table",
    "quote",
    "callout",
    "figure",
    "code",
    "divider",
    "footnote",
]
BLOCK_TYPES: tuple[str, ...] = (
    "heading",
    "paragraph",
    "list",
    "table",
    "quote",
    "callout",
    "figure",
    "code",
    "divider",
    "footnote",
)

MarkType = Literal["bold", "italic", "underline", "strikethrough", "code", "link", "footnote"]
MARK_TYPES: tuple[str, ...] = ("bold", "italic", "underline", "strikethrough", "code", "link", "footnote")

ListType = Literal["ordered", "unordered", "task"]
LIST_TYPES: tuple[str, ...] = ("ordered", "unordered", "task")

CalloutType = Literal["note", "tip", "warning", "danger", "info", "error", "success"]
CALLOUT_TYPES: tuple[str, ...] = ("note", "tip", "warning", "danger", "info", "error", "success")

FIGURE_SIZES: tuple[str, ...] = ("small", "medium", "large", "full-width")
ALIGNMENTS: tuple[str, ...] = ("left", "center", "right")


@dataclass(slots=True)
class InlineMark:
    type: str
    attrs: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class AssetRef:
    id: str
    filename: str
    mime_type: str = "application/octet-stream"
    url: str = ""
    alt: str = ""
    title: str | None = None
    size: int | None = None


@dataclass(slots=True)
class Heading:
    level: int
    text: str
    anchor: str | None = None


@dataclass(slots=True)
class ListItem:
    content: str
    children: ListContent | None = None
    checked: bool | None = None


@dataclass(slots=True)
class ListContent:
    type: str
    items: list[ListItem] = field(default_factory=list)
    tight: bool = True


@dataclass(slots=True)
class Table:
    headers: list[str] = field(default_factory=list)
    rows: list[list[str]] = field(default_factory=list)
    caption: str | None = None
    header_row: bool = True
    alignment: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Figure:
    image: AssetRef
    caption: str | None = None
    alt: str | None = None
    size: str | None = "medium"
    alignment: str = "center"


@dataclass(slots=True)
class Callout:
    type: str
    content: str
    title: str | None = None


@dataclass(slots=True)
class Quote:
    content: str
    citation: str | None = None
    author: str | None = None


@dataclass(slots=True)
class Code:
    content: str
    language: str | None = None
    inline: bool = False


@dataclass(slots=True)
class Divider:
    style: str = "solid"


@dataclass(slots=True)
class FootnoteRef:
    number: int
    content: str = ""


# Paragraph payloads are plain strings.
BlockContent = str | Heading | ListContent | Table | Figure | Callout | Quote | Code | Divider | FootnoteRef

# Payload class expected for each block type.
CONTENT_TYPES: dict[str, type] = {
    "heading": Heading,
    "paragraph": str,
    "list": ListContent,
    "table": Table,
    "quote": Quote,
    "callout": Callout,
    "figure": Figure,
    "code": Code,
    "divider": Divider,
    "footnote": FootnoteRef,
}


@dataclass(slots=True)
class IRBlock:
    id: str
    type: str
    content: Any
    order: int = 1
    marks: list[InlineMark] = field(default_factory=list)
    attrs: dict[str, Any] = field(default_factory=dict)

    def has_expected_content(self) -> bool:
        expected = CONTENT_TYPES.get(self.type)
        return expected is not None and isinstance(self.content, expected)


@dataclass(slots=True)
class Footnote:
    id: str
    number: int
    content: str
    backlinks: list[str] = field(default_factory=list)


@dataclass(slots=True)
class IRSection:
    id: str
    order: int = 1
    title: str | None = None
    blocks: list[IRBlock] = field(default_factory=list)
    notes: list[Footnote] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class IRMetadata:
    author: str | None = None
    created: datetime | None = None
    modified: datetime | None = None
    language: str | None = None
    tags: list[str] = field(default_factory=list)
    description: str | None = None
    custom: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class IRDocument:
    title: str
    sections: list[IRSection] = field(default_factory=list)
    metadata: IRMetadata = field(default_factory=IRMetadata)
    assets: list[AssetRef] = field(default_factory=list)


class Parser(Protocol):
    def parse(self, text: str, *, name: str, options: Any) -> IRDocument:  # pragma: no cover - structural protocol
        """Parse source text into an IR document."""


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------

def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_ir_document(title: str) -> IRDocument:
    now = utcnow()
    return IRDocument(title=title, metadata=IRMetadata(created=now, modified=now))


def create_ir_section(title: str | None = None, order: int = 1) -> IRSection:
    return IRSection(id=new_id("section"), order=order, title=title)


def create_ir_block(
    type: str,
    content: Any,
    order: int = 1,
    attrs: dict[str, Any] | None = None,
    marks: list[InlineMark] | None = None,
) -> IRBlock:
    return IRBlock(
        id=new_id("block"),
        type=type,
        content=content,
        order=order,
        marks=list(marks or []),
        attrs=dict(attrs or {}),
    )


def create_ir_heading(level: int, text: str, *, anchor: bool = False) -> Heading:
    """Build a heading payload, clamping ``level`` into 1..6."""
    level = min(6, max(1, int(level)))
    return Heading(level=level, text=text, anchor=slugify(text) if anchor else None)


def create_ir_list(type: str, items: list[str]) -> ListContent:
    return ListContent(type=type, items=[ListItem(content=item) for item in items])


def create_ir_table(
    headers: list[str],
    rows: list[list[str]],
    caption: str | None = None,
    *,
    header_row: bool = True,
) -> Table:
    width = len(headers) if headers else max((len(row) for row in rows), default=0)
    return Table(
        headers=list(headers),
        rows=[list(row) for row in rows],
        caption=caption,
        header_row=header_row,
        alignment=["left"] * width,
    )


def create_ir_quote(content: str, citation: str | None = None, author: str | None = None) -> Quote:
    return Quote(content=content, citation=citation, author=author)


def create_ir_figure(image: AssetRef, caption: str | None = None, alt: str | None = None) -> Figure:
    return Figure(image=image, caption=caption, alt=alt)


def create_ir_callout(type: str, content: str, title: str | None = None) -> Callout:
    return Callout(type=type, content=content, title=title)


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
