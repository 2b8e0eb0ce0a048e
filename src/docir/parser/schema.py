"""JSON codec and structural validation for the IR.

The JSON form uses camelCase keys (``headerRow``, ``mimeType``) and is the
only wire format the IR has: the JSON ingester accepts it back verbatim, and
``validate_ir_document(json.loads(json.dumps(ir_document_to_dict(doc))))``
holds for every document the parsers produce.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from .base import (
    BLOCK_TYPES,
    CALLOUT_TYPES,
    LIST_TYPES,
    MARK_TYPES,
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
)

_METADATA_KEYS = ("author", "created", "modified", "language", "tags", "description")


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def ir_document_to_dict(doc: IRDocument) -> dict[str, Any]:
    return {
        "title": doc.title,
        "sections": [_section_to_dict(section) for section in doc.sections],
        "metadata": _metadata_to_dict(doc.metadata),
        "assets": [asset_to_dict(asset) for asset in doc.assets],
    }


def _metadata_to_dict(meta: IRMetadata) -> dict[str, Any]:
    out: dict[str, Any] = dict(meta.custom)
    out.update(
        _compact(
            {
                "author": meta.author,
                "created": meta.created.isoformat() if meta.created else None,
                "modified": meta.modified.isoformat() if meta.modified else None,
                "language": meta.language,
                "tags": list(meta.tags),
                "description": meta.description,
            }
        )
    )
    return out


def _section_to_dict(section: IRSection) -> dict[str, Any]:
    return _compact(
        {
            "id": section.id,
            "title": section.title,
            "order": section.order,
            "blocks": [block_to_dict(block) for block in section.blocks],
            "notes": [
                {
                    "id": note.id,
                    "number": note.number,
                    "content": note.content,
                    "backlinks": list(note.backlinks),
                }
                for note in section.notes
            ],
            "metadata": dict(section.metadata) or None,
        }
    )


def block_to_dict(block: IRBlock) -> dict[str, Any]:
    return {
        "id": block.id,
        "type": block.type,
        "order": block.order,
        "content": content_to_dict(block.content),
        "marks": [{"type": mark.type, "attrs": dict(mark.attrs)} for mark in block.marks],
        "attrs": dict(block.attrs),
    }


def content_to_dict(content: Any) -> Any:
    """Serialize a block payload; unknown payloads pass through as-is."""
    if isinstance(content, Heading):
        return _compact({"level": content.level, "text": content.text, "anchor": content.anchor})
    if isinstance(content, ListContent):
        return _list_to_dict(content)
    if isinstance(content, Table):
        return _compact(
            {
                "headers": list(content.headers),
                "rows": [list(row) for row in content.rows],
                "caption": content.caption,
                "headerRow": content.header_row,
                "alignment": list(content.alignment),
            }
        )
    if isinstance(content, Figure):
        return _compact(
            {
                "image": asset_to_dict(content.image),
                "caption": content.caption,
                "alt": content.alt,
                "size": content.size,
                "alignment": content.alignment,
            }
        )
    if isinstance(content, Callout):
        return _compact({"type": content.type, "title": content.title, "content": content.content})
    if isinstance(content, Quote):
        return _compact({"content": content.content, "citation": content.citation, "author": content.author})
    if isinstance(content, Code):
        return _compact({"language": content.language, "content": content.content, "inline": content.inline})
    if isinstance(content, Divider):
        return {"style": content.style}
    if isinstance(content, FootnoteRef):
        return {"number": content.number, "content": content.content}
    return content


def _list_to_dict(content: ListContent) -> dict[str, Any]:
    items = []
    for item in content.items:
        items.append(
            _compact(
                {
                    "content": item.content,
                    "children": _list_to_dict(item.children) if item.children else None,
                    "checked": item.checked,
                }
            )
        )
    return {"type": content.type, "items": items, "tight": content.tight}


def asset_to_dict(asset: AssetRef) -> dict[str, Any]:
    return _compact(
        {
            "id": asset.id,
            "filename": asset.filename,
            "mimeType": asset.mime_type,
            "url": asset.url,
            "alt": asset.alt,
            "title": asset.title,
            "size": asset.size,
        }
    )


def _compact(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


# ---------------------------------------------------------------------------
# Deserialization (expects validated input)
# ---------------------------------------------------------------------------

def ir_document_from_dict(data: dict[str, Any]) -> IRDocument:
    return IRDocument(
        title=data["title"],
        sections=[_section_from_dict(section) for section in data["sections"]],
        metadata=_metadata_from_dict(data.get("metadata") or {}),
        assets=[_asset_from_dict(asset) for asset in data.get("assets") or []],
    )


def _metadata_from_dict(data: dict[str, Any]) -> IRMetadata:
    return IRMetadata(
        author=data.get("author"),
        created=_parse_datetime(data.get("created")),
        modified=_parse_datetime(data.get("modified")),
        language=data.get("language"),
        tags=list(data.get("tags") or []),
        description=data.get("description"),
        custom={key: value for key, value in data.items() if key not in _METADATA_KEYS},
    )


def _parse_datetime(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _section_from_dict(data: dict[str, Any]) -> IRSection:
    return IRSection(
        id=data["id"],
        order=data["order"],
        title=data.get("title"),
        blocks=[_block_from_dict(block) for block in data["blocks"]],
        notes=[
            Footnote(
                id=note["id"],
                number=note["number"],
                content=note["content"],
                backlinks=list(note.get("backlinks") or []),
            )
            for note in data.get("notes") or []
        ],
        metadata=dict(data.get("metadata") or {}),
    )


def _block_from_dict(data: dict[str, Any]) -> IRBlock:
    return IRBlock(
        id=data["id"],
        type=data["type"],
        order=data["order"],
        content=_content_from_dict(data["type"], data.get("content")),
        marks=[InlineMark(type=mark["type"], attrs=dict(mark.get("attrs") or {})) for mark in data.get("marks") or []],
        attrs=dict(data.get("attrs") or {}),
    )


def _content_from_dict(block_type: str, data: Any) -> Any:
    if block_type == "heading":
        return Heading(level=data["level"], text=data["text"], anchor=data.get("anchor"))
    if block_type == "list":
        return _list_from_dict(data)
    if block_type == "table":
        return Table(
            headers=list(data.get("headers") or []),
            rows=[list(row) for row in data["rows"]],
            caption=data.get("caption"),
            header_row=data.get("headerRow", True),
            alignment=list(data.get("alignment") or []),
        )
    if block_type == "figure":
        return Figure(
            image=_asset_from_dict(data["image"]),
            caption=data.get("caption"),
            alt=data.get("alt"),
            size=data.get("size"),
            alignment=data.get("alignment", "center"),
        )
    if block_type == "callout":
        return Callout(type=data["type"], content=data["content"], title=data.get("title"))
    if block_type == "quote":
        return Quote(content=data["content"], citation=data.get("citation"), author=data.get("author"))
    if block_type == "code":
        return Code(content=data["content"], language=data.get("language"), inline=bool(data.get("inline", False)))
    if block_type == "divider":
        style = data.get("style", "solid") if isinstance(data, dict) else "solid"
        return Divider(style=style)
    if block_type == "footnote":
        return FootnoteRef(number=data["number"], content=data.get("content", ""))
    return data


def _list_from_dict(data: dict[str, Any]) -> ListContent:
    return ListContent(
        type=data["type"],
        items=[
            ListItem(
                content=item["content"],
                children=_list_from_dict(item["children"]) if item.get("children") else None,
                checked=item.get("checked"),
            )
            for item in data["items"]
        ],
        tight=data.get("tight", True),
    )


def _asset_from_dict(data: dict[str, Any]) -> AssetRef:
    return AssetRef(
        id=data["id"],
        filename=data["filename"],
        mime_type=data.get("mimeType", "application/octet-stream"),
        url=data.get("url", ""),
        alt=data.get("alt", ""),
        title=data.get("title"),
        size=data.get("size"),
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_ir_document(value: Any) -> bool:
    """Return True when *value* is a structurally valid IR document.

    Accepts either an :class:`IRDocument` or its JSON form. Never raises.
    """
    if isinstance(value, IRDocument):
        value = ir_document_to_dict(value)
    if not isinstance(value, dict):
        return False
    if not isinstance(value.get("title"), str):
        return False
    sections = value.get("sections")
    if not isinstance(sections, list):
        return False
    if not isinstance(value.get("metadata", {}), dict):
        return False
    assets = value.get("assets", [])
    if not isinstance(assets, list) or not all(_valid_asset(asset) for asset in assets):
        return False
    return all(_valid_section(section) for section in sections)


def _valid_section(section: Any) -> bool:
    if not isinstance(section, dict):
        return False
    if not _is_str(section.get("id")) or not section["id"]:
        return False
    if not _is_int(section.get("order")):
        return False
    if section.get("title") is not None and not _is_str(section["title"]):
        return False
    blocks = section.get("blocks")
    if not isinstance(blocks, list) or not all(_valid_block(block) for block in blocks):
        return False
    orders = sorted(block["order"] for block in blocks)
    if orders != list(range(1, len(blocks) + 1)):
        return False
    return _valid_notes(section.get("notes", []))


def _valid_notes(notes: Any) -> bool:
    if not isinstance(notes, list):
        return False
    last = 0
    for note in notes:
        if not isinstance(note, dict):
            return False
        if not _is_str(note.get("id")) or not _is_str(note.get("content")):
            return False
        number = note.get("number")
        if not _is_int(number) or number <= last:
            return False
        last = number
        backlinks = note.get("backlinks", [])
        if not isinstance(backlinks, list) or not all(_is_str(link) for link in backlinks):
            return False
    return True


def _valid_block(block: Any) -> bool:
    if not isinstance(block, dict):
        return False
    if not _is_str(block.get("id")) or block.get("type") not in BLOCK_TYPES:
        return False
    if not _is_int(block.get("order")):
        return False
    if "content" not in block:
        return False
    marks = block.get("marks", [])
    if not isinstance(marks, list):
        return False
    for mark in marks:
        if not isinstance(mark, dict) or mark.get("type") not in MARK_TYPES:
            return False
        if not isinstance(mark.get("attrs", {}), dict):
            return False
    if not isinstance(block.get("attrs", {}), dict):
        return False
    return _valid_content(block["type"], block["content"])


def _valid_content(block_type: str, content: Any) -> bool:
    if block_type == "paragraph":
        return _is_str(content)
    if block_type == "divider":
        return content is None or content == "" or isinstance(content, dict)
    if not isinstance(content, dict):
        return False
    if block_type == "heading":
        level = content.get("level")
        return _is_int(level) and 1 <= level <= 6 and _is_str(content.get("text"))
    if block_type == "list":
        return _valid_list(content)
    if block_type == "table":
        headers = content.get("headers", [])
        rows = content.get("rows")
        if not isinstance(headers, list) or not all(_is_str(cell) for cell in headers):
            return False
        if not isinstance(rows, list):
            return False
        for row in rows:
            if not isinstance(row, list) or not all(_is_str(cell) for cell in row):
                return False
        return isinstance(content.get("headerRow", True), bool) and _optional_str(content.get("caption"))
    if block_type == "quote":
        return (
            _is_str(content.get("content"))
            and _optional_str(content.get("citation"))
            and _optional_str(content.get("author"))
        )
    if block_type == "callout":
        return (
            content.get("type") in CALLOUT_TYPES
            and _is_str(content.get("content"))
            and _optional_str(content.get("title"))
        )
    if block_type == "figure":
        return _valid_asset(content.get("image")) and _optional_str(content.get("caption"))
    if block_type == "code":
        return (
            _is_str(content.get("content"))
            and _optional_str(content.get("language"))
            and isinstance(content.get("inline", False), bool)
        )
    if block_type == "footnote":
        return _is_int(content.get("number")) and _optional_str(content.get("content"))
    return False


def _valid_list(content: dict[str, Any]) -> bool:
    if content.get("type") not in LIST_TYPES:
        return False
    items = content.get("items")
    if not isinstance(items, list) or not items:
        return False
    for item in items:
        if not isinstance(item, dict) or not _is_str(item.get("content")):
            return False
        children = item.get("children")
        if children is not None and not (isinstance(children, dict) and _valid_list(children)):
            return False
        checked = item.get("checked")
        if checked is not None and not isinstance(checked, bool):
            return False
    return True


def _valid_asset(asset: Any) -> bool:
    return (
        isinstance(asset, dict)
        and _is_str(asset.get("id"))
        and _is_str(asset.get("filename"))
        and _is_str(asset.get("mimeType", ""))
        and _optional_str(asset.get("url"))
    )


def _is_str(value: Any) -> bool:
    return isinstance(value, str)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _optional_str(value: Any) -> bool:
    return value is None or isinstance(value, str)
