"""DOCX parser: reads HTML produced by an external DOCX-to-HTML converter.

The converter is expected to style-map Word paragraphs (``Heading N`` to
``hN``, ``List Paragraph``/``List Number`` to ``ul``/``ol`` items, ``Quote``
to ``blockquote`` and ``Caption`` to ``p.caption``). Converters emit one
list element per Word paragraph, so adjacent lists of the same type are
joined back together here.
"""

from __future__ import annotations

from .base import Figure, IRBlock, ListContent
from .html_parser import HTMLParser

# Word style names a converter should map, for callers configuring one.
DOCX_STYLE_MAP: tuple[str, ...] = (
    "p[style-name='Title'] => h1:fresh",
    "p[style-name='Heading 1'] => h1:fresh",
    "p[style-name='Heading 2'] => h2:fresh",
    "p[style-name='Heading 3'] => h3:fresh",
    "p[style-name='Heading 4'] => h4:fresh",
    "p[style-name='Heading 5'] => h5:fresh",
    "p[style-name='Heading 6'] => h6:fresh",
    "p[style-name='List Paragraph'] => ul > li:fresh",
    "p[style-name='List Bullet'] => ul > li:fresh",
    "p[style-name='List Number'] => ol > li:fresh",
    "p[style-name='Quote'] => blockquote:fresh",
    "p[style-name='Intense Quote'] => blockquote:fresh",
    "p[style-name='Caption'] => p.caption:fresh",
)


class DocxHTMLParser(HTMLParser):
    """Parse DOCX-derived HTML into the IR."""

    def _post_process(self, blocks: list[IRBlock]) -> list[IRBlock]:
        out: list[IRBlock] = []
        for block in blocks:
            prev = out[-1] if out else None
            if prev is not None and _same_list_type(prev, block):
                prev.content.items.extend(block.content.items)
                prev.content.tight = prev.content.tight and block.content.tight
                prev.marks.extend(mark for mark in block.marks if mark not in prev.marks)
                continue
            if prev is not None and block.attrs.get("caption") and _uncaptioned_figure(prev):
                prev.content.caption = block.content
                continue
            out.append(block)
        return out


def _same_list_type(prev: IRBlock, block: IRBlock) -> bool:
    return (
        isinstance(prev.content, ListContent)
        and isinstance(block.content, ListContent)
        and prev.content.type == block.content.type
    )


def _uncaptioned_figure(block: IRBlock) -> bool:
    return isinstance(block.content, Figure) and not block.content.caption
