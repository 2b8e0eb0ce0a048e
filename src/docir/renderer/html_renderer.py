"""Render a mapped internal document into a self-contained HTML preview."""

from __future__ import annotations

import html
import re
from dataclasses import asdict, dataclass
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from docir.mapper import InternalBlock, InternalDocument, InternalFootnote
from docir.parser.base import slugify


@dataclass(slots=True)
class RenderedSection:
    title: str
    anchor: str
    html: str
    footnotes: list[dict]


class HTMLRenderer:
    """Render an :class:`InternalDocument` with the preview template."""

    def __init__(self, template_path: Path | None = None) -> None:
        if template_path is None:
            template_path = Path(__file__).resolve().parent.parent / "template" / "preview.html"

        loader = FileSystemLoader(str(template_path.parent))
        self._env = Environment(loader=loader, autoescape=True, trim_blocks=True, lstrip_blocks=True)
        self._template_name = template_path.name

    def render(
        self,
        document: InternalDocument,
        *,
        title_override: str | None = None,
        dark_mode: bool = False,
        summary: str | None = None,
    ) -> str:
        page_title = title_override or document.title or "Untitled"
        used_anchors: set[str] = set()
        sections = []
        toc_items = []

        for section in document.sections:
            anchor = _dedupe_anchor(f"s-{slugify(section.name) or section.order}", used_anchors)
            notes_prefix = f"{anchor}-fn"
            body = [self._render_block(block, notes_prefix) for flow in section.flows for block in flow.blocks]
            for block in (b for flow in section.flows for b in flow.blocks):
                if block.type == "heading":
                    toc_items.append({"level": block.metadata.get("level", 1), "title": block.content, "anchor": block.id})
            sections.append(
                RenderedSection(
                    title=section.name,
                    anchor=anchor,
                    html="\n".join(part for part in body if part),
                    footnotes=[self._render_footnote(note, notes_prefix) for note in section.footnotes],
                )
            )

        template = self._env.get_template(self._template_name)
        return template.render(
            page_title=page_title,
            author=document.metadata.get("author"),
            tags=document.metadata.get("tags") or [],
            description=document.description,
            modified_text=document.updated_at[:10],
            modified_datetime=document.updated_at,
            toc_items=toc_items,
            sections=[asdict(s) for s in sections],
            summary=summary,
            dark_mode=dark_mode,
        )

    def _render_block(self, block: InternalBlock, notes_prefix: str = "fn") -> str:
        content = block.content
        if block.type == "heading":
            level = min(6, max(1, int(block.metadata.get("level", 1))) + 1)
            return f'<h{level} id="{html.escape(block.id)}" class="doc-heading">{_inline(str(content), notes_prefix)}</h{level}>'

        if block.type == "paragraph":
            text = str(content)
            if text.startswith("```"):
                lines = text.split("\n")
                code = "\n".join(lines[1:-1])
                language = html.escape(lines[0][3:])
                return f'<pre class="doc-code" data-language="{language}"><code>{html.escape(code)}</code></pre>'
            return f'<p class="doc-paragraph">{_inline(text, notes_prefix)}</p>'

        if block.type in ("ordered-list", "unordered-list"):
            tag = "ol" if block.type == "ordered-list" else "ul"
            return f'<{tag} class="doc-list">{_render_list_items(list(content), notes_prefix)}</{tag}>'

        if block.type == "table" and isinstance(content, dict):
            return self._render_table(content)

        if block.type == "figure" and isinstance(content, dict):
            return self._render_figure(content)

        if block.type == "callout" and isinstance(content, dict):
            kind = html.escape(content.get("type", "note"))
            title = content.get("title") or ""
            title_html = f'<strong class="doc-callout-title">{html.escape(title)}</strong> ' if title else ""
            return (
                f'<aside class="doc-callout doc-callout-{kind}">'
                f'<span class="doc-callout-icon">{html.escape(content.get("icon", ""))}</span>'
                f"{title_html}{_inline(content.get('content', ''), notes_prefix)}</aside>"
            )

        if block.type == "quote":
            return f'<blockquote class="doc-quote">{_inline(str(content), notes_prefix)}</blockquote>'

        if block.type == "divider":
            return '<hr class="doc-divider" />'

        return f'<p class="doc-paragraph">{html.escape(str(content))}</p>'

    def _render_table(self, table: dict) -> str:
        head_html = ""
        if table.get("hasHeaderRow") and table.get("headers"):
            head_cells = "".join(f"<th>{html.escape(cell)}</th>" for cell in table["headers"])
            head_html = f"<thead><tr>{head_cells}</tr></thead>"

        row_html = ""
        if table.get("rows"):
            rows = []
            for row in table["rows"]:
                cells = "".join(f"<td>{html.escape(cell)}</td>" for cell in row)
                rows.append(f"<tr>{cells}</tr>")
            row_html = "<tbody>" + "".join(rows) + "</tbody>"

        caption = table.get("caption")
        caption_html = (
            f'<div class="doc-caption">Table {table.get("number", "")}. {html.escape(caption)}</div>' if caption else ""
        )
        return f'<div class="doc-table-wrap"><table class="doc-table">{head_html}{row_html}</table>{caption_html}</div>'

    def _render_figure(self, figure: dict) -> str:
        src = html.escape(figure.get("imageUrl", ""))
        alt = html.escape(figure.get("altText") or figure.get("caption") or "Figure")
        size = html.escape(figure.get("size", "column-width"))
        caption = figure.get("caption")
        caption_html = (
            f'<figcaption class="doc-caption">Figure {figure.get("number", "")}. {html.escape(caption)}</figcaption>'
            if caption
            else ""
        )
        return f'<figure class="doc-figure doc-figure-{size}"><img src="{src}" alt="{alt}" loading="lazy" />{caption_html}</figure>'

    def _render_footnote(self, note: InternalFootnote, notes_prefix: str = "fn") -> dict:
        return {
            "id": f"{notes_prefix}-{note.number}",
            "number": note.number,
            "html": html.escape(note.content),
            "source": note.source_block_id,
        }


def _render_list_items(items: list[str], notes_prefix: str = "fn") -> str:
    parts = []
    for item in items:
        depth = (len(item) - len(item.lstrip(" "))) // 2
        parts.append(f'<li class="doc-list-depth-{depth}">{_inline(item.strip(), notes_prefix)}</li>')
    return "".join(parts)


def _inline(text: str, notes_prefix: str = "fn") -> str:
    escaped = html.escape(text)
    return re.sub(
        r"\[fn:(\d+)\]",
        lambda m: f'<sup class="doc-fn-ref"><a href="#{notes_prefix}-{m.group(1)}">[{m.group(1)}]</a></sup>',
        escaped,
    )


def _dedupe_anchor(anchor: str, used: set[str]) -> str:
    if anchor not in used:
        used.add(anchor)
        return anchor

    idx = 2
    while True:
        candidate = f"{anchor}-{idx}"
        if candidate not in used:
            used.add(candidate)
            return candidate
        idx += 1
