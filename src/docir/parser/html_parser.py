"""HTML parser: walks a BeautifulSoup tree and maps elements to IR blocks."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup
from bs4.element import Comment, Declaration, Doctype, NavigableString, ProcessingInstruction, Tag

from docir.config import IngestOptions

from .base import (
    Callout,
    Code,
    Divider,
    Footnote,
    InlineMark,
    IRBlock,
    IRDocument,
    ListContent,
    ListItem,
    Quote,
    create_ir_block,
    create_ir_heading,
    create_ir_table,
    new_id,
    slugify,
)
from .blocks import callout_kind, figure_block, is_callout_label
from .common import build_document, document_title, rewrite_block_text

logger = logging.getLogger(__name__)

_SKIP_TAGS = {"script", "style", "head", "title", "meta", "link", "noscript", "template", "br"}
_INLINE_TAGS = {
    "a", "abbr", "b", "cite", "code", "em", "font", "i", "kbd", "label", "mark", "q",
    "s", "small", "span", "strike", "strong", "sub", "sup", "del", "ins", "u", "time",
}
_MARK_TAGS = {
    "strong": "bold",
    "b": "bold",
    "em": "italic",
    "i": "italic",
    "u": "underline",
    "ins": "underline",
    "s": "strikethrough",
    "strike": "strikethrough",
    "del": "strikethrough",
    "code": "code",
    "kbd": "code",
}
_CAPTION_PREFIX_RE = re.compile(r"^(?:Figure|Fig\.|Image|Chart|Graph|Diagram|Photo|Illustration)\s*\d+", re.IGNORECASE)
_FONT_WEIGHT_RE = re.compile(r"font-weight\s*:\s*(bold(?:er)?|\d+)", re.IGNORECASE)
_LANGUAGE_CLASS_RE = re.compile(r"^(?:language|lang)-(.+)$")
_NON_TEXT = (Comment, Declaration, Doctype, ProcessingInstruction)
_TEXTLESS_TAGS = {"script", "style", "template", "noscript"}
# Footnote reference left in text by the walk, keyed by target element id.
_REF_TOKEN_RE = re.compile(r"\[fn:(fn[^\]]*)\]")


@dataclass(slots=True)
class _WalkState:
    blocks: list[IRBlock] = field(default_factory=list)
    # (footnote element id, footnote text) in document order
    notes: list[tuple[str, str]] = field(default_factory=list)
    # (target footnote id, referencing block id) in reading order
    refs: list[tuple[str, str]] = field(default_factory=list)


class HTMLParser:
    """Parse an HTML document into the IR."""

    def parse(self, text: str, *, name: str = "", options: IngestOptions | None = None) -> IRDocument:
        options = options or IngestOptions()
        soup = BeautifulSoup(text, "html.parser")
        title_tag = soup.find("title")
        explicit_title = _text(title_tag) if title_tag else None

        state = _WalkState()
        root = soup.body or soup
        self._walk(list(root.children), state, options)

        blocks = self._post_process(state.blocks)
        footnotes = _number_footnotes(state, blocks)
        doc = build_document(document_title(name, explicit_title), blocks, options, footnotes=footnotes)

        lang = soup.find("html")
        if isinstance(lang, Tag) and lang.get("lang"):
            doc.metadata.language = str(lang["lang"])
        author = soup.find("meta", attrs={"name": "author"})
        if isinstance(author, Tag) and author.get("content"):
            doc.metadata.author = str(author["content"])
        description = soup.find("meta", attrs={"name": "description"})
        if isinstance(description, Tag) and description.get("content"):
            doc.metadata.description = str(description["content"])
        return doc

    def _post_process(self, blocks: list[IRBlock]) -> list[IRBlock]:
        return blocks

    # ------------------------------------------------------------------
    # Tree walk
    # ------------------------------------------------------------------

    def _walk(self, nodes: list, state: _WalkState, options: IngestOptions) -> None:
        inline_run: list = []
        i = 0
        while i < len(nodes):
            node = nodes[i]
            if _is_inline(node):
                inline_run.append(node)
                i += 1
                continue
            self._flush_inline(inline_run, state, options)
            if isinstance(node, Tag):
                i += self._handle(node, nodes, i, state, options)
            else:
                i += 1
        self._flush_inline(inline_run, state, options)

    def _flush_inline(self, run: list, state: _WalkState, options: IngestOptions) -> None:
        if not run:
            return
        text = _collapse("".join(_node_text(node) for node in run))
        if text:
            block = create_ir_block("paragraph", text)
            for node in run:
                if isinstance(node, Tag):
                    self._collect_marks(node, block, state, include_self=True)
            state.blocks.append(block)
        if options.extract_images:
            for node in run:
                if isinstance(node, Tag):
                    state.blocks.extend(_figure_block(img, None) for img in node.find_all("img"))
        run.clear()

    def _handle(self, tag: Tag, siblings: list, index: int, state: _WalkState, options: IngestOptions) -> int:
        """Emit blocks for *tag*; return how many sibling nodes were consumed."""
        name = tag.name.lower()
        if name in _SKIP_TAGS:
            return 1
        if _is_footnote_container(tag):
            _harvest_footnotes(tag, state)
            return 1
        if _is_footnote_element(tag):
            state.notes.append((str(tag.get("id") or new_id("fn")), _footnote_text(tag)))
            return 1

        if re.fullmatch(r"h[1-6]", name):
            text = _text(tag)
            if text:
                heading = create_ir_heading(int(name[1]), text)
                if options.generate_anchors:
                    heading.anchor = slugify(_REF_TOKEN_RE.sub("", text))
                block = create_ir_block("heading", heading)
                self._collect_marks(tag, block, state)
                state.blocks.append(block)
            return 1

        if name == "p":
            text = _text(tag)
            if text:
                block = create_ir_block("paragraph", text)
                if _is_caption(tag):
                    block.attrs["caption"] = True
                self._collect_marks(tag, block, state)
                state.blocks.append(block)
            # Images follow the paragraph text, one figure each.
            images = tag.find_all("img") if options.extract_images else []
            if not images:
                return 1
            state.blocks.extend(_figure_block(img, None) for img in images[:-1])
            return self._figure(images[-1], None, siblings, index, state)

        if name in ("ul", "ol"):
            items = tag.find_all("li", recursive=False)
            if items and all(_is_footnote_element(li) for li in items):
                _harvest_footnotes(tag, state)
                return 1
            content = self._list(tag)
            if content.items:
                block = create_ir_block("list", content)
                self._collect_marks(tag, block, state)
                state.blocks.append(block)
            return 1

        if name == "table":
            if options.extract_tables:
                block = self._table(tag)
                if block is not None:
                    state.blocks.append(block)
            return 1

        if name == "blockquote":
            block = self._blockquote(tag)
            if block is not None:
                self._collect_marks(tag, block, state)
                state.blocks.append(block)
            return 1

        if name == "figure":
            img = tag.find("img")
            if img is None or not options.extract_images:
                self._walk(list(tag.children), state, options)
                return 1
            caption_tag = tag.find("figcaption")
            return self._figure(img, _text(caption_tag) if caption_tag else None, siblings, index, state)

        if name == "img":
            if options.extract_images:
                return self._figure(tag, None, siblings, index, state)
            return 1

        if name == "hr":
            state.blocks.append(create_ir_block("divider", Divider()))
            return 1

        if name == "pre":
            state.blocks.append(self._code(tag))
            return 1

        # div, section, article, main and anything unknown are transparent.
        self._walk(list(tag.children), state, options)
        return 1

    # ------------------------------------------------------------------
    # Element mappers
    # ------------------------------------------------------------------

    def _figure(self, img: Tag, caption: str | None, siblings: list, index: int, state: _WalkState) -> int:
        consumed = 1
        if not caption:
            nxt = _next_tag_index(siblings, index + 1)
            if nxt is not None and _is_caption(siblings[nxt]):
                caption = _text(siblings[nxt])
                consumed = nxt - index + 1
        state.blocks.append(_figure_block(img, caption))
        return consumed

    def _list(self, tag: Tag) -> ListContent:
        content = ListContent(type="ordered" if tag.name.lower() == "ol" else "unordered")
        for li in tag.find_all("li", recursive=False):
            nested = [lst for lst in li.find_all(["ul", "ol"]) if lst.find_parent("li") is li]
            item = ListItem(content=_text_outside(li, nested))
            checkbox = li.find("input", attrs={"type": "checkbox"})
            if isinstance(checkbox, Tag) and checkbox.find_parent("li") is li:
                item.checked = checkbox.has_attr("checked")
                content.type = "task"
            for lst in nested:
                child = self._list(lst)
                if not child.items:
                    continue
                if item.children is None:
                    item.children = child
                else:
                    item.children.items.extend(child.items)
            if item.content or item.children:
                content.items.append(item)
        return content

    def _table(self, tag: Tag) -> IRBlock | None:
        rows = [tr for tr in tag.find_all("tr") if tr.find_parent("table") is tag]
        if not rows:
            return None
        cells = [tr.find_all(["th", "td"], recursive=False) for tr in rows]
        header = rows[0].find_parent("thead") is not None or _is_header_row(cells[0])

        texts = [[_text(cell) for cell in row] for row in cells]
        caption_tag = tag.find("caption")
        table_headers = texts[0] if header else []
        body = texts[1:] if header else texts

        table = create_ir_table(table_headers, body, _text(caption_tag) if caption_tag else None, header_row=header)
        return create_ir_block("table", table)

    def _blockquote(self, tag: Tag) -> IRBlock | None:
        first = _first_child_tag(tag)
        if first is not None and first.name == "p":
            first = _first_child_tag(first) if not _leading_text(first) else None
        if first is not None and first.name in ("strong", "b"):
            label = _text(first).rstrip(":").strip()
            if is_callout_label(label):
                body = _collapse(_text(tag)[len(_text(first)):]).lstrip(":").strip()
                return create_ir_block("callout", Callout(type=callout_kind(label), content=body, title=label))

        citation = None
        cite = tag.find(["cite", "footer"])
        text = _text(tag)
        if isinstance(cite, Tag):
            citation = _text(cite).lstrip("—–- ").strip() or None
            cite_text = _text(cite)
            if cite_text and text.endswith(cite_text):
                text = text[: -len(cite_text)].strip()
        if citation is None and "—" in text:
            body, _, tail = text.rpartition("—")
            if body.strip() and tail.strip():
                text, citation = body.strip(), tail.strip()
        if not text:
            return None
        return create_ir_block("quote", Quote(content=text, citation=citation))

    def _code(self, tag: Tag) -> IRBlock:
        code = tag.find("code")
        language = None
        for el in (code, tag):
            if not isinstance(el, Tag):
                continue
            for cls in el.get("class") or []:
                m = _LANGUAGE_CLASS_RE.match(cls)
                if m:
                    language = m.group(1).lower()
                    break
            if language:
                break
        content = (code or tag).get_text().strip("\n")
        return create_ir_block("code", Code(content=content, language=language, inline=False))

    # ------------------------------------------------------------------
    # Inline marks and footnote references
    # ------------------------------------------------------------------

    def _collect_marks(self, tag: Tag, block: IRBlock, state: _WalkState, *, include_self: bool = False) -> None:
        elements = tag.find_all(True)
        if include_self:
            elements = [tag, *elements]
        for el in elements:
            mark = _mark_for(el)
            if mark is None:
                continue
            if mark.type == "footnote":
                state.refs.append((mark.attrs["ref"], block.id))
            if mark not in block.marks:
                block.marks.append(mark)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _collapse(text: str) -> str:
    return " ".join(text.split())


def _text(tag) -> str:
    return _collapse(_node_text(tag)) if tag is not None else ""


def _node_text(node, skip: tuple[Tag, ...] = ()) -> str:
    """Text of *node*, with footnote references kept as ``[fn:<target id>]`` tokens."""
    if isinstance(node, _NON_TEXT):
        return ""
    if isinstance(node, NavigableString):
        return str(node)
    if not isinstance(node, Tag) or node.name.lower() in _TEXTLESS_TAGS or any(node is s for s in skip):
        return ""
    target = _footnote_target(node)
    if target is not None:
        return f"[fn:{target}]"
    return "".join(_node_text(child, skip) for child in node.children)


def _figure_block(img: Tag, caption: str | None) -> IRBlock:
    src = str(img.get("src") or "")
    alt = str(img.get("alt") or "") or None
    block = figure_block(src, alt=alt, caption=caption or None)
    if img.get("title"):
        block.content.image.title = str(img["title"])
    return block


def _is_inline(node) -> bool:
    if isinstance(node, _NON_TEXT):
        return False
    if isinstance(node, NavigableString):
        return True
    return isinstance(node, Tag) and node.name.lower() in _INLINE_TAGS and not _is_footnote_element(node)


def _next_tag_index(nodes: list, start: int) -> int | None:
    for idx in range(start, len(nodes)):
        node = nodes[idx]
        if isinstance(node, Tag):
            return idx
        if isinstance(node, NavigableString) and not isinstance(node, _NON_TEXT) and node.strip():
            return None
    return None


def _first_child_tag(tag: Tag) -> Tag | None:
    for child in tag.children:
        if isinstance(child, Tag):
            return child
        if isinstance(child, NavigableString) and not isinstance(child, _NON_TEXT) and child.strip():
            return None
    return None


def _leading_text(tag: Tag) -> bool:
    for child in tag.children:
        if isinstance(child, Tag):
            return False
        if isinstance(child, NavigableString) and child.strip():
            return True
    return False


def _text_outside(li: Tag, nested: list[Tag]) -> str:
    return _collapse(_node_text(li, tuple(nested)))


def _is_caption(node) -> bool:
    if not isinstance(node, Tag) or node.name.lower() not in ("p", "figcaption", "div", "span"):
        return False
    classes = " ".join(node.get("class") or []).lower()
    if "caption" in classes:
        return True
    return bool(_CAPTION_PREFIX_RE.match(_text(node)))


def _is_bold(cell: Tag) -> bool:
    if _bold_style(str(cell.get("style") or "")):
        return True
    text = _text(cell)
    if not text:
        return False
    bold_text = "".join(
        el.get_text() for el in cell.find_all(True) if el.name in ("strong", "b") or _bold_style(str(el.get("style") or ""))
    )
    return _collapse(bold_text) == text


def _bold_style(style: str) -> bool:
    m = _FONT_WEIGHT_RE.search(style)
    if not m:
        return False
    value = m.group(1).lower()
    return value.startswith("bold") or (value.isdigit() and int(value) >= 600)


def _is_header_row(cells: list[Tag]) -> bool:
    if not cells:
        return False
    th_count = sum(1 for cell in cells if cell.name == "th")
    bold_count = sum(1 for cell in cells if _is_bold(cell))
    return th_count * 2 > len(cells) or bold_count * 2 > len(cells)


def _footnote_target(el: Tag) -> str | None:
    if el.name.lower() != "a":
        return None
    href = str(el.get("href") or "")
    if href.startswith("#fn") and not href.startswith("#fnref"):
        return href[1:]
    return None


def _mark_for(el: Tag) -> InlineMark | None:
    name = el.name.lower()
    if name == "a":
        target = _footnote_target(el)
        if target is not None:
            return InlineMark(type="footnote", attrs={"ref": target})
        href = str(el.get("href") or "")
        return InlineMark(type="link", attrs={"href": href}) if href else None
    if name in _MARK_TAGS:
        return InlineMark(type=_MARK_TAGS[name])
    style = str(el.get("style") or "")
    if _bold_style(style):
        return InlineMark(type="bold")
    if re.search(r"font-style\s*:\s*italic", style, re.IGNORECASE):
        return InlineMark(type="italic")
    if re.search(r"text-decoration[^;]*underline", style, re.IGNORECASE):
        return InlineMark(type="underline")
    if re.search(r"text-decoration[^;]*line-through", style, re.IGNORECASE):
        return InlineMark(type="strikethrough")
    return None


# ---------------------------------------------------------------------------
# Footnotes
# ---------------------------------------------------------------------------

def _is_footnote_element(tag: Tag) -> bool:
    element_id = str(tag.get("id") or "")
    classes = tag.get("class") or []
    return (element_id.startswith("fn") and not element_id.startswith("fnref")) or "footnote" in classes


def _is_footnote_container(tag: Tag) -> bool:
    classes = tag.get("class") or []
    return "footnotes" in classes or tag.get("role") in ("doc-endnotes", "doc-footnotes")


def _harvest_footnotes(container: Tag, state: _WalkState) -> None:
    for el in container.find_all(True):
        if _is_footnote_element(el) and el.find_parent(_is_footnote_element) is None:
            state.notes.append((str(el.get("id") or new_id("fn")), _footnote_text(el)))


def _footnote_text(tag: Tag) -> str:
    clone = BeautifulSoup(str(tag), "html.parser")
    for backref in clone.find_all("a"):
        href = str(backref.get("href") or "")
        classes = backref.get("class") or []
        if href.startswith("#fnref") or "footnote-backref" in classes:
            backref.decompose()
    return _collapse(clone.get_text()).replace("↩", "").strip()


def _number_footnotes(state: _WalkState, blocks: list[IRBlock]) -> list[Footnote]:
    """Number harvested notes by first reference, then document order.

    Reference tokens left in block text become ``[fn:N]`` markers. References
    to notes that were never harvested are dropped from text and marks.
    """
    contents = dict(state.notes)
    order: list[str] = []
    for target, _ in state.refs:
        if target in contents and target not in order:
            order.append(target)
    for note_id, _ in state.notes:
        if note_id not in order:
            order.append(note_id)

    live = {block.id for block in blocks}
    numbers = {note_id: number for number, note_id in enumerate(order, start=1)}

    def _marker(m: re.Match[str]) -> str:
        number = numbers.get(m.group(1))
        return f"[fn:{number}]" if number is not None else ""

    for block in blocks:
        rewrite_block_text(block, lambda text: _REF_TOKEN_RE.sub(_marker, text))
        marks: list[InlineMark] = []
        for mark in block.marks:
            if mark.type == "footnote":
                if mark.attrs.get("ref") not in numbers:
                    continue
                mark.attrs["number"] = numbers[mark.attrs["ref"]]
            marks.append(mark)
        block.marks = marks

    footnotes: list[Footnote] = []
    for note_id in order:
        backlinks: list[str] = []
        for target, block_id in state.refs:
            if target == note_id and block_id in live and block_id not in backlinks:
                backlinks.append(block_id)
        footnotes.append(Footnote(id=note_id, number=numbers[note_id], content=contents[note_id], backlinks=backlinks))
    logger.debug("harvested %d footnotes", len(footnotes))
    return footnotes
