"""Tests for the DOCX-derived HTML parser."""

from __future__ import annotations

from docir.parser.docx_parser import DOCX_STYLE_MAP, DocxHTMLParser


def _blocks(html: str):
    return DocxHTMLParser().parse(html, name="report.docx").sections[0].blocks


def test_adjacent_lists_of_same_type_are_coalesced() -> None:
    html = "<ul><li>a</li></ul>\n<ul><li>b</li></ul><ol><li>c</li></ol><ol><li>d</li></ol><ul><li>e</li></ul>"
    blocks = _blocks(html)

    assert [(b.content.type, [i.content for i in b.content.items]) for b in blocks] == [
        ("unordered", ["a", "b"]),
        ("ordered", ["c", "d"]),
        ("unordered", ["e"]),
    ]
    assert [b.order for b in blocks] == [1, 2, 3]


def test_list_run_flushed_by_other_element() -> None:
    blocks = _blocks("<ul><li>a</li></ul><p>between</p><ul><li>b</li></ul>")

    assert [b.type for b in blocks] == ["list", "paragraph", "list"]


def test_word_headings_and_quotes() -> None:
    blocks = _blocks("<h1>Report</h1><h2>Scope</h2><blockquote><p>Measure twice — Carpenter</p></blockquote>")

    assert [b.type for b in blocks] == ["heading", "heading", "quote"]
    assert blocks[2].content.citation == "Carpenter"


def test_caption_attaches_to_preceding_image() -> None:
    blocks = _blocks('<p><img src="chart.png" alt=""></p><p class="caption">Quarterly revenue</p>')

    assert [b.type for b in blocks] == ["figure"]
    assert blocks[0].content.caption == "Quarterly revenue"


def test_caption_inside_wrapper_attaches_to_figure() -> None:
    blocks = _blocks('<div><img src="map.png"></div><p class="caption">Site map</p>')

    assert [b.type for b in blocks] == ["figure"]
    assert blocks[0].content.caption == "Site map"


def test_title_from_file_name() -> None:
    doc = DocxHTMLParser().parse("<p>x</p>", name="Quarterly Report.docx")

    assert doc.title == "Quarterly Report"


def test_style_map_covers_caption_and_lists() -> None:
    assert any("Caption" in rule for rule in DOCX_STYLE_MAP)
    assert any("List Number" in rule and "ol" in rule for rule in DOCX_STYLE_MAP)
