"""Tests for IR constructors, JSON codec and validation."""

from __future__ import annotations

import copy
import json

from docir.parser.base import (
    create_ir_block,
    create_ir_callout,
    create_ir_document,
    create_ir_heading,
    create_ir_list,
    create_ir_section,
    create_ir_table,
)
from docir.parser.schema import ir_document_from_dict, ir_document_to_dict, validate_ir_document


def _doc_dict() -> dict:
    doc = create_ir_document("Sample")
    section = create_ir_section(title="Main")
    section.blocks = [
        create_ir_block("heading", create_ir_heading(1, "Intro"), order=1),
        create_ir_block("paragraph", "Body text.", order=2),
        create_ir_block("list", create_ir_list("ordered", ["one", "two"]), order=3),
        create_ir_block("table", create_ir_table(["A", "B", "C"], [["1", "2"]]), order=4),
        create_ir_block("callout", create_ir_callout("tip", "Try it.", "Tip"), order=5),
    ]
    doc.sections.append(section)
    return json.loads(json.dumps(ir_document_to_dict(doc)))


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------

def test_heading_level_is_clamped() -> None:
    assert create_ir_heading(9, "x").level == 6
    assert create_ir_heading(0, "x").level == 1


def test_constructor_defaults() -> None:
    doc = create_ir_document("T")
    block = create_ir_block("paragraph", "p")

    assert doc.sections == [] and doc.metadata.tags == []
    assert doc.metadata.created is not None
    assert block.order == 1 and block.marks == [] and block.attrs == {}
    assert block.id != create_ir_block("paragraph", "p").id


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------

def test_json_uses_camel_case_keys() -> None:
    data = _doc_dict()
    table = data["sections"][0]["blocks"][3]["content"]

    assert table["headerRow"] is True
    assert "header_row" not in table


def test_round_trip_through_dict() -> None:
    data = _doc_dict()
    doc = ir_document_from_dict(data)

    assert ir_document_to_dict(doc) == data


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def test_valid_document() -> None:
    assert validate_ir_document(_doc_dict()) is True
    assert validate_ir_document(ir_document_from_dict(_doc_dict())) is True


def test_ragged_table_is_valid() -> None:
    data = _doc_dict()

    assert data["sections"][0]["blocks"][3]["content"]["rows"] == [["1", "2"]]
    assert validate_ir_document(data) is True


def test_invalid_shapes_never_raise() -> None:
    for value in (None, 42, "doc", [], {}, {"title": 1, "sections": []}, {"title": "t", "sections": [None]}):
        assert validate_ir_document(value) is False


def test_heading_level_out_of_range_is_invalid() -> None:
    data = _doc_dict()
    data["sections"][0]["blocks"][0]["content"]["level"] = 7

    assert validate_ir_document(data) is False


def test_unknown_block_type_is_invalid() -> None:
    data = _doc_dict()
    data["sections"][0]["blocks"][1]["type"] = "spacer"

    assert validate_ir_document(data) is False


def test_order_gaps_and_duplicates_are_invalid() -> None:
    gap = _doc_dict()
    gap["sections"][0]["blocks"][4]["order"] = 9
    dup = copy.deepcopy(_doc_dict())
    dup["sections"][0]["blocks"][1]["order"] = 1

    assert validate_ir_document(gap) is False
    assert validate_ir_document(dup) is False


def test_empty_list_is_invalid() -> None:
    data = _doc_dict()
    data["sections"][0]["blocks"][2]["content"]["items"] = []

    assert validate_ir_document(data) is False


def test_callout_type_must_be_known() -> None:
    data = _doc_dict()
    data["sections"][0]["blocks"][4]["content"]["type"] = "shout"

    assert validate_ir_document(data) is False


def test_footnote_numbers_must_increase() -> None:
    data = _doc_dict()
    data["sections"][0]["notes"] = [
        {"id": "fn-a", "number": 2, "content": "x", "backlinks": []},
        {"id": "fn-b", "number": 1, "content": "y", "backlinks": []},
    ]

    assert validate_ir_document(data) is False


def test_boolean_is_not_an_order() -> None:
    data = _doc_dict()
    data["sections"][0]["order"] = True

    assert validate_ir_document(data) is False
