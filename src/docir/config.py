"""Ingest and cleanup options."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields
from typing import Any, Mapping


@dataclass(slots=True)
class CleanupOptions:
    merge_lines: bool = True
    dehyphenate: bool = True
    detect_callouts: bool = True
    normalize_lists: bool = True
    adjust_headings: bool = True
    fix_hierarchy: bool = True
    # Shortest paragraph considered a wrapped line when merging.
    merge_min_length: int = 20

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any] | None) -> CleanupOptions:
        return cls(**_known_fields(cls, values))


@dataclass(slots=True)
class IngestOptions:
    preserve_formatting: bool = False
    extract_assets: bool = False
    extract_images: bool = True
    extract_tables: bool = True
    generate_anchors: bool = False
    merge_short_paragraphs: bool = False
    short_paragraph_threshold: int = 50
    split_sections: bool = False
    run_cleanup: bool = True
    placeholder_on_failure: bool = True
    cleanup_options: CleanupOptions | None = None

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any] | None) -> IngestOptions:
        """Build options from snake_case or camelCase keys; unknown keys are ignored."""
        known = _known_fields(cls, values)
        cleanup = known.get("cleanup_options")
        if isinstance(cleanup, Mapping):
            known["cleanup_options"] = CleanupOptions.from_mapping(cleanup)
        return cls(**known)


@dataclass(slots=True)
class PdfConvertOptions:
    ocr: bool = True
    language: str = "eng"
    confidence_threshold: float = 0.6
    extra: dict[str, Any] = field(default_factory=dict)


def _known_fields(cls: type, values: Mapping[str, Any] | None) -> dict[str, Any]:
    if not values:
        return {}
    names = {f.name for f in fields(cls)}
    out: dict[str, Any] = {}
    for key, value in values.items():
        name = _snake_case(key)
        if name in names:
            out[name] = value
    return out


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()
