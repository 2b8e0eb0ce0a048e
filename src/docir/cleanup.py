"""Heuristic repair of extraction artifacts in an already-built IR document.

Rules run per section in a fixed order (merge broken lines, de-hyphenate,
detect callouts, normalize lists, promote headings) and then heading
hierarchy is fixed document-wide. Each rule that changes something adds one
audit entry. Cleaning an already-cleaned document changes nothing.
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Mapping

from docir.config import CleanupOptions
from docir.parser.base import (
    Callout,
    Heading,
    IRBlock,
    IRDocument,
    IRSection,
    ListContent,
    ListItem,
    utcnow,
)
from docir.parser.blocks import callout_kind, detect_structural_heading
from docir.parser.common import renumber

logger = logging.getLogger(__name__)

RULE_ORDER = (
    "merge-lines",
    "dehyphenate",
    "detect-callout",
    "normalize-lists",
    "promote-heading",
    "fix-hierarchy",
)
_DESCRIPTIONS = {
    "merge-lines": "Merged {count} broken lines",
    "dehyphenate": "Fixed {count} hyphenations",
    "detect-callout": "Detected {count} callouts",
    "normalize-lists": "Normalized {count} lists",
    "promote-heading": "Promoted {count} headings",
    "fix-hierarchy": "Fixed {count} heading hierarchy issues",
}
CLEAN_SUMMARY = "No cleanups needed - document structure looks good!"


@dataclass(slots=True)
class CleanupAuditEntry:
    type: str
    count: int
    description: str
    details: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type, "count": self.count, "description": self.description}
        if self.details:
            out["details"] = self.details
        return out


@dataclass(slots=True)
class CleanupResult:
    document: IRDocument
    audit_log: list[CleanupAuditEntry] = field(default_factory=list)
    summary: str = CLEAN_SUMMARY

    def to_dict(self) -> dict[str, Any]:
        return {"summary": self.summary, "auditLog": [entry.to_dict() for entry in self.audit_log]}


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_SENTENCE_END_RE = re.compile(r"[.!?:]$")
_HYPHEN_BREAK_RE = re.compile(r"(?<=\w)-[ \t]*\n\s*(?=\w)")
_HYPHEN_SPACE_RE = re.compile(r"(?<=\w)-[ \t]+(?=\w)")
_CALLOUT_PREFIX_RE = re.compile(
    r"^(note|tip|warning|caution|important|info|error|alert|success|check):\s*(.+)$",
    re.IGNORECASE | re.DOTALL,
)
_BULLET_LINE_RE = re.compile(r"^[•\-*+]\s+(.+)$")
_NUMBERED_LINE_RE = re.compile(r"^\d+[.)]\s+(.+)$")
_SUBSECTION_RE = re.compile(r"^\d+\.\d+\.?\s")
_SUBSUBSECTION_RE = re.compile(r"^\d+\.\d+\.\d+\.?\s")
_HEADING_PREFIX_RE = re.compile(r"^(?:(?:chapter|part|section)\s+\d+\s*[:.\-]?\s*|\d+(?:\.\d+)*\.?\s+)", re.IGNORECASE)
_SMALL_WORDS = {"a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with"}


class IRCleaner:
    """Apply the cleanup rules selected by ``options`` to a copy of a document."""

    def __init__(self, options: CleanupOptions | None = None) -> None:
        self.options = options or CleanupOptions()
        self._counts: dict[str, int] = {}

    def clean(self, document: IRDocument) -> CleanupResult:
        self._counts = {rule: 0 for rule in RULE_ORDER}
        doc = copy.deepcopy(document)

        for section in doc.sections:
            self._warn_mismatched(section)
            self._clean_section(section)
        if self.options.fix_hierarchy:
            self._fix_hierarchy(doc)
        renumber(doc)

        audit_log = [
            CleanupAuditEntry(type=rule, count=count, description=_DESCRIPTIONS[rule].format(count=count))
            for rule, count in self._counts.items()
            if count > 0
        ]
        if audit_log:
            doc.metadata.modified = utcnow()
        for entry in audit_log:
            logger.debug("cleanup %s: %d", entry.type, entry.count)
        return CleanupResult(document=doc, audit_log=audit_log, summary=summarize(audit_log))

    # ------------------------------------------------------------------
    # Per-section rules
    # ------------------------------------------------------------------

    def _clean_section(self, section: IRSection) -> None:
        if self.options.merge_lines:
            section.blocks = self._merge_lines(section)
        for block in section.blocks:
            if block.type != "paragraph" or not isinstance(block.content, str):
                continue
            if self.options.dehyphenate:
                self._dehyphenate(block)
            if self.options.detect_callouts and self._detect_callout(block):
                continue
            if self.options.normalize_lists and self._normalize_list(block):
                continue
            if self.options.adjust_headings:
                self._promote_heading(block)

    def _merge_lines(self, section: IRSection) -> list[IRBlock]:
        out: list[IRBlock] = []
        aliases: dict[str, str] = {}
        for block in section.blocks:
            prev = out[-1] if out else None
            if (
                prev is not None
                and _is_text_paragraph(prev)
                and _is_text_paragraph(block)
                and should_merge_lines(prev.content, block.content, self.options.merge_min_length)
            ):
                prev.content = merge_line_content(prev.content, block.content)
                prev.marks.extend(mark for mark in block.marks if mark not in prev.marks)
                aliases[block.id] = prev.id
                self._counts["merge-lines"] += 1
                continue
            out.append(block)
        if aliases:
            for note in section.notes:
                note.backlinks = list(dict.fromkeys(aliases.get(link, link) for link in note.backlinks))
        return out

    def _dehyphenate(self, block: IRBlock) -> None:
        text = dehyphenate(block.content)
        if text != block.content:
            block.content = text
            self._counts["dehyphenate"] += 1

    def _detect_callout(self, block: IRBlock) -> bool:
        m = _CALLOUT_PREFIX_RE.match(block.content.strip())
        if not m or not m.group(2).strip():
            return False
        label = m.group(1)
        block.type = "callout"
        block.content = Callout(type=callout_kind(label), content=m.group(2).strip(), title=label.capitalize())
        self._counts["detect-callout"] += 1
        return True

    def _normalize_list(self, block: IRBlock) -> bool:
        content = normalize_list_content(block.content)
        if content is None:
            return False
        block.type = "list"
        block.content = content
        self._counts["normalize-lists"] += 1
        return True

    def _promote_heading(self, block: IRBlock) -> bool:
        text = block.content.strip()
        if "\n" in text:
            return False
        level = detect_heading_level(text)
        if level is None:
            return False
        block.type = "heading"
        block.content = Heading(level=level, text=clean_heading_text(text))
        self._counts["promote-heading"] += 1
        return True

    # ------------------------------------------------------------------
    # Document-wide rules
    # ------------------------------------------------------------------

    def _fix_hierarchy(self, doc: IRDocument) -> None:
        for section in doc.sections:
            last_level = 0
            for block in section.blocks:
                if block.type != "heading" or not isinstance(block.content, Heading):
                    continue
                if block.content.level > last_level + 1:
                    block.content.level = last_level + 1
                    self._counts["fix-hierarchy"] += 1
                last_level = block.content.level

    def _warn_mismatched(self, section: IRSection) -> None:
        for block in section.blocks:
            if not block.has_expected_content():
                logger.warning(
                    "cleanup: block %s has type %r but %s content; left unchanged",
                    block.id,
                    block.type,
                    type(block.content).__name__,
                )


# ---------------------------------------------------------------------------
# Text heuristics
# ---------------------------------------------------------------------------

def _is_text_paragraph(block: IRBlock) -> bool:
    return block.type == "paragraph" and isinstance(block.content, str)


def should_merge_lines(current: str, following: str, min_length: int = 20) -> bool:
    """True when *following* looks like the wrapped tail of *current*."""
    current = current.strip()
    following = following.strip()
    if not current or not following:
        return False
    if _SENTENCE_END_RE.search(current):
        return False
    if following[0].isupper():
        return False
    return len(current) >= min_length


def merge_line_content(current: str, following: str) -> str:
    current = current.strip()
    following = following.strip()
    if current.endswith("-") and len(current) > 1 and current[-2].isalnum():
        return current[:-1] + following
    return f"{current} {following}"


def dehyphenate(text: str) -> str:
    """Collapse ``word-\\nword`` and ``word- word`` into ``wordword``."""
    return _HYPHEN_SPACE_RE.sub("", _HYPHEN_BREAK_RE.sub("", text))


def normalize_list_content(text: str) -> ListContent | None:
    """A list when every line is consistently bullet- or number-prefixed (2+ items)."""
    lines = [line.strip() for line in text.split("\n") if line.strip()]
    if len(lines) < 2:
        return None
    list_type: str | None = None
    items: list[str] = []
    for line in lines:
        bullet = _BULLET_LINE_RE.match(line)
        numbered = _NUMBERED_LINE_RE.match(line)
        if bullet and list_type in (None, "unordered"):
            list_type = "unordered"
            items.append(bullet.group(1).strip())
        elif numbered and list_type in (None, "ordered"):
            list_type = "ordered"
            items.append(numbered.group(1).strip())
        else:
            return None
    return ListContent(type=list_type, items=[ListItem(content=item) for item in items])


def detect_heading_level(text: str) -> int | None:
    text = text.strip()
    if not text:
        return None
    if _SUBSUBSECTION_RE.match(text):
        return 4
    if _SUBSECTION_RE.match(text):
        return 3
    level = detect_structural_heading(text)
    if level is not None:
        return level
    if len(text) < 80 and not text.endswith(".") and is_title_case(text):
        return 3
    return None


def is_title_case(text: str) -> bool:
    words = text.split()
    if not words or len(words) > 8:
        return False
    if not words[0][0].isupper():
        return False
    return all(word[0].isupper() or word.lower() in _SMALL_WORDS for word in words)


def clean_heading_text(text: str) -> str:
    cleaned = _HEADING_PREFIX_RE.sub("", text.strip(), count=1).strip()
    return cleaned or text.strip()


def summarize(audit_log: list[CleanupAuditEntry]) -> str:
    if not audit_log:
        return CLEAN_SUMMARY
    total = sum(entry.count for entry in audit_log)
    return f"Applied {total} fixes across {len(audit_log)} operations"


def clean_ir_document(
    document: IRDocument, options: CleanupOptions | Mapping[str, Any] | None = None
) -> CleanupResult:
    """Return a cleaned copy of *document* plus the audit log. Never mutates the input."""
    if isinstance(options, Mapping):
        options = CleanupOptions.from_mapping(options)
    return IRCleaner(options).clean(document)
