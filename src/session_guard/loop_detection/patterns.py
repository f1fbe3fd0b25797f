"""
Structural markdown classification for content loop detection.

Tables, lists, headings, quotes, dividers and fenced code repeat their own
syntax legitimately. The content tracker uses these markers to avoid building
loop evidence across element boundaries.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from session_guard.core.interfaces.model_bases import InternalDTO

CODE_FENCE = "```"

_TABLE_RE = re.compile(r"(?:^|\n)\s*(?:\|.*\||[|+\-]{3,})")
_BULLET_RE = re.compile(r"(?:^|\n)\s*[*+\-]\s")
_NUMBERED_RE = re.compile(r"(?:^|\n)\s*\d+\.\s")
_HEADING_RE = re.compile(r"(?:^|\n)#+\s")
_BLOCKQUOTE_RE = re.compile(r"(?:^|\n)>\s")
_DIVIDER_RE = re.compile(r"^[+\-_=*\u2500-\u257F]+$")


@dataclass(frozen=True)
class StructureMarkers(InternalDTO):
    """Structural markers found in one content fragment."""

    fence_count: int = 0
    has_table: bool = False
    has_list_item: bool = False
    has_heading: bool = False
    has_blockquote: bool = False
    is_divider: bool = False

    @property
    def has_structure(self) -> bool:
        return bool(
            self.fence_count
            or self.has_table
            or self.has_list_item
            or self.has_heading
            or self.has_blockquote
            or self.is_divider
        )

    @property
    def toggles_code_block(self) -> bool:
        return self.fence_count % 2 == 1


def is_divider(content: str) -> bool:
    """A line made only of repeated rule characters (``---``, ``***``, ``═══``)."""
    return bool(_DIVIDER_RE.match(content.strip()))


def classify_structure(content: str) -> StructureMarkers:
    """Scan a fragment for markdown structure."""
    return StructureMarkers(
        fence_count=content.count(CODE_FENCE),
        has_table=bool(_TABLE_RE.search(content)),
        has_list_item=bool(
            _BULLET_RE.search(content) or _NUMBERED_RE.search(content)
        ),
        has_heading=bool(_HEADING_RE.search(content)),
        has_blockquote=bool(_BLOCKQUOTE_RE.search(content)),
        is_divider=is_divider(content),
    )
