from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from .bookmarks import BookmarkAllocator
from .inline_tokenizer import normalize_runs, plain_text, serialize_runs
from .model import Heading, HeadingRecord, TextRun
from .style import Style

logger = logging.getLogger(__name__)

MIN_LEVEL = 1
MAX_LEVEL = 5


@dataclass(frozen=True)
class HeadingFormat:
    size: int
    font: Optional[str]
    alignment: Optional[str]
    spacing_before: int
    spacing_after: int


def clamp_level(level: int) -> int:
    return max(MIN_LEVEL, min(MAX_LEVEL, level))


def heading_size(style: Style, level: int) -> int:
    explicit = style.heading_level(level).size
    if explicit:
        return explicit
    if level > 1:
        return style.title_size - (level - 1) * 4
    return style.title_size


def heading_alignment(style: Style, level: int) -> Optional[str]:
    return style.heading_level(level).alignment or style.heading_alignment or None


def heading_font(style: Style, level: int) -> Optional[str]:
    return style.heading_level(level).font or style.heading_font or style.default_font or None


def resolve_heading_format(style: Style, level: int) -> HeadingFormat:
    level = clamp_level(level)
    return HeadingFormat(
        size=heading_size(style, level),
        font=heading_font(style, level),
        alignment=heading_alignment(style, level),
        spacing_before=style.heading_spacing * 2 if level == 1 else style.heading_spacing,
        spacing_after=style.heading_spacing // 2,
    )


def bookmark_source_text(runs: List[TextRun]) -> str:
    """Heading text as marker syntax with every ``*`` removed."""
    return serialize_runs(runs).replace("*", "")


def heading_runs(runs: List[TextRun]) -> List[TextRun]:
    """Runs as headings render them: links collapse to their label text."""
    return normalize_runs(
        TextRun(run.value, bold=run.bold, italic=run.italic, code=run.code) for run in runs
    )


class HeadingBuilder:
    """Assigns bookmarks to headings and keeps the ordered TOC entry list."""

    def __init__(self, allocator: Optional[BookmarkAllocator] = None) -> None:
        self.allocator = allocator or BookmarkAllocator()
        self.headings: List[HeadingRecord] = []

    def add(self, heading: Heading) -> Heading:
        level = clamp_level(heading.level)
        bookmark_id = self.allocator.allocate(bookmark_source_text(heading.runs))
        runs = heading_runs(heading.runs)
        self.headings.append(HeadingRecord(text=plain_text(runs), level=level, bookmark_id=bookmark_id))
        logger.debug("Heading %d %r -> %s", level, self.headings[-1].text, bookmark_id)
        return Heading(level=level, runs=runs, bookmark_id=bookmark_id)
