"""Style configuration consumed by the model builder and the DOCX packager.

Sizes are in half-points (24 == 12pt) and spacings in twips, matching the
units Word stores internally.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from .errors import MarkdownConversionError

ALIGNMENTS = ("LEFT", "CENTER", "RIGHT", "JUSTIFIED")
DIRECTIONS = ("LTR", "RTL")
HEADING_LEVELS = range(1, 6)

CODE_FONT = "Courier New"


@dataclass
class HeadingLevelStyle:
    size: int | None = None
    font: str | None = None
    alignment: str | None = None


@dataclass
class TocLevelStyle:
    font: str | None = None
    font_size: int | None = None
    bold: bool | None = None
    italic: bool | None = None


@dataclass
class Style:
    title_size: int = 32
    heading_spacing: int = 240
    paragraph_spacing: int = 240
    line_spacing: float = 1.15
    direction: str = "LTR"
    default_font: str | None = None
    # headings
    heading_font: str | None = None
    heading_alignment: str | None = None
    headings: dict[int, HeadingLevelStyle] = field(default_factory=dict)
    # body
    paragraph_size: int = 24
    paragraph_font: str | None = None
    paragraph_alignment: str | None = "LEFT"
    list_item_size: int = 24
    list_item_font: str | None = None
    code_block_size: int = 20
    blockquote_size: int = 24
    blockquote_font: str | None = None
    blockquote_alignment: str | None = None
    table_header_size: int | None = None
    table_header_font: str | None = None
    table_item_size: int | None = None
    table_item_font: str | None = None
    # table of contents
    toc_font: str | None = None
    toc_font_size: int | None = None
    toc_levels: dict[int, TocLevelStyle] = field(default_factory=dict)

    @property
    def rtl(self) -> bool:
        return self.direction == "RTL"

    def heading_level(self, level: int) -> HeadingLevelStyle:
        return self.headings.get(level) or HeadingLevelStyle()

    def toc_level(self, level: int) -> TocLevelStyle:
        return self.toc_levels.get(level) or TocLevelStyle()

    def with_default_font(self) -> Style:
        """Copy where ``default_font`` fills every family-level font left unset."""
        if not self.default_font:
            return self
        return replace(
            self,
            heading_font=self.heading_font or self.default_font,
            blockquote_font=self.blockquote_font or self.default_font,
            list_item_font=self.list_item_font or self.default_font,
            paragraph_font=self.paragraph_font or self.default_font,
            toc_font=self.toc_font or self.default_font,
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Style:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown style option(s): {', '.join(unknown)}")
        values = dict(data)
        if "headings" in values:
            values["headings"] = _level_mapping(values["headings"], HeadingLevelStyle)
        if "toc_levels" in values:
            values["toc_levels"] = _level_mapping(values["toc_levels"], TocLevelStyle)
        return cls(**values)


def _level_mapping(raw: Any, factory) -> dict:
    if not isinstance(raw, Mapping):
        raise ValueError(f"Expected a mapping of heading levels, got {type(raw).__name__}")
    result = {}
    for key, value in raw.items():
        level = int(key)
        if level not in HEADING_LEVELS:
            raise ValueError(f"Heading level must be between 1 and 5, got {level}")
        result[level] = factory(**(value or {}))
    return result


def load_style(path: str | Path) -> Style:
    """Read a YAML style file into a :class:`Style`."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError("Style file root must be a mapping.")
    return Style.from_mapping(data)


def validate_style(style: Style) -> None:
    """Reject values outside the ranges Word accepts for this layout."""
    if style.title_size and not 8 <= style.title_size <= 72:
        raise MarkdownConversionError(
            "Invalid title size: Must be between 8 and 72 points",
            {"title_size": style.title_size},
        )
    if style.heading_spacing and not 0 <= style.heading_spacing <= 720:
        raise MarkdownConversionError(
            "Invalid heading spacing: Must be between 0 and 720 twips",
            {"heading_spacing": style.heading_spacing},
        )
    if style.paragraph_spacing and not 0 <= style.paragraph_spacing <= 720:
        raise MarkdownConversionError(
            "Invalid paragraph spacing: Must be between 0 and 720 twips",
            {"paragraph_spacing": style.paragraph_spacing},
        )
    if style.line_spacing and not 1 <= style.line_spacing <= 3:
        raise MarkdownConversionError(
            "Invalid line spacing: Must be between 1 and 3",
            {"line_spacing": style.line_spacing},
        )
    if style.direction not in DIRECTIONS:
        raise MarkdownConversionError(
            f"Invalid direction: Must be one of {', '.join(DIRECTIONS)}",
            {"direction": style.direction},
        )
    alignments = {
        "heading_alignment": style.heading_alignment,
        "paragraph_alignment": style.paragraph_alignment,
        "blockquote_alignment": style.blockquote_alignment,
    }
    for level, level_style in style.headings.items():
        alignments[f"headings.{level}.alignment"] = level_style.alignment
    for name, value in alignments.items():
        if value is not None and value not in ALIGNMENTS:
            raise MarkdownConversionError(
                f"Invalid alignment for {name}: Must be one of {', '.join(ALIGNMENTS)}",
                {name: value},
            )
