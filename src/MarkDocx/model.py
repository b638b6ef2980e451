from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence


@dataclass
class Block:
    """Base class for block-level nodes."""


@dataclass
class TextRun:
    """A span of text sharing one styling decision."""

    value: str
    bold: bool = False
    italic: bool = False
    code: bool = False
    link: str | None = None

    def same_style(self, other: "TextRun") -> bool:
        return (
            self.bold == other.bold
            and self.italic == other.italic
            and self.code == other.code
            and self.link == other.link
        )


@dataclass
class Document:
    blocks: List[Block]
    metadata: dict[str, Any] | None = None


@dataclass
class Heading(Block):
    level: int
    runs: List[TextRun]
    bookmark_id: str | None = None


@dataclass
class Paragraph(Block):
    runs: List[TextRun]
    role: str = "body"


@dataclass
class ListItem:
    children: List[Block]


@dataclass
class ListBlock(Block):
    ordered: bool
    children: List[ListItem]
    sequence_id: int | None = None
    start: int = 1


@dataclass
class CodeBlock(Block):
    code: str
    language: str | None = None


@dataclass
class Blockquote(Block):
    children: List[Block]


@dataclass
class ImageBlock(Block):
    alt: str
    url: str
    data: bytes | None = field(default=None, repr=False)
    image_format: str | None = None
    width: int | None = None
    height: int | None = None


@dataclass
class TableBlock(Block):
    headers: Sequence[str]
    rows: Sequence[Sequence[str]]


@dataclass
class Comment(Block):
    text: str


@dataclass
class PageBreak(Block):
    """Explicit page break marker."""


@dataclass
class TocPlaceholder(Block):
    """Position where the table of contents is inserted."""


@dataclass(frozen=True)
class HeadingRecord:
    text: str
    level: int
    bookmark_id: str


@dataclass(frozen=True)
class ImageDimensions:
    width: int
    height: Optional[int] = None


@dataclass
class DocumentModel:
    """Finalized blocks plus the bookkeeping the packager needs."""

    blocks: List[Block]
    headings: List[HeadingRecord] = field(default_factory=list)
    max_sequence_id: int = 0
    metadata: dict[str, Any] | None = None
