from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Pattern, Union

from .builder import ImageFetcher, build_model
from .errors import MarkdownConversionError
from .image_fetch import DEFAULT_TIMEOUT
from .markdown_parser import parse_markdown
from .model import Block, Blockquote, Comment, Document, DocumentModel, Heading, ListBlock, Paragraph, TableBlock
from .renderer_docx import render_to_bytes
from .style import Style, validate_style
from .utils import read_markdown, resolve_output_path

logger = logging.getLogger(__name__)

DOCUMENT_TYPES = ("document", "report")


@dataclass
class TextReplacement:
    """Literal string or regex replacement applied to every text run."""

    find: Union[str, Pattern[str]]
    replace: Union[str, Callable[[re.Match], str]]

    def apply(self, text: str) -> str:
        if isinstance(self.find, str):
            if not self.find:
                return text
            if callable(self.replace):
                return re.sub(re.escape(self.find), self.replace, text)
            return text.replace(self.find, self.replace)
        return self.find.sub(self.replace, text)


@dataclass
class ConversionOptions:
    document_type: str = "document"
    style: Style = field(default_factory=Style)
    text_replacements: List[TextReplacement] = field(default_factory=list)
    asset_root: Optional[Path] = None
    image_timeout: float = DEFAULT_TIMEOUT
    image_fetcher: Optional[ImageFetcher] = None


def validate_input(markdown: object, options: ConversionOptions) -> None:
    if not isinstance(markdown, str) or not markdown:
        raise MarkdownConversionError(
            "Invalid markdown input: Markdown must be a non-empty string",
            {"markdown_type": type(markdown).__name__},
        )
    if options.document_type not in DOCUMENT_TYPES:
        raise MarkdownConversionError(
            f"Invalid document type: Must be one of {', '.join(DOCUMENT_TYPES)}",
            {"document_type": options.document_type},
        )
    validate_style(options.style)


def parse_to_model(markdown: str, options: ConversionOptions | None = None) -> DocumentModel:
    options = options or ConversionOptions()
    validate_input(markdown, options)
    try:
        document = parse_markdown(markdown)
        apply_replacements(document, options.text_replacements)
        return build_model(
            document,
            asset_root=options.asset_root,
            fetcher=options.image_fetcher,
            image_timeout=options.image_timeout,
        )
    except MarkdownConversionError:
        raise
    except Exception as exc:
        raise _conversion_error(exc) from exc


def convert_markdown_to_docx(markdown: str, options: ConversionOptions | None = None) -> bytes:
    """Convert markdown text into the bytes of a .docx file."""
    options = options or ConversionOptions()
    model = parse_to_model(markdown, options)
    try:
        return render_to_bytes(model, options.style, options.document_type)
    except MarkdownConversionError:
        raise
    except Exception as exc:
        raise _conversion_error(exc) from exc


def convert_file(
    input_path: str | Path,
    output_path: str | Path | None = None,
    options: ConversionOptions | None = None,
) -> Path:
    input_path = Path(input_path).expanduser()
    options = options or ConversionOptions(asset_root=input_path.parent)
    if options.asset_root is None:
        options.asset_root = input_path.parent
    target = resolve_output_path(input_path, str(output_path) if output_path else None)

    markdown_text = read_markdown(input_path)
    logger.debug("Markdown length: %d chars", len(markdown_text))
    payload = convert_markdown_to_docx(markdown_text, options)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(payload)
    return target


def apply_replacements(document: Document, replacements: List[TextReplacement]) -> None:
    if not replacements:
        return
    _replace_in_blocks(document.blocks, replacements)


def _replace_in_blocks(blocks: List[Block], replacements: List[TextReplacement]) -> None:
    for block in blocks:
        if isinstance(block, (Heading, Paragraph)):
            for run in block.runs:
                run.value = _replace(run.value, replacements)
        elif isinstance(block, ListBlock):
            for item in block.children:
                _replace_in_blocks(item.children, replacements)
        elif isinstance(block, Blockquote):
            _replace_in_blocks(block.children, replacements)
        elif isinstance(block, TableBlock):
            block.headers = [_replace(cell, replacements) for cell in block.headers]
            block.rows = [[_replace(cell, replacements) for cell in row] for row in block.rows]
        elif isinstance(block, Comment):
            block.text = _replace(block.text, replacements)


def _replace(text: str, replacements: List[TextReplacement]) -> str:
    for replacement in replacements:
        text = replacement.apply(text)
    return text


def _conversion_error(exc: Exception) -> MarkdownConversionError:
    return MarkdownConversionError(
        f"Failed to convert markdown to docx: {exc}",
        {"original_error": exc},
    )
