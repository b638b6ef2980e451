"""Turn a parsed :class:`Document` into the :class:`DocumentModel` the packager renders.

The walk is depth-first and sequential. Ordered lists get numbering
sequence ids, headings get bookmarks and TOC entries, inline runs are
normalized and image blocks are resolved to bytes plus pixel size. All
per-conversion state lives in :class:`BuildState`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from .errors import ImageRetrievalError
from .headings import HeadingBuilder
from .image_fetch import DEFAULT_TIMEOUT, FetchedImage, fetch_image
from .image_sniffer import (
    detect_format,
    finalize_dimensions,
    parse_dimension_hint,
    resolve_dimensions,
    sniff,
)
from .inline_tokenizer import normalize_runs
from .model import (
    Block,
    Blockquote,
    Document,
    DocumentModel,
    Heading,
    ImageBlock,
    ListBlock,
    ListItem,
    Paragraph,
    TextRun,
)
from .numbering import SequenceRegistry

logger = logging.getLogger(__name__)

IMAGE_PLACEHOLDER_ROLE = "image-placeholder"

ImageFetcher = Callable[[str], FetchedImage]


@dataclass
class BuildState:
    sequences: SequenceRegistry = field(default_factory=SequenceRegistry)
    headings: HeadingBuilder = field(default_factory=HeadingBuilder)
    fetcher: Optional[ImageFetcher] = None


def build_model(
    document: Document,
    asset_root: Path | None = None,
    fetcher: Optional[ImageFetcher] = None,
    state: Optional[BuildState] = None,
    image_timeout: float = DEFAULT_TIMEOUT,
) -> DocumentModel:
    state = state or BuildState()
    if fetcher is not None:
        state.fetcher = fetcher
    elif state.fetcher is None:
        state.fetcher = lambda url: fetch_image(url, asset_root=asset_root, timeout=image_timeout)

    blocks = _build_blocks(document.blocks, state, inherited_sequence=None)
    logger.debug(
        "Built %d blocks, %d headings, %d numbering sequences",
        len(blocks),
        len(state.headings.headings),
        state.sequences.max_sequence_id,
    )
    return DocumentModel(
        blocks=blocks,
        headings=list(state.headings.headings),
        max_sequence_id=state.sequences.max_sequence_id,
        metadata=document.metadata,
    )


def _build_blocks(blocks: List[Block], state: BuildState, inherited_sequence: int | None) -> List[Block]:
    return [_build_block(block, state, inherited_sequence) for block in blocks]


def _build_block(block: Block, state: BuildState, inherited_sequence: int | None) -> Block:
    if isinstance(block, Heading):
        return state.headings.add(block)
    if isinstance(block, Paragraph):
        return Paragraph(runs=normalize_runs(block.runs), role=block.role)
    if isinstance(block, ListBlock):
        return _build_list(block, state, inherited_sequence)
    if isinstance(block, Blockquote):
        return Blockquote(children=_build_blocks(block.children, state, inherited_sequence))
    if isinstance(block, ImageBlock):
        return resolve_image(block, state.fetcher or fetch_image)
    return block


def _build_list(block: ListBlock, state: BuildState, inherited_sequence: int | None) -> ListBlock:
    sequence_id = state.sequences.assign(block.ordered, inherited_sequence)
    child_sequence = sequence_id if block.ordered else inherited_sequence
    items = [
        ListItem(children=_build_blocks(item.children, state, child_sequence))
        for item in block.children
    ]
    return ListBlock(ordered=block.ordered, children=items, sequence_id=sequence_id, start=block.start)


def image_placeholder(alt: str) -> Paragraph:
    return Paragraph(
        runs=[TextRun(f"[Image could not be displayed: {alt}]", italic=True)],
        role=IMAGE_PLACEHOLDER_ROLE,
    )


def resolve_image(block: ImageBlock, fetcher: ImageFetcher) -> Block:
    """Fetch and size one image; failures become a visible placeholder."""
    url, width_hint, height_hint = parse_dimension_hint(block.url)
    try:
        image = fetcher(url)
    except ImageRetrievalError as exc:
        logger.warning("Image %s could not be loaded: %s", block.url[:100], exc)
        return image_placeholder(block.alt)

    image_format = detect_format(image.content_type, block.url, image.data)
    header = sniff(image.data, image_format)
    dimensions = finalize_dimensions(
        resolve_dimensions(width_hint, height_hint, header.intrinsic_width, header.intrinsic_height)
    )
    return ImageBlock(
        alt=block.alt,
        url=block.url,
        data=image.data,
        image_format=image_format,
        width=dimensions.width,
        height=dimensions.height,
    )
