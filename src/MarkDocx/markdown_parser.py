from __future__ import annotations

import logging
import re
from typing import Iterable, List, Sequence

import yaml
from markdown_it import MarkdownIt
from mdit_py_plugins.front_matter import front_matter_plugin

from .inline_tokenizer import plain_text, tokenize
from .model import (
    Block,
    Blockquote,
    CodeBlock,
    Comment,
    Document,
    Heading,
    ImageBlock,
    ListBlock,
    ListItem,
    PageBreak,
    Paragraph,
    TableBlock,
    TocPlaceholder,
)

logger = logging.getLogger(__name__)

# Inline markup is left in the text tokens and handled by the tokenizer.
_TOKENIZER_RULES = ["emphasis", "backticks", "link", "escape"]

_TOC_MARKERS = {"[toc]"}
_PAGE_BREAK_MARKERS = {"\\pagebreak", "\\newpage"}
_HTML_COMMENT = re.compile(r"^\s*<!--(?P<body>.*?)-->\s*$", re.DOTALL)
_COMMENT_PREFIX = re.compile(r"^\s*COMMENT:\s*", re.IGNORECASE)


def create_markdown() -> MarkdownIt:
    return MarkdownIt("commonmark").use(front_matter_plugin).enable(["table"]).disable(_TOKENIZER_RULES)


def parse_markdown(text: str) -> Document:
    tokens = create_markdown().parse(text)
    metadata = None
    if tokens and tokens[0].type == "front_matter":
        metadata = _parse_front_matter(tokens[0].content)
        tokens = tokens[1:]
    blocks, _ = _parse_blocks(tokens, 0, stop_types=set())
    return Document(blocks=blocks, metadata=metadata)


def _parse_front_matter(content: str) -> dict | None:
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        logger.warning("Ignoring unreadable front matter: %s", exc)
        return None
    if data is not None and not isinstance(data, dict):
        logger.warning("Ignoring front matter that is not a mapping")
        return None
    return data


def _parse_blocks(tokens, index: int, stop_types: set[str]) -> tuple[list, int]:
    blocks: List[Block] = []
    i = index
    while i < len(tokens):
        tok = tokens[i]
        if tok.type in stop_types:
            break
        if tok.type == "heading_open":
            level = int(tok.tag[1])
            inline = tokens[i + 1]
            blocks.append(Heading(level=level, runs=tokenize(_inline_source(inline.children or []), allow_links=False)))
            i += 3
        elif tok.type == "paragraph_open":
            inline = tokens[i + 1]
            blocks.extend(_paragraph_blocks(inline.children or []))
            i += 3
        elif tok.type in ("bullet_list_open", "ordered_list_open"):
            ordered = tok.type == "ordered_list_open"
            start = int(tok.attrGet("start") or 1) if ordered else 1
            close_type = "ordered_list_close" if ordered else "bullet_list_close"
            i += 1
            items: list[ListItem] = []
            while i < len(tokens) and tokens[i].type != close_type:
                if tokens[i].type == "list_item_open":
                    i += 1
                    item_blocks, i = _parse_blocks(tokens, i, stop_types={"list_item_close"})
                    items.append(ListItem(children=item_blocks))
                    i += 1  # skip list_item_close
                else:
                    i += 1
            blocks.append(ListBlock(ordered=ordered, children=items, start=start))
            i += 1  # skip list close
        elif tok.type in ("fence", "code_block"):
            blocks.append(CodeBlock(code=tok.content.rstrip("\n"), language=tok.info.strip() or None))
            i += 1
        elif tok.type == "blockquote_open":
            children, i = _parse_blocks(tokens, i + 1, stop_types={"blockquote_close"})
            blocks.append(Blockquote(children=children))
            i += 1  # skip blockquote_close
        elif tok.type == "table_open":
            table_block, i = _parse_table(tokens, i)
            blocks.append(table_block)
        elif tok.type == "html_block":
            block = _html_block(tok.content)
            if block is not None:
                blocks.append(block)
            i += 1
        else:
            i += 1
    return blocks, i


def _html_block(content: str) -> Block | None:
    match = _HTML_COMMENT.match(content)
    if not match:
        logger.debug("Dropping raw HTML block")
        return None
    body = match.group("body").strip()
    if body.lower() == "pagebreak":
        return PageBreak()
    if body.lower() == "toc":
        return TocPlaceholder()
    if _COMMENT_PREFIX.match(body):
        return Comment(text=_COMMENT_PREFIX.sub("", body, count=1))
    return None


def _paragraph_blocks(children: Iterable) -> list[Block]:
    """Split a paragraph around its images, keeping document order."""
    blocks: list[Block] = []
    pending: list = []
    for child in children:
        if child.type == "image":
            blocks.extend(_text_block(pending))
            pending = []
            alt = child.content or plain_text(tokenize(_inline_source(child.children or [])))
            blocks.append(ImageBlock(alt=alt, url=child.attrGet("src") or ""))
        else:
            pending.append(child)
    blocks.extend(_text_block(pending))
    return blocks


def _text_block(children: list) -> list[Block]:
    source = _inline_source(children)
    if not source.strip():
        return []
    marker = source.strip()
    if marker.lower() in _TOC_MARKERS:
        return [TocPlaceholder()]
    if marker.lower() in _PAGE_BREAK_MARKERS:
        return [PageBreak()]
    return [Paragraph(runs=tokenize(source))]


def _inline_source(children: Iterable) -> str:
    """Rebuild the inline markdown text from markdown-it's inline children."""
    parts: list[str] = []
    children_list = list(children)
    i = 0
    while i < len(children_list):
        child = children_list[i]
        if child.type in ("text", "html_inline"):
            parts.append(child.content)
        elif child.type == "softbreak":
            parts.append(" ")
        elif child.type == "hardbreak":
            parts.append("\n")
        elif child.type == "link_open":
            # autolinks are the only links markdown-it still produces
            label, i = _collect_text(children_list, i + 1, "link_close")
            parts.append(f"[{label}]({child.attrGet('href') or ''})")
        elif child.type == "image":
            parts.append(child.content)
        i += 1
    return "".join(parts)


def _collect_text(tokens: Sequence, index: int, closing_type: str) -> tuple[str, int]:
    texts: list[str] = []
    i = index
    while i < len(tokens):
        tok = tokens[i]
        if tok.type == closing_type:
            break
        if tok.type == "text":
            texts.append(tok.content)
        i += 1
    return "".join(texts), i


def _parse_table(tokens, index: int) -> tuple[TableBlock, int]:
    headers: list[str] = []
    rows: list[list[str]] = []
    i = index + 1
    while i < len(tokens):
        tok = tokens[i]
        if tok.type == "thead_open":
            i += 1
            while tokens[i].type != "thead_close":
                if tokens[i].type == "th_open":
                    headers.append(_cell_text(tokens[i + 1]))
                    i += 3  # skip th_open, inline, th_close
                else:
                    i += 1
            i += 1
        elif tok.type == "tbody_open":
            i += 1
            while tokens[i].type != "tbody_close":
                if tokens[i].type == "tr_open":
                    row: list[str] = []
                    i += 1
                    while tokens[i].type != "tr_close":
                        if tokens[i].type in {"td_open", "th_open"}:
                            row.append(_cell_text(tokens[i + 1]))
                            i += 3
                        else:
                            i += 1
                    rows.append(row)
                    i += 1  # skip tr_close
                else:
                    i += 1
            i += 1
        elif tok.type == "table_close":
            break
        else:
            i += 1
    return TableBlock(headers=headers, rows=rows), i + 1


def _cell_text(inline) -> str:
    return plain_text(tokenize(_inline_source(inline.children or []))).strip()
