from __future__ import annotations

import io
import logging
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from docx import Document as DocxDocument
from docx.enum.section import WD_ORIENT
from docx.enum.table import WD_TABLE_ALIGNMENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.image.exceptions import InvalidImageStreamError, UnexpectedEndOfFileError, UnrecognizedImageError
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Emu, Pt, RGBColor, Twips

from .builder import IMAGE_PLACEHOLDER_ROLE
from .headings import resolve_heading_format
from .model import (
    Block,
    Blockquote,
    CodeBlock,
    Comment,
    DocumentModel,
    Heading,
    HeadingRecord,
    ImageBlock,
    ListBlock,
    PageBreak,
    Paragraph,
    TableBlock,
    TextRun,
    TocPlaceholder,
)
from .style import CODE_FONT, HEADING_LEVELS, Style

logger = logging.getLogger(__name__)

MAX_LIST_LEVELS = 9
BULLET_GLYPHS = ("•", "◦", "▪")
EMU_PER_PIXEL = 9525
NBSP = "\u00a0"

BLACK = RGBColor(0x00, 0x00, 0x00)
LINK_BLUE = RGBColor(0x00, 0x00, 0xFF)
CODE_GREY = RGBColor(0x44, 0x44, 0x44)
MUTED_GREY = RGBColor(0x66, 0x66, 0x66)
ERROR_RED = RGBColor(0xFF, 0x00, 0x00)

ALIGNMENT = {
    "LEFT": WD_ALIGN_PARAGRAPH.LEFT,
    "CENTER": WD_ALIGN_PARAGRAPH.CENTER,
    "RIGHT": WD_ALIGN_PARAGRAPH.RIGHT,
    "JUSTIFIED": WD_ALIGN_PARAGRAPH.JUSTIFY,
}

# Schema order of the paragraph properties this module writes by hand.
_PPR_ORDER = (
    "w:pStyle", "w:keepNext", "w:keepLines", "w:pageBreakBefore", "w:framePr",
    "w:widowControl", "w:numPr", "w:suppressLineNumbers", "w:pBdr", "w:shd",
    "w:tabs", "w:suppressAutoHyphens", "w:kinsoku", "w:wordWrap", "w:overflowPunct",
    "w:topLinePunct", "w:autoSpaceDE", "w:autoSpaceDN", "w:bidi", "w:adjustRightInd",
    "w:snapToGrid", "w:spacing", "w:ind", "w:contextualSpacing", "w:mirrorIndents",
    "w:suppressOverlap", "w:jc", "w:textDirection", "w:textAlignment",
    "w:textboxTightWrap", "w:outlineLvl", "w:divId", "w:cnfStyle", "w:rPr",
    "w:sectPr", "w:pPrChange",
)

_IMAGE_ERRORS = (InvalidImageStreamError, UnexpectedEndOfFileError, UnrecognizedImageError, struct.error)


@dataclass
class RenderState:
    style: Style
    document_type: str = "document"
    headings: list[HeadingRecord] = field(default_factory=list)
    bullet_num_id: int | None = None
    sequence_num_ids: dict[int, int] = field(default_factory=dict)
    sequence_starts: dict[int, int] = field(default_factory=dict)
    next_bookmark_id: int = 0
    toc_inserted: bool = False


def render_document(
    model: DocumentModel,
    output_path: str | Path,
    style: Style | None = None,
    document_type: str = "document",
) -> None:
    output_path = Path(output_path)
    docx = build_docx(model, style, document_type)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    docx.save(output_path)


def render_to_bytes(model: DocumentModel, style: Style | None = None, document_type: str = "document") -> bytes:
    buffer = io.BytesIO()
    build_docx(model, style, document_type).save(buffer)
    return buffer.getvalue()


def build_docx(model: DocumentModel, style: Style | None = None, document_type: str = "document"):
    style = (style or Style()).with_default_font()
    state = RenderState(style=style, document_type=document_type, headings=list(model.headings))
    state.sequence_starts = _sequence_starts(model.blocks)
    docx = DocxDocument()
    _apply_page_layout(docx)
    _apply_heading_styles(docx, style)
    _register_numbering(docx, model.max_sequence_id, state)

    for block in model.blocks:
        _dispatch_block(docx, block, state)

    if state.headings and not state.toc_inserted:
        logger.debug("No TOC placeholder; %d headings left out of a TOC", len(state.headings))
    return docx


# -- document setup -------------------------------------------------------


def _apply_page_layout(docx) -> None:
    section = docx.sections[0]
    section.orientation = WD_ORIENT.PORTRAIT
    section.top_margin = Twips(1440)
    section.bottom_margin = Twips(1440)
    section.left_margin = Twips(1080)
    section.right_margin = Twips(1080)

    footer = section.footer
    paragraph = footer.paragraphs[0] if footer.paragraphs else footer.add_paragraph()
    paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
    _append_field(paragraph.add_run(), "PAGE")


def _apply_heading_styles(docx, style: Style) -> None:
    for level in HEADING_LEVELS:
        heading_style = docx.styles[f"Heading {level}"]
        heading_style.font.size = Pt((style.title_size - (level - 1) * 4) / 2)
        heading_style.font.bold = True
        heading_style.font.color.rgb = BLACK


def _sequence_starts(blocks: Iterable[Block]) -> dict[int, int]:
    starts: dict[int, int] = {}
    for block in blocks:
        if isinstance(block, ListBlock):
            if block.sequence_id is not None:
                starts.setdefault(block.sequence_id, block.start)
            for item in block.children:
                for sequence_id, start in _sequence_starts(item.children).items():
                    starts.setdefault(sequence_id, start)
        elif isinstance(block, Blockquote):
            for sequence_id, start in _sequence_starts(block.children).items():
                starts.setdefault(sequence_id, start)
    return starts


def _register_numbering(docx, max_sequence_id: int, state: RenderState) -> None:
    numbering = docx.part.numbering_part.element
    state.bullet_num_id = _add_numbering_definition(numbering, ordered=False)
    for sequence_id in range(1, max_sequence_id + 1):
        start = state.sequence_starts.get(sequence_id, 1)
        state.sequence_num_ids[sequence_id] = _add_numbering_definition(numbering, ordered=True, start=start)


def _add_numbering_definition(numbering, ordered: bool, start: int = 1) -> int:
    abstract_ids = [int(el.get(qn("w:abstractNumId"))) for el in numbering.findall(qn("w:abstractNum"))]
    abstract_id = max(abstract_ids, default=-1) + 1
    abstract = OxmlElement("w:abstractNum")
    abstract.set(qn("w:abstractNumId"), str(abstract_id))
    multi_level = OxmlElement("w:multiLevelType")
    multi_level.set(qn("w:val"), "hybridMultilevel")
    abstract.append(multi_level)
    for level in range(MAX_LIST_LEVELS):
        abstract.append(_numbering_level(level, ordered, start if level == 0 else 1))

    nums = numbering.findall(qn("w:num"))
    if nums:
        nums[0].addprevious(abstract)
    else:
        numbering.append(abstract)

    num_id = max((int(el.get(qn("w:numId"))) for el in nums), default=0) + 1
    num = OxmlElement("w:num")
    num.set(qn("w:numId"), str(num_id))
    abstract_ref = OxmlElement("w:abstractNumId")
    abstract_ref.set(qn("w:val"), str(abstract_id))
    num.append(abstract_ref)
    numbering.append(num)
    return num_id


def _numbering_level(level: int, ordered: bool, start: int):
    lvl = OxmlElement("w:lvl")
    lvl.set(qn("w:ilvl"), str(level))
    values = (
        ("w:start", str(start)),
        ("w:numFmt", "decimal" if ordered else "bullet"),
        ("w:lvlText", f"%{level + 1}." if ordered else BULLET_GLYPHS[level % len(BULLET_GLYPHS)]),
        ("w:lvlJc", "left"),
    )
    for tag, value in values:
        element = OxmlElement(tag)
        element.set(qn("w:val"), value)
        lvl.append(element)
    p_pr = OxmlElement("w:pPr")
    ind = OxmlElement("w:ind")
    ind.set(qn("w:left"), str(720 * (level + 1)))
    ind.set(qn("w:hanging"), "360")
    p_pr.append(ind)
    lvl.append(p_pr)
    return lvl


# -- dispatch ---------------------------------------------------------------


def _dispatch_block(docx, block: Block, state: RenderState, list_level: int = 0) -> None:
    if isinstance(block, Heading):
        _render_heading(docx, block, state)
    elif isinstance(block, Paragraph):
        _render_paragraph(docx, block, state)
    elif isinstance(block, ListBlock):
        _render_list(docx, block, state, list_level)
    elif isinstance(block, CodeBlock):
        _render_code_block(docx, block, state)
    elif isinstance(block, Blockquote):
        _render_blockquote(docx, block, state)
    elif isinstance(block, ImageBlock):
        _render_image_block(docx, block, state)
    elif isinstance(block, TableBlock):
        _render_table_block(docx, block, state)
    elif isinstance(block, Comment):
        _render_comment(docx, block, state)
    elif isinstance(block, PageBreak):
        docx.add_page_break()
    elif isinstance(block, TocPlaceholder):
        _render_toc(docx, state)


def _render_heading(docx, heading: Heading, state: RenderState) -> None:
    style = state.style
    fmt = resolve_heading_format(style, heading.level)
    paragraph = docx.add_paragraph(style=f"Heading {heading.level}")
    paragraph.paragraph_format.space_before = Twips(fmt.spacing_before)
    paragraph.paragraph_format.space_after = Twips(fmt.spacing_after)
    if fmt.alignment:
        paragraph.alignment = ALIGNMENT[fmt.alignment]
    _set_bidi(paragraph, style)

    bookmark_id = None
    if heading.bookmark_id:
        bookmark_id = _start_bookmark(paragraph, heading.bookmark_id, state)
    for run in heading.runs:
        docx_run = _add_run(paragraph, run, style, size=fmt.size, font=fmt.font, inherit_emphasis=True)
        docx_run.font.color.rgb = BLACK
    if bookmark_id is not None:
        _end_bookmark(paragraph, bookmark_id)


def _render_paragraph(docx, block: Paragraph, state: RenderState) -> None:
    style = state.style
    paragraph = docx.add_paragraph()
    if block.role == IMAGE_PLACEHOLDER_ROLE:
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        for run in block.runs:
            docx_run = _add_run(paragraph, run, style, size=style.paragraph_size, font=style.paragraph_font)
            docx_run.font.color.rgb = ERROR_RED
        _set_bidi(paragraph, style)
        return

    fmt = paragraph.paragraph_format
    fmt.space_before = Twips(style.paragraph_spacing)
    fmt.space_after = Twips(style.paragraph_spacing)
    fmt.line_spacing = style.line_spacing
    paragraph.alignment = ALIGNMENT.get(style.paragraph_alignment or "LEFT", WD_ALIGN_PARAGRAPH.LEFT)
    if style.paragraph_alignment == "JUSTIFIED":
        fmt.left_indent = Twips(0)
        fmt.right_indent = Twips(0)
    _set_bidi(paragraph, style)
    for run in block.runs:
        _add_run(paragraph, run, style, size=style.paragraph_size, font=style.paragraph_font)


def _render_list(docx, block: ListBlock, state: RenderState, level: int) -> None:
    for item in block.children:
        rendered = False
        for child in item.children:
            if isinstance(child, ListBlock):
                _render_list(docx, child, state, level + 1)
            elif isinstance(child, Paragraph):
                _render_list_paragraph(docx, child.runs, block, state, level)
            else:
                _dispatch_block(docx, child, state, level)
            rendered = True
        if not rendered:
            _render_list_paragraph(docx, [TextRun("")], block, state, level)


def _render_list_paragraph(docx, runs: list[TextRun], block: ListBlock, state: RenderState, level: int) -> None:
    style = state.style
    paragraph = docx.add_paragraph()
    paragraph.paragraph_format.space_before = Twips(style.paragraph_spacing // 2)
    paragraph.paragraph_format.space_after = Twips(style.paragraph_spacing // 2)
    _set_bidi(paragraph, style)
    _set_numbering(paragraph, _list_num_id(docx, block, state), min(level, MAX_LIST_LEVELS - 1))
    for run in runs:
        _add_run(paragraph, run, style, size=style.list_item_size, font=style.list_item_font)


def _list_num_id(docx, block: ListBlock, state: RenderState) -> int:
    if not block.ordered:
        return state.bullet_num_id
    sequence_id = block.sequence_id or 1
    if sequence_id not in state.sequence_num_ids:
        logger.warning("Numbering sequence %d was not pre-registered", sequence_id)
        numbering = docx.part.numbering_part.element
        state.sequence_num_ids[sequence_id] = _add_numbering_definition(numbering, ordered=True, start=block.start)
    return state.sequence_num_ids[sequence_id]


def _render_code_block(docx, block: CodeBlock, state: RenderState) -> None:
    style = state.style
    size = Pt(style.code_block_size / 2)
    paragraph = docx.add_paragraph()
    if block.language:
        run = paragraph.add_run(block.language)
        run.bold = True
        _set_code_font(run, size, MUTED_GREY)
        run.add_break()
    lines = block.code.split("\n")
    for index, line in enumerate(lines):
        stripped = line.lstrip()
        run = paragraph.add_run(NBSP * (len(line) - len(stripped)) + stripped)
        _set_code_font(run, size, CODE_GREY)
        if index < len(lines) - 1:
            run.add_break()

    fmt = paragraph.paragraph_format
    fmt.space_before = Twips(style.paragraph_spacing)
    fmt.space_after = Twips(style.paragraph_spacing)
    fmt.left_indent = Twips(360)
    _set_ppr_child(paragraph, _shading("F5F5F5"))
    _set_ppr_child(paragraph, _borders(("top", "left", "bottom", "right"), size=1, color="DDDDDD"))


def _render_blockquote(docx, block: Blockquote, state: RenderState) -> None:
    style = state.style
    for child in block.children:
        if not isinstance(child, Paragraph):
            _dispatch_block(docx, child, state)
            continue
        paragraph = docx.add_paragraph()
        fmt = paragraph.paragraph_format
        fmt.left_indent = Twips(720)
        fmt.space_before = Twips(style.paragraph_spacing)
        fmt.space_after = Twips(style.paragraph_spacing)
        if style.blockquote_alignment:
            paragraph.alignment = ALIGNMENT[style.blockquote_alignment]
        _set_ppr_child(paragraph, _borders(("left",), size=3, color="AAAAAA"))
        _set_bidi(paragraph, style)
        for run in child.runs:
            docx_run = _add_run(paragraph, run, style, size=style.blockquote_size, font=style.blockquote_font)
            docx_run.italic = True


def _render_comment(docx, block: Comment, state: RenderState) -> None:
    style = state.style
    paragraph = docx.add_paragraph()
    paragraph.paragraph_format.space_before = Twips(style.paragraph_spacing)
    paragraph.paragraph_format.space_after = Twips(style.paragraph_spacing)
    run = paragraph.add_run("Comment: " + block.text)
    run.italic = True
    run.font.color.rgb = MUTED_GREY


def _render_image_block(docx, block: ImageBlock, state: RenderState) -> None:
    style = state.style
    paragraph = docx.add_paragraph()
    paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
    paragraph.paragraph_format.space_before = Twips(style.paragraph_spacing)
    paragraph.paragraph_format.space_after = Twips(style.paragraph_spacing)
    run = paragraph.add_run()
    if block.data is None or not block.width or not block.height:
        run.text = f"[Image could not be displayed: {block.alt}]"
        run.italic = True
        run.font.color.rgb = ERROR_RED
        return
    try:
        run.add_picture(
            io.BytesIO(block.data),
            width=Emu(block.width * EMU_PER_PIXEL),
            height=Emu(block.height * EMU_PER_PIXEL),
        )
    except _IMAGE_ERRORS as exc:
        logger.warning("Image %s could not be embedded: %s", block.url[:100], exc)
        run.text = f"[Image could not be displayed: {block.alt}]"
        run.italic = True
        run.font.color.rgb = ERROR_RED


def _render_table_block(docx, block: TableBlock, state: RenderState) -> None:
    style = state.style
    col_count = max([len(block.headers)] + [len(row) for row in block.rows]) or 1
    table = docx.add_table(rows=1 + len(block.rows), cols=col_count)
    table.style = "Table Grid"
    table.alignment = WD_TABLE_ALIGNMENT.CENTER
    header_fill = "DDDDDD" if state.document_type == "report" else "F2F2F2"

    header_row = table.rows[0]
    header_row._tr.get_or_add_trPr().append(OxmlElement("w:tblHeader"))
    for idx, cell_text in enumerate(block.headers):
        cell = table.cell(0, idx)
        paragraph = cell.paragraphs[0]
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        run = paragraph.add_run(cell_text)
        run.bold = True
        run.font.color.rgb = BLACK
        _set_font(run, style.table_header_size or style.paragraph_size, style.table_header_font or style.default_font)
        cell._tc.get_or_add_tcPr().append(_shading(header_fill))

    for r_idx, row in enumerate(block.rows, start=1):
        for c_idx, cell_text in enumerate(row[:col_count]):
            run = table.cell(r_idx, c_idx).paragraphs[0].add_run(cell_text)
            run.font.color.rgb = BLACK
            _set_font(run, style.table_item_size or style.paragraph_size, style.table_item_font or style.default_font)


def _render_toc(docx, state: RenderState) -> None:
    if state.toc_inserted or not state.headings:
        logger.warning("TOC placeholder found, but no headings collected or TOC already inserted.")
        return
    style = state.style
    title = docx.add_paragraph()
    title.alignment = WD_ALIGN_PARAGRAPH.CENTER
    title.paragraph_format.space_after = Twips(240)
    _set_bidi(title, style)
    title_run = title.add_run("Table of Contents")
    title_run.bold = True
    _set_font(title_run, style.title_size, style.toc_font)

    for heading in state.headings:
        level_style = style.toc_level(heading.level)
        size = level_style.font_size or style.toc_font_size
        if not size:
            size = (style.paragraph_size or 24) - (heading.level - 1) * 2
        bold = level_style.bold if level_style.bold is not None else heading.level == 1
        paragraph = docx.add_paragraph()
        paragraph.paragraph_format.left_indent = Twips((heading.level - 1) * 400)
        paragraph.paragraph_format.space_after = Twips(120)
        _set_bidi(paragraph, style)
        hyperlink = OxmlElement("w:hyperlink")
        hyperlink.set(qn("w:anchor"), heading.bookmark_id)
        hyperlink.set(qn("w:history"), "1")
        run = paragraph.add_run(heading.text)
        run.bold = bold
        run.italic = bool(level_style.italic)
        _set_font(run, size, level_style.font or style.toc_font)
        hyperlink.append(run._r)
        paragraph._p.append(hyperlink)
    state.toc_inserted = True


# -- run helpers ------------------------------------------------------------


def _add_run(paragraph, text_run: TextRun, style: Style, size: int, font: str | None, inherit_emphasis: bool = False):
    """Append one styled run; link runs are wrapped in an external hyperlink."""
    run = paragraph.add_run(text_run.value)
    if text_run.code:
        _set_code_font(run, Pt(max(size - 2, 2) / 2), CODE_GREY)
        _append_rpr(run, _shading("F5F5F5"))
    else:
        if inherit_emphasis:
            run.bold = True if text_run.bold else None
            run.italic = True if text_run.italic else None
        else:
            run.bold = text_run.bold
            run.italic = text_run.italic
        _set_font(run, size, font)
        if text_run.link is not None:
            run.font.color.rgb = LINK_BLUE
            run.font.underline = True
    if style.rtl:
        _append_rpr(run, OxmlElement("w:rtl"))
    if text_run.link is not None and not text_run.code:
        r_id = paragraph.part.relate_to(text_run.link, RT.HYPERLINK, is_external=True)
        hyperlink = OxmlElement("w:hyperlink")
        hyperlink.set(qn("r:id"), r_id)
        hyperlink.append(run._r)
        paragraph._p.append(hyperlink)
    return run


def _set_font(run, size: int | None, font: str | None) -> None:
    if size:
        run.font.size = Pt(size / 2)
    if font:
        run.font.name = font


def _set_code_font(run, size, color: RGBColor) -> None:
    run.font.name = CODE_FONT
    run.font.size = size
    run.font.color.rgb = color


def _append_rpr(run, element) -> None:
    run._r.get_or_add_rPr().append(element)


def _append_field(run, instruction: str) -> None:
    begin = OxmlElement("w:fldChar")
    begin.set(qn("w:fldCharType"), "begin")
    instr = OxmlElement("w:instrText")
    instr.set(qn("xml:space"), "preserve")
    instr.text = f" {instruction} "
    end = OxmlElement("w:fldChar")
    end.set(qn("w:fldCharType"), "end")
    run._r.append(begin)
    run._r.append(instr)
    run._r.append(end)


# -- paragraph property helpers ---------------------------------------------


def _set_ppr_child(paragraph, element) -> None:
    """Insert *element* into the paragraph properties at its schema position."""
    p_pr = paragraph._p.get_or_add_pPr()
    tag = element.tag
    for existing in p_pr.findall(tag):
        p_pr.remove(existing)
    names = [qn(name) for name in _PPR_ORDER]
    position = names.index(tag) if tag in names else len(names)
    successors = set(names[position + 1 :])
    for child in p_pr:
        if child.tag in successors:
            child.addprevious(element)
            return
    p_pr.append(element)


def _set_bidi(paragraph, style: Style) -> None:
    if style.rtl:
        _set_ppr_child(paragraph, OxmlElement("w:bidi"))


def _set_numbering(paragraph, num_id: int, level: int) -> None:
    num_pr = OxmlElement("w:numPr")
    ilvl = OxmlElement("w:ilvl")
    ilvl.set(qn("w:val"), str(level))
    num = OxmlElement("w:numId")
    num.set(qn("w:val"), str(num_id))
    num_pr.append(ilvl)
    num_pr.append(num)
    _set_ppr_child(paragraph, num_pr)


def _shading(fill: str):
    shd = OxmlElement("w:shd")
    shd.set(qn("w:val"), "clear")
    shd.set(qn("w:color"), "auto")
    shd.set(qn("w:fill"), fill)
    return shd


def _borders(sides: Iterable[str], size: int, color: str):
    borders = OxmlElement("w:pBdr")
    for side in sides:
        border = OxmlElement(f"w:{side}")
        border.set(qn("w:val"), "single")
        border.set(qn("w:sz"), str(size))
        border.set(qn("w:space"), "4")
        border.set(qn("w:color"), color)
        borders.append(border)
    return borders


def _start_bookmark(paragraph, name: str, state: RenderState) -> int:
    bookmark_id = state.next_bookmark_id
    state.next_bookmark_id += 1
    start = OxmlElement("w:bookmarkStart")
    start.set(qn("w:id"), str(bookmark_id))
    start.set(qn("w:name"), name)
    paragraph._p.append(start)
    return bookmark_id


def _end_bookmark(paragraph, bookmark_id: int) -> None:
    end = OxmlElement("w:bookmarkEnd")
    end.set(qn("w:id"), str(bookmark_id))
    paragraph._p.append(end)
