import io
from pathlib import Path

from docx import Document as DocxReader
from docx.shared import Pt

from MarkDocx import markdown_parser
from MarkDocx.builder import build_model
from MarkDocx.converter import ConversionOptions, convert_markdown_to_docx
from MarkDocx.model import DocumentModel, Heading, HeadingRecord, ListBlock, ListItem, Paragraph, TextRun, TocPlaceholder
from MarkDocx.renderer_docx import render_document
from MarkDocx.style import Style

W_NS = "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}"


def _read(data: bytes):
    return DocxReader(io.BytesIO(data))


def _num_ids(reader):
    ids = []
    for p in reader.paragraphs:
        values = p._p.xpath("./w:pPr/w:numPr/w:numId/@w:val")
        levels = p._p.xpath("./w:pPr/w:numPr/w:ilvl/@w:val")
        if values:
            ids.append((p.text, values[0], levels[0]))
    return ids


def test_render_creates_docx(tmp_path: Path):
    model = DocumentModel(
        blocks=[
            Heading(level=1, runs=[TextRun("Intro")], bookmark_id="_Toc_Intro_1"),
            Paragraph(runs=[TextRun("Example paragraph.")]),
        ],
        headings=[HeadingRecord("Intro", 1, "_Toc_Intro_1")],
    )
    output_file = tmp_path / "out" / "report.docx"
    render_document(model, output_file)
    assert output_file.exists()
    assert output_file.stat().st_size > 0


def test_heading_bookmark_and_toc_link():
    md_text = "[TOC]\n\n# Intro\n\ntext\n\n## Details\n"
    reader = _read(convert_markdown_to_docx(md_text))
    xml = "\n".join(p._p.xml for p in reader.paragraphs)

    heading = next(p for p in reader.paragraphs if p.style.name == "Heading 1")
    names = heading._p.xpath("./w:bookmarkStart/@w:name")
    assert len(names) == 1 and names[0].startswith("_Toc_Intro_")
    assert heading._p.xpath("./w:bookmarkEnd")
    assert "Table of Contents" in xml
    assert f'w:anchor="{names[0]}"' in xml
    assert xml.index("Table of Contents") < xml.index("w:bookmarkStart")


def test_second_toc_placeholder_is_dropped():
    reader = _read(convert_markdown_to_docx("[TOC]\n\n# A\n\n[TOC]\n"))
    xml = "\n".join(p._p.xml for p in reader.paragraphs)
    assert xml.count("Table of Contents") == 1


def test_ordered_lists_use_separate_numbering():
    md_text = "1. a\n2. b\n   1. nested\n\ntext\n\n1. c\n\n- bullet\n"
    reader = _read(convert_markdown_to_docx(md_text))
    entries = {text: (num_id, level) for text, num_id, level in _num_ids(reader)}
    assert entries["a"][0] == entries["b"][0] == entries["nested"][0]
    assert entries["nested"][1] == "1"
    assert entries["c"][0] != entries["a"][0]
    assert entries["bullet"][0] not in (entries["a"][0], entries["c"][0])


def test_numbering_definitions_registered_per_sequence():
    md_text = "1. a\n\ntext\n\n1. b\n"
    reader = _read(convert_markdown_to_docx(md_text))
    numbering = reader.part.numbering_part.element
    entries = _num_ids(reader)
    for _, num_id, _ in entries:
        nums = [n for n in numbering.findall(f"{W_NS}num") if n.get(f"{W_NS}numId") == num_id]
        assert len(nums) == 1
        abstract_id = nums[0].find(f"{W_NS}abstractNumId").get(f"{W_NS}val")
        abstract = [
            a for a in numbering.findall(f"{W_NS}abstractNum") if a.get(f"{W_NS}abstractNumId") == abstract_id
        ][0]
        assert abstract.find(f"{W_NS}lvl/{W_NS}numFmt").get(f"{W_NS}val") == "decimal"


def test_external_links_and_code_runs():
    reader = _read(convert_markdown_to_docx("Go to [site](http://example.com) and run `ls -la`.\n"))
    targets = [rel.target_ref for rel in reader.part.rels.values() if rel.is_external]
    assert "http://example.com" in targets
    xml = reader.paragraphs[0]._p.xml
    assert "<w:hyperlink" in xml
    assert "Courier New" in xml
    assert 'w:fill="F5F5F5"' in xml


def test_footer_has_page_field():
    reader = _read(convert_markdown_to_docx("text\n"))
    footer_xml = reader.sections[0].footer.paragraphs[0]._p.xml
    assert "PAGE" in footer_xml
    assert 'w:fldCharType="begin"' in footer_xml


def test_heading_styles_sized_from_title_size():
    reader = _read(convert_markdown_to_docx("# A\n", ConversionOptions(style=Style(title_size=40))))
    assert reader.styles["Heading 1"].font.size == Pt(20)
    assert reader.styles["Heading 3"].font.size == Pt(16)


def test_local_image_is_embedded(tmp_path, png_bytes):
    (tmp_path / "dot.png").write_bytes(png_bytes(2, 1))
    options = ConversionOptions(asset_root=tmp_path)
    reader = _read(convert_markdown_to_docx("![dot](dot.png#120x60)\n", options))
    assert len(reader.inline_shapes) == 1
    assert reader.inline_shapes[0].width == 120 * 9525
    assert reader.inline_shapes[0].height == 60 * 9525


def test_missing_image_renders_placeholder(tmp_path):
    options = ConversionOptions(asset_root=tmp_path)
    reader = _read(convert_markdown_to_docx("![Diagram](missing.png)\n", options))
    assert len(reader.inline_shapes) == 0
    assert any(p.text == "[Image could not be displayed: Diagram]" for p in reader.paragraphs)


def test_rtl_direction_marks_paragraphs_and_runs():
    options = ConversionOptions(style=Style(direction="RTL"))
    reader = _read(convert_markdown_to_docx("שלום\n", options))
    xml = reader.paragraphs[0]._p.xml
    assert "<w:bidi/>" in xml
    assert "<w:rtl/>" in xml


def test_report_tables_use_darker_header_shading():
    md_text = "| A | B |\n|---|---|\n| 1 | 2 |\n"
    document_xml = _read(convert_markdown_to_docx(md_text)).tables[0]._tbl.xml
    report_xml = _read(convert_markdown_to_docx(md_text, ConversionOptions(document_type="report"))).tables[0]._tbl.xml
    assert 'w:fill="F2F2F2"' in document_xml
    assert 'w:fill="DDDDDD"' in report_xml


def test_code_block_and_blockquote_and_comment():
    md_text = "```sh\n  echo hi\n```\n\n> quoted\n\n<!-- COMMENT: review -->\n"
    reader = _read(convert_markdown_to_docx(md_text))
    texts = [p.text for p in reader.paragraphs]
    assert any(text.startswith("sh") and "\u00a0\u00a0echo hi" in text for text in texts)
    assert "quoted" in texts
    assert "Comment: review" in texts


def test_model_without_sequences_still_renders_ordered_list(tmp_path):
    model = DocumentModel(
        blocks=[
            TocPlaceholder(),
            ListBlock(ordered=True, children=[ListItem([Paragraph([TextRun("x")])])], sequence_id=3),
        ]
    )
    output_file = tmp_path / "lists.docx"
    render_document(model, output_file)
    reader = DocxReader(output_file)
    assert [text for text, _, _ in _num_ids(reader)] == ["x"]


def test_builder_model_renders(tmp_path):
    model = build_model(markdown_parser.parse_markdown("# Title\n\n**bold** text\n"))
    output_file = tmp_path / "built.docx"
    render_document(model, output_file, style=Style(default_font="Arial"))
    reader = DocxReader(output_file)
    assert reader.paragraphs[-1].runs[0].bold is True
    assert reader.paragraphs[-1].runs[0].font.name == "Arial"
