import logging

from docx import Document as DocxReader

from MarkDocx.cli import main
from MarkDocx.utils import configure_logging


def test_cli_writes_docx_next_to_input(tmp_path):
    source = tmp_path / "doc.md"
    source.write_text("# Title\n\n1. one\n2. two\n", encoding="utf-8")
    assert main([str(source)]) == 0
    reader = DocxReader(tmp_path / "doc.docx")
    assert any(p.text == "Title" for p in reader.paragraphs)


def test_cli_output_directory_uses_input_stem(tmp_path):
    source = tmp_path / "doc.md"
    source.write_text("text\n", encoding="utf-8")
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    assert main([str(source), "-o", str(out_dir), "--document-type", "report"]) == 0
    assert (out_dir / "doc.docx").exists()


def test_cli_applies_style_file(tmp_path):
    source = tmp_path / "doc.md"
    source.write_text("text\n", encoding="utf-8")
    style = tmp_path / "style.yaml"
    style.write_text("default_font: Georgia\n", encoding="utf-8")
    assert main([str(source), "--style", str(style)]) == 0
    reader = DocxReader(tmp_path / "doc.docx")
    assert reader.paragraphs[0].runs[0].font.name == "Georgia"


def test_cli_missing_input_fails(tmp_path):
    assert main([str(tmp_path / "absent.md")]) == 1


def test_cli_invalid_style_fails(tmp_path):
    source = tmp_path / "doc.md"
    source.write_text("text\n", encoding="utf-8")
    style = tmp_path / "style.yaml"
    style.write_text("title_size: 100\n", encoding="utf-8")
    assert main([str(source), "--style", str(style)]) == 1
    assert not (tmp_path / "doc.docx").exists()


def test_cli_unknown_style_key_fails(tmp_path):
    source = tmp_path / "doc.md"
    source.write_text("text\n", encoding="utf-8")
    style = tmp_path / "style.yaml"
    style.write_text("colour: red\n", encoding="utf-8")
    assert main([str(source), "--style", str(style)]) == 1


def test_verbose_only_lowers_package_loggers():
    package_logger = logging.getLogger("MarkDocx")
    previous = package_logger.level
    try:
        configure_logging(verbose=True)
        assert logging.getLogger("MarkDocx.builder").getEffectiveLevel() == logging.DEBUG
        configure_logging(verbose=False)
        assert logging.getLogger("MarkDocx.builder").getEffectiveLevel() == logging.INFO
    finally:
        package_logger.setLevel(previous)
