import pytest

from MarkDocx.errors import MarkdownConversionError
from MarkDocx.style import HeadingLevelStyle, Style, TocLevelStyle, load_style, validate_style


def test_from_mapping_reads_nested_levels():
    style = Style.from_mapping(
        {
            "title_size": 40,
            "headings": {1: {"size": 44, "alignment": "CENTER"}},
            "toc_levels": {"2": {"bold": True}},
        }
    )
    assert style.title_size == 40
    assert style.heading_level(1) == HeadingLevelStyle(size=44, alignment="CENTER")
    assert style.heading_level(3) == HeadingLevelStyle()
    assert style.toc_level(2) == TocLevelStyle(bold=True)


def test_from_mapping_rejects_unknown_keys():
    with pytest.raises(ValueError, match="colour"):
        Style.from_mapping({"colour": "red"})


def test_load_style_from_yaml(tmp_path):
    path = tmp_path / "style.yaml"
    path.write_text("direction: RTL\nparagraph_size: 22\nheadings:\n  2:\n    size: 30\n", encoding="utf-8")
    style = load_style(path)
    assert style.rtl
    assert style.paragraph_size == 22
    assert style.heading_level(2).size == 30


@pytest.mark.parametrize(
    "overrides, key",
    [
        ({"title_size": 100}, "title_size"),
        ({"paragraph_spacing": 1000}, "paragraph_spacing"),
        ({"line_spacing": 4}, "line_spacing"),
        ({"direction": "UP"}, "direction"),
        ({"paragraph_alignment": "MIDDLE"}, "paragraph_alignment"),
    ],
)
def test_validate_rejects_out_of_range_values(overrides, key):
    with pytest.raises(MarkdownConversionError) as excinfo:
        validate_style(Style(**overrides))
    assert key in excinfo.value.context


def test_validate_accepts_defaults():
    validate_style(Style())


def test_default_font_fills_unset_fonts():
    style = Style(default_font="Arial", paragraph_font="Georgia").with_default_font()
    assert style.paragraph_font == "Georgia"
    assert style.heading_font == "Arial"
    assert style.toc_font == "Arial"
    assert Style().with_default_font() == Style()
