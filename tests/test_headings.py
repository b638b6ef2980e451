from MarkDocx.bookmarks import BookmarkAllocator
from MarkDocx.headings import HeadingBuilder, resolve_heading_format
from MarkDocx.model import Heading, HeadingRecord, TextRun
from MarkDocx.style import HeadingLevelStyle, Style


def test_builder_assigns_bookmarks_and_records_headings():
    builder = HeadingBuilder(BookmarkAllocator(clock=lambda: 5))
    first = builder.add(Heading(level=1, runs=[TextRun("Intro "), TextRun("Part", bold=True)]))
    second = builder.add(Heading(level=7, runs=[TextRun("Deep")]))

    assert first.bookmark_id == "_Toc_Intro_Part_5"
    assert second.level == 5
    assert second.bookmark_id == "_Toc_Deep_6"
    assert builder.headings == [
        HeadingRecord("Intro Part", 1, "_Toc_Intro_Part_5"),
        HeadingRecord("Deep", 5, "_Toc_Deep_6"),
    ]


def test_heading_links_collapse_to_label():
    builder = HeadingBuilder(BookmarkAllocator(clock=lambda: 1))
    heading = builder.add(Heading(level=2, runs=[TextRun("See "), TextRun("docs", link="http://d")]))
    assert heading.runs == [TextRun("See docs")]


def test_default_heading_format_follows_title_size():
    style = Style()
    top = resolve_heading_format(style, 1)
    assert (top.size, top.spacing_before, top.spacing_after) == (32, 480, 120)
    assert resolve_heading_format(style, 3).size == 24
    assert resolve_heading_format(style, 3).alignment is None


def test_per_level_overrides_win():
    style = Style(
        heading_alignment="RIGHT",
        default_font="Arial",
        headings={2: HeadingLevelStyle(size=40, alignment="CENTER", font="Georgia")},
    )
    level_two = resolve_heading_format(style, 2)
    assert (level_two.size, level_two.alignment, level_two.font) == (40, "CENTER", "Georgia")
    level_three = resolve_heading_format(style, 3)
    assert (level_three.alignment, level_three.font) == ("RIGHT", "Arial")
