from MarkDocx import markdown_parser
from MarkDocx.bookmarks import BookmarkAllocator
from MarkDocx.builder import IMAGE_PLACEHOLDER_ROLE, BuildState, build_model
from MarkDocx.errors import ImageRetrievalError
from MarkDocx.headings import HeadingBuilder
from MarkDocx.image_fetch import FetchedImage
from MarkDocx.model import Blockquote, Heading, ImageBlock, Paragraph, TextRun


def _model(md_text, fetcher=None, state=None):
    return build_model(markdown_parser.parse_markdown(md_text), fetcher=fetcher, state=state)


def test_image_resolved_with_intrinsic_size(png_bytes):
    requested = []

    def fetcher(url):
        requested.append(url)
        return FetchedImage(png_bytes(800, 600))

    model = _model("![Chart](chart.png)\n", fetcher)
    image = model.blocks[0]
    assert requested == ["chart.png"]
    assert isinstance(image, ImageBlock)
    assert (image.image_format, image.width, image.height) == ("png", 400, 300)
    assert image.data.startswith(b"\x89PNG")


def test_image_hint_is_stripped_before_fetching(png_bytes):
    requested = []

    def fetcher(url):
        requested.append(url)
        return FetchedImage(png_bytes(800, 600))

    image = _model("![Chart](chart.png#w=100)\n", fetcher).blocks[0]
    assert requested == ["chart.png"]
    assert (image.width, image.height) == (100, 75)


def test_unknown_image_gets_fallback_height():
    image = _model("![x](blob)\n", lambda url: FetchedImage(b"garbage")).blocks[0]
    assert (image.width, image.height) == (200, 150)


def test_failed_image_becomes_placeholder():
    def fetcher(url):
        raise ImageRetrievalError("boom")

    block = _model("![Diagram](missing.png)\n", fetcher).blocks[0]
    assert isinstance(block, Paragraph)
    assert block.role == IMAGE_PLACEHOLDER_ROLE
    assert block.runs == [TextRun("[Image could not be displayed: Diagram]", italic=True)]


def test_headings_collected_in_document_order():
    state = BuildState(headings=HeadingBuilder(BookmarkAllocator(clock=lambda: 7)))
    model = _model("# One\n\n> ## Quoted\n\n### Three *it*\n", state=state)
    assert [(h.text, h.level) for h in model.headings] == [("One", 1), ("Quoted", 2), ("Three it", 3)]
    assert [h.bookmark_id for h in model.headings] == ["_Toc_One_7", "_Toc_Quoted_8", "_Toc_Three_it_9"]
    assert isinstance(model.blocks[1], Blockquote)
    assert isinstance(model.blocks[1].children[0], Heading)
    assert model.blocks[1].children[0].bookmark_id == "_Toc_Quoted_8"


def test_front_matter_is_carried_to_model():
    model = _model("---\ntitle: Demo\n---\n\ntext\n")
    assert model.metadata == {"title": "Demo"}


def test_broken_image_does_not_stop_later_images(tmp_path, png_bytes):
    (tmp_path / "dot.png").write_bytes(png_bytes(4, 2))
    md_text = "![Broken](a%00b.png)\n\n![Dot](dot.png)\n\nafter\n"
    model = build_model(markdown_parser.parse_markdown(md_text), asset_root=tmp_path)
    placeholder, image, paragraph = model.blocks
    assert placeholder.role == IMAGE_PLACEHOLDER_ROLE
    assert placeholder.runs[0].value == "[Image could not be displayed: Broken]"
    assert isinstance(image, ImageBlock)
    assert (image.alt, image.width, image.height) == ("Dot", 4, 2)
    assert paragraph.runs == [TextRun("after")]
