from __future__ import annotations

import argparse
import logging
from pathlib import Path

import yaml

from .converter import DOCUMENT_TYPES, ConversionOptions, convert_file
from .errors import MarkdownConversionError
from .style import Style, load_style
from .utils import configure_logging, resolve_output_path

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="markdocx",
        description="Convert Markdown into a DOCX document with bookmarks, TOC and numbered lists.",
    )
    parser.add_argument("input", type=str, help="Path to Markdown file")
    parser.add_argument("-o", "--output", type=str, help="Output DOCX path or directory")
    parser.add_argument("--style", type=str, help="YAML file with style overrides")
    parser.add_argument(
        "--document-type",
        choices=DOCUMENT_TYPES,
        default="document",
        help="Layout variant (report shades table headers darker)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose)
    input_path = Path(args.input).expanduser()
    if not input_path.exists():
        logger.error("Input file not found: %s", input_path)
        return 1
    output_path = resolve_output_path(input_path, args.output)

    try:
        style = load_style(args.style) if args.style else Style()
    except (OSError, ValueError, TypeError, yaml.YAMLError) as exc:
        logger.error("Could not load style %s: %s", args.style, exc)
        return 1
    options = ConversionOptions(document_type=args.document_type, style=style, asset_root=input_path.parent)

    logger.info("Converting %s", input_path)
    try:
        convert_file(input_path, output_path, options)
    except MarkdownConversionError as exc:
        logger.error("%s", exc)
        if exc.context:
            logger.debug("Context: %s", exc.context)
        return 1

    logger.info("Done. Saved to %s", output_path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
