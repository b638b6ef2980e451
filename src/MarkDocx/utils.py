from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "MarkDocx"


def configure_logging(verbose: bool = False) -> None:
    """Console logging for the CLI; only MarkDocx loggers drop to DEBUG with *verbose*."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if verbose else logging.INFO)


def resolve_output_path(input_path: Path, output: Optional[str]) -> Path:
    """Pick the .docx path; a directory output receives ``<stem>.docx``."""
    if not output:
        return input_path.with_suffix(".docx")
    out_path = Path(output).expanduser()
    if out_path.is_dir():
        return out_path / f"{input_path.stem}.docx"
    return out_path


def read_markdown(path: Path) -> str:
    return path.read_text(encoding="utf-8-sig")
