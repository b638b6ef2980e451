from __future__ import annotations

from typing import Any


class MarkdownConversionError(Exception):
    """Raised when a markdown document cannot be converted.

    ``context`` carries the offending values (or the wrapped
    ``original_error``) for diagnostics.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context = context or {}


class ImageRetrievalError(Exception):
    """Raised when image bytes cannot be fetched or decoded."""
