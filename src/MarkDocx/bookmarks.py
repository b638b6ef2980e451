from __future__ import annotations

import re
import time
from typing import Callable, Optional

MAX_BOOKMARK_FRAGMENT = 40
TOC_PREFIX = "_Toc_"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_\s]")
_WHITESPACE = re.compile(r"\s+")
_SAFE_START = re.compile(r"^[a-zA-Z_]")


def sanitize_bookmark_id(text: str) -> str:
    """Reduce arbitrary text to a fragment usable inside a bookmark name.

    Drops everything except ASCII letters, digits, underscores and
    whitespace, collapses whitespace runs into ``_``, forces a leading
    letter or underscore and truncates to 40 characters.
    """
    sanitized = _WHITESPACE.sub("_", _UNSAFE_CHARS.sub("", text))
    if not _SAFE_START.match(sanitized):
        sanitized = "_" + sanitized
    return sanitized[:MAX_BOOKMARK_FRAGMENT]


def _current_millis() -> int:
    return time.time_ns() // 1_000_000


class BookmarkAllocator:
    """Issue ``_Toc_<text>_<millis>`` bookmark names for one conversion.

    The millisecond stamp is bumped past the previously issued one when the
    clock has not advanced, so two headings never share a name.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None) -> None:
        self._clock = clock or _current_millis
        self._last_stamp: int | None = None

    def allocate(self, text: str) -> str:
        stamp = self._clock()
        if self._last_stamp is not None and stamp <= self._last_stamp:
            stamp = self._last_stamp + 1
        self._last_stamp = stamp
        return f"{TOC_PREFIX}{sanitize_bookmark_id(text)}_{stamp}"
