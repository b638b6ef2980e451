"""Inline markdown formatting: marker text <-> styled runs.

``tokenize`` scans a flat string holding ``*``/``**``/``***`` emphasis,
backtick code spans and ``[text](url)`` links, left to right, and returns
the styled runs. ``serialize_runs`` writes runs back out in the same marker
syntax, and ``normalize_runs`` cleans up runs that already come from a
parsed inline tree so they obey the same flattening rules.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .model import TextRun

ESCAPABLE = frozenset("*`\\[]")


@dataclass
class _ScanState:
    runs: List[TextRun] = field(default_factory=list)
    text: str = ""
    bold: bool = False
    italic: bool = False
    code: bool = False
    bold_start: int = -1
    italic_start: int = -1

    def append(self, run: TextRun) -> None:
        """Add *run*, extending the previous run when both are styled alike."""
        last = self.runs[-1] if self.runs else None
        if last is not None and last.link is None and run.link is None and last.same_style(run):
            last.value += run.value
        else:
            self.runs.append(run)

    def flush(self) -> None:
        if self.text:
            self.append(TextRun(self.text, bold=self.bold, italic=self.italic))
            self.text = ""

    def flush_code(self) -> None:
        if self.text:
            self.append(TextRun(self.text, code=True))
            self.text = ""


def tokenize(text: str, allow_links: bool = True) -> List[TextRun]:
    """Split *text* into styled runs.

    Headings call this with ``allow_links=False``; everything else about
    precedence and unterminated-marker recovery is shared.
    """
    state = _ScanState()
    length = len(text)
    j = 0
    while j < length:
        char = text[j]

        if char == "\\" and j + 1 < length:
            if text[j + 1] in ESCAPABLE:
                state.text += text[j + 1]
                j += 2
            else:
                state.text += char
                j += 1
            continue

        if allow_links and not state.code and char == "[":
            link = _match_link(text, j)
            if link is not None:
                label, url, close_paren = link
                state.flush()
                state.runs.append(TextRun(label, bold=state.bold, italic=state.italic, link=url))
                j = close_paren + 1
                continue

        if char == "`":
            if state.code:
                state.flush_code()
            else:
                state.flush()
            state.code = not state.code
            j += 1
            continue

        if state.code:
            state.text += char
            j += 1
            continue

        if text.startswith("***", j):
            state.flush()
            if not state.bold and not state.italic:
                state.bold = state.italic = True
                state.bold_start = state.italic_start = j
            else:
                state.bold = state.italic = False
                state.bold_start = state.italic_start = -1
            j += 3
            continue

        if text.startswith("**", j):
            state.flush()
            state.bold_start = -1 if state.bold else j
            state.bold = not state.bold
            j += 2
            continue

        if (
            char == "*"
            and (j == 0 or text[j - 1] != "*")
            and (j == length - 1 or text[j + 1] != "*")
        ):
            state.flush()
            state.italic_start = -1 if state.italic else j
            state.italic = not state.italic
            j += 1
            continue

        state.text += char
        j += 1

    return _finish(state)


def _match_link(text: str, start: int) -> Optional[tuple[str, str, int]]:
    """Find ``[label](url)`` starting at *start*; brackets do not nest."""
    length = len(text)
    close_bracket = -1
    k = start + 1
    while k < length:
        if text[k] == "\\" and k + 1 < length:
            k += 2
            continue
        if text[k] == "]":
            close_bracket = k
            break
        k += 1
    if close_bracket < 0 or close_bracket + 1 >= length or text[close_bracket + 1] != "(":
        return None
    open_paren = close_bracket + 1
    close_paren = text.find(")", open_paren + 1)
    if close_paren < 0:
        return None
    return text[start + 1 : close_bracket], text[open_paren + 1 : close_paren], close_paren


def _finish(state: _ScanState) -> List[TextRun]:
    trailing = state.text
    if (
        state.bold
        and state.italic
        and state.bold_start >= 0
        and state.bold_start == state.italic_start
    ):
        trailing = "***" + trailing
        state.bold = state.italic = False
    else:
        if state.bold and state.bold_start >= 0:
            trailing = "**" + trailing
            state.bold = False
        if state.italic and state.italic_start >= 0:
            trailing = "*" + trailing
            state.italic = False
    if state.code:
        trailing = "`" + trailing
        state.code = False

    if trailing.strip():
        state.append(TextRun(trailing, bold=state.bold, italic=state.italic))
    if not state.runs:
        state.runs.append(TextRun(""))
    return state.runs


def _escape(value: str, chars: Iterable[str]) -> str:
    escaped = value.replace("\\", "\\\\")
    for char in chars:
        escaped = escaped.replace(char, "\\" + char)
    return escaped


def _marker_between(bold: bool, italic: bool, new_bold: bool, new_italic: bool) -> str:
    if bold == new_bold and italic == new_italic:
        return ""
    if bold != new_bold and italic != new_italic:
        return "***"
    return "**" if bold != new_bold else "*"


def serialize_runs(runs: Iterable[TextRun]) -> str:
    """Write runs back as marker text that ``tokenize`` reads the same way."""
    parts: list[str] = []
    bold = italic = False
    for run in runs:
        if not run.value:
            continue
        if run.code:
            parts.append(_marker_between(bold, italic, False, False))
            bold = italic = False
            parts.append("`" + _escape(run.value, "`") + "`")
            continue
        parts.append(_marker_between(bold, italic, run.bold, run.italic))
        bold, italic = run.bold, run.italic
        if run.link is not None:
            parts.append(f"[{run.value}]({run.link})")
        else:
            parts.append(_escape(run.value, "*`[]"))
    parts.append(_marker_between(bold, italic, False, False))
    return "".join(parts)


def normalize_runs(runs: Iterable[TextRun]) -> List[TextRun]:
    """Flatten runs coming from a parsed inline tree.

    Code runs lose emphasis flags, empty runs are dropped, neighbours with
    identical styling are merged. Never returns an empty list.
    """
    result: List[TextRun] = []
    for run in runs:
        if not run.value:
            continue
        if run.code:
            run = TextRun(run.value, code=True)
        else:
            run = TextRun(run.value, bold=run.bold, italic=run.italic, link=run.link)
        if result and result[-1].same_style(run) and run.link is None:
            result[-1] = TextRun(
                result[-1].value + run.value,
                bold=run.bold,
                italic=run.italic,
                code=run.code,
            )
        else:
            result.append(run)
    if not result:
        result.append(TextRun(""))
    return result


def plain_text(runs: Iterable[TextRun]) -> str:
    return "".join(run.value for run in runs)
