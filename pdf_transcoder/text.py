"""Reconstruct readable lines from positioned text fragments."""

from __future__ import annotations

from typing import Iterable, List

from .types import TextFragment

CLOSING_PUNCTUATION = frozenset(",.;:!?)")


def _join(line: str, text: str) -> str:
    if not line:
        return text
    if text[0] in CLOSING_PUNCTUATION:
        return line + text
    return f"{line} {text}"


def extract_lines(fragments: Iterable[TextFragment]) -> List[str]:
    """Turn a page's text stream into lines using the end-of-line hints.

    Fragments are appended to a running line separated by a single space,
    except before closing punctuation. A fragment flagged as ending a line
    flushes the running line if it holds anything; a trailing partial line is
    flushed at the end.
    """

    lines: List[str] = []
    current = ""
    for fragment in fragments:
        text = fragment.text.strip()
        if text:
            current = _join(current, text)
        if fragment.has_eol and current:
            lines.append(current)
            current = ""
    if current:
        lines.append(current)
    return lines


__all__ = ["CLOSING_PUNCTUATION", "TextFragment", "extract_lines"]
