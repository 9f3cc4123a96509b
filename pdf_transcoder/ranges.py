"""Page-selection parsing and the caller-side guards built on top of it."""

from __future__ import annotations

import re
from typing import List, Optional, Sequence, Tuple, TypeVar

from .exceptions import InvalidPageRangeError, ResourceExhaustedError
from .utils import get_logger

LOGGER = get_logger("pdf_transcoder.ranges")

_SINGLE = re.compile(r"^(\d+)$")
_RANGE = re.compile(r"^(\d+)\s*-\s*(\d+)$")

T = TypeVar("T")


def resolve_page_selection(expression: Optional[str], page_count: int) -> Optional[List[int]]:
    """Resolve ``expression`` into sorted, unique 1-based page numbers.

    Accepts ``all``, a single page, an inclusive ``start-end`` range or a
    comma-separated mix of singles and ranges. Any empty, malformed or
    out-of-range token invalidates the whole expression and ``None`` is
    returned; a partial list is never produced.
    """

    if expression is None or page_count < 1:
        return None

    text = expression.strip()
    if not text:
        return None
    if text.lower() == "all":
        return list(range(1, page_count + 1))

    pages: set[int] = set()
    for raw_token in text.split(","):
        token = raw_token.strip()
        single = _SINGLE.match(token)
        if single:
            start = end = int(single.group(1))
        else:
            match = _RANGE.match(token)
            if not match:
                LOGGER.debug("Rejecting page selection %r: malformed token %r", expression, token)
                return None
            start, end = int(match.group(1)), int(match.group(2))
            if start > end:
                LOGGER.debug("Rejecting page selection %r: descending range %r", expression, token)
                return None
        if start < 1 or end > page_count:
            LOGGER.debug(
                "Rejecting page selection %r: token %r outside 1-%s", expression, token, page_count
            )
            return None
        pages.update(range(start, end + 1))

    return sorted(pages)


def require_page_selection(expression: Optional[str], page_count: int) -> List[int]:
    """Like :func:`resolve_page_selection` but raises on an invalid expression."""

    pages = resolve_page_selection(expression, page_count)
    if pages is None:
        raise InvalidPageRangeError(expression)
    return pages


def apply_page_limit(items: Sequence[T], limit: int) -> Tuple[List[T], Optional[ResourceExhaustedError]]:
    """Keep the first ``limit`` items, returning a notice when anything was dropped."""

    kept = list(items[:limit])
    if len(items) <= limit:
        return kept, None
    notice = ResourceExhaustedError(limit=limit, requested=len(items))
    LOGGER.warning("%s", notice.message)
    return kept, notice


def chunk_pages(pages: Sequence[int], size: int) -> List[List[int]]:
    """Group ``pages`` into consecutive chunks of at most ``size`` entries."""

    if size < 1:
        raise ValueError(f"Chunk size must be >= 1, got {size}")
    return [list(pages[index:index + size]) for index in range(0, len(pages), size)]


def label_for(pages: Sequence[int]) -> str:
    """Return a filename label describing ``pages``."""

    if not pages:
        raise ValueError("Cannot label an empty page list")
    first, last = pages[0], pages[-1]
    if len(pages) == 1:
        return f"page_{first}"
    if last - first + 1 == len(pages):
        return f"pages_{first}-{last}"
    return f"pages_{first}-{last}_{len(pages)}"


__all__ = [
    "resolve_page_selection",
    "require_page_selection",
    "apply_page_limit",
    "chunk_pages",
    "label_for",
]
