"""Release of loader handles on every exit path."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from .loader import DocumentLoader, SourceDocumentHandle
from .scheduling import run_blocking
from .utils import get_logger

LOGGER = get_logger("pdf_transcoder.lifecycle")


def dispose_quietly(label: str, func: Callable[[], object]) -> None:
    """Run a disposal routine; a failure here never replaces the caller's error."""

    try:
        func()
    except Exception as exc:
        LOGGER.debug("Ignoring failure while disposing %s: %s", label, exc)


@asynccontextmanager
async def open_source(
    data: bytes,
    loader: Optional[DocumentLoader] = None,
) -> AsyncIterator[SourceDocumentHandle]:
    """Open ``data`` and dispose the document, then the loading task, on exit."""

    handle, closer = await (loader or DocumentLoader()).open(data)
    try:
        yield handle
    finally:
        try:
            await run_blocking(dispose_quietly, "document", closer.close_document)
        finally:
            dispose_quietly("loading task", closer.destroy_task)


__all__ = ["dispose_quietly", "open_source"]
