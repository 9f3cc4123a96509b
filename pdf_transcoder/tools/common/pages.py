"""Per-page iteration shared by the tools.

Pages are produced strictly one at a time in the order given. A raster page
handed out by :func:`raster_pages` belongs to the consumer, which must
release its buffer before asking for the next one.
"""

from __future__ import annotations

from contextlib import aclosing
from typing import AsyncIterator, Callable, Sequence

from ...composer import ImageDocumentComposer
from ...config import TranscodeOptions
from ...layout import LayoutMode, layout_for, resolve_size
from ...loader import SourceDocumentHandle
from ...rasterizer import render_page, to_grayscale
from ...scheduling import run_blocking
from ...text import extract_lines
from ...types import RasterBuffer, RasterPage, TextPage
from ...utils import get_logger

LOGGER = get_logger("pdf_transcoder.tools.pages")

Checkpoint = Callable[[], None]
ModeForBuffer = Callable[[RasterBuffer], LayoutMode]


def embed_format(options: TranscodeOptions) -> str:
    """Image format used for pages embedded in an output PDF."""
    return "png" if options.image_format == "png" else "jpeg"


async def raster_pages(
    handle: SourceDocumentHandle,
    pages: Sequence[int],
    options: TranscodeOptions,
    checkpoint: Checkpoint,
) -> AsyncIterator[RasterPage]:
    for number in pages:
        checkpoint()
        async with handle.page(number) as page:
            buffer = await render_page(page, options.scale)
        if options.grayscale:
            await run_blocking(to_grayscale, buffer)
        yield RasterPage(number, buffer)


async def text_pages(
    handle: SourceDocumentHandle,
    pages: Sequence[int],
    checkpoint: Checkpoint,
) -> AsyncIterator[TextPage]:
    for number in pages:
        checkpoint()
        async with handle.page(number) as page:
            fragments = await page.text_content()
        lines = extract_lines(fragments)
        LOGGER.debug("Extracted %d line(s) from page %s", len(lines), number)
        yield TextPage(number, lines)


async def compose_buffer(
    composer: ImageDocumentComposer,
    buffer: RasterBuffer,
    page_number: int,
    options: TranscodeOptions,
    mode_for_buffer: ModeForBuffer | None = None,
) -> None:
    """Lay out and append ``buffer``, releasing it afterwards."""

    try:
        if mode_for_buffer is None:
            size = layout_for(options, buffer.width, buffer.height)
        else:
            size = resolve_size(mode_for_buffer(buffer), buffer.width, buffer.height, options.effective_dpi)
        await run_blocking(composer.append_image_page, buffer, size, page_number)
    finally:
        buffer.release()


async def compose_pages(
    composer: ImageDocumentComposer,
    handle: SourceDocumentHandle,
    pages: Sequence[int],
    options: TranscodeOptions,
    checkpoint: Checkpoint,
    mode_for_buffer: ModeForBuffer | None = None,
) -> int:
    """Render ``pages`` of ``handle`` into ``composer``; returns pages appended."""

    appended = 0
    async with aclosing(raster_pages(handle, pages, options, checkpoint)) as stream:
        async for item in stream:
            await compose_buffer(composer, item.buffer, item.page_number, options, mode_for_buffer)
            appended += 1
    return appended


__all__ = [
    "embed_format",
    "raster_pages",
    "text_pages",
    "compose_buffer",
    "compose_pages",
]
