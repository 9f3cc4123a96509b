"""Plugins converting between PDFs, page images and text."""

from __future__ import annotations

import io
from contextlib import aclosing
from typing import List

from PIL import Image, ImageOps, UnidentifiedImageError

from ..composer import ImageDocumentComposer, TextDocumentComposer
from ..exceptions import InvalidImageError, ResourceExhaustedError
from ..lifecycle import open_source
from ..ranges import apply_page_limit, require_page_selection
from ..rasterizer import encode_raster, to_grayscale
from ..scheduling import GenerationToken, run_blocking
from ..types import Artifact, ProgressEvent, RasterBuffer, TranscodeResult
from ..utils import get_logger
from .common.interfaces import BaseTool, SourceFile
from .common.pages import compose_buffer, embed_format, raster_pages, text_pages
from .common.pipeline import register_tool

LOGGER = get_logger("pdf_transcoder.tools.convert")

TEXT_MEDIA_TYPES = {
    "txt": "text/plain; charset=utf-8",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


@register_tool("pdf-to-images")
class PdfToImagesTool(BaseTool):
    name = "pdf-to-images"

    async def execute(self, token: GenerationToken) -> TranscodeResult:
        context = self.context
        options = context.options
        source = context.single_source()
        checkpoint = lambda: self.ensure_current(token)  # noqa: E731

        async with open_source(source.data, context.ensure_loader()) as handle:
            selected = require_page_selection(options.pages, handle.page_count)
            pages, notice = apply_page_limit(selected, options.max_pages)
            artifacts: List[Artifact] = []
            async with aclosing(raster_pages(handle, pages, options, checkpoint)) as stream:
                async for item in stream:
                    try:
                        encoded = await run_blocking(
                            encode_raster, item.buffer, options.image_format, options.quality
                        )
                    finally:
                        item.buffer.release()
                    artifacts.append(
                        Artifact(
                            f"{source.stem}_page_{item.page_number}.{encoded.extension}",
                            encoded.data,
                            encoded.media_type,
                            page_count=1,
                        )
                    )
                    context.report(ProgressEvent(len(artifacts), len(pages), item.page_number))

        return TranscodeResult(
            operation=self.name,
            artifacts=artifacts,
            pages_processed=len(artifacts),
            pages_total=len(selected),
            notices=[notice] if notice else [],
        )


@register_tool("pdf-to-text")
class PdfToTextTool(BaseTool):
    name = "pdf-to-text"

    async def execute(self, token: GenerationToken) -> TranscodeResult:
        context = self.context
        options = context.options
        source = context.single_source()

        async with open_source(source.data, context.ensure_loader()) as handle:
            selected = require_page_selection(options.pages, handle.page_count)
            pages, notice = apply_page_limit(selected, options.max_pages)
            composer = TextDocumentComposer(
                include_headings=options.include_headings,
                on_progress=context.report,
                total=len(pages),
            )
            async with aclosing(text_pages(handle, pages, lambda: self.ensure_current(token))) as stream:
                async for item in stream:
                    composer.append_text_page(item.page_number, item.lines)

        self.ensure_current(token)
        data = await run_blocking(composer.to_bytes, options.text_format)
        return TranscodeResult(
            operation=self.name,
            artifacts=[
                Artifact(
                    f"{source.stem}.{options.text_format}",
                    data,
                    TEXT_MEDIA_TYPES[options.text_format],
                    page_count=composer.page_count,
                )
            ],
            pages_processed=composer.page_count,
            pages_total=len(selected),
            notices=[notice] if notice else [],
        )


def decode_image(source: SourceFile) -> RasterBuffer:
    """Decode an input image, applying its EXIF orientation."""

    try:
        with Image.open(io.BytesIO(source.data)) as opened:
            image = ImageOps.exif_transpose(opened)
            if image.mode not in ("RGB", "RGBA"):
                has_alpha = "A" in image.getbands() or "transparency" in image.info
                image = image.convert("RGBA" if has_alpha else "RGB")
            else:
                image = image.copy()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise InvalidImageError(f"Could not decode image {source.name}: {exc}") from exc
    return RasterBuffer(image)


@register_tool("images-to-pdf")
class ImagesToPdfTool(BaseTool):
    name = "images-to-pdf"

    async def execute(self, token: GenerationToken) -> TranscodeResult:
        context = self.context
        options = context.options
        if not context.sources:
            raise ValueError("No input images provided")

        sources, notice = apply_page_limit(context.sources, options.max_pages)
        composer = ImageDocumentComposer(
            image_format=embed_format(options),
            quality=options.quality,
            margin_mm=options.margin_mm,
            on_progress=context.report,
            total=len(sources),
        )
        for position, source in enumerate(sources, start=1):
            self.ensure_current(token)
            buffer = await run_blocking(decode_image, source)
            if options.grayscale:
                await run_blocking(to_grayscale, buffer)
            LOGGER.debug("Placing %s (%sx%s) as page %d", source.name, buffer.width, buffer.height, position)
            await compose_buffer(composer, buffer, position, options)

        self.ensure_current(token)
        data = await run_blocking(composer.finish)
        stem = sources[0].stem if len(sources) == 1 else "images"
        notices: List[ResourceExhaustedError] = [notice] if notice else []
        return TranscodeResult(
            operation=self.name,
            artifacts=[Artifact(f"{stem}.pdf", data, "application/pdf", page_count=composer.page_count)],
            pages_processed=composer.page_count,
            pages_total=len(context.sources),
            notices=notices,
        )
