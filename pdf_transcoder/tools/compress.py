"""Plugin re-rendering a document at lower resolution and JPEG quality."""

from __future__ import annotations

from ..composer import ImageDocumentComposer
from ..layout import Preset
from ..lifecycle import open_source
from ..ranges import apply_page_limit
from ..scheduling import GenerationToken, run_blocking
from ..types import MM_PER_INCH, Artifact, RasterBuffer, TranscodeResult
from ..utils import format_file_size, get_logger
from .common.interfaces import BaseTool
from .common.pages import compose_pages
from .common.pipeline import register_tool

LOGGER = get_logger("pdf_transcoder.tools.compress")


@register_tool("compress")
class CompressTool(BaseTool):
    name = "compress"

    async def execute(self, token: GenerationToken) -> TranscodeResult:
        context = self.context
        options = context.options
        source = context.single_source()

        def native_size(buffer: RasterBuffer) -> Preset:
            # Pixels back to points, then to millimeters.
            factor = MM_PER_INCH / (72.0 * options.scale)
            return Preset(buffer.width * factor, buffer.height * factor)

        async with open_source(source.data, context.ensure_loader()) as handle:
            all_pages = list(range(1, handle.page_count + 1))
            pages, notice = apply_page_limit(all_pages, options.max_pages)
            composer = ImageDocumentComposer(
                image_format="jpeg",
                quality=options.quality,
                on_progress=context.report,
                total=len(pages),
            )
            await compose_pages(
                composer,
                handle,
                pages,
                options,
                lambda: self.ensure_current(token),
                mode_for_buffer=native_size,
            )

        self.ensure_current(token)
        data = await run_blocking(composer.finish)
        LOGGER.info(
            "Compressed %s from %s to %s",
            source.name,
            format_file_size(len(source.data)),
            format_file_size(len(data)),
        )
        return TranscodeResult(
            operation=self.name,
            artifacts=[
                Artifact(f"{source.stem}_compressed.pdf", data, "application/pdf", page_count=len(pages))
            ],
            pages_processed=composer.page_count,
            pages_total=len(all_pages),
            notices=[notice] if notice else [],
        )
