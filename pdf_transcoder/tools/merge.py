"""Plugin concatenating every page of several documents into one PDF."""

from __future__ import annotations

from ..composer import ImageDocumentComposer
from ..exceptions import ResourceExhaustedError
from ..lifecycle import open_source
from ..scheduling import GenerationToken, run_blocking
from ..types import Artifact, TranscodeResult
from ..utils import get_logger
from .common.interfaces import BaseTool
from .common.pages import compose_pages, embed_format
from .common.pipeline import register_tool

LOGGER = get_logger("pdf_transcoder.tools.merge")

MERGED_FILENAME = "merged.pdf"


@register_tool("merge")
class MergeTool(BaseTool):
    name = "merge"

    async def execute(self, token: GenerationToken) -> TranscodeResult:
        context = self.context
        options = context.options
        if not context.sources:
            raise ValueError("Merge requires at least one input document")

        loader = context.ensure_loader()
        composer = ImageDocumentComposer(
            image_format=embed_format(options),
            quality=options.quality,
            margin_mm=options.margin_mm,
            on_progress=context.report,
        )
        requested = 0
        LOGGER.debug("Merging %d input(s)", len(context.sources))

        for source in context.sources:
            self.ensure_current(token)
            async with open_source(source.data, loader) as handle:
                pages = list(range(1, handle.page_count + 1))
                requested += len(pages)
                allowed = pages[: max(0, options.max_pages - composer.page_count)]
                # The total grows as each source is opened.
                composer.total += len(allowed)
                context.status(f"Merging {source.name} ({len(allowed)} of {len(pages)} page(s))")
                if allowed:
                    await compose_pages(
                        composer, handle, allowed, options, lambda: self.ensure_current(token)
                    )

        self.ensure_current(token)
        notices = []
        if requested > options.max_pages:
            notice = ResourceExhaustedError(limit=options.max_pages, requested=requested)
            LOGGER.warning("%s", notice.message)
            notices.append(notice)

        data = await run_blocking(composer.finish)
        return TranscodeResult(
            operation=self.name,
            artifacts=[Artifact(MERGED_FILENAME, data, "application/pdf", page_count=composer.page_count)],
            pages_processed=composer.page_count,
            pages_total=requested,
            notices=notices,
        )
