"""Plugin splitting a document into one or more raster PDFs."""

from __future__ import annotations

from typing import List

from ..composer import ImageDocumentComposer
from ..lifecycle import open_source
from ..ranges import apply_page_limit, chunk_pages, label_for, require_page_selection
from ..scheduling import GenerationToken, run_blocking
from ..types import Artifact, ProgressEvent, TranscodeResult
from ..utils import get_logger
from .common.interfaces import BaseTool
from .common.pages import compose_pages, embed_format
from .common.pipeline import register_tool

LOGGER = get_logger("pdf_transcoder.tools.split")


def group_pages(pages: List[int], mode: str, chunk_size: int) -> List[List[int]]:
    """Group a selection into the page lists of the output files."""

    if mode == "range":
        return [list(pages)]
    if mode == "pages":
        return [[page] for page in pages]
    if mode == "chunks":
        return chunk_pages(pages, chunk_size)
    raise ValueError(f"Unsupported split mode: {mode}")


@register_tool("split")
class SplitTool(BaseTool):
    name = "split"

    async def execute(self, token: GenerationToken) -> TranscodeResult:
        context = self.context
        options = context.options
        source = context.single_source()
        checkpoint = lambda: self.ensure_current(token)  # noqa: E731

        async with open_source(source.data, context.ensure_loader()) as handle:
            selected = require_page_selection(options.pages, handle.page_count)
            pages, page_notice = apply_page_limit(selected, options.max_pages)
            groups, file_notice = apply_page_limit(
                group_pages(pages, options.split_mode, options.chunk_size),
                options.max_output_files,
            )
            total = sum(len(group) for group in groups)
            LOGGER.debug(
                "Splitting %s into %d file(s) (%s mode)", source.name, len(groups), options.split_mode
            )

            pending: List[Artifact] = []
            done = 0
            for group in groups:
                checkpoint()
                composer = ImageDocumentComposer(
                    image_format=embed_format(options),
                    quality=options.quality,
                    margin_mm=options.margin_mm,
                    on_progress=lambda event, base=done: context.report(
                        ProgressEvent(base + event.processed, total, event.page_number)
                    ),
                    total=len(group),
                )
                await compose_pages(composer, handle, group, options, checkpoint)
                data = await run_blocking(composer.finish)
                filename = f"{source.stem}_{label_for(group)}.pdf"
                pending.append(Artifact(filename, data, "application/pdf", page_count=len(group)))
                done += len(group)

        return TranscodeResult(
            operation=self.name,
            artifacts=pending,
            pages_processed=done,
            pages_total=len(selected),
            notices=[notice for notice in (page_notice, file_notice) if notice],
        )
