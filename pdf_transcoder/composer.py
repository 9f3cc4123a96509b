"""Incremental construction of output documents, one page at a time."""

from __future__ import annotations

import io
from typing import Callable, List, Optional, Tuple

from docx import Document
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .rasterizer import encode_raster
from .types import MM_PER_INCH, OutputPageSize, ProgressEvent, RasterBuffer
from .utils import get_logger

LOGGER = get_logger("pdf_transcoder.composer")

EMPTY_PAGE_PLACEHOLDER = "[No extractable text on this page]"

ProgressCallback = Callable[[ProgressEvent], None]


def _mm_to_points(value: float) -> float:
    return value * 72.0 / MM_PER_INCH


class _ProgressReporter:
    def __init__(self, on_progress: Optional[ProgressCallback], total: int) -> None:
        self.on_progress = on_progress
        self.total = total
        self.processed = 0

    def page_done(self, page_number: int) -> None:
        self.processed += 1
        if self.on_progress is not None:
            self.on_progress(ProgressEvent(self.processed, max(self.total, self.processed), page_number))


class ImageDocumentComposer:
    """Build a PDF whose pages each carry a single raster image.

    Every page takes its own physical size; the first page's size becomes the
    canvas default and later pages switch size as they are started.
    """

    def __init__(
        self,
        image_format: str = "jpeg",
        quality: float = 0.85,
        margin_mm: float = 0.0,
        on_progress: Optional[ProgressCallback] = None,
        total: int = 0,
    ) -> None:
        self.image_format = image_format
        self.quality = quality
        self.margin_mm = max(0.0, margin_mm)
        self._output = io.BytesIO()
        self._canvas: Optional[canvas.Canvas] = None
        self._progress = _ProgressReporter(on_progress, total)
        self.page_sizes: List[OutputPageSize] = []

    @property
    def page_count(self) -> int:
        return len(self.page_sizes)

    @property
    def total(self) -> int:
        return self._progress.total

    @total.setter
    def total(self, value: int) -> None:
        self._progress.total = value

    def _start_page(self, size: Tuple[float, float]) -> canvas.Canvas:
        if self._canvas is None:
            self._canvas = canvas.Canvas(self._output, pagesize=size, pageCompression=1)
        else:
            self._canvas.showPage()
            self._canvas.setPageSize(size)
        return self._canvas

    def append_image_page(
        self,
        buffer: RasterBuffer,
        size: OutputPageSize,
        page_number: Optional[int] = None,
    ) -> None:
        """Encode ``buffer`` and place it centred on a new page of ``size``."""

        encoded = encode_raster(buffer, self.image_format, self.quality)
        page_width, page_height = size.to_points()
        margin = _mm_to_points(self.margin_mm)
        box_width = max(1.0, page_width - 2 * margin)
        box_height = max(1.0, page_height - 2 * margin)
        ratio = min(box_width / encoded.width, box_height / encoded.height)
        draw_width = encoded.width * ratio
        draw_height = encoded.height * ratio

        pdf = self._start_page((page_width, page_height))
        pdf.drawImage(
            ImageReader(io.BytesIO(encoded.data)),
            (page_width - draw_width) / 2,
            (page_height - draw_height) / 2,
            width=draw_width,
            height=draw_height,
        )
        self.page_sizes.append(size)
        number = page_number if page_number is not None else buffer.page_number or self.page_count
        LOGGER.debug(
            "Composed page %s at %.1fx%.1f mm", number, size.width_mm, size.height_mm
        )
        self._progress.page_done(number)

    def finish(self) -> bytes:
        if self._canvas is None:
            raise ValueError("Cannot finish a document without pages")
        self._canvas.showPage()
        self._canvas.save()
        self._canvas = None
        return self._output.getvalue()


class TextDocumentComposer:
    """Concatenate per-page lines into a text or Word document."""

    def __init__(
        self,
        include_headings: bool = True,
        on_progress: Optional[ProgressCallback] = None,
        total: int = 0,
    ) -> None:
        self.include_headings = include_headings
        self._pages: List[Tuple[int, List[str]]] = []
        self._progress = _ProgressReporter(on_progress, total)

    @property
    def page_count(self) -> int:
        return len(self._pages)

    def append_text_page(self, page_number: int, lines: List[str]) -> None:
        body = [line for line in lines if line] or [EMPTY_PAGE_PLACEHOLDER]
        self._pages.append((page_number, body))
        self._progress.page_done(page_number)

    def text(self) -> str:
        blocks: List[str] = []
        for page_number, lines in self._pages:
            block = [f"Page {page_number}"] if self.include_headings else []
            block.extend(lines)
            blocks.append("\n".join(block))
        return "\n\n".join(blocks) + ("\n" if blocks else "")

    def _docx_bytes(self) -> bytes:
        document = Document()
        for position, (page_number, lines) in enumerate(self._pages):
            if position:
                document.add_page_break()
            if self.include_headings:
                document.add_heading(f"Page {page_number}", level=2)
            for line in lines:
                document.add_paragraph(line)
        output = io.BytesIO()
        document.save(output)
        return output.getvalue()

    def to_bytes(self, text_format: str = "txt") -> bytes:
        if text_format == "txt":
            return self.text().encode("utf-8")
        if text_format == "docx":
            return self._docx_bytes()
        raise ValueError(f"Unsupported text format: {text_format!r}")


__all__ = [
    "EMPTY_PAGE_PLACEHOLDER",
    "ImageDocumentComposer",
    "TextDocumentComposer",
]
