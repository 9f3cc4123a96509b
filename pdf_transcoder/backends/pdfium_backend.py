"""pypdfium2 backend implementation for PDF Transcoder."""

from __future__ import annotations

from typing import List, Optional, Tuple

import pypdfium2 as pdfium
from PIL import Image

from ..exceptions import OpenFailureCause
from ..types import TextFragment
from .base import EngineDocument, EngineOpenError, EnginePage, RenderEngine, looks_encrypted


class PdfiumPage(EnginePage):
    def __init__(self, page: pdfium.PdfPage) -> None:
        self._page = page

    @property
    def size(self) -> Tuple[float, float]:
        width, height = self._page.get_size()
        return float(width), float(height)

    def render(self, scale: float) -> Image.Image:
        bitmap = self._page.render(scale=scale)
        image = bitmap.to_pil()
        if image.mode not in ("RGB", "RGBA"):
            image = image.convert("RGB")
        return image

    def text_fragments(self) -> List[TextFragment]:
        textpage = self._page.get_textpage()
        try:
            text = textpage.get_text_range()
        finally:
            textpage.close()

        fragments: List[TextFragment] = []
        for line in text.splitlines():
            words = line.split()
            for position, word in enumerate(words):
                fragments.append(TextFragment(word, has_eol=position == len(words) - 1))
        return fragments

    def close(self) -> None:
        self._page.close()


class PdfiumDocument(EngineDocument):
    def __init__(self, pdf: pdfium.PdfDocument) -> None:
        self._pdf = pdf

    @property
    def page_count(self) -> int:
        return len(self._pdf)

    def load_page(self, index: int) -> PdfiumPage:
        return PdfiumPage(self._pdf[index])

    def close(self) -> None:
        self._pdf.close()


class PdfiumEngine(RenderEngine):
    """Engine that renders and reads text through PDFium."""

    name = "pdfium"

    def open(self, data: bytes, password: Optional[str] = None) -> PdfiumDocument:
        try:
            pdf = pdfium.PdfDocument(data, password=password)
        except pdfium.PdfiumError as exc:
            cause = OpenFailureCause.UNSUPPORTED if looks_encrypted(str(exc)) else OpenFailureCause.MALFORMED
            raise EngineOpenError(cause, f"PDFium could not open document: {exc}") from exc
        return PdfiumDocument(pdf)
