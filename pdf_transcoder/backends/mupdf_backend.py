"""PyMuPDF backend implementation for PDF Transcoder."""

from __future__ import annotations

from typing import List, Optional, Tuple

import pymupdf
from PIL import Image

from ..exceptions import OpenFailureCause
from ..types import TextFragment
from .base import EngineDocument, EngineOpenError, EnginePage, RenderEngine


class MuPDFPage(EnginePage):
    def __init__(self, page: pymupdf.Page) -> None:
        self._page: Optional[pymupdf.Page] = page

    def _require(self) -> pymupdf.Page:
        if self._page is None:
            raise ValueError("Page has been closed")
        return self._page

    @property
    def size(self) -> Tuple[float, float]:
        rect = self._require().rect
        return float(rect.width), float(rect.height)

    def render(self, scale: float) -> Image.Image:
        pix = self._require().get_pixmap(matrix=pymupdf.Matrix(scale, scale), alpha=False)
        return Image.frombytes("RGB", (pix.width, pix.height), pix.samples)

    def text_fragments(self) -> List[TextFragment]:
        fragments: List[TextFragment] = []
        content = self._require().get_text("dict")
        for block in content.get("blocks", []):
            if block.get("type") != 0:
                continue
            for line in block.get("lines", []):
                spans = line.get("spans", [])
                for position, span in enumerate(spans):
                    fragments.append(
                        TextFragment(span.get("text", ""), has_eol=position == len(spans) - 1)
                    )
        return fragments

    def close(self) -> None:
        # MuPDF pages are owned by their document; dropping the reference is enough.
        self._page = None


class MuPDFDocument(EngineDocument):
    def __init__(self, document: pymupdf.Document) -> None:
        self._document = document

    @property
    def page_count(self) -> int:
        return self._document.page_count

    def load_page(self, index: int) -> MuPDFPage:
        return MuPDFPage(self._document.load_page(index))

    def close(self) -> None:
        self._document.close()


class MuPDFEngine(RenderEngine):
    """Engine that renders and reads text through MuPDF."""

    name = "mupdf"

    def open(self, data: bytes, password: Optional[str] = None) -> MuPDFDocument:
        try:
            document = pymupdf.open(stream=data, filetype="pdf")
        except (RuntimeError, ValueError) as exc:
            raise EngineOpenError(OpenFailureCause.MALFORMED, f"MuPDF could not open document: {exc}") from exc

        if document.needs_pass and (password is None or not document.authenticate(password)):
            document.close()
            raise EngineOpenError(OpenFailureCause.UNSUPPORTED, "Document is password protected.")
        return MuPDFDocument(document)
