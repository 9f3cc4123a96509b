from __future__ import annotations

import io
import json
import math
from pathlib import Path
from typing import Callable, Sequence
import sys

import pytest
from PIL import Image
from pypdf import PdfWriter
from reportlab.pdfgen import canvas

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pdf_transcoder.backends.base import EngineDocument, EngineOpenError, EnginePage  # noqa: E402
from pdf_transcoder.bootstrap import BackendBootstrap, BackendCandidate, set_bootstrap  # noqa: E402
from pdf_transcoder.config import ENGINES_ENV  # noqa: E402
from pdf_transcoder.exceptions import OpenFailureCause  # noqa: E402
from pdf_transcoder.loader import DocumentLoader  # noqa: E402
from pdf_transcoder.types import TextFragment  # noqa: E402


class FakePage(EnginePage):
    """Page of a fake document: a solid colour plus canned text fragments."""

    def __init__(self, params: dict) -> None:
        self.width = float(params["width"])
        self.height = float(params["height"])
        self.color = tuple(params.get("color", (255, 255, 255)))
        self.fragments = [TextFragment(text, eol) for text, eol in params.get("text", [])]
        self.closed = False

    @property
    def size(self) -> tuple[float, float]:
        return self.width, self.height

    def render(self, scale: float) -> Image.Image:
        size = (max(1, math.ceil(self.width * scale)), max(1, math.ceil(self.height * scale)))
        return Image.new("RGB", size, self.color)

    def text_fragments(self) -> list[TextFragment]:
        return list(self.fragments)

    def close(self) -> None:
        self.closed = True


class FakeDocument(EngineDocument):
    def __init__(self, pages: Sequence[dict]) -> None:
        self.page_list = list(pages)
        self.loaded: list[FakePage] = []
        self.closed = False

    @property
    def page_count(self) -> int:
        return len(self.page_list)

    def load_page(self, index: int) -> FakePage:
        page = FakePage(self.page_list[index])
        self.loaded.append(page)
        return page

    def close(self) -> None:
        self.closed = True


class FakeEngine:
    """Engine that parses the JSON produced by the ``fake_pdf`` fixture."""

    def __init__(self, name: str = "fake", fail_with: OpenFailureCause | None = None) -> None:
        self.name = name
        self.fail_with = fail_with
        self.open_calls: list[str | None] = []
        self.documents: list[FakeDocument] = []

    def open(self, data: bytes, password: str | None = None) -> FakeDocument:
        self.open_calls.append(password)
        if self.fail_with is not None:
            raise EngineOpenError(self.fail_with, f"{self.name} refused the document")
        try:
            payload = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise EngineOpenError(OpenFailureCause.MALFORMED, "not a fake document") from exc
        if payload.get("password") is not None and password != payload["password"]:
            raise EngineOpenError(OpenFailureCause.UNSUPPORTED, "password required")
        document = FakeDocument(payload["pages"])
        self.documents.append(document)
        return document


@pytest.fixture(autouse=True)
def isolated_bootstrap(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv(ENGINES_ENV, raising=False)
    set_bootstrap(None)
    yield
    set_bootstrap(None)


@pytest.fixture()
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture()
def fake_bootstrap(fake_engine: FakeEngine) -> BackendBootstrap:
    bootstrap = BackendBootstrap([BackendCandidate("fake", lambda: fake_engine, first_party=True)])
    set_bootstrap(bootstrap)
    return bootstrap


@pytest.fixture()
def fake_loader(fake_bootstrap: BackendBootstrap) -> DocumentLoader:
    return DocumentLoader(fake_bootstrap)


@pytest.fixture()
def fake_pdf() -> Callable[..., bytes]:
    """Build fake-engine bytes; each page is ``(width, height)`` or a full dict."""

    def _create(*pages, password: str | None = None) -> bytes:
        page_list = []
        for number, page in enumerate(pages, start=1):
            if isinstance(page, dict):
                params = dict(page)
            else:
                width, height = page
                params = {"width": width, "height": height}
            params.setdefault("color", [(number * 40) % 256, 0, 0])
            page_list.append(params)
        return json.dumps({"pages": page_list, "password": password}).encode("utf-8")

    return _create


@pytest.fixture()
def blank_pdf_bytes() -> Callable[..., bytes]:
    """Real PDF bytes with blank pages of the given ``(width, height)`` sizes."""

    def _create(*sizes: tuple[float, float]) -> bytes:
        writer = PdfWriter()
        for width, height in sizes:
            writer.add_blank_page(width=width, height=height)
        buffer = io.BytesIO()
        writer.write(buffer)
        return buffer.getvalue()

    return _create


@pytest.fixture()
def sample_pdf(tmp_path: Path, blank_pdf_bytes: Callable[..., bytes]) -> Path:
    pdf_path = tmp_path / "sample.pdf"
    pdf_path.write_bytes(blank_pdf_bytes(*[(200, 200)] * 5))
    return pdf_path


@pytest.fixture()
def empty_pdf(tmp_path: Path) -> Path:
    pdf_path = tmp_path / "empty.pdf"
    writer = PdfWriter()
    with pdf_path.open("wb") as stream:
        writer.write(stream)
    return pdf_path


@pytest.fixture()
def text_pdf(tmp_path: Path) -> Path:
    """Two-page PDF: the first page has text, the second is blank."""

    pdf_path = tmp_path / "text.pdf"
    pdf = canvas.Canvas(str(pdf_path), pagesize=(300, 300))
    pdf.setFont("Helvetica", 14)
    pdf.drawString(40, 200, "Hello transcoder")
    pdf.drawString(40, 170, "Second line")
    pdf.showPage()
    pdf.showPage()
    pdf.save()
    return pdf_path


@pytest.fixture()
def png_image() -> Callable[..., bytes]:
    def _create(width: int, height: int, mode: str = "RGB", color=(10, 120, 200)) -> bytes:
        image = Image.new(mode, (width, height), color)
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()

    return _create
