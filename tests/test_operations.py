from __future__ import annotations

import asyncio
import io
from pathlib import Path

import pytest
from docx import Document
from PIL import Image
from pypdf import PdfReader

from pdf_transcoder import transcode
from pdf_transcoder.bootstrap import get_bootstrap
from pdf_transcoder.composer import EMPTY_PAGE_PLACEHOLDER
from pdf_transcoder.config import TranscodeOptions
from pdf_transcoder.exceptions import (
    INVALID_SELECTION_MESSAGE,
    PROCESSING_FAILED_MESSAGE,
    UNREADABLE_FILE_MESSAGE,
    DocumentOpenError,
    InvalidImageError,
    InvalidPageRangeError,
    OpenFailureCause,
    ResourceExhaustedError,
    user_message,
)
from pdf_transcoder.tools import SourceFile, ToolContext, load_builtin_plugins, registry
from pdf_transcoder.types import Artifact, ProgressEvent, TranscodeResult

MM = 72.0 / 25.4


class Recorder:
    def __init__(self) -> None:
        self.downloads: list[Artifact] = []
        self.statuses: list[str] = []
        self.progress: list[ProgressEvent] = []

    def context(self, sources: list[SourceFile], **options) -> ToolContext:
        return ToolContext(
            sources=sources,
            options=TranscodeOptions(**options),
            on_progress=self.progress.append,
            on_status=self.statuses.append,
            on_download=self.downloads.append,
        )


def _run(name: str, sources: list[SourceFile], recorder: Recorder | None = None, **options) -> TranscodeResult:
    load_builtin_plugins()
    recorder = recorder or Recorder()
    return asyncio.run(registry.create(name, recorder.context(sources, **options)).run())


def _page_sizes(data: bytes) -> list[tuple[float, float]]:
    reader = PdfReader(io.BytesIO(data))
    return [(float(page.mediabox.width), float(page.mediabox.height)) for page in reader.pages]


@pytest.fixture()
def five_pages(fake_bootstrap, fake_pdf) -> SourceFile:
    # Widths identify pages: page n is (90 + 10n) points wide.
    return SourceFile("doc.pdf", fake_pdf(*[(90 + 10 * n, 200) for n in range(1, 6)]))


def test_builtin_tools_are_registered() -> None:
    load_builtin_plugins()
    assert set(registry.names()) >= {
        "merge",
        "split",
        "compress",
        "pdf-to-images",
        "pdf-to-text",
        "images-to-pdf",
    }


def test_split_selection_keeps_selected_pages_in_order(five_pages: SourceFile) -> None:
    recorder = Recorder()
    result = _run("split", [five_pages], recorder, pages="4,2")

    assert [artifact.filename for artifact in result.artifacts] == ["doc_pages_2-4_2.pdf"]
    sizes = _page_sizes(result.artifacts[0].data)
    assert sizes == [pytest.approx((110, 200), abs=1), pytest.approx((130, 200), abs=1)]
    assert recorder.downloads == result.artifacts
    assert [event.page_number for event in recorder.progress] == [2, 4]
    assert result.pages_processed == 2
    assert not result.truncated


@pytest.mark.parametrize(
    "pages",
    ["all", "1-3", "5,1,3", "2-5"],
)
def test_composed_order_matches_selection(five_pages: SourceFile, pages: str) -> None:
    from pdf_transcoder.ranges import resolve_page_selection

    expected = resolve_page_selection(pages, 5)
    result = _run("split", [five_pages], pages=pages)
    widths = [round(width) for width, _ in _page_sizes(result.artifacts[0].data)]
    assert widths == [90 + 10 * number for number in expected]


def test_split_rejects_out_of_range_selection(fake_bootstrap, fake_pdf) -> None:
    recorder = Recorder()
    source = SourceFile("short.pdf", fake_pdf((100, 100), (100, 100)))

    with pytest.raises(InvalidPageRangeError):
        _run("split", [source], recorder, pages="1-3")

    assert recorder.downloads == []
    assert recorder.statuses == [INVALID_SELECTION_MESSAGE]


def test_split_one_file_per_page(five_pages: SourceFile) -> None:
    result = _run("split", [five_pages], pages="2,4", split_mode="pages")

    assert [artifact.filename for artifact in result.artifacts] == ["doc_page_2.pdf", "doc_page_4.pdf"]
    assert all(artifact.page_count == 1 for artifact in result.artifacts)


def test_split_chunks_capped_by_max_files(five_pages: SourceFile) -> None:
    recorder = Recorder()
    result = _run(
        "split", [five_pages], recorder, split_mode="chunks", chunk_size=2, max_output_files=2
    )

    assert [artifact.filename for artifact in result.artifacts] == [
        "doc_pages_1-2.pdf",
        "doc_pages_3-4.pdf",
    ]
    assert result.truncated
    assert result.notices[0].limit == 2
    assert result.notices[0].requested == 3
    assert [(event.processed, event.total) for event in recorder.progress] == [
        (1, 4),
        (2, 4),
        (3, 4),
        (4, 4),
    ]
    assert result.notices[0].message in recorder.statuses


def test_split_caps_selected_pages_at_max_pages(five_pages: SourceFile) -> None:
    result = _run("split", [five_pages], max_pages=2)

    assert [artifact.filename for artifact in result.artifacts] == ["doc_pages_1-2.pdf"]
    assert result.pages_processed == 2
    assert result.pages_total == 5
    assert [(notice.limit, notice.requested) for notice in result.notices] == [(2, 5)]


def test_split_reports_both_page_and_file_caps(five_pages: SourceFile) -> None:
    result = _run("split", [five_pages], split_mode="pages", max_pages=4, max_output_files=3)

    assert [artifact.filename for artifact in result.artifacts] == [
        "doc_page_1.pdf",
        "doc_page_2.pdf",
        "doc_page_3.pdf",
    ]
    assert [(notice.limit, notice.requested) for notice in result.notices] == [(4, 5), (3, 4)]


def test_merge_concatenates_sources_in_order(fake_bootstrap, fake_pdf) -> None:
    recorder = Recorder()
    first = SourceFile("a.pdf", fake_pdf((100, 100), (110, 100)))
    second = SourceFile("b.pdf", fake_pdf((120, 100), (130, 100)))

    result = _run("merge", [first, second], recorder)

    assert result.artifacts[0].filename == "merged.pdf"
    assert [round(width) for width, _ in _page_sizes(result.artifacts[0].data)] == [100, 110, 120, 130]
    # The total grows as each source is opened.
    assert [(event.processed, event.total) for event in recorder.progress] == [
        (1, 2),
        (2, 2),
        (3, 4),
        (4, 4),
    ]


def test_merge_truncates_at_max_pages(fake_bootstrap, fake_pdf) -> None:
    first = SourceFile("a.pdf", fake_pdf((100, 100), (110, 100)))
    second = SourceFile("b.pdf", fake_pdf((120, 100), (130, 100)))

    result = _run("merge", [first, second], max_pages=3)

    assert result.artifacts[0].page_count == 3
    assert result.pages_total == 4
    assert isinstance(result.notices[0], ResourceExhaustedError)
    assert result.notices[0].requested == 4


def test_compress_preserves_physical_page_size(fake_bootstrap, fake_pdf) -> None:
    source = SourceFile("letter.pdf", fake_pdf((612, 792), (792, 612)))

    result = _run("compress", [source], scale=0.5, quality=0.4, grayscale=True)

    assert result.artifacts[0].filename == "letter_compressed.pdf"
    assert _page_sizes(result.artifacts[0].data) == [
        pytest.approx((612, 792), abs=1),
        pytest.approx((792, 612), abs=1),
    ]


def test_pdf_to_images_writes_one_file_per_page(five_pages: SourceFile) -> None:
    result = _run("pdf-to-images", [five_pages], pages="1,3", image_format="png", scale=2)

    assert [artifact.filename for artifact in result.artifacts] == ["doc_page_1.png", "doc_page_3.png"]
    first = Image.open(io.BytesIO(result.artifacts[0].data))
    assert first.format == "PNG"
    assert first.size == (200, 400)
    assert result.artifacts[0].media_type == "image/png"


def test_pdf_to_images_grayscale_jpeg_capped(five_pages: SourceFile) -> None:
    result = _run("pdf-to-images", [five_pages], grayscale=True, max_pages=2)

    assert [artifact.filename for artifact in result.artifacts] == ["doc_page_1.jpg", "doc_page_2.jpg"]
    pixel = Image.open(io.BytesIO(result.artifacts[0].data)).convert("RGB").getpixel((5, 5))
    assert max(pixel) - min(pixel) <= 2
    assert result.truncated
    assert result.pages_total == 5


def test_pdf_to_text_emits_placeholder_for_empty_pages(fake_bootstrap, fake_pdf) -> None:
    source = SourceFile(
        "notes.pdf",
        fake_pdf(
            {"width": 100, "height": 100, "text": [["Hello", False], ["world", False], ["!", True]]},
            {"width": 100, "height": 100, "text": []},
        ),
    )

    result = _run("pdf-to-text", [source])

    artifact = result.artifacts[0]
    assert artifact.filename == "notes.txt"
    assert artifact.data.decode("utf-8") == f"Page 1\nHello world!\n\nPage 2\n{EMPTY_PAGE_PLACEHOLDER}\n"
    assert artifact.page_count == 2


def test_pdf_to_text_docx(fake_bootstrap, fake_pdf) -> None:
    source = SourceFile("notes.pdf", fake_pdf({"width": 100, "height": 100, "text": [["Line", True]]}))

    result = _run("pdf-to-text", [source], text_format="docx", include_headings=False)

    document = Document(io.BytesIO(result.artifacts[0].data))
    assert [paragraph.text for paragraph in document.paragraphs if paragraph.text] == ["Line"]
    assert result.artifacts[0].filename == "notes.docx"


def test_images_to_pdf_uses_layout_per_image(png_image) -> None:
    sources = [
        SourceFile("wide.png", png_image(400, 300)),
        SourceFile("tall.png", png_image(300, 400, mode="RGBA", color=(0, 0, 0, 0))),
    ]

    result = _run("images-to-pdf", sources, page_size="a4", margin_mm=5)

    assert result.artifacts[0].filename == "images.pdf"
    assert _page_sizes(result.artifacts[0].data) == [
        pytest.approx((297 * MM, 210 * MM), abs=0.5),
        pytest.approx((210 * MM, 297 * MM), abs=0.5),
    ]


def test_images_to_pdf_fit_to_content(png_image) -> None:
    result = _run("images-to-pdf", [SourceFile("scan.png", png_image(216, 144))], target_dpi=72)

    assert result.artifacts[0].filename == "scan.pdf"
    assert _page_sizes(result.artifacts[0].data) == [pytest.approx((216, 144), abs=0.5)]


def test_images_to_pdf_rejects_undecodable_image(png_image) -> None:
    recorder = Recorder()
    sources = [SourceFile("ok.png", png_image(10, 10)), SourceFile("bad.png", b"not an image")]

    with pytest.raises(InvalidImageError):
        _run("images-to-pdf", sources, recorder)

    assert recorder.downloads == []
    assert recorder.statuses == [UNREADABLE_FILE_MESSAGE]


def test_cancelled_run_is_discarded_silently(five_pages: SourceFile) -> None:
    load_builtin_plugins()
    recorder = Recorder()
    tool = registry.create("split", recorder.context([five_pages], split_mode="pages"))

    def cancel_after_first_page(event: ProgressEvent) -> None:
        recorder.progress.append(event)
        tool.cancel()

    tool.context.on_progress = cancel_after_first_page

    assert asyncio.run(tool.run()) is None
    assert len(recorder.progress) == 1
    assert recorder.downloads == []

    tool.context.on_progress = None
    result = asyncio.run(tool.run())
    assert len(result.artifacts) == 5


def test_newer_run_supersedes_older_run(five_pages: SourceFile) -> None:
    load_builtin_plugins()
    recorder = Recorder()
    tool = registry.create("pdf-to-images", recorder.context([five_pages]))

    async def _both():
        return await asyncio.gather(tool.run(), tool.run())

    older, newer = asyncio.run(_both())

    assert older is None
    assert len(newer.artifacts) == 5
    assert recorder.downloads == newer.artifacts


def test_split_real_pdf_with_pdfium(sample_pdf: Path) -> None:
    result = transcode("split", [sample_pdf], pages="2,4")

    assert result.artifacts[0].filename == "sample_pages_2-4_2.pdf"
    assert _page_sizes(result.artifacts[0].data) == [
        pytest.approx((200, 200), abs=1),
        pytest.approx((200, 200), abs=1),
    ]
    assert get_bootstrap().active.name == "pdfium"


def test_pdf_to_text_real_pdf(text_pdf: Path) -> None:
    result = transcode("pdf-to-text", [text_pdf])

    text = result.artifacts[0].data.decode("utf-8")
    assert "Hello transcoder" in text
    assert "Second line" in text
    assert text.endswith(f"Page 2\n{EMPTY_PAGE_PLACEHOLDER}\n")


def test_pdf_without_pages_does_not_move_the_bootstrap(empty_pdf: Path) -> None:
    with pytest.raises(DocumentOpenError) as excinfo:
        transcode("split", [empty_pdf])
    assert excinfo.value.cause is OpenFailureCause.MALFORMED
    assert get_bootstrap().cursor == 0


def test_user_message_covers_every_failure() -> None:
    assert user_message(DocumentOpenError()) == UNREADABLE_FILE_MESSAGE
    assert user_message(InvalidImageError()) == UNREADABLE_FILE_MESSAGE
    assert user_message(InvalidPageRangeError("x")) == INVALID_SELECTION_MESSAGE
    assert user_message(MemoryError()) == PROCESSING_FAILED_MESSAGE
    assert user_message(RuntimeError("boom")) == PROCESSING_FAILED_MESSAGE


def test_options_validation() -> None:
    options = TranscodeOptions.from_mapping({"quality": 5, "image_format": "JPG", "scale": None})
    assert options.quality == 1.0
    assert options.image_format == "jpeg"
    assert options.scale == 1.5
    assert options.effective_dpi == pytest.approx(108.0)
    with pytest.raises(ValueError):
        TranscodeOptions(scale=0)
    with pytest.raises(ValueError):
        TranscodeOptions(split_mode="sideways")
