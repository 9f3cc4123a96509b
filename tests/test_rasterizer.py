from __future__ import annotations

import asyncio
import io
import math

import pytest
from PIL import Image

from pdf_transcoder.backends.base import EngineDocument, EnginePage
from pdf_transcoder.exceptions import EncodeFailureError, RenderSurfaceUnavailableError
from pdf_transcoder.loader import DocumentLoader, LoadingTask, SourceDocumentHandle
from pdf_transcoder import rasterizer
from pdf_transcoder.rasterizer import encode_raster, raster_dimensions, render_page, to_grayscale
from pdf_transcoder.types import RasterBuffer


class StubPage(EnginePage):
    def __init__(self, size=(100.0, 50.0), image=None, error=None) -> None:
        self._size = size
        self._image = image
        self._error = error

    @property
    def size(self):
        return self._size

    def render(self, scale):
        if self._error is not None:
            raise self._error
        return self._image

    def close(self) -> None:
        pass


class StubDocument(EngineDocument):
    def __init__(self, page: StubPage) -> None:
        self.page = page

    @property
    def page_count(self) -> int:
        return 1

    def load_page(self, index: int) -> StubPage:
        return self.page

    def close(self) -> None:
        pass


def _render_stub(page: StubPage, scale: float) -> RasterBuffer:
    handle = SourceDocumentHandle(StubDocument(page), LoadingTask("stub", "direct", b"stub"), 4)

    async def _run() -> RasterBuffer:
        async with handle.page(1) as page_handle:
            return await render_page(page_handle, scale)

    return asyncio.run(_run())


@pytest.mark.parametrize(
    ("width", "height", "scale"),
    [(800, 600, 1.5), (612, 792, 2.0), (0.2, 0.2, 0.1), (595.3, 841.9, 1.37), (1, 1, 0.001)],
)
def test_raster_dimensions_are_ceiled_and_at_least_one(width, height, scale) -> None:
    w, h = raster_dimensions(width, height, scale)
    assert (w, h) == (max(1, math.ceil(width * scale)), max(1, math.ceil(height * scale)))
    assert w >= 1 and h >= 1


def test_render_800x600_page_at_1_5(fake_loader: DocumentLoader, fake_pdf) -> None:
    async def _run() -> RasterBuffer:
        handle, closer = await fake_loader.open(fake_pdf((800, 600)))
        try:
            async with handle.page(1) as page:
                return await render_page(page, 1.5)
        finally:
            closer.close_document()
            closer.destroy_task()

    buffer = asyncio.run(_run())
    assert (buffer.width, buffer.height) == (1200, 900)
    assert buffer.page_number == 1


def test_engine_output_is_resampled_to_target_size() -> None:
    buffer = _render_stub(StubPage(size=(100.0, 50.0), image=Image.new("RGB", (10, 10))), 2.0)
    assert (buffer.width, buffer.height) == (200, 100)


def test_engine_output_mode_is_normalised() -> None:
    buffer = _render_stub(StubPage(size=(10.0, 10.0), image=Image.new("L", (10, 10), 128)), 1.0)
    assert buffer.mode == "RGB"


@pytest.mark.parametrize("error", [RuntimeError("no surface"), MemoryError()])
def test_render_failures_surface_as_render_surface_errors(error: BaseException) -> None:
    with pytest.raises(RenderSurfaceUnavailableError) as excinfo:
        _render_stub(StubPage(error=error), 1.0)
    assert excinfo.value.page_number == 1


@pytest.mark.parametrize("scale", [0, -1, float("nan"), float("inf")])
def test_render_rejects_invalid_scale(scale: float) -> None:
    with pytest.raises(ValueError):
        _render_stub(StubPage(image=Image.new("RGB", (1, 1))), scale)


def test_grayscale_uses_luma_and_keeps_alpha() -> None:
    image = Image.new("RGBA", (4, 1))
    image.putpixel((0, 0), (255, 0, 0, 255))
    image.putpixel((1, 0), (0, 255, 0, 128))
    image.putpixel((2, 0), (0, 0, 255, 0))
    image.putpixel((3, 0), (10, 20, 30, 77))
    buffer = RasterBuffer(image)

    to_grayscale(buffer)

    assert [buffer.image.getpixel((x, 0)) for x in range(4)] == [
        (76, 76, 76, 255),
        (150, 150, 150, 128),
        (29, 29, 29, 0),
        (18, 18, 18, 77),
    ]


@pytest.mark.parametrize(
    "pixel, expected",
    [
        ((33, 230, 23), 147),
        ((250, 43, 215), 125),
    ],
)
def test_grayscale_rounds_exact_weighted_sum(pixel, expected) -> None:
    for mode, fill in (("RGB", pixel), ("RGBA", pixel + (200,))):
        buffer = RasterBuffer(Image.new(mode, (1, 1), fill))
        to_grayscale(buffer)
        assert buffer.image.getpixel((0, 0))[:3] == (expected,) * 3
        assert buffer.image.mode == mode


def test_grayscale_is_idempotent() -> None:
    image = Image.new("RGB", (16, 16))
    for x in range(16):
        for y in range(16):
            image.putpixel((x, y), (x * 16, y * 16, (x * y) % 256))
    once = to_grayscale(RasterBuffer(image.copy())).image.tobytes()
    twice = to_grayscale(to_grayscale(RasterBuffer(image.copy()))).image.tobytes()
    assert once == twice


def test_encode_jpeg_flattens_alpha_onto_white() -> None:
    buffer = RasterBuffer(Image.new("RGBA", (8, 8), (0, 0, 0, 0)), page_number=3)

    encoded = encode_raster(buffer, "jpeg", 0.9)

    assert encoded.image_format == "jpeg"
    assert encoded.extension == "jpg"
    decoded = Image.open(io.BytesIO(encoded.data))
    assert decoded.mode == "RGB"
    assert all(channel > 245 for channel in decoded.getpixel((4, 4)))


def test_encode_falls_back_to_png(monkeypatch: pytest.MonkeyPatch) -> None:
    original = rasterizer._save

    def failing_save(image, image_format, quality):
        if image_format != "png":
            raise OSError("encoder missing")
        return original(image, image_format, quality)

    monkeypatch.setattr(rasterizer, "_save", failing_save)
    encoded = encode_raster(RasterBuffer(Image.new("RGB", (5, 5))), "webp", 0.5)

    assert encoded.image_format == "png"
    assert encoded.data.startswith(b"\x89PNG")


def test_encode_failure_after_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_save(image, image_format, quality):
        raise OSError("disk on fire")

    monkeypatch.setattr(rasterizer, "_save", failing_save)
    with pytest.raises(EncodeFailureError) as excinfo:
        encode_raster(RasterBuffer(Image.new("RGB", (5, 5))), "jpeg", 0.5)
    assert excinfo.value.image_format == "jpeg"


def test_encode_released_buffer_fails() -> None:
    buffer = RasterBuffer(Image.new("RGB", (2, 2)))
    buffer.release()
    assert buffer.released
    with pytest.raises(EncodeFailureError):
        encode_raster(buffer, "png")
