"""Page rasterisation, grayscale post-processing and image encoding."""

from __future__ import annotations

import io
import math
from typing import Tuple

from PIL import Image

from .exceptions import EncodeFailureError, RenderSurfaceUnavailableError
from .loader import PageHandle
from .scheduling import run_blocking
from .types import EncodedImage, RasterBuffer
from .utils import get_logger

LOGGER = get_logger("pdf_transcoder.rasterizer")

FALLBACK_FORMAT = "png"
_PIL_FORMATS = {"jpeg": "JPEG", "png": "PNG", "webp": "WEBP"}
# ITU-R BT.601 weights; Pillow's default "L" conversion is a fixed-point approximation.
LUMA_MATRIX = (0.299, 0.587, 0.114, 0.0)


def raster_dimensions(width: float, height: float, scale: float) -> Tuple[int, int]:
    """Pixel size of a ``width`` x ``height`` page rendered at ``scale``."""

    return max(1, math.ceil(width * scale)), max(1, math.ceil(height * scale))


def _check_scale(scale: float) -> float:
    value = float(scale)
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"scale must be a positive finite number; got {scale!r}")
    return value


def _render(page: PageHandle, scale: float) -> RasterBuffer:
    target = raster_dimensions(*page.native_size, scale)
    try:
        image = page.render_pixels(scale)
        image.load()
    except MemoryError as exc:
        raise RenderSurfaceUnavailableError(page.number, f"Out of memory rendering page {page.number}.") from exc
    except Exception as exc:
        raise RenderSurfaceUnavailableError(page.number) from exc

    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
    if image.size != target:
        LOGGER.debug("Resampling page %s from %sx%s to %sx%s", page.number, *image.size, *target)
        image = image.resize(target, Image.LANCZOS)
    return RasterBuffer(image, page_number=page.number)


async def render_page(page: PageHandle, scale: float) -> RasterBuffer:
    """Render ``page`` at ``scale``; the buffer is complete when returned."""

    value = _check_scale(scale)
    buffer = await run_blocking(_render, page, value)
    LOGGER.debug("Rendered page %s at %sx%s", page.number, buffer.width, buffer.height)
    return buffer


def to_grayscale(buffer: RasterBuffer) -> RasterBuffer:
    """Replace RGB with ITU-R 601 luma in place, leaving alpha untouched."""

    image = buffer.image
    if image is None:
        raise ValueError("Raster buffer has already been released")
    rgb = image if image.mode == "RGB" else image.convert("RGB")
    luma = rgb.convert("L", matrix=LUMA_MATRIX)
    if rgb is not image:
        rgb.close()
    if image.mode == "RGBA":
        gray = Image.merge("RGBA", (luma, luma, luma, image.getchannel("A")))
    else:
        gray = Image.merge("RGB", (luma, luma, luma))
    image.paste(gray)
    luma.close()
    gray.close()
    return buffer


def _quality_to_pil(quality: float) -> int:
    return max(1, min(95, int(round(quality * 95))))


def _flatten(image: Image.Image) -> Image.Image:
    background = Image.new("RGB", image.size, (255, 255, 255))
    background.paste(image, mask=image.getchannel("A"))
    return background


def _save(image: Image.Image, image_format: str, quality: float) -> bytes:
    pil_format = _PIL_FORMATS[image_format]
    params = {}
    target = image
    if image_format == "jpeg":
        if image.mode == "RGBA":
            target = _flatten(image)
        params = {"quality": _quality_to_pil(quality), "optimize": True}
    elif image_format == "webp":
        params = {"quality": _quality_to_pil(quality)}
    elif image_format == "png":
        params = {"optimize": True}

    output = io.BytesIO()
    try:
        target.save(output, format=pil_format, **params)
    finally:
        if target is not image:
            target.close()
    return output.getvalue()


def encode_raster(buffer: RasterBuffer, image_format: str = "jpeg", quality: float = 0.85) -> EncodedImage:
    """Serialise ``buffer``; a failure is retried once as PNG."""

    image = buffer.image
    if image is None:
        raise EncodeFailureError(image_format, "Raster buffer has already been released.")

    fmt = "jpeg" if image_format == "jpg" else image_format.lower()
    try:
        data = _save(image, fmt, quality)
    except Exception as exc:
        if fmt == FALLBACK_FORMAT:
            raise EncodeFailureError(fmt) from exc
        LOGGER.warning("Encoding page %s as %s failed (%s); retrying as %s", buffer.page_number, fmt, exc, FALLBACK_FORMAT)
        try:
            data = _save(image, FALLBACK_FORMAT, quality)
        except Exception as fallback_exc:
            raise EncodeFailureError(fmt) from fallback_exc
        fmt = FALLBACK_FORMAT
    return EncodedImage(data=data, image_format=fmt, width=image.width, height=image.height)


__all__ = [
    "FALLBACK_FORMAT",
    "raster_dimensions",
    "render_page",
    "to_grayscale",
    "encode_raster",
]
