"""Output page sizing for rasterised content."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .config import PAGE_PRESETS, TranscodeOptions
from .types import MM_PER_INCH, OutputPageSize

MIN_DPI = 72.0
MAX_DPI = 300.0
MIN_PAGE_MM = 30.0
MAX_PAGE_MM = 1200.0


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class Preset:
    """A fixed page size; callers wanting landscape pass swapped dimensions."""

    width_mm: float
    height_mm: float

    @classmethod
    def named(cls, name: str, landscape: bool = False) -> "Preset":
        try:
            width, height = PAGE_PRESETS[name.lower()]
        except KeyError as exc:
            raise ValueError(f"Unknown page size preset: {name!r}") from exc
        if landscape:
            width, height = height, width
        return cls(width, height)


@dataclass(frozen=True)
class FitToContent:
    """Derive the page size from the pixel size at a target density."""


LayoutMode = Union[Preset, FitToContent]


def resolve_size(
    mode: LayoutMode,
    pixel_width: float,
    pixel_height: float,
    target_dpi: float,
) -> OutputPageSize:
    """Return the physical size of one output page.

    For a preset the dimensions are used verbatim and ``landscape`` reflects
    the content's aspect ratio. For fit-to-content ``target_dpi`` is clamped
    to 72-300 and each side to 30-1200 mm.
    """

    if isinstance(mode, Preset):
        return OutputPageSize(mode.width_mm, mode.height_mm, pixel_width > pixel_height)

    dpi = _clamp(float(target_dpi), MIN_DPI, MAX_DPI)
    mm_per_pixel = MM_PER_INCH / dpi
    width_mm = _clamp(max(pixel_width, 0.0) * mm_per_pixel, MIN_PAGE_MM, MAX_PAGE_MM)
    height_mm = _clamp(max(pixel_height, 0.0) * mm_per_pixel, MIN_PAGE_MM, MAX_PAGE_MM)
    return OutputPageSize(width_mm, height_mm, width_mm > height_mm)


def mode_for(options: TranscodeOptions, pixel_width: int, pixel_height: int) -> LayoutMode:
    if options.page_size == "fit":
        return FitToContent()
    if options.orientation == "auto":
        landscape = pixel_width > pixel_height
    else:
        landscape = options.orientation == "landscape"
    return Preset.named(options.page_size, landscape=landscape)


def layout_for(options: TranscodeOptions, pixel_width: int, pixel_height: int) -> OutputPageSize:
    mode = mode_for(options, pixel_width, pixel_height)
    return resolve_size(mode, pixel_width, pixel_height, options.effective_dpi)


__all__ = [
    "Preset",
    "FitToContent",
    "LayoutMode",
    "resolve_size",
    "mode_for",
    "layout_for",
    "MIN_DPI",
    "MAX_DPI",
    "MIN_PAGE_MM",
    "MAX_PAGE_MM",
]
