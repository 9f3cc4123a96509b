"""
Type definitions and dataclasses for PDF Transcoder.

This module defines data structures used throughout the library.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from PIL import Image

from .exceptions import ResourceExhaustedError

MM_PER_INCH = 25.4


@dataclass
class Viewport:
    """Pixel extent of a page rendered at ``scale``."""

    width: float
    height: float
    scale: float


@dataclass
class RasterBuffer:
    """
    Pixel buffer produced for a single page.

    Attributes:
        image: Pillow image holding the pixels (``RGB`` or ``RGBA``)
        page_number: 1-based page the pixels were rendered from, if any
    """
    image: Optional[Image.Image]
    page_number: Optional[int] = None

    @property
    def width(self) -> int:
        return self._pixels().width

    @property
    def height(self) -> int:
        return self._pixels().height

    @property
    def mode(self) -> str:
        return self._pixels().mode

    @property
    def released(self) -> bool:
        return self.image is None

    def _pixels(self) -> Image.Image:
        if self.image is None:
            raise ValueError("Raster buffer has already been released")
        return self.image

    def release(self) -> None:
        """Drop the pixel store; the buffer is unusable afterwards."""
        if self.image is not None:
            self.image.close()
            self.image = None


@dataclass
class EncodedImage:
    """Raster pixels serialised to an image file format."""

    data: bytes
    image_format: str
    width: int
    height: int

    @property
    def extension(self) -> str:
        return "jpg" if self.image_format == "jpeg" else self.image_format

    @property
    def media_type(self) -> str:
        return f"image/{self.image_format}"


@dataclass(frozen=True)
class OutputPageSize:
    """Physical output page size in millimeters."""

    width_mm: float
    height_mm: float
    landscape: bool

    def to_points(self) -> Tuple[float, float]:
        return (self.width_mm * 72.0 / MM_PER_INCH, self.height_mm * 72.0 / MM_PER_INCH)


@dataclass(frozen=True)
class TextFragment:
    """A positioned text run and whether the layout ends a line after it."""

    text: str
    has_eol: bool = False


@dataclass
class TextPage:
    page_number: int
    lines: List[str]


@dataclass
class RasterPage:
    page_number: int
    buffer: RasterBuffer


PageContent = Union[TextPage, RasterPage]


@dataclass(frozen=True)
class ProgressEvent:
    """Progress emitted after each processed page."""

    processed: int
    total: int
    page_number: int

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 100.0
        return min(100.0, self.processed * 100.0 / self.total)


@dataclass
class Artifact:
    """A downloadable output produced by an operation."""

    filename: str
    data: bytes
    media_type: str
    page_count: int = 0

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class TranscodeResult:
    """
    Result of a transcoding operation.

    Attributes:
        operation: Name of the tool that produced the result
        artifacts: Output files in the order they were produced
        pages_processed: Number of pages rendered or extracted
        pages_total: Number of pages the caller selected before any guard
        notices: Truncation notices raised by max-pages/max-files guards
    """
    operation: str
    artifacts: List[Artifact] = field(default_factory=list)
    pages_processed: int = 0
    pages_total: int = 0
    notices: List[ResourceExhaustedError] = field(default_factory=list)

    @property
    def truncated(self) -> bool:
        return bool(self.notices)

    def __str__(self) -> str:
        return (
            f"TranscodeResult(operation={self.operation!r}, files={len(self.artifacts)}, "
            f"pages={self.pages_processed}/{self.pages_total}, truncated={self.truncated})"
        )


@dataclass
class DocumentInfo:
    """Summary of an opened source document."""

    page_count: int
    file_size: int
    engine: str
    profile: str
    page_sizes: List[Tuple[float, float]] = field(default_factory=list)
