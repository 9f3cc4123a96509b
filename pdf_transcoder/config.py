"""Option handling shared by the CLI, the HTTP API and the tools."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Mapping, Optional, Tuple

ENGINES_ENV = "PDF_TRANSCODER_ENGINES"

# Portrait dimensions in millimeters.
PAGE_PRESETS: Dict[str, Tuple[float, float]] = {
    "a4": (210.0, 297.0),
    "letter": (215.9, 279.4),
    "legal": (215.9, 355.6),
}

IMAGE_FORMATS = ("jpeg", "png", "webp")
PAGE_SIZES = ("fit",) + tuple(PAGE_PRESETS)
ORIENTATIONS = ("auto", "portrait", "landscape")
SPLIT_MODES = ("range", "pages", "chunks")
TEXT_FORMATS = ("txt", "docx")

MIN_QUALITY = 0.1
MAX_QUALITY = 1.0


def _choice(value: str, allowed: Tuple[str, ...], field_name: str) -> str:
    normalised = str(value).strip().lower()
    if normalised == "jpg":
        normalised = "jpeg"
    if normalised not in allowed:
        raise ValueError(f"{field_name} must be one of {', '.join(allowed)}; got {value!r}")
    return normalised


@dataclass
class TranscodeOptions:
    """Numeric and mode controls for a single operation."""

    pages: str = "all"
    scale: float = 1.5
    target_dpi: Optional[float] = None
    quality: float = 0.85
    image_format: str = "jpeg"
    grayscale: bool = False
    max_pages: int = 200
    max_output_files: int = 50
    margin_mm: float = 0.0
    page_size: str = "fit"
    orientation: str = "auto"
    split_mode: str = "range"
    chunk_size: int = 1
    text_format: str = "txt"
    include_headings: bool = True

    def __post_init__(self) -> None:
        self.pages = str(self.pages).strip() or "all"
        self.scale = float(self.scale)
        if not math.isfinite(self.scale) or self.scale <= 0:
            raise ValueError(f"scale must be a positive number; got {self.scale}")
        if self.target_dpi is not None:
            self.target_dpi = float(self.target_dpi)
            if self.target_dpi <= 0:
                raise ValueError("target_dpi must be positive")
        self.quality = min(MAX_QUALITY, max(MIN_QUALITY, float(self.quality)))
        self.image_format = _choice(self.image_format, IMAGE_FORMATS, "image_format")
        self.page_size = _choice(self.page_size, PAGE_SIZES, "page_size")
        self.orientation = _choice(self.orientation, ORIENTATIONS, "orientation")
        self.split_mode = _choice(self.split_mode, SPLIT_MODES, "split_mode")
        self.text_format = _choice(self.text_format, TEXT_FORMATS, "text_format")
        self.max_pages = int(self.max_pages)
        self.max_output_files = int(self.max_output_files)
        self.chunk_size = int(self.chunk_size)
        if self.max_pages < 1:
            raise ValueError("max_pages must be >= 1")
        if self.max_output_files < 1:
            raise ValueError("max_output_files must be >= 1")
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self.margin_mm = max(0.0, float(self.margin_mm))

    @property
    def effective_dpi(self) -> float:
        """Density used to size output pages; 72 dpi times the render scale by default."""
        if self.target_dpi is not None:
            return self.target_dpi
        return 72.0 * self.scale

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> "TranscodeOptions":
        """Build options from loose CLI/form input, ignoring unknown keys and ``None``."""

        if not mapping:
            return cls()
        known = {item.name for item in fields(cls)}
        values = {
            key: value
            for key, value in mapping.items()
            if key in known and value is not None
        }
        return cls(**values)


def engine_order_from_env() -> Optional[List[str]]:
    """Return the engine order requested through ``PDF_TRANSCODER_ENGINES``."""

    raw = os.environ.get(ENGINES_ENV)
    if not raw:
        return None
    names = [name.strip().lower() for name in raw.split(",") if name.strip()]
    return names or None


__all__ = [
    "TranscodeOptions",
    "PAGE_PRESETS",
    "IMAGE_FORMATS",
    "PAGE_SIZES",
    "ORIENTATIONS",
    "SPLIT_MODES",
    "TEXT_FORMATS",
    "engine_order_from_env",
]
