"""Backend protocol for rendering engines."""

from __future__ import annotations

from typing import List, Optional, Protocol, Tuple

from PIL import Image

from ..exceptions import OpenFailureCause
from ..types import TextFragment


class EngineOpenError(Exception):
    """Raised by an engine when it cannot parse the supplied bytes."""

    def __init__(self, cause: OpenFailureCause, message: str) -> None:
        super().__init__(message)
        self.cause = cause


class EnginePage:
    """A loaded page with backend-specific helpers."""

    @property
    def size(self) -> Tuple[float, float]:
        """Native (width, height) in PDF points."""
        raise NotImplementedError

    def render(self, scale: float) -> Image.Image:
        raise NotImplementedError

    def text_fragments(self) -> List[TextFragment]:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


class EngineDocument:
    """A parsed document owned by exactly one loader call."""

    @property
    def page_count(self) -> int:
        raise NotImplementedError

    def load_page(self, index: int) -> EnginePage:
        """Load the page at zero-based ``index``."""
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


class RenderEngine(Protocol):
    """Protocol defining the operations the loader needs from an engine."""

    name: str

    def open(self, data: bytes, password: Optional[str] = None) -> EngineDocument:
        """Parse ``data`` and return a document wrapper."""


def looks_encrypted(message: str) -> bool:
    lowered = message.lower()
    return "password" in lowered or "encrypt" in lowered or "security" in lowered


__all__ = [
    "EngineOpenError",
    "EnginePage",
    "EngineDocument",
    "RenderEngine",
    "looks_encrypted",
]
