"""Rendering engine abstractions for PDF Transcoder.

Concrete engines import their native libraries, so they are loaded on demand
by :mod:`pdf_transcoder.bootstrap` rather than imported here.
"""

from .base import EngineDocument, EngineOpenError, EnginePage, RenderEngine

__all__ = [
    "EngineDocument",
    "EngineOpenError",
    "EnginePage",
    "RenderEngine",
]
