"""
PDF Transcoder - raster-backed PDF merge, split, compress and conversion.

Every tool opens its sources through a shared rendering engine, resolves the
page selection, renders pages one at a time and composes a new PDF, a set of
page images, or a text document.

Quick Start:
    >>> from pdf_transcoder import transcode
    >>> result = transcode("split", ["input.pdf"], pages="2,4")
    >>> result.artifacts[0].filename
    'input_pages_2-4_2.pdf'

Main Entry Points:
    - transcode: Run a registered tool synchronously
    - run_tool: Await a registered tool from async code
    - inspect_document: Page count, page sizes and the engine used

For CLI usage, use the 'pdf-transcoder' command after installation.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from pdf_transcoder.bootstrap import BackendBootstrap, BackendCandidate, get_bootstrap, set_bootstrap
from pdf_transcoder.config import TranscodeOptions
from pdf_transcoder.exceptions import (
    BackendUnavailableError,
    DocumentOpenError,
    EncodeFailureError,
    InvalidImageError,
    InvalidPageRangeError,
    OpenFailureCause,
    RenderSurfaceUnavailableError,
    ResourceExhaustedError,
    TranscoderError,
    user_message,
)
from pdf_transcoder.loader import DocumentLoader
from pdf_transcoder.tools import SourceFile, ToolContext, load_builtin_plugins, registry
from pdf_transcoder.types import Artifact, DocumentInfo, ProgressEvent, TranscodeResult

__version__ = "1.0.0"
__license__ = "MIT"

SourceLike = Union[str, Path, SourceFile]


def _as_source(item: SourceLike) -> SourceFile:
    if isinstance(item, SourceFile):
        return item
    return SourceFile.from_path(item)


async def run_tool(
    operation: str,
    sources: Iterable[SourceLike],
    options: Optional[TranscodeOptions] = None,
    **context_kwargs: Any,
) -> Optional[TranscodeResult]:
    """Run the tool registered as ``operation`` over ``sources``."""

    load_builtin_plugins()
    context = ToolContext(
        sources=[_as_source(item) for item in sources],
        options=options or TranscodeOptions(),
        **context_kwargs,
    )
    return await registry.create(operation, context).run()


def transcode(
    operation: str,
    sources: Iterable[SourceLike],
    options: Optional[TranscodeOptions] = None,
    **option_values: Any,
) -> Optional[TranscodeResult]:
    """Synchronous wrapper around :func:`run_tool`; keyword arguments become options."""

    if options is None:
        options = TranscodeOptions.from_mapping(option_values)
    return asyncio.run(run_tool(operation, sources, options))


def inspect_document(data: bytes, loader: Optional[DocumentLoader] = None) -> DocumentInfo:
    return asyncio.run((loader or DocumentLoader()).inspect(data))


__all__ = [
    "transcode",
    "run_tool",
    "inspect_document",
    "TranscodeOptions",
    "TranscodeResult",
    "Artifact",
    "DocumentInfo",
    "ProgressEvent",
    "SourceFile",
    "ToolContext",
    "DocumentLoader",
    "BackendBootstrap",
    "BackendCandidate",
    "get_bootstrap",
    "set_bootstrap",
    "OpenFailureCause",
    "TranscoderError",
    "DocumentOpenError",
    "InvalidImageError",
    "BackendUnavailableError",
    "InvalidPageRangeError",
    "RenderSurfaceUnavailableError",
    "EncodeFailureError",
    "ResourceExhaustedError",
    "user_message",
]
