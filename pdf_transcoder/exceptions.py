"""
Custom exceptions for PDF Transcoder.

This module defines all custom exceptions used throughout the library and the
mapping from any failure to the short status line shown to users.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class OpenFailureCause(str, Enum):
    """Why a source document could not be opened."""

    MALFORMED = "malformed"
    UNSUPPORTED = "unsupported"
    BACKEND_UNREACHABLE = "backend-unreachable"


class TranscoderError(Exception):
    """Base exception for all PDF Transcoder errors."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def default_message(self) -> str:
        return "An unknown PDF transcoder error occurred."


class DocumentOpenError(TranscoderError):
    """Raised when source bytes cannot be opened by any engine or parse profile."""

    def __init__(
        self,
        message: str = "",
        *,
        cause: OpenFailureCause = OpenFailureCause.MALFORMED,
    ) -> None:
        super().__init__(message)
        self.cause = cause

    @property
    def default_message(self) -> str:
        return "The document could not be opened."


class InvalidImageError(DocumentOpenError):
    """Raised when an input image cannot be decoded."""

    @property
    def default_message(self) -> str:
        return "The image could not be decoded."


class BackendUnavailableError(TranscoderError):
    """Raised when the active rendering engine cannot be loaded."""

    @property
    def default_message(self) -> str:
        return "The rendering engine is not available."


class InvalidPageRangeError(TranscoderError):
    """Raised when a page-selection expression fails validation."""

    def __init__(self, expression: object = None, message: str = "") -> None:
        self.expression = expression
        super().__init__(message or f"Invalid page selection: {expression!r}")

    @property
    def default_message(self) -> str:
        return "Invalid page selection."


class RenderSurfaceUnavailableError(TranscoderError):
    """Raised when the pixel buffer for a page cannot be acquired."""

    def __init__(self, page_number: Optional[int] = None, message: str = "") -> None:
        self.page_number = page_number
        if not message and page_number is not None:
            message = f"Unable to render page {page_number}."
        super().__init__(message)

    @property
    def default_message(self) -> str:
        return "Unable to acquire a render surface."


class EncodeFailureError(TranscoderError):
    """Raised when pixels cannot be serialised, even to the fallback format."""

    def __init__(self, image_format: str = "", message: str = "") -> None:
        self.image_format = image_format
        if not message and image_format:
            message = f"Unable to encode page image as {image_format}."
        super().__init__(message)

    @property
    def default_message(self) -> str:
        return "Unable to encode page image."


class ResourceExhaustedError(TranscoderError):
    """Notice attached to results truncated by a max-pages or max-files guard.

    Never raised out of an operation: truncation is an explicit caller policy,
    so the operation succeeds and carries this notice instead.
    """

    def __init__(self, limit: int = 0, requested: int = 0, message: str = "") -> None:
        self.limit = limit
        self.requested = requested
        if not message and requested:
            message = f"Limit of {limit} reached; {requested - limit} of {requested} item(s) skipped."
        super().__init__(message)

    @property
    def default_message(self) -> str:
        return "Processing limit reached."


UNREADABLE_FILE_MESSAGE = "Could not read this file. Make sure it is a valid, unprotected document."
INVALID_SELECTION_MESSAGE = "Invalid page selection. Use 'all', single pages, or ranges such as 1-3,7."
PROCESSING_FAILED_MESSAGE = "Processing failed. Try a smaller page range or lower resolution."


def user_message(exc: BaseException) -> str:
    """Return the single human-readable status line for ``exc``."""

    if isinstance(exc, DocumentOpenError):
        return UNREADABLE_FILE_MESSAGE
    if isinstance(exc, InvalidPageRangeError):
        return INVALID_SELECTION_MESSAGE
    return PROCESSING_FAILED_MESSAGE
