"""Utilities shared by PDF Transcoder modules."""

from __future__ import annotations

import io
import logging
import os
from pathlib import Path
from typing import Iterable
from zipfile import ZIP_DEFLATED, ZipFile

LOG_LEVEL_ENV = "PDF_TRANSCODER_LOG_LEVEL"


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(os.environ.get(LOG_LEVEL_ENV, "WARNING").upper())
        logger.propagate = False
    return logger


def format_file_size(size_bytes: float) -> str:
    """
    Format file size in human-readable format.

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string (e.g., "1.5 MB", "500 KB")
    """
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} PB"


def safe_filename(filename: str | None, default: str) -> str:
    """Return a filesystem-safe filename derived from user input."""

    if not filename:
        return default

    candidate = Path(filename).name
    return candidate or default


def safe_stem(filename: str | None, default: str = "document") -> str:
    stem = Path(safe_filename(filename, default)).stem
    return stem.replace(" ", "_") or default


def zip_artifacts(artifacts: Iterable[tuple[str, bytes]]) -> bytes:
    """Bundle ``(filename, data)`` pairs into an in-memory zip archive."""

    buffer = io.BytesIO()
    with ZipFile(buffer, "w", compression=ZIP_DEFLATED) as archive:
        for filename, data in artifacts:
            archive.writestr(filename, data)
    return buffer.getvalue()


__all__ = ["get_logger", "format_file_size", "safe_filename", "safe_stem", "zip_artifacts"]
