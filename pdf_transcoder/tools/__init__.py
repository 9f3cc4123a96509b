"""Namespace for pluggable transcoder tools."""

from __future__ import annotations

from .common.interfaces import BaseTool, SourceFile, ToolContext
from .common.pipeline import registry


def load_builtin_plugins() -> None:
    from . import merge  # noqa: F401
    from . import split  # noqa: F401  # register split
    from . import compress  # noqa: F401
    from . import convert  # noqa: F401  # pdf-to-images, pdf-to-text, images-to-pdf


__all__ = ["registry", "load_builtin_plugins", "BaseTool", "SourceFile", "ToolContext"]
