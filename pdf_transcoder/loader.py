"""Opening source bytes as paged documents.

The loader walks a ladder of parse profiles against the active rendering
engine. When every profile fails it asks the bootstrap for the next engine
candidate and walks the ladder again, until a document opens or the
candidates run out.
"""

from __future__ import annotations

import io
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional, Sequence, Tuple

from PIL import Image
from pypdf import PdfReader, PdfWriter

from .backends.base import EngineDocument, EngineOpenError, EnginePage, RenderEngine
from .bootstrap import BackendBootstrap, get_bootstrap
from .exceptions import BackendUnavailableError, DocumentOpenError, OpenFailureCause
from .scheduling import run_blocking
from .types import DocumentInfo, TextFragment, Viewport
from .utils import get_logger

LOGGER = get_logger("pdf_transcoder.loader")


@dataclass(frozen=True)
class ParseProfile:
    """Options for one attempt at opening a document."""

    name: str
    password: Optional[str] = None
    recover: bool = False


DEFAULT_PROFILES: Tuple[ParseProfile, ...] = (
    ParseProfile("direct"),
    ParseProfile("empty-password", password=""),
    ParseProfile("recovered", recover=True),
)


RECOVERED_HEADER = "%PDF-1.7"


class _DefinitiveOpenError(EngineOpenError):
    """The document itself is unusable; other engines would reject it too."""


def _recover_bytes(data: bytes) -> bytes:
    """Re-serialise ``data`` through a lenient pypdf reader."""

    try:
        reader = PdfReader(io.BytesIO(data), strict=False)
        if reader.is_encrypted and not reader.decrypt(""):
            raise _DefinitiveOpenError(OpenFailureCause.UNSUPPORTED, "Document is password protected.")
        catalog = reader.trailer["/Root"].get_object()
        if "/Pages" in catalog and len(reader.pages) == 0:
            raise _DefinitiveOpenError(OpenFailureCause.MALFORMED, "Document has no pages.")
        writer = PdfWriter(clone_from=reader)
        if not writer.pdf_header.startswith("%PDF-"):
            writer.pdf_header = RECOVERED_HEADER
        output = io.BytesIO()
        writer.write(output)
    except EngineOpenError:
        raise
    except Exception as exc:
        raise EngineOpenError(OpenFailureCause.MALFORMED, f"Unable to recover document: {exc}") from exc
    return output.getvalue()


class LoadingTask:
    """Loader-level state of one successful open: the bytes the engine parsed."""

    def __init__(self, engine: str, profile: str, data: bytes) -> None:
        self.engine = engine
        self.profile = profile
        self._data: Optional[bytes] = data

    @property
    def destroyed(self) -> bool:
        return self._data is None

    def destroy(self) -> None:
        self._data = None


class PageHandle:
    """A page of an open :class:`SourceDocumentHandle`; closed with its parent."""

    def __init__(self, parent: "SourceDocumentHandle", number: int, page: EnginePage) -> None:
        self.parent = parent
        self.number = number
        self._page: Optional[EnginePage] = page
        self.native_size: Tuple[float, float] = page.size

    @property
    def closed(self) -> bool:
        return self._page is None or self.parent.closed

    def _require(self) -> EnginePage:
        if self._page is None or self.parent.closed:
            raise ValueError(f"Page {self.number} is no longer available")
        return self._page

    def viewport(self, scale: float) -> Viewport:
        width, height = self.native_size
        return Viewport(width * scale, height * scale, scale)

    def render_pixels(self, scale: float) -> Image.Image:
        """Blocking render; call through :func:`run_blocking`."""
        return self._require().render(scale)

    async def text_content(self) -> List[TextFragment]:
        return await run_blocking(self._require().text_fragments)

    def close(self) -> None:
        page, self._page = self._page, None
        if page is not None:
            self.parent._forget(self)
            page.close()


class SourceDocumentHandle:
    """An opened source document, exclusively owned by one operation."""

    def __init__(self, document: EngineDocument, task: LoadingTask, file_size: int) -> None:
        self._document: Optional[EngineDocument] = document
        self._pages: Dict[int, PageHandle] = {}
        self.page_count = document.page_count
        self.engine = task.engine
        self.profile = task.profile
        self.file_size = file_size

    @property
    def closed(self) -> bool:
        return self._document is None

    def _forget(self, page: PageHandle) -> None:
        self._pages.pop(id(page), None)

    def _load(self, number: int) -> PageHandle:
        if self._document is None:
            raise ValueError("Document has been closed")
        if number < 1 or number > self.page_count:
            raise IndexError(f"Page {number} is out of bounds. Document has {self.page_count} pages.")
        page = PageHandle(self, number, self._document.load_page(number - 1))
        self._pages[id(page)] = page
        return page

    async def get_page(self, number: int) -> PageHandle:
        """Load the 1-based page ``number``."""
        return await run_blocking(self._load, number)

    @asynccontextmanager
    async def page(self, number: int) -> AsyncIterator[PageHandle]:
        handle = await self.get_page(number)
        try:
            yield handle
        finally:
            await run_blocking(handle.close)

    def close(self) -> None:
        document, self._document = self._document, None
        if document is None:
            return
        for page in list(self._pages.values()):
            try:
                page.close()
            except Exception as exc:  # pragma: no cover - engine specific
                LOGGER.debug("Ignoring failure closing page %s: %s", page.number, exc)
        self._pages.clear()
        document.close()


@dataclass
class DocumentCloser:
    """Disposal handles captured by a successful :meth:`DocumentLoader.open`."""

    document: SourceDocumentHandle
    task: LoadingTask

    def close_document(self) -> None:
        self.document.close()

    def destroy_task(self) -> None:
        self.task.destroy()


class DocumentLoader:
    """Open byte buffers through the bootstrap's active engine."""

    def __init__(
        self,
        bootstrap: Optional[BackendBootstrap] = None,
        profiles: Sequence[ParseProfile] = DEFAULT_PROFILES,
    ) -> None:
        if not profiles:
            raise ValueError("At least one parse profile is required")
        self._bootstrap = bootstrap
        self.profiles = tuple(profiles)

    @property
    def bootstrap(self) -> BackendBootstrap:
        return self._bootstrap or get_bootstrap()

    @staticmethod
    def _attempt(engine: RenderEngine, data: bytes, profile: ParseProfile) -> Tuple[EngineDocument, LoadingTask]:
        payload = _recover_bytes(data) if profile.recover else data
        document = engine.open(payload, password=profile.password)
        if document.page_count < 1:
            document.close()
            raise _DefinitiveOpenError(OpenFailureCause.MALFORMED, "Document has no pages.")
        return document, LoadingTask(engine.name, profile.name, payload)

    async def open(self, data: bytes) -> Tuple[SourceDocumentHandle, DocumentCloser]:
        """Open ``data``, returning the handle and the closer that disposes it."""

        if not data:
            raise DocumentOpenError("Document is empty.", cause=OpenFailureCause.MALFORMED)

        payload = bytes(data)
        bootstrap = self.bootstrap
        last_error: Optional[BaseException] = None
        last_cause = OpenFailureCause.BACKEND_UNREACHABLE

        while True:
            position = bootstrap.cursor
            candidate = bootstrap.active
            definitive = False
            protected: Optional[EngineOpenError] = None
            try:
                engine = bootstrap.engine()
            except BackendUnavailableError as exc:
                LOGGER.warning("%s", exc.message)
                last_error, last_cause = exc, OpenFailureCause.BACKEND_UNREACHABLE
            else:
                for profile in self.profiles:
                    try:
                        document, task = await run_blocking(self._attempt, engine, payload, profile)
                    except EngineOpenError as exc:
                        LOGGER.debug("Engine %s, profile %s failed: %s", candidate.name, profile.name, exc)
                        last_error, last_cause = exc, exc.cause
                        if exc.cause is OpenFailureCause.UNSUPPORTED:
                            protected = exc
                        definitive = isinstance(exc, _DefinitiveOpenError)
                        if definitive:
                            break
                    except Exception as exc:
                        LOGGER.debug("Engine %s, profile %s raised: %s", candidate.name, profile.name, exc)
                        last_error, last_cause = exc, OpenFailureCause.MALFORMED
                    else:
                        handle = SourceDocumentHandle(document, task, file_size=len(payload))
                        LOGGER.debug(
                            "Opened %d page(s) with engine %s, profile %s",
                            handle.page_count,
                            candidate.name,
                            profile.name,
                        )
                        return handle, DocumentCloser(handle, task)

            if protected is not None:
                # Every engine rejects a protected document alike.
                last_error, last_cause = protected, OpenFailureCause.UNSUPPORTED
                break
            if definitive or not bootstrap.advance(position):
                break

        raise DocumentOpenError(
            f"Unable to open document ({last_cause.value}): {last_error}",
            cause=last_cause,
        ) from last_error

    async def inspect(self, data: bytes) -> DocumentInfo:
        """Open ``data`` and summarise it; the document is released before returning."""

        handle, closer = await self.open(data)
        try:
            sizes: List[Tuple[float, float]] = []
            for number in range(1, handle.page_count + 1):
                async with handle.page(number) as page:
                    sizes.append(page.native_size)
            return DocumentInfo(
                page_count=handle.page_count,
                file_size=len(data),
                engine=handle.engine,
                profile=handle.profile,
                page_sizes=sizes,
            )
        finally:
            await run_blocking(closer.close_document)
            closer.destroy_task()


__all__ = [
    "ParseProfile",
    "DEFAULT_PROFILES",
    "LoadingTask",
    "PageHandle",
    "SourceDocumentHandle",
    "DocumentCloser",
    "DocumentLoader",
]
