"""Resolution of the rendering engine shared by every operation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .backends.base import RenderEngine
from .config import engine_order_from_env
from .exceptions import BackendUnavailableError
from .utils import get_logger

LOGGER = get_logger("pdf_transcoder.bootstrap")


def _load_pdfium() -> RenderEngine:
    from .backends.pdfium_backend import PdfiumEngine

    return PdfiumEngine()


def _load_mupdf() -> RenderEngine:
    from .backends.mupdf_backend import MuPDFEngine

    return MuPDFEngine()


@dataclass(frozen=True)
class BackendCandidate:
    """One place the rendering engine may be obtained from."""

    name: str
    factory: Callable[[], RenderEngine]
    first_party: bool = False


def default_candidates() -> List[BackendCandidate]:
    candidates = [
        BackendCandidate("pdfium", _load_pdfium, first_party=True),
        BackendCandidate("mupdf", _load_mupdf, first_party=False),
    ]
    order = engine_order_from_env()
    if not order:
        return candidates
    by_name = {candidate.name: candidate for candidate in candidates}
    unknown = [name for name in order if name not in by_name]
    if unknown:
        LOGGER.warning("Ignoring unknown engine(s) in configuration: %s", ", ".join(unknown))
    ordered = [by_name[name] for name in dict.fromkeys(order) if name in by_name]
    return ordered or candidates


class BackendBootstrap:
    """Ordered engine candidates with a cursor that only moves forward.

    The first candidate that works sticks: once an operation has advanced the
    cursor, every later operation starts from the promoted candidate.
    """

    def __init__(self, candidates: Optional[Sequence[BackendCandidate]] = None) -> None:
        self._initial = list(candidates) if candidates is not None else None
        self._candidates: List[BackendCandidate] = []
        self._cursor = 0
        self._engine: Optional[RenderEngine] = None
        self._configured = False

    def configure(self) -> None:
        if self._configured:
            return
        candidates = self._initial if self._initial is not None else default_candidates()
        if not candidates:
            raise ValueError("At least one backend candidate is required")
        self._candidates = list(candidates)
        self._cursor = 0
        self._configured = True
        LOGGER.debug(
            "Engine candidates: %s", ", ".join(candidate.name for candidate in self._candidates)
        )

    @property
    def candidates(self) -> List[BackendCandidate]:
        self.configure()
        return list(self._candidates)

    @property
    def cursor(self) -> int:
        self.configure()
        return self._cursor

    @property
    def active(self) -> BackendCandidate:
        self.configure()
        return self._candidates[self._cursor]

    def engine(self) -> RenderEngine:
        """Return the active candidate's engine, loading it on first use."""

        self.configure()
        if self._engine is None:
            candidate = self.active
            try:
                self._engine = candidate.factory()
            except Exception as exc:
                raise BackendUnavailableError(
                    f"Rendering engine '{candidate.name}' could not be loaded: {exc}"
                ) from exc
            LOGGER.debug("Loaded rendering engine %s", candidate.name)
        return self._engine

    def advance(self, from_cursor: Optional[int] = None) -> bool:
        """Move past the candidate at ``from_cursor``; ``False`` when none remain.

        ``from_cursor`` is the position the caller actually tried. When another
        operation has already moved the cursor beyond it, the cursor is left
        alone and ``True`` is returned so the caller retries on the promoted
        candidate. ``None`` means the current position.
        """

        self.configure()
        if from_cursor is not None and from_cursor < self._cursor:
            LOGGER.debug(
                "Candidate %s already superseded by %s", self._candidates[from_cursor].name, self.active.name
            )
            return True
        if self._cursor + 1 >= len(self._candidates):
            LOGGER.warning("All rendering engine candidates have been exhausted")
            return False
        previous = self._candidates[self._cursor].name
        self._cursor += 1
        self._engine = None
        LOGGER.warning("Switching rendering engine from %s to %s", previous, self.active.name)
        return True


_bootstrap: Optional[BackendBootstrap] = None


def get_bootstrap() -> BackendBootstrap:
    """Return the process-wide bootstrap, creating it on first use."""

    global _bootstrap
    if _bootstrap is None:
        _bootstrap = BackendBootstrap()
    return _bootstrap


def set_bootstrap(bootstrap: Optional[BackendBootstrap]) -> None:
    """Replace the process-wide bootstrap (``None`` resets to defaults)."""

    global _bootstrap
    _bootstrap = bootstrap


__all__ = [
    "BackendCandidate",
    "BackendBootstrap",
    "default_candidates",
    "get_bootstrap",
    "set_bootstrap",
]
