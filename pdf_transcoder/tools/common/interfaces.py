"""Core interfaces and context objects shared by transcoder tools."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from ...config import TranscodeOptions
from ...exceptions import user_message
from ...loader import DocumentLoader
from ...scheduling import GenerationToken, RunTracker
from ...types import Artifact, ProgressEvent, TranscodeResult
from ...utils import get_logger, safe_stem

LOGGER = get_logger("pdf_transcoder.tools")

ProgressCallback = Callable[[ProgressEvent], None]
StatusCallback = Callable[[str], None]
DownloadSink = Callable[[Artifact], None]


@dataclass
class SourceFile:
    """Bytes of one user-selected input and the name it was selected under."""

    name: str
    data: bytes

    @classmethod
    def from_path(cls, path: str | Path) -> "SourceFile":
        source = Path(path).expanduser()
        return cls(name=source.name, data=source.read_bytes())

    @property
    def stem(self) -> str:
        return safe_stem(self.name)


@dataclass
class ToolContext:
    """Holds shared execution state for a tool invocation."""

    sources: list[SourceFile] = field(default_factory=list)
    options: TranscodeOptions = field(default_factory=TranscodeOptions)
    on_progress: ProgressCallback | None = None
    on_status: StatusCallback | None = None
    on_download: DownloadSink | None = None
    loader: DocumentLoader | None = None
    resources: dict[str, Any] = field(default_factory=dict)

    def ensure_loader(self) -> DocumentLoader:
        if self.loader is None:
            self.loader = DocumentLoader()
        return self.loader

    def single_source(self) -> SourceFile:
        if not self.sources:
            raise ValueError("No input file provided")
        return self.sources[0]

    def report(self, event: ProgressEvent) -> None:
        if self.on_progress is not None:
            self.on_progress(event)

    def status(self, message: str) -> None:
        if self.on_status is not None:
            self.on_status(message)


class RunSuperseded(Exception):
    """A newer run of the same tool instance has started."""


class BaseTool:
    """Base class for all pluggable transcoder tools.

    ``run`` starts a new generation; work belonging to an older generation is
    dropped without error the next time it checks its token.
    """

    name: str

    def __init__(self, context: ToolContext) -> None:
        self.context = context
        self.tracker = RunTracker()

    def cancel(self) -> None:
        self.tracker.invalidate()

    def ensure_current(self, token: GenerationToken) -> None:
        if not self.tracker.is_current(token):
            raise RunSuperseded(f"{self.name} run {token.generation} superseded")

    async def execute(self, token: GenerationToken) -> TranscodeResult:  # pragma: no cover - abstract
        raise NotImplementedError

    async def run(self) -> TranscodeResult | None:
        token = self.tracker.begin()
        try:
            result = await self.execute(token)
        except RunSuperseded:
            LOGGER.debug("Discarding superseded %s run %s", self.name, token.generation)
            return None
        except Exception as exc:
            if not self.tracker.is_current(token):
                LOGGER.debug("Discarding failure of superseded %s run: %s", self.name, exc)
                return None
            LOGGER.error("%s failed: %s", self.name, exc)
            self.context.status(user_message(exc))
            raise

        if not self.tracker.is_current(token):
            LOGGER.debug("Discarding superseded %s run %s", self.name, token.generation)
            return None

        if self.context.on_download is not None:
            for artifact in result.artifacts:
                self.context.on_download(artifact)
        self.context.resources["result"] = result
        for notice in result.notices:
            self.context.status(notice.message)
        self.context.status(
            f"Done: {len(result.artifacts)} file(s), {result.pages_processed} page(s) processed."
        )
        LOGGER.info("%s", result)
        return result


ToolFactory = Callable[[ToolContext], BaseTool]
