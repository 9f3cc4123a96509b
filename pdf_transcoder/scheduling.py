"""Cooperative scheduling helpers: blocking-call offload and run generations."""

from __future__ import annotations

import asyncio
import functools
import itertools
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

T = TypeVar("T")

# Engine calls hold raw page pixels; a single worker keeps at most one in flight.
_ENGINE_EXECUTOR = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pdf-transcoder-engine")


async def run_blocking(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Await ``func(*args, **kwargs)`` on the shared engine worker."""

    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_ENGINE_EXECUTOR, functools.partial(func, *args, **kwargs))


@dataclass(frozen=True)
class GenerationToken:
    """Identifies one run of a tool instance."""

    tracker_id: int
    generation: int


class RunTracker:
    """Hands out monotonically increasing run tokens for one tool instance.

    Starting a new run or calling :meth:`invalidate` makes every earlier token
    stale; stale runs discard their results instead of committing them.
    """

    _ids = itertools.count(1)

    def __init__(self) -> None:
        self._id = next(self._ids)
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def begin(self) -> GenerationToken:
        self._generation += 1
        return GenerationToken(self._id, self._generation)

    def invalidate(self) -> None:
        self._generation += 1

    def is_current(self, token: GenerationToken) -> bool:
        return token.tracker_id == self._id and token.generation == self._generation


__all__ = ["run_blocking", "GenerationToken", "RunTracker"]
