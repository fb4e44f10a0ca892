from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TypeVar

from rokucontrol.errors import ConflictError, RequestTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight:
    """At most one holder at a time; a second attempt is rejected, never queued."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._held = False

    @property
    def is_held(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        if self._held:
            return False
        self._held = True
        return True

    def release(self) -> None:
        self._held = False

    @contextmanager
    def hold(self, message: str | None = None) -> Iterator[None]:
        """Acquire for the duration of the block, raising ConflictError if busy."""
        if not self.try_acquire():
            raise ConflictError(message or f"{self.name} is already running")
        try:
            yield
        finally:
            self.release()


@dataclass
class ExecutionFlags:
    """Process-wide execution state shared by the sequencer and the room locator."""

    macro: SingleFlight = field(default_factory=lambda: SingleFlight("macro"))
    detection: SingleFlight = field(default_factory=lambda: SingleFlight("room detection"))


def _discard_late_result(task: asyncio.Future) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Abandoned request finished with error: %s", exc)
    else:
        logger.debug("Abandoned request finished after its deadline; result discarded")


async def with_timeout(
    awaitable: Awaitable[T], seconds: float, message: str = "Operation timed out"
) -> T:
    """Race ``awaitable`` against a deadline.

    The underlying operation is abandoned rather than cancelled when the
    deadline passes; its eventual result is discarded.
    """
    task = asyncio.ensure_future(awaitable)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout=seconds)
    except (asyncio.TimeoutError, TimeoutError) as exc:
        if task.done():
            # the wrapped operation raised its own TimeoutError
            raise
        task.add_done_callback(_discard_late_result)
        raise RequestTimeoutError(message, timeout=seconds) from exc
