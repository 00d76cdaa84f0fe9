"""Cancellable delayed commit used by step drafts."""
from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Generic, TypeVar

from workshop.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class DebouncedCommitter(Generic[T]):
    """Coalesce a burst of submissions into one call of ``commit``.

    Each ``submit`` cancels the pending timer and starts a new one, so only the
    value submitted last is committed once the burst pauses for ``delay``
    seconds. Must be used from inside a running event loop.
    """

    def __init__(self, commit: Callable[[T], Any], delay: float = 0.5) -> None:
        if delay < 0:
            raise ValueError("delay must not be negative")
        self._commit = commit
        self._delay = delay
        self._handle: asyncio.TimerHandle | None = None
        self._value: T | None = None
        self._has_value = False
        self._tasks: set[asyncio.Task[Any]] = set()
        self.commit_count = 0

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def submit(self, value: T) -> None:
        loop = asyncio.get_running_loop()
        self._value = value
        self._has_value = True
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self._delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._value = None
        self._has_value = False

    def flush(self) -> None:
        """Commit the pending value immediately, if any."""

        if self._handle is not None:
            self._handle.cancel()
        self._fire()

    async def wait(self) -> None:
        """Wait for the pending timer and any asynchronous commit it started."""

        while self._handle is not None:
            await asyncio.sleep(self._delay / 2 or 0)
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _fire(self) -> None:
        self._handle = None
        if not self._has_value:
            return
        value = self._value
        self._value = None
        self._has_value = False
        self.commit_count += 1
        try:
            result = self._commit(value)  # type: ignore[arg-type]
        except Exception:
            logger.exception("debounced commit failed")
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)


__all__ = ["DebouncedCommitter"]
