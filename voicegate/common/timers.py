"""Cancellable timer scheduling for per-connection state machines.

Every timer is returned as a handle so the owner can store it and cancel it
when a state transition supersedes it. All callbacks run on the event loop
thread, which serializes them with the connection's message handling.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Protocol


class TimerHandle(Protocol):
    """Handle for a scheduled callback."""

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Clock plus delayed-callback source used by timer-driven components."""

    def now(self) -> float:
        """Monotonic time in seconds."""
        ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class LoopScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    def now(self) -> float:
        return self._loop.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return self._loop.call_later(max(0.0, delay), callback)


def cancel_timer(handle: TimerHandle | None) -> None:
    """Cancel ``handle`` if it is set."""
    if handle is not None:
        handle.cancel()


__all__ = ["LoopScheduler", "Scheduler", "TimerHandle", "cancel_timer"]
