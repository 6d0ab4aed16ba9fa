"""
Cancellable deferred-call scheduling.

Poll loops are chains of deferred callbacks rather than sleeping tasks, so
tests can drive them with a manual clock and cancellation is a single
``cancel()`` on the pending call.

Dependencies: asyncio
System role: Timer abstraction for the poll scheduler
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Protocol


class ScheduledCall(Protocol):
    """Handle to a pending deferred callback."""

    def cancel(self) -> None:
        """Prevent the callback from running; no-op if it already ran."""
        ...


class Scheduler(Protocol):
    """Clock and timer source used by the poll scheduler."""

    def now(self) -> datetime:
        """Current wall-clock time (timezone-aware)."""
        ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        """Run ``callback`` after ``delay`` seconds on the event loop."""
        ...


class AsyncioScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """
        Initialize scheduler.

        Args:
            loop: Event loop to schedule on; defaults to the running loop at
                call time
        """
        self._loop = loop

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)
