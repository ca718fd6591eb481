"""Cancellable scheduled tasks for short-lived UI signals.

A :class:`PuzzleSession` shows an advisory message for 1.5s and shakes a
wrong guess for 0.5s. Both are modelled as a :class:`TransientValue`: every
``set()`` schedules an expiry that is keyed to that particular value, so a
timer left over from an older message can never clear a newer one.

Two schedulers are provided:

- :class:`ClockScheduler` queues callbacks and fires the due ones when
  ``run_pending()`` is called. The session calls it on every operation and
  view read, so no event loop is needed. Tests pass a fake clock.
- :class:`LoopScheduler` hands callbacks to a running asyncio loop.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...

    def run_pending(self) -> int: ...


# ---------------------------------------------------------------------------
# Clock-driven scheduler
# ---------------------------------------------------------------------------

@dataclass(order=True)
class ScheduledCall:
    due: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ClockScheduler:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._queue: list[ScheduledCall] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        call = ScheduledCall(self._clock() + delay, next(self._seq), callback)
        heapq.heappush(self._queue, call)
        return call

    def run_pending(self) -> int:
        """Fire every call that is due, oldest first. Returns how many ran."""
        now = self._clock()
        fired = 0
        while self._queue and self._queue[0].due <= now:
            call = heapq.heappop(self._queue)
            if call.cancelled:
                continue
            call.callback()
            fired += 1
        return fired

    def __len__(self) -> int:
        return sum(1 for c in self._queue if not c.cancelled)


# ---------------------------------------------------------------------------
# asyncio-backed scheduler
# ---------------------------------------------------------------------------

class LoopScheduler:
    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop or asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._loop.call_later(delay, callback)

    def run_pending(self) -> int:
        # The loop fires callbacks on its own
        return 0


# ---------------------------------------------------------------------------
# Transient values
# ---------------------------------------------------------------------------

class TransientValue:
    """A value that reverts to ``empty`` after its time-to-live."""

    def __init__(self, scheduler: Scheduler, empty: Any = None):
        self._scheduler = scheduler
        self._empty = empty
        self._generation = 0
        self._handle: Cancellable | None = None
        self.value = empty

    def set(self, value: Any, ttl: float) -> None:
        self.clear()
        generation = self._generation
        self.value = value
        self._handle = self._scheduler.call_later(ttl, lambda: self._expire(generation))

    def clear(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._generation += 1
        self.value = self._empty

    def _expire(self, generation: int) -> None:
        if generation != self._generation:
            logger.debug("Ignoring stale expiry (generation %d, current %d)",
                         generation, self._generation)
            return
        self._handle = None
        self.value = self._empty
