# botqueue/timers.py
"""
Timer backends for the kitchen engine.

The engine only needs a clock and one-shot callbacks, so it talks to a
``Scheduler``. ``ManualClock`` runs on virtual time and is what the tests and
the simulator use; ``AsyncioTimers`` maps onto an asyncio event loop for
real-time sessions.
"""
from __future__ import annotations

import asyncio
import heapq
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Tuple

Callback = Callable[[], None]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def now_ms(self) -> float: ...

    def call_later(self, delay_ms: float, callback: Callback) -> TimerHandle: ...


@dataclass(slots=True, eq=False)
class ManualTimer:
    due: float
    callback: Callback
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """
    Deterministic virtual clock.
    Timers sit in a min-heap keyed by (due, seq); cancelled entries are
    dropped lazily when they reach the top. Timers due at the same instant
    fire in scheduling order.
    """

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now: float = start_ms
        self._heap: List[Tuple[float, int, ManualTimer]] = []
        self._seq: int = 0

    def now_ms(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callback) -> ManualTimer:
        if delay_ms < 0:
            raise ValueError("delay_ms must be non-negative")
        self._seq += 1
        timer = ManualTimer(due=self._now + delay_ms, callback=callback)
        heapq.heappush(self._heap, (timer.due, self._seq, timer))
        return timer

    def next_due(self) -> Optional[float]:
        while self._heap:
            due, _seq, timer = self._heap[0]
            if not timer.cancelled:
                return due
            heapq.heappop(self._heap)  # stale
        return None

    def pending(self) -> int:
        return sum(1 for _due, _seq, t in self._heap if not t.cancelled)

    def advance(self, delta_ms: float) -> int:
        """Move time forward, firing every timer that comes due. Returns the number fired."""
        if delta_ms < 0:
            raise ValueError("cannot move the clock backwards")
        target = self._now + delta_ms
        fired = 0
        while True:
            due = self.next_due()
            if due is None or due > target:
                break
            _due, _seq, timer = heapq.heappop(self._heap)
            self._now = due
            timer.fired = True
            timer.callback()
            fired += 1
        self._now = target
        return fired

    def run_until_idle(self) -> int:
        fired = 0
        while True:
            due = self.next_due()
            if due is None:
                return fired
            fired += self.advance(due - self._now)


class AsyncioTimers:
    """Real-time scheduler on an asyncio loop. Construct it from inside a running loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop if loop is not None else asyncio.get_running_loop()

    def now_ms(self) -> float:
        return self._loop.time() * 1000.0

    def call_later(self, delay_ms: float, callback: Callback) -> asyncio.TimerHandle:
        return self._loop.call_later(delay_ms / 1000.0, callback)
