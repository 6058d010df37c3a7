# tests/test_timers.py
from __future__ import annotations

import asyncio

import pytest

from botqueue.timers import AsyncioTimers, ManualClock


def test_manual_clock_fires_in_due_order():
    clock = ManualClock()
    fired = []
    clock.call_later(300, lambda: fired.append("c"))
    clock.call_later(100, lambda: fired.append("a"))
    clock.call_later(200, lambda: fired.append("b"))
    assert clock.advance(250) == 2
    assert fired == ["a", "b"]
    assert clock.now_ms() == 250
    clock.advance(50)
    assert fired == ["a", "b", "c"]


def test_same_due_time_fires_in_scheduling_order():
    clock = ManualClock()
    fired = []
    for name in "xyz":
        clock.call_later(10, lambda n=name: fired.append(n))
    clock.advance(10)
    assert fired == ["x", "y", "z"]


def test_cancelled_timer_never_fires():
    clock = ManualClock()
    fired = []
    t = clock.call_later(10, lambda: fired.append(1))
    assert clock.pending() == 1
    t.cancel()
    assert clock.pending() == 0
    assert clock.advance(100) == 0
    assert fired == []
    assert clock.next_due() is None


def test_callback_sees_its_due_time_and_can_schedule_more():
    clock = ManualClock()
    seen = []

    def first():
        seen.append(clock.now_ms())
        clock.call_later(20, lambda: seen.append(clock.now_ms()))

    clock.call_later(50, first)
    clock.advance(100)
    assert seen == [50, 70]
    assert clock.now_ms() == 100


def test_run_until_idle_drains_everything():
    clock = ManualClock()
    fired = []
    clock.call_later(1_000, lambda: fired.append(1))
    clock.call_later(5_000, lambda: fired.append(2))
    assert clock.run_until_idle() == 2
    assert clock.now_ms() == 5_000


def test_negative_delays_rejected():
    clock = ManualClock()
    with pytest.raises(ValueError):
        clock.call_later(-1, lambda: None)
    with pytest.raises(ValueError):
        clock.advance(-1)


def test_asyncio_timers_fire_and_cancel():
    async def scenario():
        timers = AsyncioTimers()
        fired = []
        timers.call_later(10, lambda: fired.append("kept"))
        dropped = timers.call_later(10, lambda: fired.append("dropped"))
        dropped.cancel()
        t0 = timers.now_ms()
        await asyncio.sleep(0.05)
        return fired, timers.now_ms() - t0

    fired, elapsed = asyncio.run(scenario())
    assert fired == ["kept"]
    assert elapsed >= 10
