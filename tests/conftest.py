# tests/conftest.py
from __future__ import annotations

import pytest

from botqueue.timers import ManualClock


class _NoCancel:
    def cancel(self) -> None:
        pass


class LeakyClock(ManualClock):
    """Clock whose timers ignore cancel(), so superseded completions still fire."""

    def call_later(self, delay_ms, callback):
        super().call_later(delay_ms, callback)
        return _NoCancel()


@pytest.fixture
def leaky_clock():
    return LeakyClock
