# botqueue/__init__.py
"""
Bot Kitchen — priority order queue with a timed worker-bot pool.

Export the primary types and entry points for convenience.
"""
from .models import (
    BotStatus,
    BotView,
    EngineConfig,
    Event,
    EventKind,
    OrderStatus,
    OrderView,
    Priority,
)
from .queue import OrderQueue
from .timers import AsyncioTimers, ManualClock
from .core import Kitchen

__all__ = [
    "Priority",
    "OrderStatus",
    "BotStatus",
    "EventKind",
    "Event",
    "OrderView",
    "BotView",
    "EngineConfig",
    "OrderQueue",
    "ManualClock",
    "AsyncioTimers",
    "Kitchen",
]

__version__ = "0.1.0"
