# botqueue/models.py
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class Priority(Enum):
    VIP = auto()
    NORMAL = auto()


class OrderStatus(Enum):
    PENDING = auto()
    PROCESSING = auto()
    COMPLETE = auto()


class BotStatus(Enum):
    IDLE = auto()
    BUSY = auto()


class EventKind(Enum):
    SUBMITTED = auto()
    ASSIGNED = auto()
    COMPLETED = auto()
    CANCELLED = auto()
    REQUEUED = auto()     # order lost its bot and went back to PENDING
    BOT_ADDED = auto()
    BOT_REMOVED = auto()
    STALE_TIMER = auto()  # completion fired against a pairing that no longer exists


OrderId = int
BotId = int


@dataclass(frozen=True)
class EngineConfig:
    """
    Timing constants fixed for the lifetime of an engine.
    - cook_duration_ms: how long a bot holds an order before it completes
    - poll_interval_ms: how often a display layer is expected to re-read progress
    """
    cook_duration_ms: float = 10_000
    poll_interval_ms: float = 100

    def __post_init__(self) -> None:
        if self.cook_duration_ms <= 0:
            raise ValueError("cook_duration_ms must be positive")
        if self.poll_interval_ms <= 0:
            raise ValueError("poll_interval_ms must be positive")


@dataclass(slots=True)
class Order:
    """
    Mutable order record owned by the engine.
    - bot_id / started_at are set iff status is PROCESSING
    - ts: engine sequence number of the last admission to PENDING
    """
    id: OrderId
    priority: Priority
    status: OrderStatus = OrderStatus.PENDING
    bot_id: Optional[BotId] = None
    started_at: Optional[float] = None
    ts: int = 0

    @property
    def is_vip(self) -> bool:
        return self.priority is Priority.VIP

    @property
    def is_pending(self) -> bool:
        return self.status is OrderStatus.PENDING


@dataclass(slots=True)
class Bot:
    id: BotId
    status: BotStatus = BotStatus.IDLE
    order_id: Optional[OrderId] = None
    generation: int = 0   # bumped on every assignment; completion timers carry it

    @property
    def is_idle(self) -> bool:
        return self.status is BotStatus.IDLE


@dataclass(frozen=True)
class OrderView:
    """Read-only snapshot of an order, as handed to display code."""
    id: OrderId
    priority: Priority
    status: OrderStatus
    bot_id: Optional[BotId]
    started_at: Optional[float]
    progress: Optional[int]


@dataclass(frozen=True)
class BotView:
    id: BotId
    status: BotStatus
    order_id: Optional[OrderId]


@dataclass(slots=True)
class Event:
    """
    Journal entry emitted by the engine.
    seq: engine sequence for determinism
    t_ms: scheduler clock at the time of the event
    """
    seq: int
    t_ms: float
    kind: EventKind
    order_id: Optional[OrderId] = None
    bot_id: Optional[BotId] = None


def progress_pct(started_at: float, now_ms: float, cook_duration_ms: float) -> int:
    """Whole-percent share of the cook duration elapsed since started_at, capped at 100."""
    elapsed = max(0.0, now_ms - started_at)
    return min(100, math.floor(elapsed / cook_duration_ms * 100))
