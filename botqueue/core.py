# botqueue/core.py
from __future__ import annotations

import logging
import threading
from functools import partial
from typing import Dict, List, Optional, Tuple

from .models import (
    Bot,
    BotId,
    BotStatus,
    BotView,
    EngineConfig,
    Event,
    EventKind,
    Order,
    OrderId,
    OrderStatus,
    OrderView,
    Priority,
    progress_pct,
)
from .queue import OrderQueue
from .timers import ManualClock, Scheduler, TimerHandle

logger = logging.getLogger(__name__)


class Kitchen:
    """
    Assignment engine pairing idle bots with pending orders.
      - submit / cancel orders, add / remove bots
      - greedy matching driven to a fixed point after every mutation:
        lowest-id idle bot takes the head of the priority queue
      - one completion timer per (bot, order) pairing, cook_duration_ms long
      - LIFO bot removal; a busy bot's order goes back to PENDING
    Data structures:
      - OrderQueue for order sequence and priority placement
      - dict[bot_id]->Bot in creation order (lowest id first, newest last)
      - dict[(bot_id, order_id)]->timer handle for synchronous cancellation
      - per-bot generation token carried by each timer, checked when it fires
    All commands, queries and timer callbacks run under one lock.
    """

    def __init__(
        self,
        scheduler: Optional[Scheduler] = None,
        config: Optional[EngineConfig] = None,
        check_invariants: bool = False,
        record_events: bool = True,
    ) -> None:
        self.config: EngineConfig = config if config is not None else EngineConfig()
        self.scheduler: Scheduler = scheduler if scheduler is not None else ManualClock()
        self.queue = OrderQueue()
        self._bots: Dict[BotId, Bot] = {}
        self._next_bot_id: BotId = 1
        self._timers: Dict[Tuple[BotId, OrderId], TimerHandle] = {}
        self._lock = threading.RLock()
        self._seq: int = 0
        self._check: bool = check_invariants
        self._record: bool = record_events
        self._closed: bool = False
        self.events: List[Event] = []

    # -- commands -----------------------------------------------------------

    def submit_order(self, priority: Priority) -> OrderId:
        with self._lock:
            self._ensure_open()
            order_id = self.queue.submit(priority)
            self._emit(EventKind.SUBMITTED, order_id=order_id)
            logger.debug(f"order {order_id} submitted ({priority.name})")
            self._settle()
            return order_id

    def cancel_order(self, order_id: OrderId) -> bool:
        """Drop a pending or processing order. False if unknown, already cancelled or complete."""
        with self._lock:
            self._ensure_open()
            order = self.queue.get(order_id)
            if order is None or order.status is OrderStatus.COMPLETE:
                logger.debug(f"cancel of order {order_id} ignored: not found or complete")
                return False
            bot_id = order.bot_id
            if order.status is OrderStatus.PROCESSING:
                self._release(self._bots[order.bot_id])
            self.queue.cancel(order_id)
            self._emit(EventKind.CANCELLED, order_id=order_id, bot_id=bot_id)
            logger.debug(f"order {order_id} cancelled")
            self._settle()
            return True

    def add_bot(self) -> BotId:
        with self._lock:
            self._ensure_open()
            bot = Bot(id=self._next_bot_id)
            self._next_bot_id += 1
            self._bots[bot.id] = bot
            self._emit(EventKind.BOT_ADDED, bot_id=bot.id)
            logger.info(f"bot {bot.id} added ({len(self._bots)} in pool)")
            self._settle()
            return bot.id

    def remove_bot(self) -> Optional[BotId]:
        """Remove the newest bot. Its in-flight order, if any, goes back to PENDING."""
        with self._lock:
            self._ensure_open()
            if not self._bots:
                return None
            bot_id = next(reversed(self._bots))
            bot = self._bots.pop(bot_id)
            if bot.status is BotStatus.BUSY:
                order = self.queue.get(bot.order_id)
                self._release(bot)
                if order is not None and order.status is OrderStatus.PROCESSING:
                    self.queue.reinsert(order)
                    self._emit(EventKind.REQUEUED, order_id=order.id, bot_id=bot_id)
                    logger.debug(f"order {order.id} returned to pending from bot {bot_id}")
            self._emit(EventKind.BOT_REMOVED, bot_id=bot_id)
            logger.info(f"bot {bot_id} removed ({len(self._bots)} in pool)")
            self._settle()
            return bot_id

    def reconcile(self) -> int:
        """Pair idle bots with pending orders until no pair is left. Returns pairs made."""
        with self._lock:
            made = 0
            while not self._closed:
                bot = self._first_idle_bot()
                if bot is None:
                    break
                order = self.queue.head()
                if order is None:
                    break
                self._assign(bot, order)
                made += 1
            return made

    def shutdown(self) -> None:
        """
        Cancel every outstanding timer and close the engine.
        Late firings become no-ops, commands raise RuntimeError, queries still work.
        """
        with self._lock:
            for handle in self._timers.values():
                handle.cancel()
            self._timers.clear()
            self._closed = True

    # -- queries ------------------------------------------------------------

    def list_pending(self) -> List[OrderView]:
        with self._lock:
            return [self._view(o) for o in self.queue.pending_snapshot()]

    def list_processing(self) -> List[OrderView]:
        with self._lock:
            return [self._view(o) for o in self.queue.processing_snapshot()]

    def list_complete(self) -> List[OrderView]:
        with self._lock:
            return [self._view(o) for o in self.queue.complete_snapshot()]

    def list_bots(self) -> List[BotView]:
        with self._lock:
            return [BotView(id=b.id, status=b.status, order_id=b.order_id) for b in self._bots.values()]

    def get_order(self, order_id: OrderId) -> Optional[OrderView]:
        with self._lock:
            order = self.queue.get(order_id)
            return self._view(order) if order is not None else None

    def progress(self, order_id: OrderId) -> Optional[int]:
        with self._lock:
            order = self.queue.get(order_id)
            if order is None or order.started_at is None:
                return None
            return progress_pct(order.started_at, self.scheduler.now_ms(), self.config.cook_duration_ms)

    def snapshot_counts(self) -> Tuple[int, int, int, int, int, int]:
        """(pending, pending_vip, processing, complete, bots, idle_bots)"""
        with self._lock:
            pending = processing = complete = pending_vip = 0
            for o in self.queue:
                if o.status is OrderStatus.PENDING:
                    pending += 1
                    pending_vip += o.is_vip
                elif o.status is OrderStatus.PROCESSING:
                    processing += 1
                else:
                    complete += 1
            idle = sum(1 for b in self._bots.values() if b.is_idle)
            return (pending, pending_vip, processing, complete, len(self._bots), idle)

    # -- internals ----------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("kitchen has been shut down")

    def _first_idle_bot(self) -> Optional[Bot]:
        for bot in self._bots.values():
            if bot.is_idle:
                return bot
        return None

    def _assign(self, bot: Bot, order: Order) -> None:
        bot.status = BotStatus.BUSY
        bot.order_id = order.id
        bot.generation += 1
        order.status = OrderStatus.PROCESSING
        order.bot_id = bot.id
        order.started_at = self.scheduler.now_ms()
        key = (bot.id, order.id)
        stale = self._timers.pop(key, None)
        if stale is not None:
            stale.cancel()
        self._timers[key] = self.scheduler.call_later(
            self.config.cook_duration_ms,
            partial(self._on_cooked, bot.id, order.id, bot.generation),
        )
        self._emit(EventKind.ASSIGNED, order_id=order.id, bot_id=bot.id)
        logger.debug(f"bot {bot.id} took order {order.id} ({order.priority.name})")

    def _release(self, bot: Bot) -> None:
        handle = self._timers.pop((bot.id, bot.order_id), None)
        if handle is not None:
            handle.cancel()
        bot.status = BotStatus.IDLE
        bot.order_id = None

    def _on_cooked(self, bot_id: BotId, order_id: OrderId, generation: int) -> None:
        with self._lock:
            if self._closed:
                return
            bot = self._bots.get(bot_id)
            order = self.queue.get(order_id)
            live = (
                bot is not None
                and bot.status is BotStatus.BUSY
                and bot.order_id == order_id
                and bot.generation == generation
                and order is not None
                and order.status is OrderStatus.PROCESSING
                and order.bot_id == bot_id
            )
            if not live:
                self._emit(EventKind.STALE_TIMER, order_id=order_id, bot_id=bot_id)
                logger.debug(f"discarded stale completion for bot {bot_id} order {order_id}")
                return
            self._timers.pop((bot_id, order_id), None)
            order.status = OrderStatus.COMPLETE
            order.bot_id = None
            order.started_at = None
            bot.status = BotStatus.IDLE
            bot.order_id = None
            self._emit(EventKind.COMPLETED, order_id=order_id, bot_id=bot_id)
            logger.debug(f"bot {bot_id} completed order {order_id}")
            self._settle()

    def _settle(self) -> None:
        self.reconcile()
        if self._check:
            self.assert_invariants()

    def _emit(self, kind: EventKind, order_id: Optional[OrderId] = None, bot_id: Optional[BotId] = None) -> None:
        self._seq += 1
        if self._record:
            self.events.append(Event(seq=self._seq, t_ms=self.scheduler.now_ms(), kind=kind, order_id=order_id, bot_id=bot_id))

    def _view(self, order: Order) -> OrderView:
        progress = None
        if order.started_at is not None:
            progress = progress_pct(order.started_at, self.scheduler.now_ms(), self.config.cook_duration_ms)
        return OrderView(
            id=order.id,
            priority=order.priority,
            status=order.status,
            bot_id=order.bot_id,
            started_at=order.started_at,
            progress=progress,
        )

    def assert_invariants(self) -> None:
        with self._lock:
            self.queue.assert_invariants()
            claimed: Dict[OrderId, BotId] = {}
            for b in self._bots.values():
                if b.status is BotStatus.IDLE:
                    assert b.order_id is None, f"idle bot {b.id} holds order {b.order_id}"
                    continue
                assert b.order_id is not None, f"busy bot {b.id} without an order"
                assert b.order_id not in claimed, f"order {b.order_id} claimed by bots {claimed.get(b.order_id)} and {b.id}"
                claimed[b.order_id] = b.id
                o = self.queue.get(b.order_id)
                assert o is not None and o.status is OrderStatus.PROCESSING, f"bot {b.id} points at non-processing order {b.order_id}"
                assert o.bot_id == b.id, f"order {o.id} points at bot {o.bot_id}, not {b.id}"
            for o in self.queue.processing_snapshot():
                assert claimed.get(o.id) == o.bot_id, f"processing order {o.id} has no owning bot"
            if self._closed:
                assert not self._timers, "timers scheduled after shutdown"
            else:
                pairs = {(bot_id, order_id) for order_id, bot_id in claimed.items()}
                assert set(self._timers) == pairs, "timer table out of sync with pairings"
            has_idle = any(b.is_idle for b in self._bots.values())
            assert not (has_idle and self.queue.head() is not None), "idle bot left beside pending order"
