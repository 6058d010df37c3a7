# botqueue/queue.py
from __future__ import annotations

from typing import Dict, Iterator, List, Optional

from .models import Order, OrderId, OrderStatus, Priority


class OrderQueue:
    """
    Ordered sequence of every live order, whatever its status.
    Placement rules:
      - VIP goes right after the last pending VIP, else right before the
        first pending NORMAL, else at the tail
      - NORMAL always goes at the tail of the whole sequence
    Both rules apply on submission and on reinsertion after losing a bot.
    Invariants (enforced via assert_invariants on demand):
      - pending VIP orders precede pending NORMAL orders
      - FIFO by admission within each priority class
      - bot_id/started_at present iff PROCESSING
    """

    def __init__(self) -> None:
        self._orders: List[Order] = []
        self._index: Dict[OrderId, Order] = {}
        self._next_id: OrderId = 1
        self._seq: int = 0

    def __len__(self) -> int:
        return len(self._orders)

    def __iter__(self) -> Iterator[Order]:
        return iter(list(self._orders))

    def __contains__(self, order_id: object) -> bool:
        return order_id in self._index

    def get(self, order_id: OrderId) -> Optional[Order]:
        return self._index.get(order_id)

    def submit(self, priority: Priority) -> OrderId:
        order = Order(id=self._next_id, priority=priority)
        self._next_id += 1
        self._index[order.id] = order
        self._place(order)
        return order.id

    def cancel(self, order_id: OrderId) -> Optional[Order]:
        """Remove a PENDING or PROCESSING order. Returns it, or None if unknown or complete."""
        order = self._index.get(order_id)
        if order is None or order.status is OrderStatus.COMPLETE:
            return None
        self._orders.remove(order)
        del self._index[order_id]
        return order

    def reinsert(self, order: Order) -> None:
        """Return a PROCESSING order to PENDING, behind its already-pending peers."""
        if self._index.get(order.id) is not order or order.status is not OrderStatus.PROCESSING:
            raise ValueError(f"order {order.id} is not processing in this queue")
        self._orders.remove(order)
        order.status = OrderStatus.PENDING
        order.bot_id = None
        order.started_at = None
        self._place(order)

    def head(self) -> Optional[Order]:
        """Next order a bot should take: first pending VIP, else first pending NORMAL."""
        first_normal: Optional[Order] = None
        for o in self._orders:
            if not o.is_pending:
                continue
            if o.is_vip:
                return o
            if first_normal is None:
                first_normal = o
        return first_normal

    def pending_snapshot(self) -> List[Order]:
        return self._with_status(OrderStatus.PENDING)

    def processing_snapshot(self) -> List[Order]:
        return self._with_status(OrderStatus.PROCESSING)

    def complete_snapshot(self) -> List[Order]:
        return self._with_status(OrderStatus.COMPLETE)

    def _with_status(self, status: OrderStatus) -> List[Order]:
        return [o for o in self._orders if o.status is status]

    def _place(self, order: Order) -> None:
        self._seq += 1
        order.ts = self._seq
        if not order.is_vip:
            self._orders.append(order)
            return
        last_vip = -1
        first_normal = -1
        for i, o in enumerate(self._orders):
            if not o.is_pending:
                continue
            if o.is_vip:
                last_vip = i
            elif first_normal == -1:
                first_normal = i
        if last_vip != -1:
            self._orders.insert(last_vip + 1, order)
        elif first_normal != -1:
            self._orders.insert(first_normal, order)
        else:
            self._orders.append(order)

    def assert_invariants(self) -> None:
        assert len(self._orders) == len(self._index), "index out of sync with sequence"
        seen_normal = False
        last_ts = {Priority.VIP: -1, Priority.NORMAL: -1}
        for o in self._orders:
            assert self._index.get(o.id) is o, f"order {o.id} missing from index"
            if o.status is OrderStatus.PROCESSING:
                assert o.bot_id is not None and o.started_at is not None, f"order {o.id} processing without bot"
            else:
                assert o.bot_id is None and o.started_at is None, f"order {o.id} holds a bot while {o.status.name}"
            if not o.is_pending:
                continue
            if o.is_vip:
                assert not seen_normal, f"VIP order {o.id} queued behind a NORMAL order"
            else:
                seen_normal = True
            assert o.ts > last_ts[o.priority], f"FIFO violated at {o.priority.name} order {o.id}"
            last_ts[o.priority] = o.ts
