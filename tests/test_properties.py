# tests/test_properties.py
from __future__ import annotations

from collections import Counter

import hypothesis.strategies as st
from hypothesis import HealthCheck, given, settings

from botqueue.core import Kitchen
from botqueue.models import EventKind, OrderStatus, Priority
from botqueue.timers import ManualClock


@st.composite
def commands(draw):
    op = draw(st.sampled_from(["vip", "normal", "cancel", "add", "remove", "advance"]))
    if op == "cancel":
        return (op, draw(st.integers(min_value=1, max_value=60)))
    if op == "advance":
        return (op, draw(st.integers(min_value=0, max_value=15_000)))
    return (op, None)


def _drive(clock: ManualClock, seq) -> Kitchen:
    k = Kitchen(scheduler=clock, check_invariants=True)
    completed = set()
    for op, arg in seq:
        if op == "vip":
            k.submit_order(Priority.VIP)
        elif op == "normal":
            k.submit_order(Priority.NORMAL)
        elif op == "cancel":
            k.cancel_order(arg)
        elif op == "add":
            k.add_bot()
        elif op == "remove":
            k.remove_bot()
        else:
            clock.advance(arg)

        prios = [v.priority for v in k.list_pending()]
        assert prios == sorted(prios, key=lambda p: p is Priority.NORMAL)

        busy = [b.order_id for b in k.list_bots() if b.order_id is not None]
        assert len(busy) == len(set(busy))

        done = {v.id for v in k.list_complete()}
        assert completed <= done
        for oid in completed:
            assert k.get_order(oid).status is OrderStatus.COMPLETE
        completed = done
    return k


@given(st.lists(commands(), min_size=10, max_size=150))
@settings(deadline=None, max_examples=50)
def test_invariants_hold_for_random_command_sequences(seq):
    k = _drive(ManualClock(), seq)
    k.assert_invariants()
    per_order = Counter(e.order_id for e in k.events if e.kind is EventKind.COMPLETED)
    assert all(n == 1 for n in per_order.values())


@given(st.lists(commands(), min_size=10, max_size=150))
@settings(deadline=None, max_examples=50, suppress_health_check=[HealthCheck.function_scoped_fixture])
def test_uncancellable_timers_never_corrupt_state(leaky_clock, seq):
    clock = leaky_clock()
    k = _drive(clock, seq)
    clock.run_until_idle()
    k.assert_invariants()
    per_order = Counter(e.order_id for e in k.events if e.kind is EventKind.COMPLETED)
    assert all(n == 1 for n in per_order.values())


@given(st.lists(st.sampled_from([Priority.VIP, Priority.NORMAL]), min_size=1, max_size=60))
@settings(deadline=None, max_examples=50)
def test_pending_order_is_vips_then_normals_by_submission(prios):
    k = Kitchen(scheduler=ManualClock(), check_invariants=True)
    submitted = [(k.submit_order(p), p) for p in prios]
    expected = [oid for oid, p in submitted if p is Priority.VIP] + [oid for oid, p in submitted if p is Priority.NORMAL]
    assert [v.id for v in k.list_pending()] == expected
