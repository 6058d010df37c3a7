# tests/test_sim.py
from __future__ import annotations

import pytest

from botqueue.sim import EVENT_COLUMNS, SNAPSHOT_COLUMNS, SimConfig, Simulator


def test_small_simulation_runs_with_invariant_checks():
    cfg = SimConfig(seed=7, n_events=400, snapshot_every=25, check_invariants=True)
    art = Simulator(cfg).run()
    assert list(art.events.columns) == EVENT_COLUMNS
    assert list(art.snapshots.columns) == SNAPSHOT_COLUMNS
    assert len(art.snapshots) == 400 // 25 + 1
    assert art.order_count > 0
    assert art.complete_count > 0
    assert len(art.latencies_ns) > 0

    completed = art.events[art.events["kind"] == "COMPLETED"]
    assert completed["order_id"].is_unique
    assert len(completed) == art.complete_count


def test_simulation_is_deterministic_for_a_seed():
    cfg = dict(seed=11, n_events=300)
    a = Simulator(SimConfig(**cfg)).run()
    b = Simulator(SimConfig(**cfg)).run()
    assert a.events.equals(b.events)
    assert a.snapshots.equals(b.snapshots)


def test_sim_config_rejects_bad_mix():
    with pytest.raises(ValueError):
        SimConfig(p_normal=0.9)
    with pytest.raises(ValueError):
        SimConfig(initial_bots=5, max_bots=2)
