# tests/test_metrics.py
from __future__ import annotations

import numpy as np
import pandas as pd

from botqueue.metrics import order_timings, queue_metrics_from_snapshots, summarize_latency_ns, summarize_waits
from botqueue.sim import EVENT_COLUMNS


def _events() -> pd.DataFrame:
    rows = [
        (1, 0, "BOT_ADDED", None, 1, None),
        (2, 0, "SUBMITTED", 1, None, "NORMAL"),
        (3, 0, "ASSIGNED", 1, 1, "NORMAL"),
        (4, 100, "SUBMITTED", 2, None, "VIP"),
        (5, 4000, "REQUEUED", 1, 1, "NORMAL"),
        (6, 4000, "BOT_REMOVED", None, 1, None),
        (7, 5000, "BOT_ADDED", None, 2, None),
        (8, 5000, "ASSIGNED", 2, 2, "VIP"),
        (9, 15000, "COMPLETED", 2, 2, "VIP"),
        (10, 15000, "ASSIGNED", 1, 2, "NORMAL"),
        (11, 25000, "COMPLETED", 1, 2, "NORMAL"),
        (12, 26000, "SUBMITTED", 3, None, "VIP"),
    ]
    return pd.DataFrame(rows, columns=EVENT_COLUMNS)


def test_queue_metrics_basic():
    df = pd.DataFrame(
        {
            "event": [1, 2, 3, 4],
            "t_ms": [0, 1000, 2000, 3000],
            "pending": [0, 2, 4, 0],
            "pending_vip": [0, 1, 1, 0],
            "processing": [1, 2, 0, 0],
            "complete": [0, 0, 2, 4],
            "bots": [2, 2, 0, 2],
            "idle_bots": [1, 0, 0, 2],
        }
    )
    m = queue_metrics_from_snapshots(df)
    assert list(m.utilization) == [0.5, 1.0, 0.0, 0.0]
    assert list(m.vip_share) == [0.0, 0.5, 0.25, 0.0]
    assert list(m.pending) == [0.0, 2.0, 4.0, 0.0]


def test_order_timings_from_journal():
    t = order_timings(_events())
    assert list(t.index) == [1, 2, 3]
    assert t.loc[1, "wait_ms"] == 0
    assert t.loc[1, "turnaround_ms"] == 25000
    assert t.loc[1, "requeues"] == 1
    assert t.loc[2, "wait_ms"] == 4900
    assert t.loc[2, "turnaround_ms"] == 14900
    assert t.loc[2, "requeues"] == 0
    assert np.isnan(t.loc[3, "wait_ms"])


def test_summarize_waits_by_priority():
    s = summarize_waits(order_timings(_events()))
    assert s["NORMAL"]["orders"] == 1
    assert s["NORMAL"]["mean_wait_ms"] == 0
    assert s["VIP"]["orders"] == 2
    assert s["VIP"]["mean_wait_ms"] == 4900
    assert s["VIP"]["mean_turnaround_ms"] == 14900


def test_summarize_latency():
    assert summarize_latency_ns(np.array([], dtype=np.int64))["ops_per_sec"] == 0.0
    s = summarize_latency_ns(np.array([100, 200, 300, 400], dtype=np.int64))
    assert s["p50_ns"] == 250.0
    assert s["ops_per_sec"] == 1e9 / 250.0
