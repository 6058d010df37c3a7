# botqueue/metrics.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

import numpy as np
import pandas as pd


@dataclass(slots=True)
class QueueMetrics:
    pending: pd.Series
    vip_share: pd.Series
    processing: pd.Series
    utilization: pd.Series


def queue_metrics_from_snapshots(df: pd.DataFrame) -> QueueMetrics:
    pending = df["pending"].astype(float)
    vip_share = (df["pending_vip"].astype(float) / pending.where(pending > 0)).fillna(0.0)
    processing = df["processing"].astype(float)
    bots = df["bots"].astype(float)
    utilization = (processing / bots.where(bots > 0)).fillna(0.0)
    return QueueMetrics(pending=pending, vip_share=vip_share, processing=processing, utilization=utilization)


def order_timings(events: pd.DataFrame) -> pd.DataFrame:
    """
    One row per submitted order, indexed by order_id:
    priority, submitted_ms, first_assigned_ms, completed_ms, wait_ms, turnaround_ms, requeues.
    Times are NaN where the order never reached that stage.
    """
    ev = events[events["order_id"].notna()].copy()
    ev["order_id"] = ev["order_id"].astype(int)
    by_kind = {kind: grp.groupby("order_id") for kind, grp in ev.groupby("kind")}

    def first_time(kind: str) -> pd.Series:
        if kind not in by_kind:
            return pd.Series(dtype=float)
        return by_kind[kind]["t_ms"].min()

    submitted = ev[ev["kind"] == "SUBMITTED"].set_index("order_id")
    out = pd.DataFrame(index=submitted.index)
    out["priority"] = submitted["priority"]
    out["submitted_ms"] = submitted["t_ms"].astype(float)
    out["first_assigned_ms"] = first_time("ASSIGNED")
    out["completed_ms"] = first_time("COMPLETED")
    out["wait_ms"] = out["first_assigned_ms"] - out["submitted_ms"]
    out["turnaround_ms"] = out["completed_ms"] - out["submitted_ms"]
    requeues = by_kind["REQUEUED"].size() if "REQUEUED" in by_kind else pd.Series(dtype=int)
    out["requeues"] = requeues.reindex(out.index).fillna(0).astype(int)
    return out


def summarize_waits(timings: pd.DataFrame) -> Dict[str, Dict[str, float]]:
    summary: Dict[str, Dict[str, float]] = {}
    for priority, grp in timings.groupby("priority"):
        waits = grp["wait_ms"].dropna().to_numpy()
        turns = grp["turnaround_ms"].dropna().to_numpy()
        summary[str(priority)] = {
            "orders": float(len(grp)),
            "mean_wait_ms": float(waits.mean()) if waits.size else 0.0,
            "p50_wait_ms": float(np.percentile(waits, 50)) if waits.size else 0.0,
            "p90_wait_ms": float(np.percentile(waits, 90)) if waits.size else 0.0,
            "mean_turnaround_ms": float(turns.mean()) if turns.size else 0.0,
        }
    return summary


def summarize_latency_ns(latencies: np.ndarray) -> Dict[str, float]:
    if latencies.size == 0:
        return {"p50_ns": 0.0, "p90_ns": 0.0, "p99_ns": 0.0, "ops_per_sec": 0.0}
    p50 = float(np.percentile(latencies, 50))
    p90 = float(np.percentile(latencies, 90))
    p99 = float(np.percentile(latencies, 99))
    mean_ns = float(latencies.mean())
    ops = 1e9 / mean_ns if mean_ns > 0 else 0.0
    return {"p50_ns": p50, "p90_ns": p90, "p99_ns": p99, "ops_per_sec": ops}
