# botqueue/viz.py
from __future__ import annotations

from pathlib import Path
from typing import Dict

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .metrics import queue_metrics_from_snapshots


def _save(figdir: Path, name: str) -> str:
    p = figdir / name
    plt.tight_layout()
    plt.savefig(p)
    plt.close()
    return str(p)


def plot_timeseries_metrics(snaps: pd.DataFrame, out_dir: str) -> Dict[str, str]:
    paths: Dict[str, str] = {}
    metrics = queue_metrics_from_snapshots(snaps)
    t_s = snaps["t_ms"].astype(float) / 1_000.0

    figdir = Path(out_dir) / "figures"
    figdir.mkdir(parents=True, exist_ok=True)

    plt.figure()
    plt.plot(t_s, metrics.pending, label="pending")
    plt.plot(t_s, metrics.processing, label="processing")
    plt.legend()
    plt.title("Queue Depth")
    plt.xlabel("time (s)")
    plt.ylabel("orders")
    paths["depth_png"] = _save(figdir, "depth.png")

    plt.figure()
    plt.plot(t_s, metrics.utilization)
    plt.title("Bot Utilization")
    plt.xlabel("time (s)")
    plt.ylabel("busy / bots")
    paths["utilization_png"] = _save(figdir, "utilization.png")

    plt.figure()
    plt.plot(t_s, metrics.vip_share)
    plt.title("VIP Share of Pending")
    plt.xlabel("time (s)")
    plt.ylabel("share")
    paths["vip_share_png"] = _save(figdir, "vip_share.png")

    return paths


def plot_wait_hist(timings: pd.DataFrame, out_dir: str) -> str:
    figdir = Path(out_dir) / "figures"
    figdir.mkdir(parents=True, exist_ok=True)
    plt.figure()
    for priority, grp in timings.groupby("priority"):
        waits = grp["wait_ms"].dropna() / 1_000.0
        if len(waits):
            plt.hist(waits, bins=40, alpha=0.6, label=str(priority))
    plt.legend()
    plt.title("Wait Before First Assignment")
    plt.xlabel("wait (s)")
    plt.ylabel("orders")
    return _save(figdir, "wait_hist.png")


def plot_latency_hist(latencies_ns: np.ndarray, out_dir: str) -> str:
    figdir = Path(out_dir) / "figures"
    figdir.mkdir(parents=True, exist_ok=True)
    plt.figure()
    us = latencies_ns / 1_000.0
    plt.hist(us, bins=50)
    plt.title("Command Latency Histogram (μs)")
    plt.xlabel("latency (μs)")
    plt.ylabel("count")
    return _save(figdir, "latency_hist.png")
