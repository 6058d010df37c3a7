# bench/benchmark.py
from __future__ import annotations

import json
from pathlib import Path
import pandas as pd

from botqueue.sim import SimConfig, Simulator
from botqueue.metrics import order_timings, summarize_latency_ns, summarize_waits
from botqueue.viz import plot_latency_hist


def main() -> None:
    cfg = SimConfig(seed=123, n_events=100_000, max_bots=12, mean_gap_ms=800.0)
    sim = Simulator(cfg)
    art = sim.run()

    Path("results").mkdir(parents=True, exist_ok=True)
    summary = summarize_latency_ns(art.latencies_ns)
    waits = summarize_waits(order_timings(art.events))
    lat_png = plot_latency_hist(art.latencies_ns, "results")
    pd.DataFrame([summary]).to_csv("results/benchmark_summary.csv", index=False)
    print(json.dumps({"benchmark": summary, "waits": waits, "latency_hist": lat_png}, indent=2))


if __name__ == "__main__":
    main()
