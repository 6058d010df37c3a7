# botqueue/cli.py
from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List

import pandas as pd

from .core import Kitchen
from .metrics import order_timings, summarize_latency_ns, summarize_waits
from .models import EngineConfig, OrderView, Priority
from .sim import SimArtifacts, SimConfig, Simulator, save_artifacts
from .timers import AsyncioTimers
from .viz import plot_latency_hist, plot_timeseries_metrics, plot_wait_hist

logger = logging.getLogger(__name__)


def run_sim(args: argparse.Namespace) -> None:
    cfg = SimConfig(
        seed=args.seed,
        n_events=args.n_events,
        p_normal=args.p_normal,
        p_vip=args.p_vip,
        p_cancel=args.p_cancel,
        p_add_bot=args.p_add_bot,
        p_remove_bot=args.p_remove_bot,
        mean_gap_ms=args.mean_gap_ms,
        initial_bots=args.initial_bots,
        max_bots=args.max_bots,
        cook_duration_ms=args.cook_ms,
        poll_interval_ms=args.poll_ms,
        snapshot_every=args.snapshot_every,
        check_invariants=args.check,
    )
    sim = Simulator(cfg)
    art: SimArtifacts = sim.run()
    logger.info(f"simulated {cfg.n_events} commands: {art.order_count} orders, {art.complete_count} completed")
    out_dir = args.report
    paths = save_artifacts(art, out_dir)
    timings = order_timings(art.events)
    fig_paths = plot_timeseries_metrics(art.snapshots, out_dir)
    wait_png = plot_wait_hist(timings, out_dir)
    lat_png = plot_latency_hist(art.latencies_ns, out_dir)

    print(json.dumps({
        "saved": {**paths, **fig_paths, "wait_hist": wait_png, "latency_hist": lat_png},
        "counts": {
            "orders": art.order_count,
            "completed": art.complete_count,
            "cancelled": art.cancel_count,
            "requeued": art.requeue_count,
        },
        "waits": summarize_waits(timings),
        "latency_summary": summarize_latency_ns(art.latencies_ns),
    }, indent=2))


def run_bench(args: argparse.Namespace) -> None:
    cfg = SimConfig(seed=args.seed, n_events=args.n_events, snapshot_every=max(args.n_events // 50, 1))
    sim = Simulator(cfg)
    art = sim.run()
    out_dir = args.report
    Path(out_dir).mkdir(parents=True, exist_ok=True)
    lat_png = plot_latency_hist(art.latencies_ns, out_dir)
    summary = summarize_latency_ns(art.latencies_ns)
    df = pd.DataFrame([summary])
    csv = Path(out_dir) / "benchmark_summary.csv"
    df.to_csv(csv, index=False)
    print(json.dumps({"benchmark": summary, "latency_hist": lat_png, "csv": str(csv)}, indent=2))


def _render(kitchen: Kitchen) -> str:
    def ids(views: List[OrderView]) -> str:
        return " ".join(f"{v.id}{'*' if v.priority is Priority.VIP else ''}" for v in views) or "-"

    cooking = " ".join(f"{v.id}@bot{v.bot_id}:{v.progress}%" for v in kitchen.list_processing()) or "-"
    return f"pending [{ids(kitchen.list_pending())}]  cooking [{cooking}]  done [{ids(kitchen.list_complete())}]"


async def poll(
    kitchen: Kitchen,
    callback: Callable[[Kitchen], None],
    interval_ms: float,
    stop: Callable[[Kitchen], bool],
) -> int:
    """Hand the kitchen to callback every interval_ms until stop(kitchen) holds. Returns the number of calls."""
    calls = 0
    while not stop(kitchen):
        callback(kitchen)
        calls += 1
        await asyncio.sleep(interval_ms / 1000.0)
    return calls


def _idle(kitchen: Kitchen) -> bool:
    return not kitchen.list_bots() or not (kitchen.list_pending() or kitchen.list_processing())


async def _demo(args: argparse.Namespace) -> Dict[str, Any]:
    cfg = EngineConfig(cook_duration_ms=args.cook_ms, poll_interval_ms=args.poll_ms)
    kitchen = Kitchen(scheduler=AsyncioTimers(), config=cfg, check_invariants=True)
    for ch in args.orders.upper():
        kitchen.submit_order(Priority.VIP if ch == "V" else Priority.NORMAL)
    for _ in range(args.bots):
        kitchen.add_bot()

    loop = asyncio.get_running_loop()
    deadline = loop.time() + args.max_seconds
    try:
        await poll(
            kitchen,
            lambda k: print(_render(k)),
            cfg.poll_interval_ms,
            lambda k: _idle(k) or loop.time() >= deadline,
        )
        if not _idle(kitchen):
            logger.warning("demo stopped at --max-seconds with work outstanding")
        print(_render(kitchen))
    finally:
        kitchen.shutdown()
    return {
        "complete": [v.id for v in kitchen.list_complete()],
        "pending": [v.id for v in kitchen.list_pending()],
    }


def run_demo(args: argparse.Namespace) -> None:
    result = asyncio.run(_demo(args))
    print(json.dumps(result, indent=2))


def main() -> None:
    parser = argparse.ArgumentParser(prog="botqueue", description="Bot Kitchen order queue CLI")
    parser.add_argument("--log-level", type=str, default="WARNING")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_sim = sub.add_parser("sim", help="Run simulation and save artifacts")
    p_sim.add_argument("--seed", type=int, default=30)
    p_sim.add_argument("--n-events", type=int, default=5_000)
    p_sim.add_argument("--p-normal", type=float, default=0.45)
    p_sim.add_argument("--p-vip", type=float, default=0.15)
    p_sim.add_argument("--p-cancel", type=float, default=0.10)
    p_sim.add_argument("--p-add-bot", type=float, default=0.15)
    p_sim.add_argument("--p-remove-bot", type=float, default=0.15)
    p_sim.add_argument("--mean-gap-ms", type=float, default=1_500.0)
    p_sim.add_argument("--initial-bots", type=int, default=2)
    p_sim.add_argument("--max-bots", type=int, default=8)
    p_sim.add_argument("--cook-ms", type=float, default=10_000)
    p_sim.add_argument("--poll-ms", type=float, default=100)
    p_sim.add_argument("--snapshot-every", type=int, default=25)
    p_sim.add_argument("--check", action="store_true", help="assert invariants after every command")
    p_sim.add_argument("--report", type=str, default="results")
    p_sim.set_defaults(func=run_sim)

    p_bench = sub.add_parser("bench", help="Run microbenchmark")
    p_bench.add_argument("--seed", type=int, default=30)
    p_bench.add_argument("--n-events", type=int, default=100_000)
    p_bench.add_argument("--report", type=str, default="results")
    p_bench.set_defaults(func=run_bench)

    p_demo = sub.add_parser("demo", help="Run a short real-time session and print progress")
    p_demo.add_argument("--orders", type=str, default="NVNV", help="one letter per order: N normal, V vip")
    p_demo.add_argument("--bots", type=int, default=2)
    p_demo.add_argument("--cook-ms", type=float, default=10_000)
    p_demo.add_argument("--poll-ms", type=float, default=500)
    p_demo.add_argument("--max-seconds", type=float, default=120.0)
    p_demo.set_defaults(func=run_demo)

    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args.func(args)


if __name__ == "__main__":
    main()
