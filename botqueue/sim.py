# botqueue/sim.py
from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from .core import Kitchen
from .models import EngineConfig, EventKind, OrderStatus, Priority
from .timers import ManualClock

EVENT_COLUMNS = ["seq", "t_ms", "kind", "order_id", "bot_id", "priority"]
SNAPSHOT_COLUMNS = ["event", "t_ms", "pending", "pending_vip", "processing", "complete", "bots", "idle_bots"]


@dataclass(slots=True)
class SimConfig:
    seed: int = 30
    n_events: int = 5_000
    p_normal: float = 0.45
    p_vip: float = 0.15
    p_cancel: float = 0.10
    p_add_bot: float = 0.15
    p_remove_bot: float = 0.15
    mean_gap_ms: float = 1_500.0
    initial_bots: int = 2
    max_bots: int = 8
    cook_duration_ms: float = 10_000
    poll_interval_ms: float = 100
    snapshot_every: int = 25
    check_invariants: bool = False

    def __post_init__(self) -> None:
        total = self.p_normal + self.p_vip + self.p_cancel + self.p_add_bot + self.p_remove_bot
        if not np.isclose(total, 1.0):
            raise ValueError(f"command probabilities must sum to 1, got {total}")
        if self.max_bots < self.initial_bots:
            raise ValueError("max_bots must be >= initial_bots")


@dataclass(slots=True)
class SimArtifacts:
    events: pd.DataFrame
    snapshots: pd.DataFrame
    latencies_ns: np.ndarray
    order_count: int
    cancel_count: int
    requeue_count: int
    complete_count: int


class Simulator:
    def __init__(self, cfg: SimConfig) -> None:
        self.cfg = cfg
        self.rs = np.random.RandomState(cfg.seed)
        self.clock = ManualClock()
        self.kitchen = Kitchen(
            scheduler=self.clock,
            config=EngineConfig(cook_duration_ms=cfg.cook_duration_ms, poll_interval_ms=cfg.poll_interval_ms),
            check_invariants=cfg.check_invariants,
        )
        self.priorities: Dict[int, str] = {}

    def _timed(self, fn, *args):
        t0 = time.perf_counter_ns()
        out = fn(*args)
        return out, time.perf_counter_ns() - t0

    def _random_live_id(self) -> Optional[int]:
        live = [o.id for o in self.kitchen.queue if o.status is not OrderStatus.COMPLETE]
        if not live:
            return None
        return live[self.rs.randint(0, len(live))]

    def _snapshot(self, event: int) -> Tuple[int, float, int, int, int, int, int, int]:
        return (event, self.clock.now_ms(), *self.kitchen.snapshot_counts())

    def run(self) -> SimArtifacts:
        cfg = self.cfg
        rs = self.rs
        kitchen = self.kitchen
        latencies: List[int] = []
        snaps: List[Tuple[int, float, int, int, int, int, int, int]] = []
        cancels = 0

        for _ in range(cfg.initial_bots):
            kitchen.add_bot()

        c_vip = cfg.p_normal + cfg.p_vip
        c_cancel = c_vip + cfg.p_cancel
        c_add = c_cancel + cfg.p_add_bot

        for i in range(cfg.n_events):
            self.clock.advance(rs.exponential(cfg.mean_gap_ms))
            r = rs.rand()

            if r < c_vip:
                priority = Priority.NORMAL if r < cfg.p_normal else Priority.VIP
                oid, dt = self._timed(kitchen.submit_order, priority)
                self.priorities[oid] = priority.name
                latencies.append(dt)

            elif r < c_cancel:
                victim = self._random_live_id()
                if victim is not None:
                    ok, dt = self._timed(kitchen.cancel_order, victim)
                    cancels += int(ok)
                    latencies.append(dt)

            elif r < c_add:
                if len(kitchen.list_bots()) < cfg.max_bots:
                    _bot, dt = self._timed(kitchen.add_bot)
                    latencies.append(dt)

            else:
                removed, dt = self._timed(kitchen.remove_bot)
                if removed is not None:
                    latencies.append(dt)

            if (i + 1) % cfg.snapshot_every == 0:
                snaps.append(self._snapshot(i + 1))

        self.clock.run_until_idle()
        snaps.append(self._snapshot(cfg.n_events))

        events_df = self._events_frame()
        snap_df = pd.DataFrame(snaps, columns=SNAPSHOT_COLUMNS)
        kinds = events_df["kind"]
        return SimArtifacts(
            events=events_df,
            snapshots=snap_df,
            latencies_ns=np.array(latencies, dtype=np.int64),
            order_count=len(self.priorities),
            cancel_count=cancels,
            requeue_count=int((kinds == EventKind.REQUEUED.name).sum()),
            complete_count=int((kinds == EventKind.COMPLETED.name).sum()),
        )

    def _events_frame(self) -> pd.DataFrame:
        rows = []
        for ev in self.kitchen.events:
            row = asdict(ev)
            row["kind"] = ev.kind.name
            row["priority"] = self.priorities.get(ev.order_id) if ev.order_id is not None else None
            rows.append(row)
        return pd.DataFrame(rows, columns=EVENT_COLUMNS)


def save_artifacts(art: SimArtifacts, out_dir: str) -> Dict[str, str]:
    ts = pd.Timestamp.now(tz="UTC").strftime("%Y%m%d_%H%M%S")
    base = Path(out_dir)
    (base / "figures").mkdir(parents=True, exist_ok=True)
    files = {}
    events_path = base / f"events_{ts}.csv"
    art.events.to_csv(events_path, index=False)
    files["events_csv"] = str(events_path)

    snaps_path = base / f"snapshots_{ts}.csv"
    art.snapshots.to_csv(snaps_path, index=False)
    files["snapshots_csv"] = str(snaps_path)

    lat_path = base / f"latencies_{ts}.csv"
    pd.DataFrame({"latency_ns": art.latencies_ns}).to_csv(lat_path, index=False)
    files["latencies_csv"] = str(lat_path)

    return files
