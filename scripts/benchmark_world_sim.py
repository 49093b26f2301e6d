#!/usr/bin/env python3
"""Benchmark hourly world simulation ticks for a generated population."""

from __future__ import annotations

import argparse
import json
import logging
import math
import statistics
import sys
import time
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def percentile(values: list[float], q: float) -> float:
    if not values:
        return 0.0
    points = sorted(values)
    if len(points) == 1:
        return points[0]
    pos = max(0.0, min(1.0, q)) * (len(points) - 1)
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return points[low]
    frac = pos - low
    return points[low] * (1.0 - frac) + points[high] * frac


def summarize_latencies(values: list[float]) -> dict[str, Any]:
    if not values:
        return {
            "count": 0,
            "mean_ms": 0.0,
            "p50_ms": 0.0,
            "p95_ms": 0.0,
            "max_ms": 0.0,
        }
    return {
        "count": len(values),
        "mean_ms": round(statistics.fmean(values), 3),
        "p50_ms": round(percentile(values, 0.5), 3),
        "p95_ms": round(percentile(values, 0.95), 3),
        "max_ms": round(max(values), 3),
    }


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run world simulation tick benchmark")
    parser.add_argument("--actors", type=int, default=200, help="Number of NPCs to generate")
    parser.add_argument("--hours", type=int, default=72, help="Simulated hours to run")
    parser.add_argument("--workers", type=int, default=1, help="Decision worker threads per tick")
    parser.add_argument("--seed", default="", help="World seed (defaults to a random one)")
    parser.add_argument(
        "--output",
        default="data/perf/world_sim_benchmark.json",
        help="JSON output path",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Keep simulator logs enabled during the benchmark run",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    if args.actors < 1:
        raise SystemExit("--actors must be >= 1")
    if args.hours < 1:
        raise SystemExit("--hours must be >= 1")
    if not args.verbose:
        logging.getLogger().setLevel(logging.WARNING)
        logging.getLogger("duskhaven_core").setLevel(logging.WARNING)

    from packages.duskhaven_core.sim import (
        DEFAULT_TUNING,
        SimulationContext,
        WorldSimulator,
        generate_population,
    )

    seed = args.seed or f"bench-{uuid.uuid4().hex[:8]}"
    tuning = replace(DEFAULT_TUNING, decision_workers=max(1, int(args.workers)))
    sim = WorldSimulator(SimulationContext(seed=seed, tuning=tuning))

    init_start = time.perf_counter()
    sim.initialize(generate_population(args.actors, seed=seed, catalog=sim.catalog, tuning=tuning))
    init_ms = (time.perf_counter() - init_start) * 1000.0

    tick_ms: list[float] = []
    events_per_tick: list[int] = []
    event_counts: dict[str, int] = {}
    for _ in range(int(args.hours)):
        start = time.perf_counter()
        events = sim.simulate_hour()
        tick_ms.append((time.perf_counter() - start) * 1000.0)
        events_per_tick.append(len(events))
        for event in events:
            kind = event.kind.value
            event_counts[kind] = event_counts.get(kind, 0) + 1

    status = sim.get_status()
    total_s = sum(tick_ms) / 1000.0
    output = {
        "seed": seed,
        "actors": int(args.actors),
        "hours": int(args.hours),
        "decision_workers": tuning.decision_workers,
        "initialize_ms": round(init_ms, 3),
        "latency_ms": {"tick": summarize_latencies(tick_ms)},
        "actor_ticks_per_second": round((args.actors * args.hours) / total_s, 1) if total_s > 0 else 0.0,
        "events_total": sum(events_per_tick),
        "event_counts": dict(sorted(event_counts.items())),
        "final_status": {
            "alive": status["alive"],
            "dead": status["dead"],
            "gangs": len(status["gangs"]),
            "town_ruler_id": status["town_ruler_id"],
            "total_memory_events": status["total_memory_events"],
        },
        "timestamp_utc_epoch": time.time(),
    }

    output_path = Path(args.output).resolve()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(output, indent=2) + "\n", encoding="utf-8")
    print(json.dumps(output, indent=2))
    print(f"\nWrote benchmark report: {output_path}")


if __name__ == "__main__":
    main()
