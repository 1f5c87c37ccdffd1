"""Benchmark timetable generation for varying numbers of train plans.

Usage:
    python scripts/benchmark_generation.py -Min 10 -Max 50 -Step 10 -Stations 8 -Reroute 0.5
    python -m scripts.benchmark_generation -Min 10 -Max 50 -Step 10 -Passes 3

Notes:
    - Route scoring is O(P * L * U) for P plans, L hops, U recorded windows per segment.
    - Each resolver pass is O(S * P log P) for S stations.
"""

from __future__ import annotations
import argparse, random, statistics, json, time, os, sys
from typing import List

# Ensure project root on path
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from corridor.core.models import Constraints, Station, TrainPlan  # type: ignore
from corridor.core.generator import generate_timetable_with_routes  # type: ignore
from corridor.core.geo import from_minutes  # type: ignore
from corridor.core.resolver import priority_lookup, resolve_conflicts  # type: ignore


def build_random_corridor(num_stations: int) -> List[Station]:
    # roughly north-south line with jitter, 50-250 km between stops
    stations: List[Station] = []
    lat, lng = 28.6, 77.2
    for i in range(num_stations):
        stations.append(Station(id=i + 1, name=f"ST{i+1}", lat=lat, lng=lng))
        lat -= random.uniform(0.45, 2.25)
        lng += random.uniform(-0.5, 0.5)
    return stations


def build_random_plans(n: int, stations: List[Station], reroute_share: float) -> List[TrainPlan]:
    plans: List[TrainPlan] = []
    names = [s.name for s in stations]
    for i in range(n):
        a, b = random.sample(range(len(names)), 2)
        plans.append(TrainPlan(
            name=f"T{i+1}",
            speed=random.choice([60, 80, 100, 120]),
            priority=random.randint(1, 3),
            start_time=from_minutes(random.randint(6 * 60, 10 * 60)),
            start_station=names[a],
            end_station=names[b],
            auto_reroute=random.random() < reroute_share,
        ))
    return plans


def run_once(n_plans: int, stations: List[Station], reroute_share: float, passes: int) -> dict:
    plans = build_random_plans(n_plans, stations, reroute_share)
    constraints = Constraints()
    t0 = time.perf_counter()
    tt = generate_timetable_with_routes(stations, plans, constraints)
    converged = resolve_conflicts(tt, priority_lookup(plans), [s.name for s in stations], constraints.headway, max_passes=passes)
    dt = time.perf_counter() - t0
    horizon = max((tt.final_time(tn) or 0 for tn in tt.trains), default=0)
    return {
        "n_plans": n_plans,
        "elapsed_s": dt,
        "trains": len(tt.trains),
        "stops": sum(len(s) for s in tt.trains.values()),
        "horizon_min": horizon,
        "converged": converged,
    }


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument('-Min', type=int, default=10)
    ap.add_argument('-Max', type=int, default=50)
    ap.add_argument('-Step', type=int, default=10)
    ap.add_argument('-Stations', type=int, default=8)
    ap.add_argument('-Reroute', type=float, default=0.5, help="share of plans with auto_reroute")
    ap.add_argument('-Passes', type=int, default=1, help="extra resolver passes after generation")
    ap.add_argument('-Repeats', type=int, default=3)
    ap.add_argument('-Json', action='store_true')
    args = ap.parse_args()

    random.seed(42)
    stations = build_random_corridor(args.Stations)
    rows = []
    for n in range(args.Min, args.Max + 1, args.Step):
        for _ in range(args.Repeats):
            row = run_once(n, stations, args.Reroute, args.Passes)
            rows.append(row)
            if args.Json:
                print(json.dumps(row))
            else:
                print(f"Plans={row['n_plans']:<3} elapsed={row['elapsed_s']*1000:7.2f} ms stops={row['stops']:<4} horizon={row['horizon_min']:<5} converged={row['converged']}")
    if not args.Json:
        from collections import defaultdict
        by_n = defaultdict(list)
        for r in rows:
            by_n[r['n_plans']].append(r['elapsed_s'])
        print('\nSummary (mean ms per plan count)')
        for n in sorted(by_n):
            ms = statistics.fmean(by_n[n]) * 1000
            print(f"  {n:>3}: {ms:7.2f} ms")


if __name__ == '__main__':
    main()
