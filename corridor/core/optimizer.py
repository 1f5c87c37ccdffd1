from __future__ import annotations
import logging
from collections import Counter
from dataclasses import dataclass
from typing import List

from .models import Station, Timetable, TrainPlan
from .resolver import headway_violations, priority_lookup, push_train_from_station, resolve_conflicts

logger = logging.getLogger(__name__)


@dataclass
class Scenario:
    name: str
    timetable: Timetable


@dataclass
class ScenarioMetrics:
    name: str
    total_delay_min: int
    throughput: int  # trains with a final stop in both timetables
    avg_punctuality_min: float


def compare_scenarios(baseline: Timetable, scenarios: List[Scenario]) -> List[ScenarioMetrics]:
    """Final-stop lateness of each scenario against the baseline; early arrivals count as zero."""
    out: List[ScenarioMetrics] = []
    for scn in scenarios:
        total = 0
        reached = 0
        for tn in baseline.trains:
            base_final = baseline.final_time(tn)
            scn_final = scn.timetable.final_time(tn)
            if base_final is None or scn_final is None:
                continue
            total += max(0, scn_final - base_final)
            reached += 1
        avg = total / reached if reached > 0 else 0.0
        out.append(ScenarioMetrics(name=scn.name, total_delay_min=total, throughput=reached, avg_punctuality_min=avg))
    return out


def suggest_optimized_schedule(
    current: Timetable,
    stations: List[Station],
    plans: List[TrainPlan],
    headway: int = 5,
    max_shift_min: int = 10,
) -> Timetable:
    """Front-load buffer for trains that keep losing headway conflicts.

    Each train is shifted from its first station by 2 minutes per lost conflict
    (capped at max_shift_min), then conflicts are resolved once more. Heuristic,
    not optimal. The input timetable is left untouched.
    """
    out = current.copy()
    priorities = priority_lookup(plans)
    order = [s.name for s in stations]
    losses = Counter(loser for _, loser in headway_violations(out, priorities, order, headway))
    for tn, count in losses.items():
        shift = min(max_shift_min, 2 * count)
        route = out.route(tn)
        if route:
            push_train_from_station(out, tn, route[0], shift)
            logger.debug("optimizer: %s lost %d conflicts, shifted %d min", tn, count, shift)
    resolve_conflicts(out, priorities, order, headway)
    return out
