import logging
from typing import Dict, List, Optional, Tuple

from .geo import hop_minutes, segment_key
from .models import Constraints, Minutes, Station, StopTime, Timetable, TrainPlan
from .resolver import priority_lookup, resolve_conflicts

logger = logging.getLogger(__name__)

# Route-aware generator:
# - Plans run in priority order (stable), each staggered by idx * headway
# - Each plan gets the corridor slice between its start and end station
# - With auto_reroute the reversed slice competes; fewer overlaps with already
#   claimed segments wins
# - Chosen hops are recorded so later (lower priority) plans see them
# - One conflict-resolution pass over the finished timetable


class SegmentUsage:
    """Planned occupancy per undirected station pair, as half-open [start, end) windows."""

    def __init__(self) -> None:
        self._windows: Dict[str, List[Tuple[Minutes, Minutes]]] = {}

    def add(self, a: str, b: str, start: Minutes, end: Minutes) -> None:
        self._windows.setdefault(segment_key(a, b), []).append((start, end))

    def count_overlap(self, a: str, b: str, start: Minutes, end: Minutes) -> int:
        return sum(1 for (w0, w1) in self._windows.get(segment_key(a, b), []) if not (end <= w0 or start >= w1))


def generate_base_timetable(stations: List[Station], trains: List[TrainPlan], constraints: Constraints) -> Timetable:
    """Every train over every station in corridor order, staggered by plan order."""
    tt = Timetable()
    for idx, train in enumerate(trains):
        start = train.start_minutes + idx * constraints.headway
        tt.trains[train.name] = _materialize(stations, start, train.effective_speed, constraints)
    resolve_conflicts(tt, priority_lookup(trains), [s.name for s in stations], constraints.headway)
    logger.info("base timetable: %d trains over %d stations", len(tt.trains), len(stations))
    return tt


def generate_timetable_with_routes(
    stations: List[Station], plans: List[TrainPlan], constraints: Constraints
) -> Timetable:
    names = [s.name for s in stations]
    tt = Timetable()
    usage = SegmentUsage()

    # sorted() is stable, so equal priorities keep plan order
    for idx, plan in enumerate(sorted(plans, key=lambda p: p.priority)):
        start_idx = _index_of(names, plan.start_station)
        end_idx = _index_of(names, plan.end_station)
        if start_idx is None or end_idx is None:
            logger.debug("skipping %s: unknown station %r/%r", plan.name, plan.start_station, plan.end_station)
            continue
        if start_idx <= end_idx:
            forward = stations[start_idx:end_idx + 1]
        else:
            forward = list(reversed(stations[end_idx:start_idx + 1]))
        start = plan.start_minutes + idx * constraints.headway
        speed = plan.effective_speed

        path = forward
        if plan.auto_reroute:
            reverse = list(reversed(forward))
            fwd_score = _score_path(forward, start, speed, constraints, usage)
            rev_score = _score_path(reverse, start, speed, constraints, usage)
            if rev_score < fwd_score:
                path = reverse
            logger.debug("%s: forward=%d reverse=%d overlaps", plan.name, fwd_score, rev_score)

        tt.trains[plan.name] = _materialize(path, start, speed, constraints, usage)

    resolve_conflicts(tt, priority_lookup(plans), names, constraints.headway)
    logger.info("route-aware timetable: %d of %d plans scheduled", len(tt.trains), len(plans))
    return tt


def _index_of(names: List[str], name: str) -> Optional[int]:
    try:
        return names.index(name)
    except ValueError:
        return None


def _score_path(path: List[Station], start: Minutes, speed: float, c: Constraints, usage: SegmentUsage) -> int:
    t = start
    overlaps = 0
    for prev, curr in zip(path, path[1:]):
        arr = t + hop_minutes(prev, curr, speed, c.safety_margin)
        overlaps += usage.count_overlap(prev.name, curr.name, t, arr)
        t = arr + c.dwell
    return overlaps


def _materialize(
    path: List[Station],
    start: Minutes,
    speed: float,
    c: Constraints,
    usage: Optional[SegmentUsage] = None,
) -> Dict[str, StopTime]:
    stops: Dict[str, StopTime] = {}
    t = start
    for i, st in enumerate(path):
        if i == 0:
            stops[st.name] = StopTime(arrival=None, departure=t)
            continue
        prev = path[i - 1]
        arr = t + hop_minutes(prev, st, speed, c.safety_margin)
        stops[st.name] = StopTime(arrival=arr, departure=arr + c.dwell)
        if usage is not None:
            usage.add(prev.name, st.name, t, arr)
        t = arr + c.dwell
    return stops
