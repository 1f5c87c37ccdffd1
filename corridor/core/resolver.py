import logging
from typing import Dict, Iterable, List, Tuple

from .models import Minutes, Timetable, TrainPlan, UNRANKED_PRIORITY

logger = logging.getLogger(__name__)

# Per-station headway scan:
# - Stations are visited in corridor order
# - Departures at a station are sorted ascending and walked pairwise
# - When two departures are closer than headway, the lower-precedence train
#   (larger priority value; on a tie the later one) is pushed forward by the shortfall


def priority_lookup(plans: Iterable[TrainPlan]) -> Dict[str, int]:
    return {p.name: p.priority if isinstance(p.priority, int) else UNRANKED_PRIORITY for p in plans}


def push_train_from_station(tt: Timetable, train: str, from_station: str, delta: Minutes) -> None:
    # shift the suffix of the train's own sequence, starting at from_station
    pushing = False
    for sn, st in tt.trains[train].items():
        if sn == from_station:
            pushing = True
        if pushing:
            if st.arrival is not None:
                st.arrival += delta
            if st.departure is not None:
                st.departure += delta


def _departures_at(tt: Timetable, station: str) -> List[List]:
    deps = []
    for tn, stops in tt.trains.items():
        st = stops.get(station)
        if st is not None and st.departure is not None:
            deps.append([tn, st.departure])
    deps.sort(key=lambda d: d[1])
    return deps


def _loser(prev: List, curr: List, priorities: Dict[str, int]) -> List:
    p_prev = priorities.get(prev[0], UNRANKED_PRIORITY)
    p_curr = priorities.get(curr[0], UNRANKED_PRIORITY)
    return curr if p_prev <= p_curr else prev


def headway_violations(
    tt: Timetable, priorities: Dict[str, int], station_order: List[str], headway: int
) -> List[Tuple[str, str]]:
    """(station, train that would be delayed) for every adjacent pair under headway. Read-only."""
    out: List[Tuple[str, str]] = []
    for station in station_order:
        deps = _departures_at(tt, station)
        for prev, curr in zip(deps, deps[1:]):
            if curr[1] - prev[1] < headway:
                out.append((station, _loser(prev, curr, priorities)[0]))
    return out


def _resolve_pass(tt: Timetable, priorities: Dict[str, int], station_order: List[str], headway: int) -> int:
    delayed = 0
    for station in station_order:
        deps = _departures_at(tt, station)
        for i in range(1, len(deps)):
            prev, curr = deps[i - 1], deps[i]
            gap = curr[1] - prev[1]
            if gap < headway:
                to_delay = _loser(prev, curr, priorities)
                need = headway - gap
                push_train_from_station(tt, to_delay[0], station, need)
                to_delay[1] += need
                delayed += 1
                logger.debug("delayed %s by %d min at %s", to_delay[0], need, station)
    return delayed


def resolve_conflicts(
    tt: Timetable,
    priorities: Dict[str, int],
    station_order: List[str],
    headway: int,
    max_passes: int = 1,
) -> bool:
    """Delay lower-priority trains in place until departures respect the headway.

    One forward pass is the default and is best-effort: a delayed train can end
    up too close to a departure that was already checked. With max_passes > 1 the
    scan repeats until nothing moves or the cap is reached.

    Returns True when no headway violation remains.
    """
    for n in range(max(1, max_passes)):
        if _resolve_pass(tt, priorities, station_order, headway) == 0:
            return True
        if n + 1 < max_passes:
            logger.debug("resolver pass %d moved trains, scanning again", n + 1)
    return not headway_violations(tt, priorities, station_order, headway)
