from typing import Any, Dict, List

from corridor.core.geo import MINUTES_PER_DAY
from corridor.core.models import Station, Timetable, TrainPlan
from corridor.core.resolver import headway_violations, priority_lookup, push_train_from_station, resolve_conflicts


def apply_whatif(
    timetable: Timetable,
    train: str,
    station: str,
    delay_min: int,
    stations: List[Station],
    plans: List[TrainPlan],
    headway: int,
) -> Timetable:
    """Delay one train from one station onward, then re-resolve. Returns a new timetable."""
    if delay_min <= 0:
        raise ValueError("delay must be a positive number of minutes")
    if train not in timetable.trains or station not in timetable.trains[train]:
        raise KeyError(f"Train {train!r} or station {station!r} not found in timetable")
    scenario = timetable.copy()
    push_train_from_station(scenario, train, station, delay_min)
    resolve_conflicts(scenario, priority_lookup(plans), [s.name for s in stations], headway)
    return scenario


def gantt_json(tt: Timetable) -> List[Dict[str, Any]]:
    # one row per hop: departure from one stop to arrival at the next
    rows: List[Dict[str, Any]] = []
    for tn, stops in tt.trains.items():
        seq = list(stops.items())
        for (a, sa), (b, sb) in zip(seq, seq[1:]):
            rows.append({"train": tn, "from": a, "to": b, "start": sa.departure, "end": sb.arrival})
    return rows


def summarize_timetable(tt: Timetable, stations: List[Station], plans: List[TrainPlan], headway: int) -> Dict[str, int]:
    # basic KPIs: total_trains, total_stops, makespan, remaining headway conflicts, trains past midnight
    if not tt.trains:
        return {"total_trains": 0, "total_stops": 0, "makespan": 0, "remaining_conflicts": 0, "overnight_trains": 0}
    starts = []
    ends = []
    overnight = 0
    for tn, stops in tt.trains.items():
        first = stops[next(iter(stops))]
        if first.departure is not None:
            starts.append(first.departure)
        final = tt.final_time(tn)
        if final is not None:
            ends.append(final)
            if final >= MINUTES_PER_DAY:
                overnight += 1
    makespan = max(ends) - min(starts) if starts and ends else 0
    conflicts = headway_violations(tt, priority_lookup(plans), [s.name for s in stations], headway)
    return {
        "total_trains": len(tt.trains),
        "total_stops": sum(len(stops) for stops in tt.trains.values()),
        "makespan": makespan,
        "remaining_conflicts": len(conflicts),
        "overnight_trains": overnight,
    }
