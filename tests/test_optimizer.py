import math

from corridor.core.models import Station, Timetable, TrainPlan
from corridor.core.optimizer import Scenario, compare_scenarios, suggest_optimized_schedule
from corridor.core.resolver import push_train_from_station


def stations():
    return [
        Station(id=1, name="A", lat=0.0, lng=0.0),
        Station(id=2, name="B", lat=0.0, lng=1.0),
        Station(id=3, name="C", lat=0.0, lng=2.0),
    ]


def plans():
    return [
        TrainPlan(name="X", speed=120, priority=1),
        TrainPlan(name="Y", speed=80, priority=2),
    ]


def close_pair():
    # Y departs one minute behind X everywhere
    return Timetable.from_dict({
        "X": {
            "A": {"arrival": None, "departure": 480},
            "B": {"arrival": 500, "departure": 502},
            "C": {"arrival": 520, "departure": 522},
        },
        "Y": {
            "A": {"arrival": None, "departure": 481},
            "B": {"arrival": 501, "departure": 503},
            "C": {"arrival": 521, "departure": 523},
        },
    })


def test_compare_identity_has_no_delay():
    tt = close_pair()
    [m] = compare_scenarios(tt, [Scenario("Base", tt)])
    assert m.name == "Base"
    assert m.total_delay_min == 0
    assert m.throughput == 2
    assert m.avg_punctuality_min == 0


def test_compare_counts_only_lateness_at_final_stop():
    base = close_pair()
    late = base.copy()
    push_train_from_station(late, "X", "B", 10)
    early = base.copy()
    push_train_from_station(early, "Y", "A", -4)
    partial = Timetable(trains={"X": base.copy().trains["X"]})

    late_m, early_m, partial_m = compare_scenarios(
        base, [Scenario("Late", late), Scenario("Early", early), Scenario("Partial", partial)]
    )
    assert late_m.total_delay_min == 10
    assert math.isclose(late_m.avg_punctuality_min, 5.0)
    assert early_m.total_delay_min == 0
    assert partial_m.throughput == 1


def test_suggest_shifts_repeat_loser_and_leaves_input_alone():
    current = close_pair()
    out = suggest_optimized_schedule(current, stations(), plans(), headway=5, max_shift_min=10)
    # Y lost at A, B and C: 2 * 3 = 6 minutes from its first station
    assert out.trains["Y"]["A"].departure == 487
    assert out.trains["Y"]["C"].arrival == 527
    assert out.to_dict()["X"] == current.to_dict()["X"]
    assert current.trains["Y"]["A"].departure == 481


def test_suggest_shift_is_capped():
    out = suggest_optimized_schedule(close_pair(), stations(), plans(), headway=5, max_shift_min=4)
    assert out.trains["Y"]["A"].departure == 485


def test_suggest_without_conflicts_is_a_copy():
    tt = close_pair()
    push_train_from_station(tt, "Y", "A", 30)
    out = suggest_optimized_schedule(tt, stations(), plans())
    assert out.to_dict() == tt.to_dict()
    assert out is not tt
