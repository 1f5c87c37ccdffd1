import argparse
import json
import logging
from pathlib import Path
from typing import List, Tuple

from corridor.config import CorridorConfig
from corridor.core.generator import generate_timetable_with_routes
from corridor.core.models import Constraints, Station, TrainPlan
from corridor.sim.scenario import summarize_timetable
from corridor.sim.simulator import start_simulation

DATA_DIR = Path(__file__).parent / "data"


def load_corridor() -> Tuple[List[Station], Constraints]:
    data = json.loads((DATA_DIR / "sample_corridor.json").read_text())
    stations = [Station(**s) for s in data["stations"]]
    return stations, Constraints(**data["constraints"])


def load_plans() -> List[TrainPlan]:
    data = json.loads((DATA_DIR / "sample_plans.json").read_text())
    return [TrainPlan(**p) for p in data["plans"]]


def main() -> None:
    ap = argparse.ArgumentParser(description="Generate the sample corridor timetable and optionally simulate it")
    ap.add_argument("--ticks", type=int, default=0, help="headless simulation ticks to run")
    ap.add_argument("--elapsed-ms", type=float, default=500.0, help="real milliseconds per tick")
    ap.add_argument("--speed", type=float, default=1.0)
    args = ap.parse_args()

    cfg = CorridorConfig()
    logging.basicConfig(level=cfg.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    stations, constraints = load_corridor()
    plans = load_plans()
    tt = generate_timetable_with_routes(stations, plans, constraints)

    print("KPIs:", summarize_timetable(tt, stations, plans, constraints.headway))
    for train, stops in tt.to_clock_dict().items():
        print(train)
        for station, times in stops.items():
            print(f"  {station:<18} arr {times['arrival'] or '--:--'}  dep {times['departure'] or '--:--'}")

    if args.ticks > 0:
        sim = start_simulation(tt, stations, plans, config=cfg, speed=args.speed)
        for _ in range(args.ticks):
            sim.tick(args.elapsed_ms)
        print("Snapshot:", json.dumps(sim.snapshot(), indent=2))
        sim.stop()


if __name__ == "__main__":
    main()
