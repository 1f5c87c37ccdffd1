import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from corridor.config import CorridorConfig
from corridor.core.geo import from_minutes, to_minutes

Minutes = int  # absolute minutes since midnight of the service day, never wrapped

DEFAULT_SPEED_KMH = 80
DEFAULT_START_TIME = "08:00"
UNRANKED_PRIORITY = 999


@dataclass
class Station:
    id: int
    name: str
    lat: float
    lng: float


@dataclass
class TrainPlan:
    name: str
    speed: float  # km/h
    priority: int  # lower = dispatched first
    start_time: str = DEFAULT_START_TIME  # "HH:MM"
    # Empty for the base generator, which runs every train over the whole corridor
    start_station: str = ""
    end_station: str = ""
    auto_reroute: bool = False

    @property
    def effective_speed(self) -> float:
        return self.speed or DEFAULT_SPEED_KMH

    @property
    def start_minutes(self) -> Minutes:
        return to_minutes(self.start_time or DEFAULT_START_TIME)


@dataclass
class Constraints:
    headway: int = 5  # min separation between departures at a station
    dwell: int = 2  # stop time at each station after arrival
    safety_margin: int = 3  # buffer added to every hop

    @classmethod
    def from_config(cls, cfg: CorridorConfig) -> "Constraints":
        return cls(headway=cfg.headway_min, dwell=cfg.dwell_min, safety_margin=cfg.safety_margin_min)


@dataclass
class StopTime:
    arrival: Optional[Minutes]  # None at the origin
    departure: Optional[Minutes]


@dataclass
class Timetable:
    # train name -> station name -> times; inner insertion order is the visiting order
    trains: Dict[str, Dict[str, StopTime]] = field(default_factory=dict)

    def route(self, train: str) -> List[str]:
        return list(self.trains.get(train, {}).keys())

    def final_time(self, train: str) -> Optional[Minutes]:
        stops = self.trains.get(train)
        if not stops:
            return None
        last = stops[next(reversed(stops))]
        return last.arrival if last.arrival is not None else last.departure

    def copy(self) -> "Timetable":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Dict[str, Dict[str, Optional[int]]]]:
        return {
            tn: {sn: {"arrival": st.arrival, "departure": st.departure} for sn, st in stops.items()}
            for tn, stops in self.trains.items()
        }

    def to_clock_dict(self) -> Dict[str, Dict[str, Dict[str, Optional[str]]]]:
        def fmt(v: Optional[int]) -> Optional[str]:
            return from_minutes(v) if v is not None else None

        return {
            tn: {sn: {"arrival": fmt(st.arrival), "departure": fmt(st.departure)} for sn, st in stops.items()}
            for tn, stops in self.trains.items()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, Dict[str, Any]]]) -> "Timetable":
        """Build from minutes; "HH:MM" strings are accepted too but carry no day."""

        def parse(v: Any) -> Optional[int]:
            if v is None:
                return None
            if isinstance(v, str):
                return to_minutes(v)
            return int(v)

        trains: Dict[str, Dict[str, StopTime]] = {}
        for tn, stops in data.items():
            trains[tn] = {
                sn: StopTime(arrival=parse(st.get("arrival")), departure=parse(st.get("departure")))
                for sn, st in stops.items()
            }
        return cls(trains=trains)
