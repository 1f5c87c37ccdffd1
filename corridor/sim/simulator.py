from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from corridor.config import CorridorConfig
from corridor.core.geo import distance_km, segment_key
from corridor.core.models import DEFAULT_SPEED_KMH, UNRANKED_PRIORITY, Station, Timetable, TrainPlan
from corridor.sim.timers import ResumeTimers, TimerHandle

logger = logging.getLogger(__name__)

# Tick-driven movement over a static timetable:
# - every train walks its own station sequence, segment by segment
# - trains sharing a track segment are ranked by priority; the leader keeps
#   moving, the rest wait until the leader is expected to clear the segment
# - waiting only affects the simulation overlay, never the timetable

MIN_SEGMENT_MINUTES = 0.1


class SimulationError(ValueError):
    """A simulation run could not start."""


def train_class(name: str) -> str:
    # presentation only (lane / label); scheduling uses plan priority
    lower = name.lower()
    if "express" in lower:
        return "express"
    if "local" in lower:
        return "local"
    return "freight"


@dataclass
class TrainSimState:
    name: str
    route: List[str]
    from_index: int = 0
    to_index: int = 1
    progress: float = 0.0
    paused: bool = False
    delay_min: int = 0
    wait_reason: Optional[str] = None
    resume_timer: Optional[TimerHandle] = None
    started: bool = False

    @property
    def arrived(self) -> bool:
        return self.to_index >= len(self.route)

    @property
    def status(self) -> str:
        if self.arrived:
            return "arrived"
        if self.paused:
            return "paused"
        return "moving" if self.started else "not_started"

    @property
    def segment(self) -> str:
        return segment_key(self.route[self.from_index], self.route[self.to_index])


class Simulation:
    """Handle for one simulation run. Owns the per-train state and all pending resume timers."""

    def __init__(
        self,
        timetable: Timetable,
        stations: List[Station],
        plans: List[TrainPlan],
        config: Optional[CorridorConfig] = None,
        speed: float = 1.0,
    ) -> None:
        self.config = config or CorridorConfig()
        self.timetable = timetable
        self.stations: Dict[str, Station] = {s.name: s for s in stations}
        self._plans: Dict[str, TrainPlan] = {p.name: p for p in plans}
        self.speed = speed
        self.timers = ResumeTimers()
        self.states: List[TrainSimState] = []
        self.clock = 0.0  # simulated minutes
        self.elapsed_ms = 0.0  # real time fed through tick()
        self.running = False

    # lifecycle
    def start(self) -> None:
        self.timers.cancel_all()
        self.states = [TrainSimState(name=tn, route=self.timetable.route(tn)) for tn in self.timetable.trains]
        self.clock = 0.0
        self.elapsed_ms = 0.0
        self.running = True
        logger.info("simulation started with %d trains", len(self.states))

    def stop(self) -> None:
        self.timers.cancel_all()
        for st in self.states:
            st.resume_timer = None
        self.states = []
        self.running = False
        logger.info("simulation stopped at %.1f sim min", self.clock)

    def reset(self) -> None:
        self.stop()
        self.start()

    @property
    def finished(self) -> bool:
        # every train has reached its final stop
        return bool(self.states) and all(st.arrived for st in self.states)

    def skip(self, minutes: float = 5) -> None:
        # moves only the clock, trains keep their positions
        if self.running:
            self.clock += minutes

    # per-train parameters
    def priority_of(self, name: str) -> int:
        plan = self._plans.get(name)
        return plan.priority if plan is not None else UNRANKED_PRIORITY

    def speed_of(self, name: str) -> float:
        plan = self._plans.get(name)
        return plan.effective_speed if plan is not None else DEFAULT_SPEED_KMH

    def segment_minutes(self, st: TrainSimState) -> Optional[float]:
        a = self.stations.get(st.route[st.from_index])
        b = self.stations.get(st.route[st.to_index])
        if a is None or b is None:
            return None
        km = distance_km(a.lat, a.lng, b.lat, b.lng)
        return max(km / self.speed_of(st.name) * 60 + self.config.safety_margin_min, MIN_SEGMENT_MINUTES)

    # tick
    def tick(self, elapsed_ms: float, speed: Optional[float] = None) -> None:
        if not self.running:
            return
        self.elapsed_ms += elapsed_ms
        # deferred resumes fire between ticks
        self.timers.fire_due(self.elapsed_ms)

        if speed is not None:
            self.speed = speed
        current_speed = max(self.config.sim_min_speed, self.speed)
        sim_min = elapsed_ms * self.config.sim_minutes_per_second * current_speed / 1000.0
        self.clock += sim_min

        for st in self.states:
            if st.arrived or st.paused:
                continue
            seg_min = self.segment_minutes(st)
            if seg_min is None:
                logger.debug("%s: station lookup failed on %s, holding position", st.name, st.segment)
                continue
            st.started = True
            st.progress += sim_min / seg_min
            if st.progress >= 1:
                st.from_index += 1
                st.to_index += 1
                st.progress = 0.0
                if st.arrived:
                    logger.debug("%s arrived at %s (+%d min)", st.name, st.route[-1], st.delay_min)

        self._detect_conflicts(current_speed)

    def _detect_conflicts(self, current_speed: float) -> None:
        on_segment: Dict[str, List[TrainSimState]] = {}
        for st in self.states:
            if not st.arrived:
                on_segment.setdefault(st.segment, []).append(st)

        ms_per_sim_min = 1000.0 / (self.config.sim_minutes_per_second * current_speed)
        for seg, group in on_segment.items():
            if len(group) <= 1:
                continue
            # sorted() is stable: equal priorities keep timetable order
            group = sorted(group, key=lambda s: self.priority_of(s.name))
            leader = group[0]
            if leader.paused:
                self.resume(leader)
            seg_min = self.segment_minutes(leader)
            if seg_min is None:
                continue
            remaining = max(0.0, (1 - leader.progress) * seg_min)
            reason = f"Waiting for {leader.name} ({train_class(leader.name)})"
            wait_ms = max(self.config.sim_min_resume_ms, remaining * ms_per_sim_min)
            for st in group[1:]:
                if not st.paused:
                    self.pause(st, remaining, reason)
                else:
                    st.wait_reason = reason
                st.resume_timer = self.timers.schedule(
                    st.name, self.elapsed_ms + wait_ms, lambda st=st: self.resume(st)
                )

    def pause(self, st: TrainSimState, delay_min: float, reason: str) -> None:
        st.paused = True
        st.delay_min += max(0, int(math.ceil(delay_min)))
        st.wait_reason = reason
        logger.debug("%s paused on %s: %s (+%d min)", st.name, st.segment, reason, st.delay_min)

    def resume(self, st: TrainSimState) -> None:
        st.paused = False
        st.wait_reason = None
        self.timers.cancel(st.name)
        st.resume_timer = None

    # read side
    def snapshot(self) -> Dict[str, Any]:
        trains = []
        summary: Dict[str, Any] = {"total": 0, "moving": 0, "paused": 0, "arrived": 0, "waiting_by_reason": {}}
        for st in self.states:
            trains.append({
                "name": st.name,
                "status": st.status,
                "paused": st.paused,
                "delay_min": st.delay_min,
                "progress": st.progress,
                "from_index": st.from_index,
                "to_index": st.to_index,
                "total_segments": max(1, len(st.route) - 1),
                "wait_reason": st.wait_reason,
                "lane": train_class(st.name),
            })
            summary["total"] += 1
            if st.arrived:
                summary["arrived"] += 1
            elif st.paused:
                summary["paused"] += 1
                reason = st.wait_reason or "Waiting"
                summary["waiting_by_reason"][reason] = summary["waiting_by_reason"].get(reason, 0) + 1
            else:
                summary["moving"] += 1
        return {
            "sim_clock_minutes": self.clock,
            "speed_multiplier": max(self.config.sim_min_speed, self.speed),
            "running": self.running,
            "trains": trains,
            "summary": summary,
        }


def start_simulation(
    timetable: Optional[Timetable],
    stations: List[Station],
    plans: List[TrainPlan],
    config: Optional[CorridorConfig] = None,
    speed: float = 1.0,
) -> Simulation:
    if timetable is None or not timetable.trains:
        raise SimulationError("No timetable to simulate. Generate one first.")
    if len(stations) < 2:
        raise SimulationError("Add at least 2 stations to simulate.")
    sim = Simulation(timetable, stations, plans, config=config, speed=speed)
    sim.start()
    return sim
