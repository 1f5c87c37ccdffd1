import logging
import uuid
from typing import Any, Dict, List

from fastapi import FastAPI
from fastapi.responses import RedirectResponse, Response
from pydantic import BaseModel

from corridor.config import CorridorConfig
from corridor.core.generator import generate_base_timetable, generate_timetable_with_routes
from corridor.core.models import Constraints, Station, Timetable, TrainPlan
from corridor.core.optimizer import Scenario, compare_scenarios, suggest_optimized_schedule
from corridor.sim.audit import write_audit
from corridor.sim.runner import SimulationRunner
from corridor.sim.scenario import apply_whatif, gantt_json, summarize_timetable
from corridor.sim.simulator import Simulation, SimulationError, start_simulation

logger = logging.getLogger(__name__)

app = FastAPI(title="Corridor Scheduler API")
cfg = CorridorConfig()

# Live simulation handles, keyed by id; the event loop serialises access
_simulations: Dict[str, Simulation] = {}
_runners: Dict[str, SimulationRunner] = {}


@app.get("/")
async def root() -> RedirectResponse:
    return RedirectResponse(url="/docs")


@app.get("/favicon.ico")
async def favicon() -> Response:
    return Response(status_code=204)


class StationIn(BaseModel):
    id: int = 0
    name: str
    lat: float
    lng: float


class TrainPlanIn(BaseModel):
    name: str
    speed: float = 80
    priority: int
    start_time: str = "08:00"
    start_station: str = ""
    end_station: str = ""
    auto_reroute: bool = False


class ConstraintsIn(BaseModel):
    headway: int = cfg.headway_min
    dwell: int = cfg.dwell_min
    safety_margin: int = cfg.safety_margin_min


class StopIn(BaseModel):
    arrival: int | str | None = None
    departure: int | str | None = None


TimetableIn = Dict[str, Dict[str, StopIn]]


class GenerateRequest(BaseModel):
    stations: List[StationIn]
    plans: List[TrainPlanIn]
    constraints: ConstraintsIn | None = None


class BaseGenerateRequest(BaseModel):
    stations: List[StationIn]
    trains: List[TrainPlanIn]
    constraints: ConstraintsIn | None = None


class WhatIfRequest(BaseModel):
    stations: List[StationIn]
    plans: List[TrainPlanIn]
    timetable: TimetableIn
    train: str
    station: str
    delay_min: int
    headway: int = cfg.headway_min


class ScenarioIn(BaseModel):
    name: str
    timetable: TimetableIn


class CompareRequest(BaseModel):
    baseline: TimetableIn
    scenarios: List[ScenarioIn]


class OptimizeRequest(BaseModel):
    stations: List[StationIn]
    plans: List[TrainPlanIn]
    timetable: TimetableIn
    headway: int = cfg.headway_min
    max_shift_min: int = cfg.max_shift_min


class SimulationRequest(BaseModel):
    stations: List[StationIn]
    plans: List[TrainPlanIn]
    timetable: TimetableIn
    speed: float = 1.0
    autorun: bool = False


class TickRequest(BaseModel):
    elapsed_ms: float
    speed: float | None = None


class SkipRequest(BaseModel):
    minutes: float = 5


# Helpers: pydantic inputs -> domain dataclasses
def _stations(items: List[StationIn]) -> List[Station]:
    return [Station(**s.model_dump()) for s in items]


def _plans(items: List[TrainPlanIn]) -> List[TrainPlan]:
    return [TrainPlan(**p.model_dump()) for p in items]


def _constraints(c: ConstraintsIn | None) -> Constraints:
    if c is None:
        return Constraints.from_config(cfg)
    # 0 means "not set", same as a missing field
    return Constraints(
        headway=c.headway or cfg.headway_min,
        dwell=c.dwell or cfg.dwell_min,
        safety_margin=c.safety_margin or cfg.safety_margin_min,
    )


def _timetable(tt: TimetableIn) -> Timetable:
    return Timetable.from_dict({tn: {sn: st.model_dump() for sn, st in stops.items()} for tn, stops in tt.items()})


def _metrics_out(metrics) -> List[Dict[str, Any]]:
    return [vars(m) for m in metrics]


def _timetable_out(tt: Timetable, stations: List[Station], plans: List[TrainPlan], headway: int) -> Dict[str, Any]:
    return {
        "timetable": tt.to_dict(),
        "display": tt.to_clock_dict(),
        "gantt": gantt_json(tt),
        "kpis": summarize_timetable(tt, stations, plans, headway),
    }


@app.get("/demo")
async def demo() -> Dict[str, Any]:
    stations = [
        Station(id=1, name="A", lat=28.6, lng=77.2),
        Station(id=2, name="B", lat=26.4, lng=80.3),
        Station(id=3, name="C", lat=22.6, lng=88.3),
    ]
    plans = [
        TrainPlan(name="Express", speed=120, priority=1, start_time="08:00", start_station="A", end_station="C"),
        TrainPlan(name="Local", speed=80, priority=2, start_time="08:05", start_station="C", end_station="A"),
        TrainPlan(name="Freight", speed=60, priority=3, start_time="08:10", start_station="A", end_station="B"),
    ]
    constraints = Constraints(headway=5, dwell=2, safety_margin=3)
    tt = generate_timetable_with_routes(stations, plans, constraints)
    return _timetable_out(tt, stations, plans, constraints.headway)


@app.post("/timetable")
async def timetable(body: GenerateRequest) -> Dict[str, Any]:
    stations = _stations(body.stations)
    plans = _plans(body.plans)
    constraints = _constraints(body.constraints)
    tt = generate_timetable_with_routes(stations, plans, constraints)
    resp = _timetable_out(tt, stations, plans, constraints.headway)
    write_audit("timetable", generator="routes", kpis=resp["kpis"], count=len(tt.trains))
    return resp


@app.post("/timetable/base")
async def timetable_base(body: BaseGenerateRequest) -> Dict[str, Any]:
    stations = _stations(body.stations)
    trains = _plans(body.trains)
    constraints = _constraints(body.constraints)
    tt = generate_base_timetable(stations, trains, constraints)
    resp = _timetable_out(tt, stations, trains, constraints.headway)
    write_audit("timetable", generator="base", kpis=resp["kpis"], count=len(tt.trains))
    return resp


@app.post("/whatif")
async def whatif(body: WhatIfRequest) -> Dict[str, Any]:
    stations = _stations(body.stations)
    plans = _plans(body.plans)
    base = _timetable(body.timetable)
    try:
        scenario = apply_whatif(base, body.train, body.station, body.delay_min, stations, plans, body.headway)
    except (KeyError, ValueError) as e:
        # KeyError str() wraps the message in quotes
        msg = e.args[0] if e.args else str(e)
        logger.info("what-if rejected: %s", msg)
        return {"error": msg}
    metrics = compare_scenarios(base, [Scenario("Base", base), Scenario("What-if", scenario)])
    write_audit("whatif", train=body.train, station=body.station, delay_min=body.delay_min)
    return {
        "timetable": scenario.to_dict(),
        "display": scenario.to_clock_dict(),
        "metrics": _metrics_out(metrics),
    }


@app.post("/compare")
async def compare(body: CompareRequest) -> Dict[str, Any]:
    baseline = _timetable(body.baseline)
    scenarios = [Scenario(s.name, _timetable(s.timetable)) for s in body.scenarios]
    return {"metrics": _metrics_out(compare_scenarios(baseline, scenarios))}


@app.post("/optimize")
async def optimize(body: OptimizeRequest) -> Dict[str, Any]:
    stations = _stations(body.stations)
    plans = _plans(body.plans)
    current = _timetable(body.timetable)
    optimized = suggest_optimized_schedule(current, stations, plans, headway=body.headway, max_shift_min=body.max_shift_min)
    metrics = compare_scenarios(current, [Scenario("Current", current), Scenario("Optimized", optimized)])
    write_audit("optimize", max_shift_min=body.max_shift_min, metrics=_metrics_out(metrics))
    return {
        "timetable": optimized.to_dict(),
        "display": optimized.to_clock_dict(),
        "metrics": _metrics_out(metrics),
    }


# Simulation runs
def _evict_stopped() -> None:
    for sid in [sid for sid, sim in _simulations.items() if not sim.running]:
        _simulations.pop(sid)
        _runners.pop(sid, None)
        logger.debug("evicted stopped simulation %s", sid)


@app.post("/simulations")
async def create_simulation(body: SimulationRequest) -> Dict[str, Any]:
    try:
        sim = start_simulation(_timetable(body.timetable), _stations(body.stations), _plans(body.plans), config=cfg, speed=body.speed)
    except SimulationError as e:
        logger.warning("simulation not started: %s", e)
        return {"error": str(e)}
    _evict_stopped()
    sid = uuid.uuid4().hex[:12]
    _simulations[sid] = sim
    if body.autorun:
        runner = SimulationRunner(sim)
        task = runner.start()
        _runners[sid] = runner
        # finished runs release their runner; the stopped handle goes on the next create
        task.add_done_callback(lambda _t, sid=sid: _runners.pop(sid, None))
    write_audit("simulation", action="start", id=sid, trains=len(sim.states), autorun=body.autorun)
    return {"id": sid, "snapshot": sim.snapshot()}


@app.get("/simulations/{sid}")
async def simulation_snapshot(sid: str) -> Dict[str, Any]:
    sim = _simulations.get(sid)
    if sim is None:
        return {"error": "simulation not found"}
    return {"id": sid, "snapshot": sim.snapshot()}


@app.post("/simulations/{sid}/tick")
async def simulation_tick(sid: str, body: TickRequest) -> Dict[str, Any]:
    sim = _simulations.get(sid)
    if sim is None:
        return {"error": "simulation not found"}
    sim.tick(body.elapsed_ms, speed=body.speed)
    return {"id": sid, "snapshot": sim.snapshot()}


@app.post("/simulations/{sid}/skip")
async def simulation_skip(sid: str, body: SkipRequest | None = None) -> Dict[str, Any]:
    sim = _simulations.get(sid)
    if sim is None:
        return {"error": "simulation not found"}
    sim.skip((body or SkipRequest()).minutes)
    return {"id": sid, "snapshot": sim.snapshot()}


@app.post("/simulations/{sid}/reset")
async def simulation_reset(sid: str) -> Dict[str, Any]:
    sim = _simulations.get(sid)
    if sim is None:
        return {"error": "simulation not found"}
    sim.reset()
    return {"id": sid, "snapshot": sim.snapshot()}


@app.delete("/simulations/{sid}")
async def simulation_stop(sid: str) -> Dict[str, Any]:
    sim = _simulations.pop(sid, None)
    if sim is None:
        return {"error": "simulation not found"}
    runner = _runners.pop(sid, None)
    if runner is not None:
        await runner.stop()
    else:
        sim.stop()
    write_audit("simulation", action="stop", id=sid, clock=sim.clock)
    return {"stopped": True}
