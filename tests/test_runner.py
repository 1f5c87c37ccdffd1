import asyncio

import pytest

from corridor.config import CorridorConfig
from corridor.core.models import Station, Timetable, TrainPlan
from corridor.sim.runner import SimulationRunner
from corridor.sim.simulator import start_simulation


def make_sim():
    stations = [Station(id=1, name="A", lat=0.0, lng=0.0), Station(id=2, name="B", lat=0.0, lng=1.0)]
    tt = Timetable.from_dict({"Express": {"A": {"arrival": None, "departure": 480}, "B": {"arrival": 539, "departure": 541}}})
    return start_simulation(tt, stations, [TrainPlan(name="Express", speed=120, priority=1)], config=CorridorConfig())


@pytest.mark.asyncio
async def test_runner_ticks_for_duration():
    sim = make_sim()
    runner = SimulationRunner(sim, frame_ms=5)
    await runner.start(duration_s=0.05)
    assert sim.clock > 0
    assert sim.running
    assert not runner.active
    await runner.stop()
    assert not sim.running


@pytest.mark.asyncio
async def test_stop_cancels_unbounded_run():
    sim = make_sim()
    runner = SimulationRunner(sim, frame_ms=5)
    runner.start()
    await asyncio.sleep(0.03)
    assert runner.active
    await runner.stop()
    assert not runner.active
    assert not sim.running
    assert sim.states == []


@pytest.mark.asyncio
async def test_run_ends_and_stops_sim_once_all_trains_arrive():
    # ~1.1 km hop: 3.6 sim minutes, about 360 ms at 1x
    stations = [Station(id=1, name="A", lat=0.0, lng=0.0), Station(id=2, name="B", lat=0.0, lng=0.01)]
    tt = Timetable.from_dict({"Express": {"A": {"arrival": None, "departure": 480}, "B": {"arrival": 484, "departure": 486}}})
    sim = start_simulation(tt, stations, [TrainPlan(name="Express", speed=120, priority=1)], config=CorridorConfig())
    runner = SimulationRunner(sim, frame_ms=5)

    await asyncio.wait_for(runner.start(), timeout=5)
    assert not runner.active
    assert not sim.running
    assert sim.timers.pending() == []
    clock = sim.clock
    await asyncio.sleep(0.05)
    assert sim.clock == clock
