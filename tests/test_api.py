import asyncio

import httpx
import pytest
from httpx import ASGITransport

from corridor.api import app


STATIONS = [
    {"id": 1, "name": "A", "lat": 0.0, "lng": 0.0},
    {"id": 2, "name": "B", "lat": 0.0, "lng": 1.0},
    {"id": 3, "name": "C", "lat": 0.0, "lng": 2.0},
]
PLANS = [
    {"name": "Express", "speed": 120, "priority": 1, "start_station": "A", "end_station": "C"},
    {"name": "Local", "speed": 80, "priority": 2, "start_station": "A", "end_station": "C", "auto_reroute": True},
]


def redirect_audit(tmp_path):
    from corridor.sim import audit as audit_mod
    audit_mod.AUDIT_DIR = tmp_path
    audit_mod.AUDIT_FILE = tmp_path / "events.jsonl"
    return audit_mod.AUDIT_FILE


@pytest.mark.asyncio
async def test_demo_endpoint():
    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        r = await client.get("/demo")
        assert r.status_code == 200
        data = r.json()
        assert set(data) == {"timetable", "display", "gantt", "kpis"}
        assert data["display"]["Express"]["A"]["departure"] == "08:00"
        assert data["kpis"]["total_trains"] == 3
        assert data["kpis"]["remaining_conflicts"] == 0


@pytest.mark.asyncio
async def test_timetable_endpoint_with_reroute(tmp_path):
    audit_file = redirect_audit(tmp_path)
    transport = ASGITransport(app=app)
    payload = {"stations": STATIONS, "plans": PLANS, "constraints": {"headway": 5, "dwell": 2, "safety_margin": 3}}
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        r = await client.post("/timetable", json=payload)
        assert r.status_code == 200
        data = r.json()
        assert list(data["timetable"]["Local"]) == ["C", "B", "A"]
        assert data["timetable"]["Express"]["C"]["arrival"] == 600
        assert data["display"]["Express"]["C"]["arrival"] == "10:00"
    lines = audit_file.read_text(encoding="utf-8").strip().splitlines()
    assert any('"type": "timetable"' in line for line in lines)


@pytest.mark.asyncio
async def test_base_timetable_endpoint_uses_whole_corridor(tmp_path):
    redirect_audit(tmp_path)
    transport = ASGITransport(app=app)
    payload = {"stations": STATIONS, "trains": [{"name": "T1", "speed": 120, "priority": 1}]}
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        r = await client.post("/timetable/base", json=payload)
        assert r.status_code == 200
        stops = r.json()["timetable"]["T1"]
        assert list(stops) == ["A", "B", "C"]
        assert stops["A"] == {"arrival": None, "departure": 480}


@pytest.mark.asyncio
async def test_compare_endpoint():
    baseline = {"X": {"A": {"arrival": None, "departure": 480}, "B": {"arrival": 520, "departure": 522}}}
    late = {"X": {"A": {"arrival": None, "departure": "08:00"}, "B": {"arrival": "08:47", "departure": "08:49"}}}
    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        r = await client.post("/compare", json={"baseline": baseline, "scenarios": [
            {"name": "Base", "timetable": baseline},
            {"name": "Late", "timetable": late},
        ]})
        assert r.status_code == 200
        base_m, late_m = r.json()["metrics"]
        assert base_m == {"name": "Base", "total_delay_min": 0, "throughput": 1, "avg_punctuality_min": 0.0}
        assert late_m["total_delay_min"] == 7


@pytest.mark.asyncio
async def test_optimize_endpoint(tmp_path):
    redirect_audit(tmp_path)
    current = {
        "X": {"A": {"arrival": None, "departure": 480}, "B": {"arrival": 500, "departure": 502}},
        "Y": {"A": {"arrival": None, "departure": 481}, "B": {"arrival": 501, "departure": 503}},
    }
    plans = [{"name": "X", "speed": 120, "priority": 1}, {"name": "Y", "speed": 80, "priority": 2}]
    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        r = await client.post("/optimize", json={"stations": STATIONS[:2], "plans": plans, "timetable": current})
        assert r.status_code == 200
        data = r.json()
        # two lost conflicts -> 4 minutes
        assert data["timetable"]["Y"]["A"]["departure"] == 485
        metrics = {m["name"]: m for m in data["metrics"]}
        assert metrics["Optimized"]["total_delay_min"] == 4


@pytest.mark.asyncio
async def test_simulation_lifecycle(tmp_path):
    redirect_audit(tmp_path)
    timetable = {
        "Express": {"A": {"arrival": None, "departure": 480}, "B": {"arrival": 539, "departure": 541}},
        "Freight": {"A": {"arrival": None, "departure": 485}, "B": {"arrival": 599, "departure": 601}},
    }
    plans = [{"name": "Express", "speed": 120, "priority": 1}, {"name": "Freight", "speed": 60, "priority": 3}]
    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        r = await client.post("/simulations", json={"stations": STATIONS[:2], "plans": plans, "timetable": timetable})
        data = r.json()
        sid = data["id"]
        assert data["snapshot"]["running"]
        assert data["snapshot"]["summary"]["total"] == 2

        r = await client.post(f"/simulations/{sid}/tick", json={"elapsed_ms": 100})
        summary = r.json()["snapshot"]["summary"]
        assert summary["paused"] == 1
        assert summary["waiting_by_reason"] == {"Waiting for Express (express)": 1}

        r = await client.post(f"/simulations/{sid}/skip", json={"minutes": 5})
        assert r.json()["snapshot"]["sim_clock_minutes"] == pytest.approx(6.0)

        r = await client.post(f"/simulations/{sid}/reset")
        assert r.json()["snapshot"]["sim_clock_minutes"] == 0

        r = await client.get(f"/simulations/{sid}")
        assert r.json()["id"] == sid

        r = await client.delete(f"/simulations/{sid}")
        assert r.json() == {"stopped": True}
        r = await client.get(f"/simulations/{sid}")
        assert r.json() == {"error": "simulation not found"}


@pytest.mark.asyncio
async def test_simulation_requires_timetable():
    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        r = await client.post("/simulations", json={"stations": STATIONS, "plans": [], "timetable": {}})
        assert r.status_code == 200
        assert r.json()["error"] == "No timetable to simulate. Generate one first."


@pytest.mark.asyncio
async def test_zero_constraints_fall_back_to_defaults(tmp_path):
    redirect_audit(tmp_path)
    transport = ASGITransport(app=app)
    payload = {"stations": STATIONS, "plans": PLANS[:1], "constraints": {"headway": 0, "dwell": 0, "safety_margin": 0}}
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        r = await client.post("/timetable", json=payload)
        assert r.status_code == 200
        stops = r.json()["timetable"]["Express"]
        # same as headway 5, dwell 2, margin 3
        assert stops["B"] == {"arrival": 539, "departure": 541}
        assert stops["C"]["arrival"] == 600


@pytest.mark.asyncio
async def test_autorun_simulation_finishes_and_is_evicted(tmp_path):
    from corridor.api import _runners, _simulations

    redirect_audit(tmp_path)
    stations = [{"id": 1, "name": "A", "lat": 0.0, "lng": 0.0}, {"id": 2, "name": "B", "lat": 0.0, "lng": 0.01}]
    timetable = {"Express": {"A": {"arrival": None, "departure": 480}, "B": {"arrival": 484, "departure": 486}}}
    body = {"stations": stations, "plans": [{"name": "Express", "speed": 120, "priority": 1}], "timetable": timetable}
    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        r = await client.post("/simulations", json={**body, "autorun": True})
        sid = r.json()["id"]
        assert sid in _runners

        for _ in range(100):
            await asyncio.sleep(0.05)
            if not (await client.get(f"/simulations/{sid}")).json()["snapshot"]["running"]:
                break
        assert not (await client.get(f"/simulations/{sid}")).json()["snapshot"]["running"]
        await asyncio.sleep(0.05)  # done callback runs after the task completes
        assert sid not in _runners

        r = await client.post("/simulations", json=body)
        other = r.json()["id"]
        assert sid not in _simulations
        assert (await client.get(f"/simulations/{sid}")).json() == {"error": "simulation not found"}
        assert (await client.delete(f"/simulations/{other}")).json() == {"stopped": True}
