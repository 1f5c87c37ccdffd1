import json

from corridor.sim import audit as audit_mod


def test_write_audit_appends_json_lines(tmp_path):
    audit_mod.AUDIT_DIR = tmp_path / "nested"
    audit_mod.AUDIT_FILE = audit_mod.AUDIT_DIR / "events.jsonl"

    audit_mod.write_audit("timetable", count=3)
    audit_mod.write_audit("simulation", action="stop", id="abc")

    lines = audit_mod.AUDIT_FILE.read_text(encoding="utf-8").strip().splitlines()
    events = [json.loads(line) for line in lines]
    assert [e["type"] for e in events] == ["timetable", "simulation"]
    assert events[0]["count"] == 3
    assert events[1]["action"] == "stop"
    assert all("at" in e for e in events)
