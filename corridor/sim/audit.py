import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from corridor.config import CorridorConfig

# Module attributes so callers (and tests) can redirect the trail
AUDIT_DIR = Path(CorridorConfig().audit_dir or Path(__file__).parents[2] / "audit")
AUDIT_FILE = AUDIT_DIR / "events.jsonl"


def write_audit(event_type: str, **fields: Any) -> None:
    """Append one JSON line: {"type", "at", **fields}."""
    event = {"type": event_type, "at": datetime.now(timezone.utc).isoformat(timespec="seconds"), **fields}
    AUDIT_FILE.parent.mkdir(parents=True, exist_ok=True)
    with AUDIT_FILE.open("a", encoding="utf-8") as f:
        f.write(json.dumps(event, ensure_ascii=False) + "\n")
