from __future__ import annotations
import os
from dataclasses import dataclass
from dotenv import load_dotenv

# Load .env early (no error if missing)
load_dotenv()


def _int_env(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _float_env(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


@dataclass(frozen=True)
class CorridorConfig:
    # Scheduling defaults (minutes)
    headway_min: int = _int_env("CORRIDOR_HEADWAY_MIN", 5)
    dwell_min: int = _int_env("CORRIDOR_DWELL_MIN", 2)
    safety_margin_min: int = _int_env("CORRIDOR_SAFETY_MARGIN_MIN", 3)
    max_shift_min: int = _int_env("CORRIDOR_MAX_SHIFT_MIN", 10)
    # Simulation: simulated minutes per real second at 1x
    sim_minutes_per_second: float = _float_env("CORRIDOR_SIM_MINUTES_PER_SECOND", 10.0)
    sim_min_speed: float = _float_env("CORRIDOR_SIM_MIN_SPEED", 0.25)
    sim_min_resume_ms: float = _float_env("CORRIDOR_SIM_MIN_RESUME_MS", 50.0)
    sim_frame_ms: float = _float_env("CORRIDOR_SIM_FRAME_MS", 16.0)
    log_level: str = os.getenv("CORRIDOR_LOG_LEVEL", "INFO").upper()
    audit_dir: str | None = os.getenv("CORRIDOR_AUDIT_DIR")
