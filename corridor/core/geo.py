import math
from decimal import Decimal, ROUND_HALF_UP

EARTH_RADIUS_KM = 6371.0
MINUTES_PER_DAY = 1440


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two coordinates (haversine)."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def to_minutes(clock: str) -> int:
    h, m = clock.split(":")
    return int(h) * 60 + int(m)


def from_minutes(total: int) -> str:
    # wraps at midnight; the day count is dropped, see day_offset()
    total = int(total) % MINUTES_PER_DAY
    return f"{total // 60:02d}:{total % 60:02d}"


def day_offset(total: int) -> int:
    return int(total) // MINUTES_PER_DAY


def round_half_up(x: float) -> int:
    return int(Decimal(str(x)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def hop_minutes(a, b, speed: float, safety_margin: int) -> int:
    """Scheduled minutes for one hop between two stations (anything with lat/lng)."""
    km = distance_km(a.lat, a.lng, b.lat, b.lng)
    return round_half_up(km / speed * 60) + int(safety_margin)


def segment_key(a: str, b: str) -> str:
    # undirected: A|B and B|A are the same track
    return f"{a}|{b}" if a < b else f"{b}|{a}"
