"""Environment-driven defaults for the tour optimizer.

Values are read once at import time. Every optimization call still receives
its own OptimizationOptions object; these are only the defaults it starts from.
"""

import os

from dotenv import load_dotenv

try:
    load_dotenv()
except Exception:
    pass  # Python 3.14+ compat


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


# ── Engine defaults ──
MIN_GAP_DAYS: int = _env_int("TOUR_OPT_MIN_GAP_DAYS", 3)
DETOUR_FACTOR: float = _env_float("TOUR_OPT_DETOUR_FACTOR", 0.5)
MAX_SUGGESTIONS_PER_GAP: int = _env_int("TOUR_OPT_MAX_SUGGESTIONS_PER_GAP", 3)
AVERAGE_SPEED_KMH: float = _env_float("TOUR_OPT_AVERAGE_SPEED_KMH", 80.0)
DISTANCE_WEIGHT: float = _env_float("TOUR_OPT_DISTANCE_WEIGHT", 0.7)
COVERAGE_WEIGHT: float = _env_float("TOUR_OPT_COVERAGE_WEIGHT", 0.3)
COVERAGE_MATCH_THRESHOLD: float = _env_float("TOUR_OPT_COVERAGE_MATCH_THRESHOLD", 50.0)
UNKNOWN_AVAILABILITY: str = os.getenv("TOUR_OPT_UNKNOWN_AVAILABILITY", "assume_available")
PARALLEL_THRESHOLD: int = _env_int("TOUR_OPT_PARALLEL_THRESHOLD", 200)

# ── Collaborators ──
TOUR_STORE_URL: str = os.getenv("TOUR_STORE_URL", "")
TOUR_STORE_TIMEOUT: float = _env_float("TOUR_STORE_TIMEOUT", 15.0)
REDIS_URL: str = os.getenv("REDIS_URL", "")
OPTIMIZATION_CACHE_TTL: int = _env_int("OPTIMIZATION_CACHE_TTL", 3600)  # 1 hour

# ── HTTP API ──
# Comma-separated origins allowed to call the API (the tour dashboard)
CORS_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5000").split(",")
    if origin.strip()
]
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
