"""Route metrics and the 0-100 optimization score.

score = distance_weight * 100 * (1 - min(1, total / naive))
      + coverage_weight * 100 * gap_coverage_ratio

`naive` is the anchors-only distance in the tour's stored order; the
coverage ratio is the share of gaps with at least one suggestion scoring at
or above the coverage threshold.
"""

import datetime as dt
import logging

from app.models import (
    CandidateSuggestion,
    Coordinates,
    Gap,
    OptimizationOptions,
    SequencedStop,
    TourMetrics,
    TourVenueStop,
)
from app.utils.geo import distance_km, estimated_travel_time_minutes, path_distance_km

logger = logging.getLogger(__name__)

# Baseline ("initial") score parameters
INITIAL_BASE_SCORE = 70
INITIAL_MIN_SCORE = 30
INITIAL_SPARSE_SCORE = 40
INITIAL_MAX_PENALTY = 40
INITIAL_DISTANCE_PENALTY_CAP = 20
INITIAL_DISTANCE_PENALTY_KM = 150
BACKTRACK_RATIO = 1.5
BACKTRACK_PENALTY = 5
LONG_GAP_DAYS = 7
LONG_GAP_PENALTY_PER_DAY = 1.5
LONG_GAP_PENALTY_CAP = 10
TIGHT_HOP_KM = 50
TIGHT_HOP_PENALTY = 5
UNDATED_PENALTY = 3
UNDATED_PENALTY_CAP = 15


def total_distance_km(sequence: list[SequencedStop]) -> float:
    return path_distance_km([s.coordinates for s in sequence])


def total_travel_time_minutes(points: list[Coordinates], options: OptimizationOptions) -> float:
    return sum(
        estimated_travel_time_minutes(
            distance_km(points[i], points[i + 1]),
            options.average_speed_kmh,
            options.travel_buffer_factor,
        )
        for i in range(len(points) - 1)
    )


def naive_distance_km(naive_anchors: list[TourVenueStop]) -> float:
    return path_distance_km([a.coordinates for a in naive_anchors])


def gap_coverage_ratio(
    gaps: list[Gap],
    potential_fill_venues: dict[str, list[CandidateSuggestion]],
    threshold: float,
) -> float:
    """Share of gaps with a suggestion scoring >= threshold.

    A tour without gaps has nothing left to fill and counts as fully covered.
    """
    if not gaps:
        return 1.0
    covered = sum(
        1 for gap in gaps
        if any(s.match_score >= threshold for s in potential_fill_venues.get(gap.id, []))
    )
    return covered / len(gaps)


def optimization_score(
    total_km: float,
    naive_km: float,
    coverage: float,
    options: OptimizationOptions,
) -> float:
    efficiency = 0.0 if naive_km <= 0 else 1.0 - min(1.0, total_km / naive_km)
    score = (
        options.distance_weight * 100 * efficiency
        + options.coverage_weight * 100 * coverage
    )
    return min(100.0, max(0.0, score))


def score_initial_tour(stops: list[TourVenueStop], options: OptimizationOptions) -> TourMetrics:
    """Baseline metrics for the tour as currently stored, before optimization.

    Stops with coordinates are walked in date order (stored sequence when
    dates are missing) and penalised for distance, backtracking, long idle
    gaps, tight long hops and undated stops.
    """
    located = [s for s in stops if s.coordinates is not None]
    located.sort(key=lambda s: (s.date is None, s.date or dt.date.min, s.sequence or 0))

    if len(located) < 2:
        return TourMetrics(
            total_distance_km=0.0,
            total_travel_time_minutes=0.0,
            optimization_score=float(INITIAL_SPARSE_SCORE),
        )

    points = [s.coordinates for s in located]
    total_km = path_distance_km(points)
    travel_minutes = total_travel_time_minutes(points, options)

    route_penalty = 0.0
    schedule_penalty = 0.0
    for i in range(len(located) - 1):
        current, nxt = located[i], located[i + 1]
        leg = distance_km(current.coordinates, nxt.coordinates)

        if i > 0:
            prev = located[i - 1]
            skip = distance_km(prev.coordinates, nxt.coordinates)
            routed = distance_km(prev.coordinates, current.coordinates) + leg
            if skip > 0 and routed / skip > BACKTRACK_RATIO:
                route_penalty += BACKTRACK_PENALTY

        if current.date and nxt.date:
            days = (nxt.date - current.date).days
            if days > LONG_GAP_DAYS:
                schedule_penalty += min(
                    LONG_GAP_PENALTY_CAP, (days - LONG_GAP_DAYS) * LONG_GAP_PENALTY_PER_DAY
                )
            if days < 1 and leg > TIGHT_HOP_KM:
                schedule_penalty += TIGHT_HOP_PENALTY

    undated_penalty = min(UNDATED_PENALTY_CAP, sum(UNDATED_PENALTY for s in stops if s.date is None))
    distance_penalty = min(INITIAL_DISTANCE_PENALTY_CAP, total_km / INITIAL_DISTANCE_PENALTY_KM)
    penalty = min(
        INITIAL_MAX_PENALTY,
        distance_penalty + schedule_penalty + route_penalty + undated_penalty,
    )
    score = max(INITIAL_MIN_SCORE, round(INITIAL_BASE_SCORE - penalty))

    return TourMetrics(
        total_distance_km=total_km,
        total_travel_time_minutes=travel_minutes,
        optimization_score=float(score),
    )
