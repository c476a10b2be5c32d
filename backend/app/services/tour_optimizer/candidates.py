"""Candidate matching: rank pool venues that can fill each gap.

For a gap between anchors A and B:
- date window is [A.date + 1, B.date - 1]
- a venue may add at most dist(A, B) * detour_factor to the hop
- detour_ratio = added / dist(A, B); match_score = 100 * (1 - detour_ratio)
- the suggested date is the most centred day of the window the venue can play
"""

import datetime as dt
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from app.models import (
    CandidateSuggestion,
    Gap,
    OptimizationOptions,
    SuggestionPriority,
    Warning,
)
from app.services.venue_catalog import VenueCatalogIndex

logger = logging.getLogger(__name__)

# Deviation percent upper bounds for each hold tier
PRIORITY_TIERS = [
    (10.0, SuggestionPriority.HOLD1),
    (20.0, SuggestionPriority.HOLD2),
    (40.0, SuggestionPriority.HOLD3),
    (100.0, SuggestionPriority.HOLD4),
]
_TIER_ORDER = [
    SuggestionPriority.HOLD1,
    SuggestionPriority.HOLD2,
    SuggestionPriority.HOLD3,
    SuggestionPriority.HOLD4,
    SuggestionPriority.POTENTIAL,
]
# A lone suggestion for a gap this long is promoted one tier
LONG_GAP_DAYS = 5
_MAX_WORKERS = 4


def priority_for(detour_ratio: float) -> SuggestionPriority:
    deviation = detour_ratio * 100
    for upper, tier in PRIORITY_TIERS:
        if deviation < upper:
            return tier
    return SuggestionPriority.POTENTIAL


def promote(priority: SuggestionPriority) -> SuggestionPriority:
    """One tier up, never above hold1."""
    idx = _TIER_ORDER.index(priority)
    return _TIER_ORDER[max(0, idx - 1)]


def gap_window(gap: Gap) -> Optional[tuple[dt.date, dt.date]]:
    """Days strictly between the two anchors, or None if there are none."""
    start = gap.start_date + dt.timedelta(days=1)
    end = gap.end_date - dt.timedelta(days=1)
    if start > end:
        return None
    return start, end


def choose_suggested_date(gap: Gap, candidate_days: list[dt.date]) -> Optional[dt.date]:
    """Day minimising |days since start - days until end|, earliest on ties."""
    if not candidate_days:
        return None

    def imbalance(day: dt.date) -> tuple[int, dt.date]:
        since_start = (day - gap.start_date).days
        until_end = (gap.end_date - day).days
        return abs(since_start - until_end), day

    return min(candidate_days, key=imbalance)


def match_gap(
    gap: Gap,
    index: VenueCatalogIndex,
    options: OptimizationOptions,
    warnings: Optional[list[Warning]] = None,
) -> list[CandidateSuggestion]:
    """Ranked fill-venue suggestions for one gap. An empty list is a valid outcome."""
    window = gap_window(gap)
    if window is None or options.max_suggestions_per_gap == 0:
        return []

    direct = gap.straight_line_distance_km
    max_detour = direct * options.detour_factor
    matches = index.find_near(
        gap.start_coordinates, gap.end_coordinates, max_detour, window, warnings
    )

    suggestions: list[CandidateSuggestion] = []
    for match in matches:
        days = index.available_days(match.venue, *window)
        suggested_date = choose_suggested_date(gap, days)
        if suggested_date is None:
            continue

        ratio = match.added_distance_km / direct if direct > 0 else 0.0
        ratio = min(max(ratio, 0.0), options.detour_factor)
        score = min(100.0, max(0.0, 100.0 * (1.0 - ratio)))

        suggestions.append(CandidateSuggestion(
            id=f"{gap.id}:{match.venue.id}",
            gap_id=gap.id,
            venue=match.venue,
            suggested_date=suggested_date,
            detour_ratio=ratio,
            match_score=score,
            added_distance_km=match.added_distance_km,
            distance_from_start_km=match.distance_from_start_km,
            distance_to_end_km=match.distance_to_end_km,
            priority=priority_for(ratio),
        ))

    suggestions.sort(key=lambda s: (-s.match_score, s.venue.id))
    suggestions = suggestions[: options.max_suggestions_per_gap]

    if gap.days_between >= LONG_GAP_DAYS and len(suggestions) == 1:
        suggestions[0].priority = promote(suggestions[0].priority)

    logger.info(
        f"[MATCH] Gap {gap.id}: {len(matches)} in corridor, {len(suggestions)} suggested"
    )
    return suggestions


def match_gaps(
    gaps: list[Gap],
    index: VenueCatalogIndex,
    options: OptimizationOptions,
    warnings: Optional[list[Warning]] = None,
) -> dict[str, list[CandidateSuggestion]]:
    """Match every gap, keyed by gap id in gap start-date order.

    Large pools are matched in parallel; gaps are independent and results
    are re-assembled in the input order.
    """
    ordered = sorted(gaps, key=lambda g: (g.start_date, g.id))
    # One warning list per gap, merged below in gap order
    per_gap: list[list[Warning]] = [[] for _ in ordered]

    def run(position: int) -> list[CandidateSuggestion]:
        return match_gap(ordered[position], index, options, per_gap[position])

    if len(ordered) > 1 and len(index) >= options.parallel_threshold:
        logger.info(f"[MATCH] Matching {len(ordered)} gaps in parallel over {len(index)} venues")
        with ThreadPoolExecutor(max_workers=min(_MAX_WORKERS, len(ordered))) as pool:
            results = list(pool.map(run, range(len(ordered))))
    else:
        results = [run(i) for i in range(len(ordered))]

    if warnings is not None:
        for gap_warnings in per_gap:
            warnings.extend(gap_warnings)

    return {gap.id: suggestions for gap, suggestions in zip(ordered, results)}
