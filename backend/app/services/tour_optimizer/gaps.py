"""Gap detection between consecutive anchors."""

import logging

from app.models import Gap, GapReason, OptimizationOptions, TourVenueStop
from app.utils.geo import distance_km

logger = logging.getLogger(__name__)


def gap_id(start: TourVenueStop, end: TourVenueStop) -> str:
    return f"{start.venue_id}-{end.venue_id}-{start.date.isoformat()}"


def detect_gaps(anchors: list[TourVenueStop], options: OptimizationOptions) -> list[Gap]:
    """Flag anchor pairs with room for an extra show.

    A pair is a gap when it has at least `min_gap_days` between dates,
    whatever the distance. When `max_daily_travel_km` is set, a pair with
    at least two days whose distance per day exceeds it is flagged too,
    since a stop in between would split the drive.

    Pairs are independent: every qualifying pair yields its own gap, in
    anchor (date) order.
    """
    gaps: list[Gap] = []
    for start, end in zip(anchors, anchors[1:]):
        days_between = (end.date - start.date).days
        if days_between <= 0:
            continue

        distance = distance_km(start.coordinates, end.coordinates)
        daily_travel = distance / days_between

        reason = None
        if days_between >= options.min_gap_days:
            reason = GapReason.CALENDAR_ROOM
        elif (
            options.max_daily_travel_km is not None
            and days_between >= 2
            and daily_travel > options.max_daily_travel_km
        ):
            reason = GapReason.TRAVEL_BURDEN

        if reason is None:
            continue

        gaps.append(Gap(
            id=gap_id(start, end),
            start_venue_id=start.venue_id,
            end_venue_id=end.venue_id,
            start_date=start.date,
            end_date=end.date,
            start_coordinates=start.coordinates,
            end_coordinates=end.coordinates,
            days_between=days_between,
            straight_line_distance_km=distance,
            daily_travel_km=daily_travel,
            reason=reason,
        ))

    logger.info(f"[GAPS] {len(gaps)} gaps across {len(anchors) - 1} anchor pairs")
    return gaps
