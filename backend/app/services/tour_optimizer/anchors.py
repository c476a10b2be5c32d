"""Anchor extraction: the dated, immovable stops of a tour."""

import logging

from app.models import (
    ANCHOR_STATUSES,
    FixedPoint,
    InsufficientAnchorsError,
    TourVenueStop,
)

logger = logging.getLogger(__name__)

MIN_ANCHORS = 2


def is_anchor(stop: TourVenueStop) -> bool:
    """Anchor statuses, a date, and a venue with coordinates."""
    return (
        stop.status in ANCHOR_STATUSES
        and stop.date is not None
        and stop.coordinates is not None
    )


def _anchor_sort_key(stop: TourVenueStop) -> tuple:
    # Same-day anchors fall back to stored sequence, then venue id
    has_sequence = stop.sequence is not None
    return (stop.date, not has_sequence, stop.sequence or 0, stop.venue_id)


def extract_anchors(stops: list[TourVenueStop]) -> list[TourVenueStop]:
    """Select anchors and sort them chronologically.

    Raises:
        InsufficientAnchorsError: If fewer than two stops qualify.
    """
    anchors = sorted((s for s in stops if is_anchor(s)), key=_anchor_sort_key)
    logger.info(f"[ANCHORS] {len(anchors)} of {len(stops)} stops are anchors")
    if len(anchors) < MIN_ANCHORS:
        raise InsufficientAnchorsError(len(anchors))
    return anchors


def naive_anchor_order(stops: list[TourVenueStop]) -> list[TourVenueStop]:
    """Anchors in the tour's stored (unoptimized) order.

    Stored `sequence` wins; stops without one keep the store's list order
    after the sequenced ones.
    """
    indexed = [(i, s) for i, s in enumerate(stops) if is_anchor(s)]
    indexed.sort(key=lambda pair: (pair[1].sequence is None, pair[1].sequence or 0, pair[0]))
    return [s for _, s in indexed]


def to_fixed_points(anchors: list[TourVenueStop]) -> list[FixedPoint]:
    return [
        FixedPoint(
            stop_id=a.id,
            venue_id=a.venue_id,
            name=a.venue.name if a.venue else f"Venue {a.venue_id}",
            date=a.date,
            status=a.status,
            coordinates=a.coordinates,
        )
        for a in anchors
    ]


def shared_date_venue_ids(anchors: list[TourVenueStop]) -> list[int]:
    """Venue ids of anchors that share a date with their predecessor."""
    return [
        anchors[i].venue_id
        for i in range(1, len(anchors))
        if anchors[i].date == anchors[i - 1].date
    ]
