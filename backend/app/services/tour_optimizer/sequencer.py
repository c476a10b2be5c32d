"""Sequencer: merge anchors, dated stops, accepted suggestions and floating stops.

Anchors keep their chronological order and are never moved relative to each
other; every other stop is inserted between them:

1. Dated stops (accepted suggestions, and non-anchor stops that carry a
   date) go into the stretch of the route their date belongs to, at the
   cheapest position inside that stretch.
2. Floating stops (no date) use cheapest insertion over every position,
   including before the first and after the last stop. Each round places the
   floating stop with the smallest marginal distance; ties go to the lower
   venue id.
"""

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from app.models import (
    EXCLUDED_STATUSES,
    CandidateSuggestion,
    Coordinates,
    OptimizationOptions,
    SequencedStop,
    StopSource,
    TourVenueStatus,
    TourVenueStop,
)
from app.utils.geo import distance_km, distance_matrix, estimated_travel_time_minutes

logger = logging.getLogger(__name__)


@dataclass
class SequenceNode:
    """A stop being placed, independent of where it came from."""
    venue_id: int
    coordinates: Coordinates
    status: TourVenueStatus
    source: StopSource
    date: Optional[dt.date] = None
    stop_id: Optional[int] = None
    name: str = ""
    suggestion_id: Optional[str] = None

    @classmethod
    def from_stop(cls, stop: TourVenueStop, source: StopSource) -> "SequenceNode":
        return cls(
            venue_id=stop.venue_id,
            coordinates=stop.coordinates,
            status=stop.status,
            source=source,
            date=stop.date,
            stop_id=stop.id,
            name=stop.venue.name if stop.venue else "",
        )

    @classmethod
    def from_suggestion(
        cls,
        suggestion: CandidateSuggestion,
        status: TourVenueStatus = TourVenueStatus.SUGGESTED,
    ) -> "SequenceNode":
        return cls(
            venue_id=suggestion.venue.id,
            coordinates=suggestion.venue.coordinates,
            status=status,
            source=StopSource.CANDIDATE,
            date=suggestion.suggested_date,
            name=suggestion.venue.name,
            suggestion_id=suggestion.id,
        )

    @property
    def is_fixed(self) -> bool:
        return self.source == StopSource.ANCHOR


@dataclass
class DistanceMatrix:
    """Pairwise distances between every node that may be placed."""
    nodes: list[SequenceNode]
    distances: NDArray[np.float64]

    @classmethod
    def build(cls, nodes: list[SequenceNode]) -> "DistanceMatrix":
        return cls(nodes=nodes, distances=distance_matrix([n.coordinates for n in nodes]))


def insertion_cost(route: list[int], distances: NDArray[np.float64], node: int, position: int) -> float:
    """Marginal distance of inserting `node` before route[position]."""
    if not route:
        return 0.0
    if position == 0:
        return float(distances[node][route[0]])
    if position == len(route):
        return float(distances[route[-1]][node])
    prev, nxt = route[position - 1], route[position]
    return float(distances[prev][node] + distances[node][nxt] - distances[prev][nxt])


def _date_bounds(route: list[int], nodes: list[SequenceNode], day: dt.date) -> tuple[int, int]:
    """Positions [lo, hi] where a stop dated `day` may go without breaking date order."""
    lo, hi = 0, len(route)
    for pos, idx in enumerate(route):
        node_date = nodes[idx].date
        if node_date is None:
            continue
        if node_date <= day:
            lo = pos + 1
        elif hi == len(route):
            hi = pos
    return lo, max(lo, hi)


def classify_stops(
    stops: list[TourVenueStop],
    anchors: list[TourVenueStop],
) -> tuple[list[TourVenueStop], list[TourVenueStop], list[int]]:
    """Split non-anchor stops into (dated, floating, unplaced venue ids)."""
    anchor_ids = {id(a) for a in anchors}
    dated, floating, unplaced = [], [], []
    for stop in stops:
        if id(stop) in anchor_ids or stop.status in EXCLUDED_STATUSES:
            continue
        if stop.coordinates is None:
            unplaced.append(stop.venue_id)
        elif stop.date is None:
            floating.append(stop)
        else:
            dated.append(stop)
    return dated, floating, sorted(unplaced)


def sequence_tour(
    anchors: list[TourVenueStop],
    stops: list[TourVenueStop],
    accepted: list[CandidateSuggestion],
    options: OptimizationOptions,
    accepted_status: TourVenueStatus = TourVenueStatus.SUGGESTED,
) -> tuple[list[SequencedStop], list[int]]:
    """Build the final ordered tour.

    Only suggestions passed in `accepted` are inserted; nothing is
    auto-accepted. Returns the sequenced stops (sequence 0..N-1) and the
    venue ids of stops that could not be placed because they have no
    coordinates.
    """
    dated_stops, floating_stops, unplaced = classify_stops(stops, anchors)

    nodes = [SequenceNode.from_stop(a, StopSource.ANCHOR) for a in anchors]
    dated_nodes = [SequenceNode.from_suggestion(s, accepted_status) for s in accepted]
    dated_nodes += [SequenceNode.from_stop(s, StopSource.DATED) for s in dated_stops]
    floating_nodes = [SequenceNode.from_stop(s, StopSource.FLOATING) for s in floating_stops]

    first_dated = len(nodes)
    nodes += dated_nodes
    first_floating = len(nodes)
    nodes += floating_nodes

    matrix = DistanceMatrix.build(nodes)
    route = list(range(first_dated))

    for idx in sorted(range(first_dated, first_floating), key=lambda i: (nodes[i].date, nodes[i].venue_id)):
        lo, hi = _date_bounds(route, nodes, nodes[idx].date)
        best = min(range(lo, hi + 1), key=lambda p: (insertion_cost(route, matrix.distances, idx, p), p))
        route.insert(best, idx)

    remaining = set(range(first_floating, len(nodes)))
    while remaining:
        cost, _, idx, position = min(
            (insertion_cost(route, matrix.distances, i, p), nodes[i].venue_id, i, p)
            for i in remaining
            for p in range(len(route) + 1)
        )
        logger.debug(f"[SEQUENCE] Floating venue {nodes[idx].venue_id} at {position} (+{cost:.1f} km)")
        route.insert(position, idx)
        remaining.discard(idx)

    logger.info(
        f"[SEQUENCE] {len(route)} stops: {len(anchors)} anchors, {len(dated_nodes)} dated, "
        f"{len(floating_nodes)} floating, {len(unplaced)} unplaced"
    )
    return build_sequence([nodes[i] for i in route], options), unplaced


def build_sequence(ordered: list[SequenceNode], options: OptimizationOptions) -> list[SequencedStop]:
    """Number nodes 0..N-1 and annotate each with its leg from the previous stop."""
    if not ordered:
        return []
    result = []
    for position, node in enumerate(ordered):
        leg = distance_km(ordered[position - 1].coordinates, node.coordinates) if position > 0 else 0.0
        result.append(SequencedStop(
            venue_id=node.venue_id,
            stop_id=node.stop_id,
            name=node.name,
            date=node.date,
            status=node.status,
            sequence=position,
            coordinates=node.coordinates,
            is_fixed=node.is_fixed,
            source=node.source,
            suggestion_id=node.suggestion_id,
            travel_distance_from_previous_km=leg,
            travel_time_from_previous_minutes=estimated_travel_time_minutes(
                leg, options.average_speed_kmh, options.travel_buffer_factor
            ),
        ))
    return result
