"""Venue Catalog Index: in-memory corridor lookup over the candidate pool.

Built once per optimization run from the venue pool. Lookups are a single
vectorised scan over the pool (O(venues) per query): at tour scale there
are tens to hundreds of candidates, so no spatial index is needed.
"""

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np
from numpy.typing import NDArray

from app.models import (
    Coordinates,
    MalformedAvailabilityError,
    UnknownAvailability,
    Venue,
    Warning,
)
from app.utils.geo import distance_km, haversine_to_many

logger = logging.getLogger(__name__)

# Absorbs float noise when a venue sits exactly on the detour ceiling
_DETOUR_EPSILON_KM = 1e-9


@dataclass
class CatalogMatch:
    """A venue that fits a corridor, with its detour geometry."""
    venue: Venue
    distance_from_start_km: float
    distance_to_end_km: float
    added_distance_km: float


def check_availability(venue: Venue) -> None:
    """Raise MalformedAvailabilityError if any published range is inverted."""
    for window in venue.available_dates or []:
        if window.end < window.start:
            raise MalformedAvailabilityError(
                venue.id, f"availability range {window.start} > {window.end}"
            )


class VenueCatalogIndex:
    """Immutable lookup over venues that have coordinates."""

    def __init__(
        self,
        venues: Iterable[Venue],
        exclude_ids: Iterable[int] = (),
        unknown_availability: UnknownAvailability = UnknownAvailability.ASSUME_AVAILABLE,
    ) -> None:
        excluded = set(exclude_ids)
        self._unknown_availability = unknown_availability
        self._venues: list[Venue] = sorted(
            (v for v in venues if v.coordinates is not None and v.id not in excluded),
            key=lambda v: v.id,
        )
        self._lats: NDArray[np.float64] = np.array(
            [v.coordinates.lat for v in self._venues], dtype=np.float64
        )
        self._lngs: NDArray[np.float64] = np.array(
            [v.coordinates.lng for v in self._venues], dtype=np.float64
        )

    def __len__(self) -> int:
        return len(self._venues)

    @property
    def venues(self) -> list[Venue]:
        return list(self._venues)

    def is_available(self, venue: Venue, start: dt.date, end: dt.date) -> bool:
        """Whether the venue can host a show on some day in [start, end].

        Venues without published availability follow the configured policy.
        """
        if venue.available_dates is None:
            return self._unknown_availability == UnknownAvailability.ASSUME_AVAILABLE
        check_availability(venue)
        return any(window.overlaps(start, end) for window in venue.available_dates)

    def available_days(self, venue: Venue, start: dt.date, end: dt.date) -> list[dt.date]:
        """Every day in [start, end] the venue can host a show."""
        days = []
        day = start
        while day <= end:
            if venue.available_dates is None or any(
                window.contains(day) for window in venue.available_dates
            ):
                days.append(day)
            day += dt.timedelta(days=1)
        return days

    def find_near(
        self,
        corridor_start: Coordinates,
        corridor_end: Coordinates,
        max_detour_km: float,
        date_window: Optional[tuple[dt.date, dt.date]] = None,
        warnings: Optional[list[Warning]] = None,
    ) -> list[CatalogMatch]:
        """Venues whose insertion between start and end adds at most max_detour_km.

        Added distance is dist(start, v) + dist(v, end) - dist(start, end).
        When a date window is given, venues must also be available inside it.
        A venue with malformed availability is skipped and a warning recorded.
        """
        if not self._venues:
            return []

        direct = distance_km(corridor_start, corridor_end)
        from_start = haversine_to_many(corridor_start.lat, corridor_start.lng, self._lats, self._lngs)
        to_end = haversine_to_many(corridor_end.lat, corridor_end.lng, self._lats, self._lngs)
        added = np.maximum(from_start + to_end - direct, 0.0)

        matches = []
        for idx in np.flatnonzero(added <= max_detour_km + _DETOUR_EPSILON_KM):
            venue = self._venues[idx]
            if date_window is not None:
                try:
                    if not self.is_available(venue, *date_window):
                        continue
                except MalformedAvailabilityError as exc:
                    logger.warning(f"[MATCH] Skipping venue {venue.id}: {exc}")
                    if warnings is not None:
                        warnings.append(Warning(
                            code="MALFORMED_AVAILABILITY",
                            message=str(exc),
                            affected_venue_ids=[venue.id],
                        ))
                    continue
            matches.append(CatalogMatch(
                venue=venue,
                distance_from_start_km=float(from_start[idx]),
                distance_to_end_km=float(to_end[idx]),
                added_distance_km=float(added[idx]),
            ))
        return matches
