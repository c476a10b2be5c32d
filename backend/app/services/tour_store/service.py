"""Tour-store collaborators.

The optimizer never owns persistence. It reads a tour's stops and the
candidate venue pool through a TourStore and hands the applied sequence
back to it. Writes are serialised per tour with an optimistic version
check; a stale version surfaces as ApplyConflictError.

Implementations:
- InMemoryTourStore: process-local store (tests, demos)
- HttpTourStore:     REST client for the dashboard's tour API
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

import httpx

from app.models import (
    ApplyConflictError,
    InvalidCoordinateError,
    TourNotFoundError,
    TourSnapshot,
    TourStoreError,
    TourVenueStop,
    Venue,
)
from app.services.venue_validator import VenueValidator

logger = logging.getLogger(__name__)


@dataclass
class VenuePool:
    """Candidate venues plus the ids rejected at ingestion."""
    venues: list[Venue]
    rejected_ids: list[Any] = field(default_factory=list)


class TourStore(ABC):
    """Abstract base class for tour persistence."""

    @abstractmethod
    async def get_tour_venues(self, tour_id: int) -> TourSnapshot:
        """Read a tour's stops with their venues hydrated.

        Raises:
            TourNotFoundError: If the tour does not exist.
        """
        pass

    @abstractmethod
    async def get_candidate_venue_pool(self, exclude_ids: Iterable[int]) -> VenuePool:
        """Read every catalog venue except the given ids."""
        pass

    @abstractmethod
    async def write_tour_sequence(
        self, tour_id: int, stops: list[TourVenueStop], expected_version: int
    ) -> int:
        """Replace a tour's stops atomically and return the new version.

        Raises:
            ApplyConflictError: If the tour changed since `expected_version`.
            TourNotFoundError: If the tour does not exist.
        """
        pass


class InMemoryTourStore(TourStore):
    """Process-local tour store with per-tour write locks."""

    def __init__(
        self,
        venues: Iterable[Venue] = (),
        tours: Iterable[TourSnapshot] = (),
    ) -> None:
        self._venues: dict[int, Venue] = {v.id: v for v in venues}
        self._tours: dict[int, TourSnapshot] = {t.tour_id: t for t in tours}
        self._locks: dict[int, asyncio.Lock] = {}

    def add_venue(self, venue: Venue) -> None:
        self._venues[venue.id] = venue

    def add_tour(self, snapshot: TourSnapshot) -> None:
        self._tours[snapshot.tour_id] = snapshot

    def _hydrate(self, stop: TourVenueStop) -> TourVenueStop:
        if stop.venue is not None:
            return stop
        return stop.model_copy(update={"venue": self._venues.get(stop.venue_id)})

    async def get_tour_venues(self, tour_id: int) -> TourSnapshot:
        snapshot = self._tours.get(tour_id)
        if snapshot is None:
            raise TourNotFoundError(f"Tour {tour_id} not found")
        # Callers get their own copy so a run never sees later writes
        return TourSnapshot(
            tour_id=snapshot.tour_id,
            version=snapshot.version,
            stops=[self._hydrate(s.model_copy(deep=True)) for s in snapshot.stops],
        )

    async def get_candidate_venue_pool(self, exclude_ids: Iterable[int]) -> VenuePool:
        excluded = set(exclude_ids)
        return VenuePool(venues=[v for v in self._venues.values() if v.id not in excluded])

    async def write_tour_sequence(
        self, tour_id: int, stops: list[TourVenueStop], expected_version: int
    ) -> int:
        lock = self._locks.setdefault(tour_id, asyncio.Lock())
        async with lock:
            current = self._tours.get(tour_id)
            if current is None:
                raise TourNotFoundError(f"Tour {tour_id} not found")
            if current.version != expected_version:
                raise ApplyConflictError(
                    f"Tour {tour_id} is at version {current.version}, expected {expected_version}"
                )
            new_version = current.version + 1
            self._tours[tour_id] = TourSnapshot(
                tour_id=tour_id,
                version=new_version,
                stops=[s.model_copy(deep=True) for s in stops],
            )
            logger.info(f"[STORE] Tour {tour_id} written: {len(stops)} stops, version {new_version}")
            return new_version


class HttpTourStore(TourStore):
    """REST client for the dashboard's tour API.

    Endpoints:
    - GET  /tours/{id}/venues         -> {"version": int, "stops": [...]}
    - GET  /venues?exclude=1,2,3      -> [venue, ...]
    - PUT  /tours/{id}/sequence       (If-Match: version) -> {"version": int}
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._validator = VenueValidator()

    def _client(self) -> httpx.AsyncClient:
        # Fresh client per call to avoid connection pool issues
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
            headers={"User-Agent": "TourRouteOptimizer/0.1"},
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise TourStoreError(f"{method} {path} failed: {exc}") from exc
        return response

    @staticmethod
    def _json(response: httpx.Response, what: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise TourStoreError(f"{what} returned a body that is not JSON") from exc

    async def get_tour_venues(self, tour_id: int) -> TourSnapshot:
        response = await self._request("GET", f"/tours/{tour_id}/venues")
        if response.status_code == 404:
            raise TourNotFoundError(f"Tour {tour_id} not found")
        if response.is_error:
            raise TourStoreError(f"GET tour {tour_id} returned {response.status_code}")

        data = self._json(response, f"GET tour {tour_id}")
        if isinstance(data, list):
            version, raw_stops = 0, data
        elif isinstance(data, dict):
            try:
                version = int(data.get("version", 0))
            except (TypeError, ValueError) as exc:
                raise TourStoreError(f"Tour {tour_id} has an invalid version") from exc
            raw_stops = data.get("stops", [])
        else:
            raise TourStoreError(f"GET tour {tour_id} returned an unexpected payload")
        if not isinstance(raw_stops, list) or not all(isinstance(r, dict) for r in raw_stops):
            raise TourStoreError(f"GET tour {tour_id} returned malformed stops")

        stops = []
        for raw in raw_stops:
            result = self._validator.validate_stop(raw)
            if result.is_valid:
                stops.append(result.stop)
                continue
            if result.venue_result is not None and result.venue_result.has_invalid_coordinates:
                raise InvalidCoordinateError(
                    f"Tour {tour_id} venue {raw.get('venueId', raw.get('venue_id'))} "
                    f"has invalid coordinates"
                )
            raise TourStoreError(
                f"Tour {tour_id} stop {raw.get('id')} is invalid: {', '.join(result.missing_fields)}"
            )

        logger.info(f"[STORE] Tour {tour_id}: {len(stops)} stops at version {version}")
        return TourSnapshot(tour_id=tour_id, version=version, stops=stops)

    async def get_candidate_venue_pool(self, exclude_ids: Iterable[int]) -> VenuePool:
        params = {}
        excluded = sorted(set(exclude_ids))
        if excluded:
            params["exclude"] = ",".join(str(i) for i in excluded)

        response = await self._request("GET", "/venues", params=params)
        if response.is_error:
            raise TourStoreError(f"GET venues returned {response.status_code}")

        data = self._json(response, "GET venues")
        if not isinstance(data, list):
            raise TourStoreError("GET venues returned an unexpected payload")

        pool = VenuePool(venues=[])
        for raw in data:
            if not isinstance(raw, dict):
                logger.info(f"[STORE] Rejected venue row of type {type(raw).__name__}")
                pool.rejected_ids.append(None)
                continue
            result = self._validator.validate_venue(raw)
            if result.is_valid and result.venue.id not in excluded:
                pool.venues.append(result.venue)
            elif not result.is_valid:
                logger.info(f"[STORE] Rejected venue {raw.get('id')}: {result.missing_fields}")
                pool.rejected_ids.append(raw.get("id"))
        return pool

    async def write_tour_sequence(
        self, tour_id: int, stops: list[TourVenueStop], expected_version: int
    ) -> int:
        payload = {
            "stops": [s.model_dump(mode="json", exclude={"venue"}) for s in stops],
        }
        response = await self._request(
            "PUT",
            f"/tours/{tour_id}/sequence",
            json=payload,
            headers={"If-Match": str(expected_version)},
        )
        if response.status_code in (409, 412):
            raise ApplyConflictError(f"Tour {tour_id} changed since version {expected_version}")
        if response.status_code == 404:
            raise TourNotFoundError(f"Tour {tour_id} not found")
        if response.is_error:
            raise TourStoreError(f"PUT tour {tour_id} returned {response.status_code}")

        # The write has committed; an unreadable body only loses the version number
        try:
            body = response.json() if response.content else {}
            return int(body["version"])
        except (ValueError, TypeError, KeyError) as exc:
            logger.info(f"[STORE] Tour {tour_id} written, no version in response ({exc!r})")
            return expected_version + 1
