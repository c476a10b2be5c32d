"""Unit tests for the tour-store collaborators."""

import datetime as dt
import json

import httpx
import pytest

from app.models import (
    ApplyConflictError,
    InvalidCoordinateError,
    TourNotFoundError,
    TourSnapshot,
    TourStoreError,
    TourVenueStatus,
    Venue,
)
from app.services.tour_store import HttpTourStore, InMemoryTourStore

from conftest import make_stop

TOUR_PAYLOAD = {
    "version": 5,
    "stops": [
        {
            "id": 100,
            "venueId": 1,
            "status": "CONFIRMED",
            "date": "2025-06-01T00:00:00Z",
            "sequence": 0,
            "venue": {"id": 1, "name": "Ogden Theatre", "city": "Denver", "latitude": 39.7392, "longitude": -104.9903},
        },
        {
            "id": 101,
            "venue_id": 2,
            "status": "booked",
            "date": "2025-06-08",
            "sequence": 1,
            "venue": {"id": 2, "name": "Metro", "coordinates": {"lat": 41.8781, "lng": -87.6298}},
        },
    ],
}


def store_with(handler) -> HttpTourStore:
    return HttpTourStore("http://tours.test/api", transport=httpx.MockTransport(handler))


class TestInMemoryTourStore:
    """Tests for the process-local store."""

    @pytest.mark.asyncio
    async def test_unknown_tour(self) -> None:
        with pytest.raises(TourNotFoundError):
            await InMemoryTourStore().get_tour_venues(1)

    @pytest.mark.asyncio
    async def test_snapshot_is_a_copy(self, tour: TourSnapshot) -> None:
        store = InMemoryTourStore(tours=[tour])
        snapshot = await store.get_tour_venues(7)
        snapshot.stops[0].notes = "changed"
        again = await store.get_tour_venues(7)
        assert again.stops[0].notes == ""

    @pytest.mark.asyncio
    async def test_stops_are_hydrated(self, denver: Venue) -> None:
        bare = TourSnapshot(tour_id=1, stops=[make_stop(denver).model_copy(update={"venue": None})])
        store = InMemoryTourStore(venues=[denver], tours=[bare])
        snapshot = await store.get_tour_venues(1)
        assert snapshot.stops[0].venue == denver

    @pytest.mark.asyncio
    async def test_pool_excludes_ids(self, pool: list[Venue]) -> None:
        store = InMemoryTourStore(venues=pool)
        result = await store.get_candidate_venue_pool({10})
        assert sorted(v.id for v in result.venues) == [11, 12]

    @pytest.mark.asyncio
    async def test_write_bumps_version(self, tour: TourSnapshot) -> None:
        store = InMemoryTourStore(tours=[tour])
        version = await store.write_tour_sequence(7, tour.stops[:1], expected_version=3)
        assert version == 4
        assert len((await store.get_tour_venues(7)).stops) == 1

    @pytest.mark.asyncio
    async def test_write_with_stale_version(self, tour: TourSnapshot) -> None:
        store = InMemoryTourStore(tours=[tour])
        with pytest.raises(ApplyConflictError):
            await store.write_tour_sequence(7, tour.stops, expected_version=2)


class TestHttpTourStore:
    """Tests for the REST client using httpx.MockTransport."""

    def test_default_initialization(self) -> None:
        store = HttpTourStore("http://tours.test/api/")
        assert store._base_url == "http://tours.test/api"
        assert store._timeout == 15.0

    @pytest.mark.asyncio
    async def test_get_tour_venues(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/tours/7/venues"
            return httpx.Response(200, json=TOUR_PAYLOAD)

        snapshot = await store_with(handler).get_tour_venues(7)
        assert snapshot.version == 5
        assert [s.venue_id for s in snapshot.stops] == [1, 2]
        assert snapshot.stops[0].status == TourVenueStatus.CONFIRMED
        assert snapshot.stops[0].date == dt.date(2025, 6, 1)
        assert snapshot.stops[1].coordinates.lat == pytest.approx(41.8781)

    @pytest.mark.asyncio
    async def test_tour_not_found(self) -> None:
        store = store_with(lambda request: httpx.Response(404))
        with pytest.raises(TourNotFoundError):
            await store.get_tour_venues(7)

    @pytest.mark.asyncio
    async def test_server_error(self) -> None:
        store = store_with(lambda request: httpx.Response(503))
        with pytest.raises(TourStoreError):
            await store.get_tour_venues(7)

    @pytest.mark.asyncio
    async def test_transport_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TourStoreError):
            await store_with(handler).get_tour_venues(7)

    @pytest.mark.asyncio
    async def test_invalid_stop_coordinates(self) -> None:
        payload = json.loads(json.dumps(TOUR_PAYLOAD))
        payload["stops"][0]["venue"]["latitude"] = 123.0
        store = store_with(lambda request: httpx.Response(200, json=payload))
        with pytest.raises(InvalidCoordinateError):
            await store.get_tour_venues(7)

    @pytest.mark.asyncio
    async def test_venue_pool_rejects_bad_rows(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["exclude"] == "1,2"
            return httpx.Response(200, json=[
                {"id": 10, "name": "The Truman", "lat": 39.0997, "lng": -94.5786},
                {"id": 11, "name": "Broken", "lat": 95.0, "lng": 0.0},
                {"id": 12, "name": "No location"},
            ])

        pool = await store_with(handler).get_candidate_venue_pool([2, 1])
        assert [v.id for v in pool.venues] == [10, 12]
        assert pool.rejected_ids == [11]

    @pytest.mark.asyncio
    async def test_write_sends_if_match(self, tour: TourSnapshot) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["if_match"] = request.headers["If-Match"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"version": 4})

        version = await store_with(handler).write_tour_sequence(7, tour.stops, 3)
        assert version == 4
        assert seen["method"] == "PUT"
        assert seen["if_match"] == "3"
        assert [s["venue_id"] for s in seen["body"]["stops"]] == [1, 2]
        assert "venue" not in seen["body"]["stops"][0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [409, 412])
    async def test_write_conflict(self, tour: TourSnapshot, status: int) -> None:
        store = store_with(lambda request: httpx.Response(status))
        with pytest.raises(ApplyConflictError):
            await store.write_tour_sequence(7, tour.stops, 3)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, text="<html>maintenance</html>"),
            httpx.Response(200, json="ok"),
            httpx.Response(200, json={"version": "four", "stops": []}),
            httpx.Response(200, json={"version": 1, "stops": ["not a stop"]}),
        ],
    )
    async def test_unreadable_tour_body(self, response: httpx.Response) -> None:
        store = store_with(lambda request: response)
        with pytest.raises(TourStoreError):
            await store.get_tour_venues(7)

    @pytest.mark.asyncio
    async def test_unreadable_venue_pool(self) -> None:
        store = store_with(lambda request: httpx.Response(200, text="<html></html>"))
        with pytest.raises(TourStoreError):
            await store.get_candidate_venue_pool([])

    @pytest.mark.asyncio
    async def test_venue_pool_skips_non_object_rows(self) -> None:
        store = store_with(lambda request: httpx.Response(200, json=[
            "junk",
            {"id": 10, "name": "The Truman", "lat": 39.0997, "lng": -94.5786},
        ]))
        pool = await store.get_candidate_venue_pool([])
        assert [v.id for v in pool.venues] == [10]
        assert pool.rejected_ids == [None]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, json=["ok"]),
            httpx.Response(200, text="done"),
            httpx.Response(204),
            httpx.Response(200, json={"status": "ok"}),
        ],
    )
    async def test_write_without_readable_version(self, tour: TourSnapshot, response: httpx.Response) -> None:
        store = store_with(lambda request: response)
        assert await store.write_tour_sequence(7, tour.stops, 3) == 4
