"""Shared fixtures: a small Midwest tour and its candidate venue pool."""

import datetime as dt

import pytest

from app.models import (
    Coordinates,
    TourSnapshot,
    TourVenueStatus,
    TourVenueStop,
    Venue,
)

DENVER = Coordinates(lat=39.7392, lng=-104.9903)
CHICAGO = Coordinates(lat=41.8781, lng=-87.6298)
KANSAS_CITY = Coordinates(lat=39.0997, lng=-94.5786)
OMAHA = Coordinates(lat=41.2565, lng=-95.9345)
ST_LOUIS = Coordinates(lat=38.6270, lng=-90.1994)
MIAMI = Coordinates(lat=25.7617, lng=-80.1918)


def make_venue(venue_id: int, name: str, coordinates: Coordinates | None, **kwargs) -> Venue:
    return Venue(id=venue_id, name=name, coordinates=coordinates, **kwargs)


def make_stop(
    venue: Venue,
    status: TourVenueStatus = TourVenueStatus.CONFIRMED,
    date: dt.date | None = None,
    **kwargs,
) -> TourVenueStop:
    return TourVenueStop(venue_id=venue.id, venue=venue, status=status, date=date, **kwargs)


@pytest.fixture
def denver() -> Venue:
    return make_venue(1, "Ogden Theatre", DENVER, city="Denver")


@pytest.fixture
def chicago() -> Venue:
    return make_venue(2, "Metro", CHICAGO, city="Chicago")


@pytest.fixture
def kansas_city() -> Venue:
    return make_venue(10, "The Truman", KANSAS_CITY, city="Kansas City")


@pytest.fixture
def omaha() -> Venue:
    return make_venue(11, "The Waiting Room", OMAHA, city="Omaha")


@pytest.fixture
def miami() -> Venue:
    return make_venue(12, "Gramps", MIAMI, city="Miami")


@pytest.fixture
def pool(kansas_city: Venue, omaha: Venue, miami: Venue) -> list[Venue]:
    return [kansas_city, omaha, miami]


@pytest.fixture
def tour(denver: Venue, chicago: Venue) -> TourSnapshot:
    """Denver on June 1st, Chicago on June 8th: one seven-day gap."""
    return TourSnapshot(
        tour_id=7,
        version=3,
        stops=[
            make_stop(denver, date=dt.date(2025, 6, 1), id=100, sequence=0),
            make_stop(chicago, status=TourVenueStatus.BOOKED, date=dt.date(2025, 6, 8), id=101, sequence=1),
        ],
    )
