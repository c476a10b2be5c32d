"""Great-circle distance and travel-time helpers.

All distances are in kilometres on a mean Earth radius of 6371 km.
Travel time is a coarse linear model (distance / average speed), not a
traffic-aware estimate.
"""

import math
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from app.models import Coordinates, InvalidCoordinateError

EARTH_RADIUS_KM = 6371.0
DEFAULT_AVERAGE_SPEED_KMH = 80.0
KM_PER_MILE = 1.609344


def validate_coordinates(lat: float, lng: float) -> None:
    """Raise InvalidCoordinateError if lat/lng fall outside their ranges."""
    if lat is None or lng is None:
        raise InvalidCoordinateError(f"Missing coordinate ({lat}, {lng})")
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise InvalidCoordinateError(f"Non-finite coordinate ({lat}, {lng})")
    if not -90 <= lat <= 90:
        raise InvalidCoordinateError(f"Latitude {lat} outside [-90, 90]")
    if not -180 <= lng <= 180:
        raise InvalidCoordinateError(f"Longitude {lng} outside [-180, 180]")


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Calculate the great-circle distance between two points in kilometres."""
    validate_coordinates(lat1, lng1)
    validate_coordinates(lat2, lng2)

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    # Rounding can push `a` marginally above 1 for antipodal points
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_km(a: Coordinates, b: Coordinates) -> float:
    """Haversine distance between two coordinates.

    Symmetric, and zero for identical points.
    """
    return haversine_distance(a.lat, a.lng, b.lat, b.lng)


def haversine_to_many(
    lat: float, lng: float, lats: NDArray[np.float64], lngs: NDArray[np.float64]
) -> NDArray[np.float64]:
    """Vectorised haversine from one point to an array of points (km)."""
    validate_coordinates(lat, lng)
    phi1 = np.radians(lat)
    phi2 = np.radians(lats)
    d_phi = phi2 - phi1
    d_lambda = np.radians(lngs - lng)
    a = np.sin(d_phi / 2) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(d_lambda / 2) ** 2
    a = np.clip(a, 0.0, 1.0)
    return EARTH_RADIUS_KM * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def distance_matrix(points: Sequence[Coordinates]) -> NDArray[np.float64]:
    """Symmetric pairwise distance matrix in km."""
    n = len(points)
    matrix = np.zeros((n, n), dtype=np.float64)
    for i in range(n):
        for j in range(i + 1, n):
            d = distance_km(points[i], points[j])
            matrix[i][j] = d
            matrix[j][i] = d
    return matrix


def estimated_travel_time_minutes(
    distance: float,
    average_speed_kmh: float = DEFAULT_AVERAGE_SPEED_KMH,
    buffer_factor: float = 1.0,
) -> float:
    """Estimate driving time in minutes for a distance in km.

    `buffer_factor` inflates the estimate for rest stops and traffic.
    """
    if average_speed_kmh <= 0:
        raise ValueError("average_speed_kmh must be positive")
    return distance / average_speed_kmh * 60 * buffer_factor


def path_distance_km(points: Sequence[Coordinates]) -> float:
    """Sum of consecutive-pair distances along a path."""
    return sum(distance_km(points[i], points[i + 1]) for i in range(len(points) - 1))


def km_to_miles(km: float) -> float:
    return km / KM_PER_MILE


def miles_to_km(miles: float) -> float:
    return miles * KM_PER_MILE


def format_distance(km: float) -> str:
    """Format a distance for display ("850 m", "12.3 km")."""
    if km < 1:
        return f"{round(km * 1000)} m"
    return f"{km:.1f} km"
