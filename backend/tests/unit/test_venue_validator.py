"""Unit tests for the venue validator.

Tests VenueValidator against dashboard (camelCase) and catalog (snake_case) payloads.
"""

import datetime as dt

import pytest

from app.models import Coordinates, TourVenueStatus, Venue
from app.services.venue_validator import (
    StopValidationResult,
    ValidationResult,
    VenueValidator,
)


class TestValidationResult:
    """Tests for ValidationResult dataclass."""

    def test_valid_result(self) -> None:
        venue = Venue(id=1, name="Metro", coordinates=Coordinates(lat=41.8781, lng=-87.6298))
        result = ValidationResult(is_valid=True, missing_fields=[], venue=venue)
        assert result.is_valid is True
        assert result.missing_fields == []
        assert result.venue is not None
        assert result.has_invalid_coordinates is False

    def test_invalid_result(self) -> None:
        result = ValidationResult(is_valid=False, missing_fields=["id", "lat"])
        assert result.is_valid is False
        assert result.venue is None
        assert result.has_invalid_coordinates is True


class TestVenueValidation:
    """Tests for venue validation logic."""

    def setup_method(self) -> None:
        self.validator = VenueValidator()

    def test_validate_valid_venue(self) -> None:
        venue_data = {
            "id": 2,
            "name": "Metro",
            "city": "Chicago",
            "coordinates": {"lat": 41.8781, "lng": -87.6298},
            "capacity": 1100,
        }
        result = self.validator.validate_venue(venue_data)
        assert result.is_valid is True
        assert result.missing_fields == []
        assert result.venue.id == 2
        assert result.venue.coordinates.lng == pytest.approx(-87.6298)

    def test_validate_dashboard_keys(self) -> None:
        venue_data = {"id": "2", "name": "Metro", "latitude": "41.8781", "longitude": -87.6298}
        result = self.validator.validate_venue(venue_data)
        assert result.is_valid is True
        assert result.venue.id == 2
        assert result.venue.coordinates.lat == pytest.approx(41.8781)

    def test_venue_without_location_is_valid(self) -> None:
        result = self.validator.validate_venue({"id": 3, "name": "TBD"})
        assert result.is_valid is True
        assert result.venue.coordinates is None

    def test_validate_venue_missing_id(self) -> None:
        result = self.validator.validate_venue({"name": "Metro", "lat": 41.8, "lng": -87.6})
        assert result.is_valid is False
        assert "id" in result.missing_fields

    def test_validate_venue_non_numeric_id(self) -> None:
        result = self.validator.validate_venue({"id": "abc", "name": "Metro"})
        assert result.is_valid is False
        assert "id" in result.missing_fields

    def test_validate_venue_empty_name(self) -> None:
        result = self.validator.validate_venue({"id": 1, "name": "   "})
        assert result.is_valid is False
        assert "name" in result.missing_fields

    def test_validate_venue_missing_lat(self) -> None:
        result = self.validator.validate_venue({"id": 1, "name": "Metro", "coordinates": {"lng": -87.6}})
        assert result.is_valid is False
        assert "lat" in result.missing_fields

    def test_validate_venue_missing_lng(self) -> None:
        result = self.validator.validate_venue({"id": 1, "name": "Metro", "coordinates": {"lat": 41.8}})
        assert result.is_valid is False
        assert "lng" in result.missing_fields

    @pytest.mark.parametrize(
        "lat,lng,field",
        [(91.0, 0.0, "lat"), (-91.0, 0.0, "lat"), (0.0, 181.0, "lng"), (0.0, -181.0, "lng"), ("north", 0.0, "lat")],
    )
    def test_validate_venue_out_of_range(self, lat, lng, field: str) -> None:
        result = self.validator.validate_venue({"id": 1, "name": "X", "coordinates": {"lat": lat, "lng": lng}})
        assert result.is_valid is False
        assert field in result.missing_fields
        assert result.has_invalid_coordinates is True

    def test_validate_venue_multiple_missing_fields(self) -> None:
        result = self.validator.validate_venue({"coordinates": {"lat": 200}})
        assert result.is_valid is False
        assert "id" in result.missing_fields
        assert "name" in result.missing_fields
        assert "lat" in result.missing_fields
        assert "lng" in result.missing_fields

    def test_validate_venue_boundary_values(self) -> None:
        venue_data = {"id": 1, "name": "North Pole", "coordinates": {"lat": 90.0, "lng": 180.0}}
        assert self.validator.validate_venue(venue_data).is_valid is True

        venue_data["coordinates"] = {"lat": -90.0, "lng": -180.0}
        assert self.validator.validate_venue(venue_data).is_valid is True

    def test_availability_ranges_and_single_days(self) -> None:
        venue_data = {
            "id": 1,
            "name": "Metro",
            "availableDates": [
                {"startDate": "2025-06-02", "endDate": "2025-06-04"},
                "2025-06-10",
            ],
        }
        result = self.validator.validate_venue(venue_data)
        assert result.is_valid is True
        ranges = result.venue.available_dates
        assert ranges[0].start == dt.date(2025, 6, 2)
        assert ranges[1].start == ranges[1].end == dt.date(2025, 6, 10)

    def test_bad_availability(self) -> None:
        result = self.validator.validate_venue({"id": 1, "name": "Metro", "available_dates": ["June"]})
        assert result.is_valid is False
        assert "available_dates" in result.missing_fields


class TestStopValidation:
    """Tests for tour-stop validation."""

    def setup_method(self) -> None:
        self.validator = VenueValidator()

    def test_valid_stop(self) -> None:
        result = self.validator.validate_stop({
            "id": 100,
            "venueId": 1,
            "status": "HOLD2",
            "date": "2025-06-01",
            "venue": {"id": 1, "name": "Ogden Theatre", "lat": 39.7392, "lng": -104.9903},
        })
        assert isinstance(result, StopValidationResult)
        assert result.is_valid is True
        assert result.stop.status == TourVenueStatus.HOLD2
        assert result.stop.date == dt.date(2025, 6, 1)
        assert result.stop.coordinates is not None

    def test_status_defaults_to_potential(self) -> None:
        result = self.validator.validate_stop({"venue_id": 1})
        assert result.is_valid is True
        assert result.stop.status == TourVenueStatus.POTENTIAL
        assert result.stop.date is None

    def test_unknown_status(self) -> None:
        result = self.validator.validate_stop({"venue_id": 1, "status": "maybe"})
        assert result.is_valid is False
        assert "status" in result.missing_fields

    def test_bad_date(self) -> None:
        result = self.validator.validate_stop({"venue_id": 1, "date": "soon"})
        assert result.is_valid is False
        assert "date" in result.missing_fields

    def test_invalid_embedded_venue(self) -> None:
        result = self.validator.validate_stop({
            "venue_id": 1,
            "venue": {"id": 1, "name": "Ogden", "lat": 99.0, "lng": 0.0},
        })
        assert result.is_valid is False
        assert "venue.lat" in result.missing_fields
        assert result.venue_result.has_invalid_coordinates is True
