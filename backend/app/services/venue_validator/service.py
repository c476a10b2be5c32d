"""Ingestion validation for venue and tour-stop payloads.

Catalog and tour data come from scraper-fed, best-effort sources. Payloads
are checked here before they become models so that malformed coordinates
never reach distance math. Both the dashboard's camelCase keys
(`latitude`, `venueId`, `availableDates`) and snake_case keys are accepted.
"""

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import ValidationError

from app.models import (
    Coordinates,
    DateRange,
    TourVenueStatus,
    TourVenueStop,
    Venue,
)

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of venue validation."""
    is_valid: bool
    missing_fields: list[str]
    venue: Optional[Venue] = None

    @property
    def has_invalid_coordinates(self) -> bool:
        return "lat" in self.missing_fields or "lng" in self.missing_fields


@dataclass
class StopValidationResult:
    """Result of tour-stop validation."""
    is_valid: bool
    missing_fields: list[str] = field(default_factory=list)
    stop: Optional[TourVenueStop] = None
    venue_result: Optional[ValidationResult] = None


def _pick(data: dict, *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _parse_date(value: Any) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    return dt.date.fromisoformat(str(value)[:10])


class VenueValidator:
    """Validates raw venue and tour-stop dictionaries."""

    def _coordinates(self, data: dict, missing_fields: list[str]) -> Optional[Coordinates]:
        coords = data.get("coordinates")
        if isinstance(coords, dict):
            lat, lng = coords.get("lat"), coords.get("lng")
        else:
            lat = _pick(data, "latitude", "lat")
            lng = _pick(data, "longitude", "lng")

        # No location at all is allowed; the venue just can't be routed
        if lat is None and lng is None:
            return None

        try:
            lat_f = float(lat) if lat is not None else None
        except (TypeError, ValueError):
            lat_f = None
        try:
            lng_f = float(lng) if lng is not None else None
        except (TypeError, ValueError):
            lng_f = None

        if lat_f is None or not (-90 <= lat_f <= 90):
            missing_fields.append("lat")
        if lng_f is None or not (-180 <= lng_f <= 180):
            missing_fields.append("lng")
        if "lat" in missing_fields or "lng" in missing_fields:
            return None
        return Coordinates(lat=lat_f, lng=lng_f)

    def _availability(self, data: dict, missing_fields: list[str]) -> Optional[list[DateRange]]:
        raw = _pick(data, "available_dates", "availableDates")
        if raw is None:
            return None
        if not isinstance(raw, list):
            missing_fields.append("available_dates")
            return None
        ranges = []
        try:
            for entry in raw:
                if isinstance(entry, dict):
                    start = _pick(entry, "start", "startDate", "start_date")
                    end = _pick(entry, "end", "endDate", "end_date")
                else:
                    # A bare date string means a single available day
                    start = end = entry
                if start is None or end is None:
                    raise ValueError(f"incomplete range {entry!r}")
                ranges.append(DateRange(start=_parse_date(start), end=_parse_date(end)))
        except (TypeError, ValueError) as exc:
            logger.info(f"[VALIDATE] Bad availability for venue {data.get('id')}: {exc}")
            missing_fields.append("available_dates")
            return None
        return ranges

    def validate_venue(self, data: dict) -> ValidationResult:
        """Validate venue has required fields and sane coordinates."""
        missing_fields: list[str] = []

        venue_id = data.get("id")
        if venue_id is None or isinstance(venue_id, bool):
            missing_fields.append("id")
        else:
            try:
                venue_id = int(venue_id)
            except (TypeError, ValueError):
                missing_fields.append("id")

        name = data.get("name")
        if not name or not str(name).strip():
            missing_fields.append("name")

        coordinates = self._coordinates(data, missing_fields)
        available_dates = self._availability(data, missing_fields)

        is_valid = len(missing_fields) == 0
        validated_venue = None

        if is_valid:
            try:
                validated_venue = Venue(
                    id=venue_id,
                    name=str(name).strip(),
                    city=str(data.get("city") or ""),
                    region=data.get("region"),
                    country=data.get("country"),
                    coordinates=coordinates,
                    capacity=data.get("capacity"),
                    available_dates=available_dates,
                )
            except ValidationError:
                is_valid = False
                missing_fields.append("validation_error")

        return ValidationResult(is_valid=is_valid, missing_fields=missing_fields, venue=validated_venue)

    def validate_stop(self, data: dict) -> StopValidationResult:
        """Validate a tour-stop payload, including its embedded venue if present."""
        missing_fields: list[str] = []

        venue_id = _pick(data, "venue_id", "venueId")
        try:
            venue_id = int(venue_id)
        except (TypeError, ValueError):
            missing_fields.append("venue_id")

        status_raw = data.get("status") or TourVenueStatus.POTENTIAL.value
        try:
            status = TourVenueStatus(str(status_raw).lower())
        except ValueError:
            missing_fields.append("status")
            status = None

        stop_date = None
        raw_date = data.get("date")
        if raw_date:
            try:
                stop_date = _parse_date(raw_date)
            except (TypeError, ValueError):
                missing_fields.append("date")

        venue_result = None
        venue = None
        raw_venue = data.get("venue")
        if isinstance(raw_venue, dict):
            venue_result = self.validate_venue(raw_venue)
            if venue_result.is_valid:
                venue = venue_result.venue
            else:
                missing_fields.extend(f"venue.{f}" for f in venue_result.missing_fields)

        if missing_fields:
            return StopValidationResult(
                is_valid=False, missing_fields=missing_fields, venue_result=venue_result
            )

        try:
            stop = TourVenueStop(
                id=data.get("id"),
                venue_id=venue_id,
                venue=venue,
                status=status,
                date=stop_date,
                sequence=data.get("sequence"),
                notes=data.get("notes") or "",
            )
        except ValidationError:
            return StopValidationResult(
                is_valid=False, missing_fields=["validation_error"], venue_result=venue_result
            )
        return StopValidationResult(is_valid=True, stop=stop, venue_result=venue_result)
