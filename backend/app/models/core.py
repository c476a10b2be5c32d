"""Core data models for the tour route optimizer.

This module contains the Pydantic models shared by the optimization engine,
the tour-store collaborators and the API layer: coordinates, venues, tour
stops, gaps, fill-venue suggestions and the optimization result.
"""

import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from app import config


class Coordinates(BaseModel):
    """Geographic coordinates with validation.

    Latitude must be between -90 and 90 degrees.
    Longitude must be between -180 and 180 degrees.
    """

    lat: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    lng: float = Field(..., ge=-180, le=180, description="Longitude in degrees")


class TourVenueStatus(str, Enum):
    """Lifecycle status of a venue within a tour."""

    POTENTIAL = "potential"
    SUGGESTED = "suggested"
    CONTACTED = "contacted"
    NEGOTIATING = "negotiating"
    HOLD1 = "hold1"
    HOLD2 = "hold2"
    HOLD3 = "hold3"
    HOLD4 = "hold4"
    PLANNING = "planning"
    BOOKED = "booked"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


# Statuses whose dated stops are immovable anchors
ANCHOR_STATUSES = frozenset(
    {TourVenueStatus.CONFIRMED, TourVenueStatus.BOOKED, TourVenueStatus.PLANNING}
)

# Statuses that never take part in sequencing
EXCLUDED_STATUSES = frozenset({TourVenueStatus.CANCELLED})


class UnknownAvailability(str, Enum):
    """How venues that publish no availability are treated."""

    ASSUME_AVAILABLE = "assume_available"
    EXCLUDE = "exclude"


class GapReason(str, Enum):
    """Why a pair of anchors was flagged as a gap."""

    CALENDAR_ROOM = "calendar_room"
    TRAVEL_BURDEN = "travel_burden"


class SuggestionPriority(str, Enum):
    """Hold tier for a fill-venue suggestion, best first."""

    HOLD1 = "hold1"
    HOLD2 = "hold2"
    HOLD3 = "hold3"
    HOLD4 = "hold4"
    POTENTIAL = "potential"


class StopSource(str, Enum):
    """Where a sequenced stop came from."""

    ANCHOR = "anchor"
    DATED = "dated"
    CANDIDATE = "candidate"
    FLOATING = "floating"


class DateRange(BaseModel):
    """Inclusive range of dates a venue can host a show.

    Ranges are not checked for ordering here; an inverted range is treated
    as malformed availability when it is evaluated.
    """

    start: dt.date
    end: dt.date

    def overlaps(self, start: dt.date, end: dt.date) -> bool:
        return self.start <= end and start <= self.end

    def contains(self, day: dt.date) -> bool:
        return self.start <= day <= self.end


class Venue(BaseModel):
    """A venue from the external catalog.

    Venues without coordinates are kept but excluded from geographic reasoning.
    `available_dates` is None when the venue publishes no availability.
    """

    id: int = Field(..., description="Catalog identifier")
    name: str = Field(..., min_length=1, description="Display name of the venue")
    city: str = Field(default="", description="City the venue is in")
    region: Optional[str] = Field(None, description="State/province/region")
    country: Optional[str] = Field(None, description="Country code")
    coordinates: Optional[Coordinates] = Field(None, description="Geographic location")
    capacity: Optional[int] = Field(None, ge=0, description="Audience capacity")
    available_dates: Optional[list[DateRange]] = Field(
        None, description="Date ranges the venue can host a show"
    )


class TourVenueStop(BaseModel):
    """A venue's participation in a specific tour."""

    id: Optional[int] = Field(None, description="Tour-venue row identifier")
    venue_id: int = Field(..., description="Referenced venue id")
    venue: Optional[Venue] = Field(None, description="Hydrated venue record")
    status: TourVenueStatus = Field(
        default=TourVenueStatus.POTENTIAL, description="Lifecycle status"
    )
    date: Optional[dt.date] = Field(None, description="Show date, if fixed")
    sequence: Optional[int] = Field(None, ge=0, description="Position in the tour")
    notes: str = Field(default="", description="Free-text notes")
    travel_distance_from_previous_km: Optional[float] = Field(
        None, ge=0, description="Distance from the previous stop in km"
    )
    travel_time_from_previous_minutes: Optional[float] = Field(
        None, ge=0, description="Travel time from the previous stop in minutes"
    )

    @property
    def coordinates(self) -> Optional[Coordinates]:
        return self.venue.coordinates if self.venue else None


class TourSnapshot(BaseModel):
    """One tour's stops as read from the tour store."""

    tour_id: int
    version: int = Field(default=0, description="Optimistic concurrency token")
    stops: list[TourVenueStop] = Field(default_factory=list)


class OptimizationOptions(BaseModel):
    """Per-call optimization settings.

    Defaults come from the environment (see app.config) but each call owns
    its own instance.
    """

    min_gap_days: int = Field(default=config.MIN_GAP_DAYS, ge=1)
    detour_factor: float = Field(default=config.DETOUR_FACTOR, ge=0)
    max_suggestions_per_gap: int = Field(default=config.MAX_SUGGESTIONS_PER_GAP, ge=0)
    average_speed_kmh: float = Field(default=config.AVERAGE_SPEED_KMH, gt=0)
    travel_buffer_factor: float = Field(
        default=1.0, ge=1.0, description="Multiplier for rest stops and traffic"
    )
    max_daily_travel_km: Optional[float] = Field(
        None, gt=0, description="Flag pairs whose daily travel exceeds this"
    )
    distance_weight: float = Field(default=config.DISTANCE_WEIGHT, ge=0, le=1)
    coverage_weight: float = Field(default=config.COVERAGE_WEIGHT, ge=0, le=1)
    coverage_match_threshold: float = Field(
        default=config.COVERAGE_MATCH_THRESHOLD, ge=0, le=100
    )
    unknown_availability: UnknownAvailability = Field(
        default=UnknownAvailability(config.UNKNOWN_AVAILABILITY)
    )
    parallel_threshold: int = Field(
        default=config.PARALLEL_THRESHOLD,
        ge=1,
        description="Candidate pool size above which gaps are matched in parallel",
    )


class Gap(BaseModel):
    """A calendar interval between two consecutive anchors."""

    id: str = Field(..., description="Stable key: start-end-startDate")
    start_venue_id: int
    end_venue_id: int
    start_date: dt.date
    end_date: dt.date
    start_coordinates: Coordinates
    end_coordinates: Coordinates
    days_between: int = Field(..., ge=0)
    straight_line_distance_km: float = Field(..., ge=0)
    daily_travel_km: float = Field(..., ge=0, description="Distance per available day")
    reason: GapReason = GapReason.CALENDAR_ROOM


class CandidateSuggestion(BaseModel):
    """A venue proposed to fill a gap."""

    id: str = Field(..., description="Stable key: gapId:venueId")
    gap_id: str
    venue: Venue
    suggested_date: dt.date
    detour_ratio: float = Field(..., ge=0)
    match_score: float = Field(..., ge=0, le=100)
    added_distance_km: float = Field(..., ge=0)
    distance_from_start_km: float = Field(..., ge=0)
    distance_to_end_km: float = Field(..., ge=0)
    priority: SuggestionPriority = SuggestionPriority.POTENTIAL


class FixedPoint(BaseModel):
    """An anchor annotated for display."""

    stop_id: Optional[int] = None
    venue_id: int
    name: str
    date: dt.date
    status: TourVenueStatus
    coordinates: Coordinates


class SequencedStop(BaseModel):
    """One position in the final ordered tour."""

    venue_id: int
    stop_id: Optional[int] = None
    name: str = ""
    date: Optional[dt.date] = None
    status: TourVenueStatus
    sequence: int = Field(..., ge=0)
    coordinates: Coordinates
    is_fixed: bool = False
    source: StopSource
    suggestion_id: Optional[str] = None
    travel_distance_from_previous_km: float = Field(default=0.0, ge=0)
    travel_time_from_previous_minutes: float = Field(default=0.0, ge=0)


class TourMetrics(BaseModel):
    """Distance, travel time and score for one ordering of a tour."""

    total_distance_km: float = Field(..., ge=0)
    total_travel_time_minutes: float = Field(..., ge=0)
    optimization_score: float = Field(..., ge=0, le=100)


class OptimizationResult(BaseModel):
    """Transient output of one optimization run."""

    tour_id: int
    tour_version: int = 0
    fixed_points: list[FixedPoint] = Field(default_factory=list)
    gaps: list[Gap] = Field(default_factory=list)
    potential_fill_venues: dict[str, list[CandidateSuggestion]] = Field(
        default_factory=dict, description="Suggestions keyed by gap id"
    )
    sequence: list[SequencedStop] = Field(default_factory=list)
    unplaced_venue_ids: list[int] = Field(
        default_factory=list, description="Stops that could not be placed geographically"
    )
    total_distance_km: float = Field(..., ge=0)
    total_travel_time_minutes: float = Field(..., ge=0)
    naive_distance_km: float = Field(..., ge=0)
    gap_coverage_ratio: float = Field(..., ge=0, le=1)
    optimization_score: float = Field(..., ge=0, le=100)
    initial_metrics: Optional[TourMetrics] = None

    def find_suggestion(self, suggestion_id: str) -> Optional[CandidateSuggestion]:
        for suggestions in self.potential_fill_venues.values():
            for suggestion in suggestions:
                if suggestion.id == suggestion_id:
                    return suggestion
        return None


class AppliedTour(BaseModel):
    """A tour after its sequence was written back to the store."""

    tour_id: int
    version: int
    stops: list[TourVenueStop]
    total_distance_km: float = Field(..., ge=0)
    total_travel_time_minutes: float = Field(..., ge=0)
    optimization_score: Optional[float] = Field(None, ge=0, le=100)
