"""Data models for the tour route optimizer."""

from .core import (
    ANCHOR_STATUSES,
    EXCLUDED_STATUSES,
    AppliedTour,
    CandidateSuggestion,
    Coordinates,
    DateRange,
    FixedPoint,
    Gap,
    GapReason,
    OptimizationOptions,
    OptimizationResult,
    SequencedStop,
    StopSource,
    SuggestionPriority,
    TourMetrics,
    TourSnapshot,
    TourVenueStatus,
    TourVenueStop,
    UnknownAvailability,
    Venue,
)
from .errors import (
    AppError,
    ApplyConflictError,
    DeadlineExceededError,
    ErrorCode,
    InsufficientAnchorsError,
    InvalidCoordinateError,
    InvalidSelectionError,
    MalformedAvailabilityError,
    RecoveryOption,
    TourNotFoundError,
    TourOptimizationError,
    TourStoreError,
    Warning,
)

__all__ = [
    "ANCHOR_STATUSES",
    "EXCLUDED_STATUSES",
    "AppliedTour",
    "CandidateSuggestion",
    "Coordinates",
    "DateRange",
    "FixedPoint",
    "Gap",
    "GapReason",
    "OptimizationOptions",
    "OptimizationResult",
    "SequencedStop",
    "StopSource",
    "SuggestionPriority",
    "TourMetrics",
    "TourSnapshot",
    "TourVenueStatus",
    "TourVenueStop",
    "UnknownAvailability",
    "Venue",
    "AppError",
    "ApplyConflictError",
    "DeadlineExceededError",
    "ErrorCode",
    "InsufficientAnchorsError",
    "InvalidCoordinateError",
    "InvalidSelectionError",
    "MalformedAvailabilityError",
    "RecoveryOption",
    "TourNotFoundError",
    "TourOptimizationError",
    "TourStoreError",
    "Warning",
]
