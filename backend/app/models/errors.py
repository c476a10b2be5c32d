"""Error and warning models.

`AppError` and `Warning` are the typed payloads returned to callers.
The exception classes are raised inside the engine and the tour-store
collaborators; the orchestrator converts them into `AppError`s so nothing
is thrown across its boundary.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Error codes surfaced to the calling layer."""

    INVALID_COORDINATE = "INVALID_COORDINATE"
    INSUFFICIENT_ANCHORS = "INSUFFICIENT_ANCHORS"
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"
    APPLY_CONFLICT = "APPLY_CONFLICT"
    INVALID_SELECTION = "INVALID_SELECTION"
    TOUR_NOT_FOUND = "TOUR_NOT_FOUND"
    STORE_ERROR = "STORE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    API_ERROR = "API_ERROR"


class RecoveryOption(BaseModel):
    """A follow-up action the UI can offer."""

    label: str
    action: str


class AppError(BaseModel):
    """Typed error returned instead of raising."""

    code: ErrorCode
    message: str = Field(..., description="Developer-facing detail")
    user_message: str = Field(..., description="Message safe to show in the UI")
    recovery_options: list[RecoveryOption] = Field(default_factory=list)


class Warning(BaseModel):
    """Non-fatal condition recorded during a run."""

    code: str
    message: str
    affected_venue_ids: list[int] = Field(default_factory=list)


class TourOptimizationError(Exception):
    """Base class for engine and collaborator errors."""

    code: ErrorCode = ErrorCode.API_ERROR
    user_message: str = "Something went wrong while optimizing the tour."

    def to_app_error(self, recovery_options: Optional[list[RecoveryOption]] = None) -> AppError:
        return AppError(
            code=self.code,
            message=str(self),
            user_message=self.user_message,
            recovery_options=recovery_options or [],
        )


class InvalidCoordinateError(TourOptimizationError, ValueError):
    code = ErrorCode.INVALID_COORDINATE
    user_message = "A venue in this tour has an invalid location. Please fix its coordinates."


class InsufficientAnchorsError(TourOptimizationError):
    code = ErrorCode.INSUFFICIENT_ANCHORS
    user_message = "Add more confirmed dates before optimizing."

    def __init__(self, found: int) -> None:
        super().__init__(f"At least 2 dated anchors are required, found {found}")
        self.found = found


class DeadlineExceededError(TourOptimizationError):
    code = ErrorCode.DEADLINE_EXCEEDED
    user_message = "Optimization took too long. Please try again."


class ApplyConflictError(TourOptimizationError):
    code = ErrorCode.APPLY_CONFLICT
    user_message = (
        "This tour was changed by someone else. Your optimization is still "
        "available; reload and apply it again."
    )


class InvalidSelectionError(TourOptimizationError, ValueError):
    code = ErrorCode.INVALID_SELECTION
    user_message = "The selected venues or order can't be applied to this tour."


class TourNotFoundError(TourOptimizationError):
    code = ErrorCode.TOUR_NOT_FOUND
    user_message = "We couldn't find that tour."


class TourStoreError(TourOptimizationError):
    code = ErrorCode.STORE_ERROR
    user_message = "The tour data service is unavailable. Please try again."


class MalformedAvailabilityError(TourOptimizationError, ValueError):
    code = ErrorCode.VALIDATION_ERROR
    user_message = "A venue published invalid availability dates."

    def __init__(self, venue_id: int, detail: str) -> None:
        super().__init__(f"Venue {venue_id}: {detail}")
        self.venue_id = venue_id
