"""Venue Validator service module.

Validates venue and tour-stop payloads from the catalog before they become models.
"""

from .service import StopValidationResult, ValidationResult, VenueValidator

__all__ = [
    "StopValidationResult",
    "ValidationResult",
    "VenueValidator",
]
