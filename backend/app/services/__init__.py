"""Tour Route Optimizer Services.

Service layer components:
- Cache: Redis-based result caching with in-memory LRU in front
- Venue Catalog: corridor lookup over the candidate venue pool
- Venue Validator: ingestion checks for catalog and tour payloads
- Tour Store: tour persistence collaborators (in-memory, REST)
- Tour Optimizer: anchors, gaps, candidates, sequencing, scoring
"""

from .cache import CachedOptimization, CacheService, OptimizationResultCache, RedisCacheService
from .venue_catalog import CatalogMatch, VenueCatalogIndex
from .venue_validator import StopValidationResult, ValidationResult, VenueValidator
from .tour_store import HttpTourStore, InMemoryTourStore, TourStore, VenuePool
from .tour_optimizer import (
    ApplyOutcome,
    OptimizationStage,
    OptimizeOutcome,
    TourOptimizerService,
    optimize_snapshot,
)

__all__ = [
    # Cache
    "CachedOptimization",
    "CacheService",
    "OptimizationResultCache",
    "RedisCacheService",
    # Venue catalog
    "CatalogMatch",
    "VenueCatalogIndex",
    # Venue validator
    "StopValidationResult",
    "ValidationResult",
    "VenueValidator",
    # Tour store
    "HttpTourStore",
    "InMemoryTourStore",
    "TourStore",
    "VenuePool",
    # Tour optimizer
    "ApplyOutcome",
    "OptimizationStage",
    "OptimizeOutcome",
    "TourOptimizerService",
    "optimize_snapshot",
]
