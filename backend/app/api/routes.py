"""API routes for the Tour Route Optimizer.

- POST /tours/{tour_id}/optimize: compute gaps, suggestions, sequence and score
- POST /tours/{tour_id}/apply: persist accepted suggestions and the chosen order
- GET  /tours/{tour_id}/score: baseline metrics of the tour as stored

Optimization results are cached per (tour, options) for an hour. A hit is
only served while the tour is still at the version it was computed at, and the
tour's entries are dropped after every successful apply.
"""

from typing import Optional
import logging

from fastapi import APIRouter
from pydantic import BaseModel, Field

from app import config
from app.models import (
    AppError,
    AppliedTour,
    OptimizationOptions,
    OptimizationResult,
    RecoveryOption,
    TourMetrics,
    TourOptimizationError,
    Warning,
)
from app.services import (
    CachedOptimization,
    HttpTourStore,
    InMemoryTourStore,
    OptimizationResultCache,
    RedisCacheService,
    TourOptimizerService,
    TourStore,
)
from app.services.tour_optimizer.scoring import score_initial_tour

logger = logging.getLogger(__name__)

router = APIRouter()


# Request/Response models
class OptimizeTourRequest(BaseModel):
    """Request model for optimizing a tour."""
    options: OptimizationOptions = Field(default_factory=OptimizationOptions)
    deadline_seconds: Optional[float] = Field(None, gt=0, description="Abort the run after this long")
    use_cache: bool = True


class OptimizeTourResponse(BaseModel):
    """Response model for tour optimization."""
    success: bool
    result: Optional[OptimizationResult] = None
    error: Optional[AppError] = None
    warnings: Optional[list[Warning]] = None
    cached: bool = False


class ApplyOptimizationRequest(BaseModel):
    """Request model for applying an optimization."""
    accepted_suggestion_ids: list[str] = Field(default_factory=list)
    final_sequence: Optional[list[int]] = Field(
        None, description="Venue ids in the order to persist"
    )
    options: OptimizationOptions = Field(default_factory=OptimizationOptions)
    result: Optional[OptimizationResult] = Field(
        None, description="Result being applied; looked up in the cache when omitted"
    )


class ApplyOptimizationResponse(BaseModel):
    """Response model for applying an optimization."""
    success: bool
    applied: Optional[AppliedTour] = None
    error: Optional[AppError] = None


class TourScoreResponse(BaseModel):
    """Response model for the baseline tour score."""
    success: bool
    metrics: Optional[TourMetrics] = None
    error: Optional[AppError] = None


# Service instances
_tour_store: TourStore | None = None
_optimizer_service: TourOptimizerService | None = None
_result_cache: OptimizationResultCache | None = None


def get_tour_store() -> TourStore:
    global _tour_store
    if _tour_store is None:
        if config.TOUR_STORE_URL:
            _tour_store = HttpTourStore(config.TOUR_STORE_URL, timeout=config.TOUR_STORE_TIMEOUT)
        else:
            logger.info("[STORE] TOUR_STORE_URL not set, using in-memory tour store")
            _tour_store = InMemoryTourStore()
    return _tour_store


def get_optimizer_service() -> TourOptimizerService:
    global _optimizer_service
    if _optimizer_service is None:
        _optimizer_service = TourOptimizerService(get_tour_store())
    return _optimizer_service


def get_result_cache() -> OptimizationResultCache:
    global _result_cache
    if _result_cache is None:
        shared = RedisCacheService(config.REDIS_URL, config.OPTIMIZATION_CACHE_TTL) if config.REDIS_URL else None
        _result_cache = OptimizationResultCache(shared, ttl_seconds=config.OPTIMIZATION_CACHE_TTL)
    return _result_cache


async def get_fresh_cached(tour_id: int, options: OptimizationOptions) -> CachedOptimization | None:
    """Cached entry for the tour's current version, or None.

    The dashboard edits tours without going through this API, so a hit is
    only trusted once the store confirms the version it was computed at.
    """
    cache = get_result_cache()
    cached = await cache.get(tour_id, options)
    if cached is None:
        return None
    try:
        current = await get_tour_store().get_tour_venues(tour_id)
    except TourOptimizationError as exc:
        logger.info(f"[CACHE] Tour {tour_id}: could not confirm cached version: {exc}")
        return None
    if current.version != cached.result.tour_version:
        logger.info(
            f"[CACHE] Tour {tour_id}: cached version {cached.result.tour_version} "
            f"is stale, store is at {current.version}"
        )
        await cache.invalidate(tour_id)
        return None
    return cached


@router.post("/tours/{tour_id}/optimize", response_model=OptimizeTourResponse)
async def optimize_tour(tour_id: int, request: OptimizeTourRequest) -> OptimizeTourResponse:
    """Compute an optimization result for a tour.

    Nothing is written; the caller reviews the suggestions and then calls
    the apply endpoint with the ones it accepts.
    """
    cache = get_result_cache()
    if request.use_cache:
        cached = await get_fresh_cached(tour_id, request.options)
        if cached is not None:
            logger.info(f"[OPTIMIZE] Tour {tour_id}: cache hit")
            return OptimizeTourResponse(
                success=True, result=cached.result, warnings=cached.warnings, cached=True
            )

    outcome = await get_optimizer_service().optimize(
        tour_id, request.options, deadline_seconds=request.deadline_seconds
    )
    if outcome.success and outcome.result is not None:
        await cache.set(tour_id, request.options, outcome.result, outcome.warnings)

    return OptimizeTourResponse(
        success=outcome.success,
        result=outcome.result,
        error=outcome.error,
        warnings=outcome.warnings,
    )


@router.post("/tours/{tour_id}/apply", response_model=ApplyOptimizationResponse)
async def apply_optimization(tour_id: int, request: ApplyOptimizationRequest) -> ApplyOptimizationResponse:
    """Write accepted suggestions and the chosen order to the tour.

    The result comes from the request body, else the cache, else a fresh
    optimization run. A stale result is rejected by the store's version check.
    """
    cache = get_result_cache()
    service = get_optimizer_service()

    result = request.result
    if result is None:
        cached = await get_fresh_cached(tour_id, request.options)
        result = cached.result if cached is not None else None
    if result is None:
        logger.info(f"[APPLY] Tour {tour_id}: no cached result, re-optimizing")
        outcome = await service.optimize(tour_id, request.options)
        if not outcome.success or outcome.result is None:
            return ApplyOptimizationResponse(success=False, error=outcome.error)
        result = outcome.result

    applied = await service.apply(
        tour_id,
        result,
        request.accepted_suggestion_ids,
        final_sequence=request.final_sequence,
        options=request.options,
    )
    if applied.success:
        removed = await cache.invalidate(tour_id)
        logger.info(f"[APPLY] Tour {tour_id}: dropped {removed} cached results")
    return ApplyOptimizationResponse(
        success=applied.success,
        applied=applied.applied,
        error=applied.error,
    )


@router.get("/tours/{tour_id}/score", response_model=TourScoreResponse)
async def get_tour_score(tour_id: int) -> TourScoreResponse:
    """Baseline distance, travel time and score of the tour as stored."""
    try:
        snapshot = await get_tour_store().get_tour_venues(tour_id)
    except TourOptimizationError as exc:
        logger.info(f"[SCORE] Tour {tour_id}: {exc}")
        return TourScoreResponse(
            success=False,
            error=exc.to_app_error([RecoveryOption(label="Try again", action="retry_score")]),
        )
    metrics = score_initial_tour(snapshot.stops, OptimizationOptions())
    return TourScoreResponse(success=True, metrics=metrics)
