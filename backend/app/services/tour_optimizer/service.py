"""Tour optimization orchestrator.

Public entry point of the engine. A run moves through

    Idle -> Extracting -> Detecting -> Matching -> Sequencing -> Scoring -> Done

or ends in Failed from any stage. Each stage is synchronous and works on an
immutable snapshot of the tour and the venue pool; nothing is exposed until
Done. Engine errors never escape: `optimize` and `apply` return typed
outcomes carrying an `AppError`.

`apply` is a separate, explicit write: accepted suggestions become
`planning` stops and the whole sequence is handed to the tour store, which
serialises writes per tour. An apply failure leaves the computed
optimization result untouched and re-appliable.
"""

import asyncio
import datetime as dt
import logging
import time
from enum import Enum
from typing import Awaitable, Optional, TypeVar

from pydantic import BaseModel, Field

from app.models import (
    AppError,
    AppliedTour,
    ApplyConflictError,
    CandidateSuggestion,
    DeadlineExceededError,
    InsufficientAnchorsError,
    InvalidSelectionError,
    OptimizationOptions,
    OptimizationResult,
    RecoveryOption,
    SequencedStop,
    StopSource,
    TourOptimizationError,
    TourSnapshot,
    TourVenueStatus,
    TourVenueStop,
    Venue,
    Warning,
)
from app.services.tour_store import TourStore
from app.services.venue_catalog import VenueCatalogIndex

from .anchors import (
    extract_anchors,
    naive_anchor_order,
    shared_date_venue_ids,
    to_fixed_points,
)
from .candidates import match_gaps
from .gaps import detect_gaps
from .scoring import (
    gap_coverage_ratio,
    naive_distance_km,
    optimization_score,
    score_initial_tour,
    total_distance_km,
    total_travel_time_minutes,
)
from .sequencer import SequenceNode, build_sequence, classify_stops, sequence_tour

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OptimizationStage(str, Enum):
    """States of one optimization run."""

    IDLE = "idle"
    EXTRACTING = "extracting"
    DETECTING = "detecting"
    MATCHING = "matching"
    SEQUENCING = "sequencing"
    SCORING = "scoring"
    DONE = "done"
    FAILED = "failed"


class OptimizeOutcome(BaseModel):
    """Typed result of `optimize`."""

    success: bool
    result: Optional[OptimizationResult] = None
    error: Optional[AppError] = None
    warnings: list[Warning] = Field(default_factory=list)
    stage: OptimizationStage = OptimizationStage.IDLE
    failed_stage: Optional[OptimizationStage] = None


class ApplyOutcome(BaseModel):
    """Typed result of `apply`."""

    success: bool
    applied: Optional[AppliedTour] = None
    error: Optional[AppError] = None


RECOVERY_OPTIONS = {
    InsufficientAnchorsError: [
        RecoveryOption(label="Add confirmed dates", action="edit_tour_dates"),
    ],
    DeadlineExceededError: [
        RecoveryOption(label="Try again", action="retry_optimization"),
    ],
}


class OptimizationRun:
    """Stage tracker and deadline guard for one run."""

    def __init__(self, deadline_seconds: Optional[float] = None) -> None:
        self.stage = OptimizationStage.IDLE
        self._started = time.monotonic()
        self._deadline = (
            self._started + deadline_seconds if deadline_seconds is not None else None
        )

    def remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return self._deadline - time.monotonic()

    def check_deadline(self) -> None:
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise DeadlineExceededError(
                f"Deadline exceeded during {self.stage.value} "
                f"after {time.monotonic() - self._started:.3f}s"
            )

    def advance(self, stage: OptimizationStage) -> None:
        self.check_deadline()
        logger.debug(f"[OPTIMIZE] {self.stage.value} -> {stage.value}")
        self.stage = stage

    async def wait(self, awaitable: Awaitable[T]) -> T:
        """Await collaborator I/O within the remaining deadline."""
        self.check_deadline()
        try:
            return await asyncio.wait_for(awaitable, timeout=self.remaining())
        except asyncio.TimeoutError as exc:
            raise DeadlineExceededError(f"Deadline exceeded waiting on tour store ({self.stage.value})") from exc


def optimize_snapshot(
    snapshot: TourSnapshot,
    pool: list[Venue],
    options: OptimizationOptions,
    run: Optional[OptimizationRun] = None,
    warnings: Optional[list[Warning]] = None,
) -> OptimizationResult:
    """Run every engine stage over one tour snapshot and venue pool.

    Pure function of its inputs; the same snapshot, pool and options always
    give the same result.

    Raises:
        InsufficientAnchorsError: Fewer than two dated, located anchor stops.
        InvalidCoordinateError: A coordinate bypassed ingestion validation.
        DeadlineExceededError: The run's deadline passed between stages.
    """
    run = run or OptimizationRun()
    warnings = warnings if warnings is not None else []
    stops = snapshot.stops

    run.advance(OptimizationStage.EXTRACTING)
    anchors = extract_anchors(stops)
    shared = shared_date_venue_ids(anchors)
    if shared:
        warnings.append(Warning(
            code="SHARED_ANCHOR_DATE",
            message="Some confirmed stops share a date; they are ordered by stored sequence.",
            affected_venue_ids=shared,
        ))

    run.advance(OptimizationStage.DETECTING)
    gaps = detect_gaps(anchors, options)

    run.advance(OptimizationStage.MATCHING)
    index = VenueCatalogIndex(
        pool,
        exclude_ids={s.venue_id for s in stops},
        unknown_availability=options.unknown_availability,
    )
    if len(index) == 0:
        logger.info(f"[OPTIMIZE] Tour {snapshot.tour_id}: no eligible candidate venues")
        warnings.append(Warning(
            code="EMPTY_VENUE_POOL",
            message="No candidate venues with locations are available to fill gaps.",
        ))
    potential = match_gaps(gaps, index, options, warnings)

    run.advance(OptimizationStage.SEQUENCING)
    sequence, unplaced = sequence_tour(anchors, stops, [], options)
    if unplaced:
        warnings.append(Warning(
            code="UNPLACED_STOPS",
            message="Some tour venues have no location and were left out of the route.",
            affected_venue_ids=unplaced,
        ))

    run.advance(OptimizationStage.SCORING)
    total_km = total_distance_km(sequence)
    naive_km = naive_distance_km(naive_anchor_order(stops))
    coverage = gap_coverage_ratio(gaps, potential, options.coverage_match_threshold)

    result = OptimizationResult(
        tour_id=snapshot.tour_id,
        tour_version=snapshot.version,
        fixed_points=to_fixed_points(anchors),
        gaps=gaps,
        potential_fill_venues=potential,
        sequence=sequence,
        unplaced_venue_ids=unplaced,
        total_distance_km=total_km,
        total_travel_time_minutes=total_travel_time_minutes(
            [s.coordinates for s in sequence], options
        ),
        naive_distance_km=naive_km,
        gap_coverage_ratio=coverage,
        optimization_score=optimization_score(total_km, naive_km, coverage, options),
        initial_metrics=score_initial_tour(stops, options),
    )

    run.advance(OptimizationStage.DONE)
    return result


class TourOptimizerService:
    """Orchestrates optimize/apply against a tour store."""

    def __init__(self, store: TourStore) -> None:
        self._store = store

    async def optimize(
        self,
        tour_id: int,
        options: Optional[OptimizationOptions] = None,
        deadline_seconds: Optional[float] = None,
    ) -> OptimizeOutcome:
        """Compute an optimization result for a tour. Never raises engine errors."""
        options = options or OptimizationOptions()
        run = OptimizationRun(deadline_seconds)
        warnings: list[Warning] = []
        logger.info(f"[OPTIMIZE] Tour {tour_id}: starting")

        try:
            snapshot = await run.wait(self._store.get_tour_venues(tour_id))
            pool = await run.wait(
                self._store.get_candidate_venue_pool({s.venue_id for s in snapshot.stops})
            )
            if pool.rejected_ids:
                warnings.append(Warning(
                    code="REJECTED_VENUES",
                    message=f"{len(pool.rejected_ids)} catalog venues had invalid data and were skipped.",
                    affected_venue_ids=[i for i in pool.rejected_ids if isinstance(i, int)],
                ))
            result = optimize_snapshot(snapshot, pool.venues, options, run, warnings)
        except TourOptimizationError as exc:
            failed_at = run.stage
            logger.info(f"[OPTIMIZE] Tour {tour_id}: failed during {failed_at.value}: {exc}")
            return OptimizeOutcome(
                success=False,
                error=exc.to_app_error(RECOVERY_OPTIONS.get(type(exc))),
                warnings=warnings,
                stage=OptimizationStage.FAILED,
                failed_stage=failed_at,
            )

        logger.info(
            f"[OPTIMIZE] Tour {tour_id}: {len(result.gaps)} gaps, "
            f"{result.total_distance_km:.1f} km, score {result.optimization_score:.1f}"
        )
        return OptimizeOutcome(
            success=True,
            result=result,
            warnings=warnings,
            stage=OptimizationStage.DONE,
        )

    async def apply(
        self,
        tour_id: int,
        result: OptimizationResult,
        accepted_suggestion_ids: list[str],
        final_sequence: Optional[list[int]] = None,
        options: Optional[OptimizationOptions] = None,
    ) -> ApplyOutcome:
        """Persist accepted suggestions and the chosen order for a tour.

        Args:
            tour_id: Tour to write.
            result: The optimization result the selections come from.
            accepted_suggestion_ids: Suggestion ids to turn into `planning` stops.
            final_sequence: Venue ids in the order to persist. When omitted,
                the sequencer places the accepted suggestions itself.
            options: Options used for leg travel times and the score.
        """
        options = options or OptimizationOptions()
        try:
            if result.tour_id != tour_id:
                raise InvalidSelectionError(
                    f"Result belongs to tour {result.tour_id}, not {tour_id}"
                )
            accepted = self._resolve_suggestions(result, accepted_suggestion_ids)
            snapshot = await self._store.get_tour_venues(tour_id)
            if snapshot.version != result.tour_version:
                raise ApplyConflictError(
                    f"Tour {tour_id} is at version {snapshot.version}, "
                    f"result was computed at {result.tour_version}"
                )

            anchors = extract_anchors(snapshot.stops)
            if final_sequence is None:
                sequence, _ = sequence_tour(
                    anchors, snapshot.stops, accepted, options,
                    accepted_status=TourVenueStatus.PLANNING,
                )
            else:
                nodes = self._order_from_selection(snapshot, anchors, accepted, final_sequence)
                sequence = build_sequence(nodes, options)

            stops = self._stops_to_write(snapshot, sequence, accepted)
            version = await self._store.write_tour_sequence(tour_id, stops, result.tour_version)
        except TourOptimizationError as exc:
            logger.info(f"[APPLY] Tour {tour_id}: {exc.code.value}: {exc}")
            return ApplyOutcome(success=False, error=exc.to_app_error())

        total_km = total_distance_km(sequence)
        applied = AppliedTour(
            tour_id=tour_id,
            version=version,
            stops=stops,
            total_distance_km=total_km,
            total_travel_time_minutes=total_travel_time_minutes(
                [s.coordinates for s in sequence], options
            ),
            optimization_score=optimization_score(
                total_km, result.naive_distance_km, result.gap_coverage_ratio, options
            ),
        )
        logger.info(
            f"[APPLY] Tour {tour_id}: {len(accepted)} suggestions accepted, "
            f"{len(sequence)} stops, version {version}"
        )
        return ApplyOutcome(success=True, applied=applied)

    @staticmethod
    def _resolve_suggestions(
        result: OptimizationResult, suggestion_ids: list[str]
    ) -> list[CandidateSuggestion]:
        accepted: list[CandidateSuggestion] = []
        seen_venues: set[int] = set()
        for suggestion_id in suggestion_ids:
            suggestion = result.find_suggestion(suggestion_id)
            if suggestion is None:
                raise InvalidSelectionError(f"Unknown suggestion {suggestion_id}")
            if suggestion.venue.id in seen_venues:
                raise InvalidSelectionError(
                    f"Venue {suggestion.venue.id} was selected more than once"
                )
            seen_venues.add(suggestion.venue.id)
            accepted.append(suggestion)
        return accepted

    @staticmethod
    def _order_from_selection(
        snapshot: TourSnapshot,
        anchors: list[TourVenueStop],
        accepted: list[CandidateSuggestion],
        final_sequence: list[int],
    ) -> list[SequenceNode]:
        """Turn a caller-chosen venue order into sequence nodes.

        A venue the tour plays more than once may be listed once per stop;
        its occurrences map to that venue's stops in date order. Every
        anchor stop and accepted suggestion must be covered, and dated stops
        must stay in date order.
        """
        dated, floating, _ = classify_stops(snapshot.stops, anchors)
        candidates = [SequenceNode.from_stop(a, StopSource.ANCHOR) for a in anchors]
        for stop in dated + floating:
            source = StopSource.FLOATING if stop.date is None else StopSource.DATED
            candidates.append(SequenceNode.from_stop(stop, source))
        candidates.extend(
            SequenceNode.from_suggestion(s, TourVenueStatus.PLANNING) for s in accepted
        )

        # Per venue, dated stops first in date order, anchors before other stops on a tie
        available: dict[int, list[SequenceNode]] = {}
        for node in sorted(candidates, key=lambda n: (n.date is None, n.date or dt.date.min, not n.is_fixed)):
            available.setdefault(node.venue_id, []).append(node)

        unknown = sorted({v for v in final_sequence if v not in available})
        if unknown:
            raise InvalidSelectionError(f"Final sequence has venues not in this tour: {unknown}")

        nodes: list[SequenceNode] = []
        used: dict[int, int] = {}
        for venue_id in final_sequence:
            position = used.get(venue_id, 0)
            if position >= len(available[venue_id]):
                raise InvalidSelectionError(
                    f"Final sequence lists venue {venue_id} more times than the tour plays it"
                )
            nodes.append(available[venue_id][position])
            used[venue_id] = position + 1

        chosen = {id(n) for n in nodes}
        missing = sorted({
            n.venue_id for n in candidates
            if (n.is_fixed or n.suggestion_id is not None) and id(n) not in chosen
        })
        if missing:
            raise InvalidSelectionError(f"Final sequence is missing stops at venues {missing}")

        dates = [n.date for n in nodes if n.date is not None]
        if any(later < earlier for earlier, later in zip(dates, dates[1:])):
            raise InvalidSelectionError("Final sequence is not in date order")
        return nodes

    @staticmethod
    def _stops_to_write(
        snapshot: TourSnapshot,
        sequence: list[SequencedStop],
        accepted: list[CandidateSuggestion],
    ) -> list[TourVenueStop]:
        """Whole-tour stop list: sequenced stops first, then the rest unsequenced."""
        by_suggestion = {s.id: s for s in accepted}
        written: list[TourVenueStop] = []
        placed: set[int] = set()

        for item in sequence:
            legs = {
                "sequence": item.sequence,
                "travel_distance_from_previous_km": item.travel_distance_from_previous_km,
                "travel_time_from_previous_minutes": item.travel_time_from_previous_minutes,
            }
            if item.suggestion_id is not None:
                suggestion = by_suggestion[item.suggestion_id]
                written.append(TourVenueStop(
                    venue_id=suggestion.venue.id,
                    venue=suggestion.venue,
                    status=TourVenueStatus.PLANNING,
                    date=suggestion.suggested_date,
                    notes=f"Added by route optimization for gap {suggestion.gap_id}",
                    **legs,
                ))
                continue
            for i, stop in enumerate(snapshot.stops):
                if (
                    i not in placed
                    and stop.venue_id == item.venue_id
                    and stop.id == item.stop_id
                    and stop.date == item.date
                ):
                    placed.add(i)
                    written.append(stop.model_copy(update=legs))
                    break

        for i, stop in enumerate(snapshot.stops):
            if i not in placed:
                written.append(stop.model_copy(update={
                    "sequence": None,
                    "travel_distance_from_previous_km": None,
                    "travel_time_from_previous_minutes": None,
                }))
        return written
