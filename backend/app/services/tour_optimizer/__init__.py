"""Tour Optimizer service module.

Anchor extraction, gap detection, candidate matching, sequencing and
scoring, wired together by TourOptimizerService.
"""

from .service import (
    ApplyOutcome,
    OptimizationRun,
    OptimizationStage,
    OptimizeOutcome,
    TourOptimizerService,
    optimize_snapshot,
)

__all__ = [
    "ApplyOutcome",
    "OptimizationRun",
    "OptimizationStage",
    "OptimizeOutcome",
    "TourOptimizerService",
    "optimize_snapshot",
]
