"""Unit tests for route metrics and scores."""

import datetime as dt

import pytest

from app.models import OptimizationOptions, TourVenueStatus, Venue
from app.services.tour_optimizer.scoring import (
    INITIAL_BASE_SCORE,
    INITIAL_SPARSE_SCORE,
    UNDATED_PENALTY,
    gap_coverage_ratio,
    optimization_score,
    score_initial_tour,
    total_travel_time_minutes,
)
from app.utils.geo import distance_km

from conftest import CHICAGO, DENVER, KANSAS_CITY, make_stop, make_venue


class TestOptimizationScore:
    """Tests for the 0-100 composite score."""

    def test_no_savings_full_coverage(self) -> None:
        assert optimization_score(1000, 1000, 1.0, OptimizationOptions()) == pytest.approx(30.0)

    def test_half_distance_no_coverage(self) -> None:
        assert optimization_score(500, 1000, 0.0, OptimizationOptions()) == pytest.approx(35.0)

    def test_longer_than_naive_counts_as_no_savings(self) -> None:
        assert optimization_score(2000, 1000, 0.0, OptimizationOptions()) == 0.0

    def test_zero_naive_distance(self) -> None:
        assert optimization_score(0, 0, 1.0, OptimizationOptions()) == pytest.approx(30.0)

    def test_custom_weights_clamped(self) -> None:
        options = OptimizationOptions(distance_weight=1.0, coverage_weight=1.0)
        assert optimization_score(0, 1000, 1.0, options) == 100.0


class TestGapCoverage:
    """Tests for gap coverage ratio."""

    def test_no_gaps_is_fully_covered(self) -> None:
        assert gap_coverage_ratio([], {}, 50) == 1.0


class TestTravelTime:
    """Tests for total travel time."""

    def test_sum_of_legs(self) -> None:
        options = OptimizationOptions(average_speed_kmh=80)
        expected = (distance_km(DENVER, KANSAS_CITY) + distance_km(KANSAS_CITY, CHICAGO)) / 80 * 60
        assert total_travel_time_minutes([DENVER, KANSAS_CITY, CHICAGO], options) == pytest.approx(expected)


class TestInitialTourScore:
    """Tests for the baseline score of a stored tour."""

    def test_sparse_tour(self, denver: Venue) -> None:
        metrics = score_initial_tour([make_stop(denver, date=dt.date(2025, 6, 1))], OptimizationOptions())
        assert metrics.optimization_score == INITIAL_SPARSE_SCORE
        assert metrics.total_distance_km == 0

    def test_compact_tour_keeps_base_score(self, denver: Venue) -> None:
        neighbour = make_venue(20, "Bluebird Theater", DENVER)
        stops = [
            make_stop(denver, date=dt.date(2025, 6, 1)),
            make_stop(neighbour, date=dt.date(2025, 6, 2)),
        ]
        assert score_initial_tour(stops, OptimizationOptions()).optimization_score == INITIAL_BASE_SCORE

    def test_undated_stops_are_penalised(self, denver: Venue) -> None:
        neighbour = make_venue(20, "Bluebird Theater", DENVER)
        tbd = make_venue(21, "TBD", None)
        stops = [
            make_stop(denver, date=dt.date(2025, 6, 1)),
            make_stop(neighbour, date=dt.date(2025, 6, 2)),
            make_stop(tbd, status=TourVenueStatus.POTENTIAL),
        ]
        metrics = score_initial_tour(stops, OptimizationOptions())
        assert metrics.optimization_score == INITIAL_BASE_SCORE - UNDATED_PENALTY

    def test_long_route_scores_lower(self, denver: Venue, chicago: Venue) -> None:
        stops = [
            make_stop(denver, date=dt.date(2025, 6, 1)),
            make_stop(chicago, date=dt.date(2025, 6, 20)),
        ]
        metrics = score_initial_tour(stops, OptimizationOptions())
        assert 30 <= metrics.optimization_score < INITIAL_BASE_SCORE
        assert metrics.total_distance_km == pytest.approx(distance_km(DENVER, CHICAGO))
        assert metrics.total_travel_time_minutes > 0
