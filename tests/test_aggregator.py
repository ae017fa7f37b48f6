"""Unit tests for the aggregation logic."""

from __future__ import annotations

import pytest

from models.records import ALL_LOCATIONS, LocationResult
from services.aggregator import Aggregator


def test_aggregate_empty_mapping_returns_no_results() -> None:
    assert Aggregator().aggregate({}) == {}


def test_aggregate_computes_per_location_and_overall_averages() -> None:
    results = Aggregator().aggregate({"A": {10000: 1}, "B": {20000: 1}})

    assert results == {
        "A": LocationResult(average=10.0, count=1),
        "B": LocationResult(average=20.0, count=1),
        ALL_LOCATIONS: LocationResult(average=15.0, count=2),
    }
    assert list(results) == ["A", "B", ALL_LOCATIONS]


def test_overall_average_is_weighted_by_count() -> None:
    # A: three readings of 10, B: one reading of 30.
    results = Aggregator().aggregate({"A": {10000: 3}, "B": {30000: 1}})

    assert results["A"].average == 10.0
    assert results["B"].average == 30.0
    # Weighted: (10*3 + 30*1) / 4 = 15, not the mean of averages (20).
    assert results[ALL_LOCATIONS] == LocationResult(average=15.0, count=4)


def test_histogram_buckets_are_multiplied_by_occurrences() -> None:
    results = Aggregator().aggregate({"LOC": {12500: 2, 13000: 2}})

    assert results["LOC"] == LocationResult(average=12.75, count=4)


def test_aggregate_is_repeatable() -> None:
    data = {"A": {1500: 4, -2500: 1}}
    aggregator = Aggregator()

    assert aggregator.aggregate(data) == aggregator.aggregate(data)
    assert aggregator.aggregate(data)["A"].average == pytest.approx(0.7)
