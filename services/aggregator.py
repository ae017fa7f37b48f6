"""Aggregation of per-location histograms into averages."""

from __future__ import annotations

from typing import Dict, Mapping

from models.records import ALL_LOCATIONS, MILLIS_PER_UNIT, LocationResult


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def aggregate(
        self, location_data: Mapping[str, Mapping[int, int]]
    ) -> Dict[str, LocationResult]:
        """Average every location's histogram and add the weighted ``-ALL-`` entry.

        Sums stay in integer millidegrees; each reported average is divided back to
        degrees exactly once.
        """
        results: Dict[str, LocationResult] = {}
        overall_sum_millis = 0
        overall_count = 0

        for location_id, histogram in location_data.items():
            sum_millis = 0
            count = 0
            for millis, occurrences in histogram.items():
                sum_millis += millis * occurrences
                count += occurrences
            if not count:
                continue

            results[location_id] = LocationResult(
                average=sum_millis / MILLIS_PER_UNIT / count,
                count=count,
            )
            overall_sum_millis += sum_millis
            overall_count += count

        if overall_count:
            results[ALL_LOCATIONS] = LocationResult(
                average=overall_sum_millis / MILLIS_PER_UNIT / overall_count,
                count=overall_count,
            )

        return results
