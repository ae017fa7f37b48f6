"""Record filtering and histogram accumulation."""

from __future__ import annotations

import math
import re
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from models.records import MILLIS_PER_UNIT, TEMPERATURE_WATER, LocationResult, Record
from services.aggregator import Aggregator

# Lowercased characteristic name -> canonical spelling.
_CHARACTERISTIC_NAMES = {name.lower(): name for name in (TEMPERATURE_WATER,)}

# Longest leading decimal literal; trailing text is ignored.
_LEADING_FLOAT = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def parse_result_value(raw: str) -> Optional[float]:
    """Parse the numeric prefix of ``raw`` as a finite float.

    Leading whitespace is skipped and anything after the number is ignored, so
    ``"12.5abc"`` reads as 12.5 and ``"1_000"`` as 1. Returns ``None`` when ``raw``
    does not start with a number or the number is not finite.
    """
    match = _LEADING_FLOAT.match(raw.lstrip())
    if match is None:
        return None
    value = float(match.group())
    return value if math.isfinite(value) else None


class RecordDataAccumulator:
    """Accumulates water temperature readings in a space-efficient form.

    A location may see millions of readings, but most cluster around a few values,
    so instead of keeping every reading we keep a histogram of how often each value
    occurred. Values are stored in integer millidegrees: 12.3 seen four times is
    ``{12300: 4}``.
    """

    def __init__(self, aggregator: Optional[Aggregator] = None) -> None:
        self._aggregator = aggregator or Aggregator()
        self._locations: Dict[str, str] = {}
        self._location_data: Dict[str, Dict[int, int]] = {}

    def get_locations(self) -> Mapping[str, str]:
        return MappingProxyType(self._locations)

    def get_location_data(self) -> Mapping[str, Mapping[int, int]]:
        return MappingProxyType(
            {
                location_id: MappingProxyType(histogram)
                for location_id, histogram in self._location_data.items()
            }
        )

    def add(self, record: Record) -> bool:
        """Fold one record into the histograms.

        Returns ``False`` when the record was filtered out: another characteristic
        or a value that is not a finite number. Neither case is an error.
        """
        characteristic = _CHARACTERISTIC_NAMES.get(record.characteristic_name.strip().lower())
        if characteristic != TEMPERATURE_WATER:
            return False

        value = parse_result_value(record.result_value)
        if value is None:
            return False

        location_id = record.monitoring_location_id
        # First name seen for an ID wins.
        self._locations.setdefault(location_id, record.monitoring_location_name)

        histogram = self._location_data.setdefault(location_id, {})
        millis = math.floor(value * MILLIS_PER_UNIT)
        histogram[millis] = histogram.get(millis, 0) + 1
        return True

    def compute_results(self) -> Dict[str, LocationResult]:
        """Averages per location plus ``-ALL-``; see ``Aggregator.aggregate``."""
        return self._aggregator.aggregate(self._location_data)
