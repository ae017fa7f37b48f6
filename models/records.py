"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping

RESULT_VALUE = "ResultValue"
CHARACTERISTIC_NAME = "CharacteristicName"
MONITORING_LOCATION_ID = "MonitoringLocationID"
MONITORING_LOCATION_NAME = "MonitoringLocationName"

# Canonical spelling, in the order missing columns are reported.
REQUIRED_COLUMNS = (
    RESULT_VALUE,
    CHARACTERISTIC_NAME,
    MONITORING_LOCATION_ID,
    MONITORING_LOCATION_NAME,
)

TEMPERATURE_WATER = "Temperature, water"

ALL_LOCATIONS = "-ALL-"

MILLIS_PER_UNIT = 1000


@dataclass(slots=True)
class Record:
    """A single CSV row reduced to the four columns the accumulator reads."""

    result_value: str
    characteristic_name: str
    monitoring_location_id: str
    monitoring_location_name: str

    @classmethod
    def from_row(cls, row: Mapping[str, str]) -> "Record":
        """Build a record from a row keyed by canonical column names."""
        return cls(
            result_value=row[RESULT_VALUE],
            characteristic_name=row[CHARACTERISTIC_NAME],
            monitoring_location_id=row[MONITORING_LOCATION_ID],
            monitoring_location_name=row[MONITORING_LOCATION_NAME],
        )


@dataclass(frozen=True, slots=True)
class LocationResult:
    """Average temperature (degrees) and reading count for one location."""

    average: float
    count: int


@dataclass(frozen=True)
class ParseResults:
    """Final output of one ingestion.

    ``monitoring_locations`` maps location ID to name. ``monitoring_location_results``
    maps location ID, plus ``ALL_LOCATIONS`` when any reading was accepted, to its
    ``LocationResult``. Both keep first-seen order.
    """

    monitoring_locations: Dict[str, str] = field(default_factory=dict)
    monitoring_location_results: Dict[str, LocationResult] = field(default_factory=dict)
