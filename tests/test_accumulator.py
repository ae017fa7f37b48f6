"""Unit tests for record filtering and histogram accumulation."""

from __future__ import annotations

import pytest

from models.records import Record
from services.accumulator import RecordDataAccumulator, parse_result_value


def _record(
    value: str,
    location_id: str = "LOC-001",
    name: str = "Test Location",
    characteristic: str = "Temperature, water",
) -> Record:
    return Record(
        result_value=value,
        characteristic_name=characteristic,
        monitoring_location_id=location_id,
        monitoring_location_name=name,
    )


def test_add_registers_locations() -> None:
    accumulator = RecordDataAccumulator()

    accumulator.add(_record("15.5", "LOC-001", "Test Location 1"))
    accumulator.add(_record("16.5", "LOC-002", "Test Location 2"))

    assert dict(accumulator.get_locations()) == {
        "LOC-001": "Test Location 1",
        "LOC-002": "Test Location 2",
    }


def test_first_seen_location_name_wins() -> None:
    accumulator = RecordDataAccumulator()

    accumulator.add(_record("10", "LOC-001", "Original"))
    accumulator.add(_record("11", "LOC-001", "Renamed"))

    assert accumulator.get_locations()["LOC-001"] == "Original"


def test_repeated_value_collapses_into_one_histogram_bucket() -> None:
    accumulator = RecordDataAccumulator()

    for _ in range(5):
        assert accumulator.add(_record("15.5")) is True

    assert dict(accumulator.get_location_data()["LOC-001"]) == {15500: 5}
    assert accumulator.compute_results()["LOC-001"].average == 15.5


def test_values_are_floored_to_millidegrees() -> None:
    accumulator = RecordDataAccumulator()

    accumulator.add(_record("12.34567"))
    accumulator.add(_record("-0.0005"))

    assert dict(accumulator.get_location_data()["LOC-001"]) == {12345: 1, -1: 1}


def test_non_temperature_records_are_ignored() -> None:
    accumulator = RecordDataAccumulator()

    accumulator.add(_record("15.0"))
    assert accumulator.add(_record("7.5", characteristic="pH")) is False

    assert dict(accumulator.get_location_data()["LOC-001"]) == {15000: 1}
    assert accumulator.compute_results()["LOC-001"].average == 15.0


def test_filtered_records_leave_no_trace() -> None:
    accumulator = RecordDataAccumulator()

    accumulator.add(_record("7.5", "LOC-PH", characteristic="pH"))
    accumulator.add(_record("not-a-number", "LOC-BAD"))

    assert dict(accumulator.get_locations()) == {}
    assert dict(accumulator.get_location_data()) == {}
    assert accumulator.compute_results() == {}


def test_characteristic_match_is_case_insensitive() -> None:
    accumulator = RecordDataAccumulator()

    accumulator.add(_record("15.0", characteristic="TEMPERATURE, WATER"))
    accumulator.add(_record("25.0", characteristic="temperature, water"))

    result = accumulator.compute_results()["LOC-001"]
    assert result.average == 20.0
    assert result.count == 2


@pytest.mark.parametrize("raw", ["invalid", "", "nan", "inf", "-Infinity", "1e999", "-", ".e5"])
def test_unparseable_values_are_skipped(raw: str) -> None:
    accumulator = RecordDataAccumulator()

    accumulator.add(_record("15.0"))
    assert accumulator.add(_record(raw)) is False

    assert accumulator.compute_results()["LOC-001"].count == 1


def test_views_are_read_only() -> None:
    accumulator = RecordDataAccumulator()
    accumulator.add(_record("15.0"))

    with pytest.raises(TypeError):
        accumulator.get_locations()["LOC-999"] = "Nope"  # type: ignore[index]
    with pytest.raises(TypeError):
        accumulator.get_location_data()["LOC-001"][1] = 1  # type: ignore[index]


def test_parse_result_value() -> None:
    assert parse_result_value("10.25") == 10.25
    assert parse_result_value(" 3 ") == 3.0
    assert parse_result_value("abc") is None
    assert parse_result_value("NaN") is None
    assert parse_result_value("12.5abc") == 12.5
    assert parse_result_value("12,5") == 12.0
    assert parse_result_value("1_000") == 1.0
    assert parse_result_value("-.5e1 degrees") == -5.0
    assert parse_result_value("1e") == 1.0


def test_trailing_text_after_number_is_ignored() -> None:
    accumulator = RecordDataAccumulator()

    assert accumulator.add(_record("12.5abc", "A", "Site A")) is True

    assert {key: dict(value) for key, value in accumulator.get_location_data().items()} == {
        "A": {12500: 1}
    }


def test_record_from_row_reads_canonical_columns() -> None:
    row = {
        "ResultValue": "9.5",
        "CharacteristicName": "Temperature, water",
        "MonitoringLocationID": "LOC-9",
        "MonitoringLocationName": "Pier",
        "Unit": "deg C",
    }

    assert Record.from_row(row) == _record("9.5", "LOC-9", "Pier")
