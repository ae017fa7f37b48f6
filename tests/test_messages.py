from __future__ import annotations

import json

from pydantic import TypeAdapter

from models.messages import (
    CancelMessage,
    ChunkMessage,
    FileMessage,
    SerializableParseResults,
    SuccessMessage,
    WorkerRequest,
    WorkerResponse,
)
from models.records import ALL_LOCATIONS, LocationResult, ParseResults
from services.errors import (
    CancellationError,
    HeaderMissingError,
    IngestionError,
    MissingColumnError,
    ParseError,
    error_from_kind,
)


def _results() -> ParseResults:
    return ParseResults(
        monitoring_locations={"B": "Site B", "A": "Site A"},
        monitoring_location_results={
            "B": LocationResult(average=20.0, count=3),
            "A": LocationResult(average=10.5, count=1),
            ALL_LOCATIONS: LocationResult(average=17.625, count=4),
        },
    )


def test_results_survive_a_json_round_trip() -> None:
    original = _results()

    wire = SerializableParseResults.from_results(original).model_dump_json()
    restored = SerializableParseResults.model_validate_json(wire).to_results()

    assert restored == original
    assert list(restored.monitoring_location_results) == ["B", "A", ALL_LOCATIONS]


def test_serialized_maps_are_lists_of_pairs() -> None:
    payload = json.loads(SerializableParseResults.from_results(_results()).model_dump_json())

    assert payload["monitoring_locations"] == [["B", "Site B"], ["A", "Site A"]]
    assert payload["monitoring_location_results"][0] == ["B", {"average": 20.0, "count": 3}]


def test_messages_are_discriminated_by_type() -> None:
    requests = TypeAdapter(WorkerRequest)
    responses = TypeAdapter(WorkerResponse)

    assert isinstance(requests.validate_python({"type": "cancel"}), CancelMessage)
    assert isinstance(requests.validate_python({"type": "file", "path": "x.csv"}), FileMessage)
    chunk = requests.validate_python({"type": "chunk", "data": b"abc"})
    assert isinstance(chunk, ChunkMessage) and chunk.data == b"abc"

    success = responses.validate_python(
        {"type": "success", "results": {"monitoring_locations": [["A", "Site A"]]}}
    )
    assert isinstance(success, SuccessMessage)
    assert success.results.to_results().monitoring_locations == {"A": "Site A"}


def test_error_from_kind_rebuilds_exception_classes() -> None:
    missing = error_from_kind("missing_column", "Missing required column: ResultValue (case-insensitive)")
    assert isinstance(missing, MissingColumnError)
    assert missing.column == "ResultValue"
    assert str(missing) == "Missing required column: ResultValue (case-insensitive)"

    assert isinstance(error_from_kind("header_missing", "CSV file must have a header line"), HeaderMissingError)
    assert isinstance(error_from_kind("parse_error", "bad quote"), ParseError)
    assert isinstance(error_from_kind("cancelled", "stop"), CancellationError)

    unknown = error_from_kind("internal", "boom")
    assert type(unknown) is IngestionError
    assert str(unknown) == "boom"
