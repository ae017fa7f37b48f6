"""Serializable payloads that cross thread and process boundaries.

Worker traffic is a strict request/response protocol of tagged messages. Results
never travel as live mappings: they are flattened into ordered lists of
``(key, value)`` pairs and rebuilt on the receiving side.
"""

from __future__ import annotations

from typing import Annotated, List, Literal, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from models.records import LocationResult, ParseResults


class LocationResultPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    average: float
    count: int = Field(..., ge=1)


class SerializableParseResults(BaseModel):
    """``ParseResults`` with each mapping flattened to ordered 2-tuples."""

    model_config = ConfigDict(frozen=True)

    monitoring_locations: List[Tuple[str, str]] = Field(default_factory=list)
    monitoring_location_results: List[Tuple[str, LocationResultPayload]] = Field(
        default_factory=list
    )

    @classmethod
    def from_results(cls, results: ParseResults) -> "SerializableParseResults":
        return cls(
            monitoring_locations=list(results.monitoring_locations.items()),
            monitoring_location_results=[
                (location_id, LocationResultPayload(average=result.average, count=result.count))
                for location_id, result in results.monitoring_location_results.items()
            ],
        )

    def to_results(self) -> ParseResults:
        return ParseResults(
            monitoring_locations=dict(self.monitoring_locations),
            monitoring_location_results={
                location_id: LocationResult(average=payload.average, count=payload.count)
                for location_id, payload in self.monitoring_location_results
            },
        )


class _Message(BaseModel):
    model_config = ConfigDict(frozen=True)


class StartMessage(_Message):
    """Begin a chunked ingestion; ``chunk`` messages follow, then ``end``."""

    type: Literal["start"] = "start"


class ChunkMessage(_Message):
    type: Literal["chunk"] = "chunk"
    data: bytes


class EndMessage(_Message):
    type: Literal["end"] = "end"


class FileMessage(_Message):
    """Ingest a file the worker opens and streams itself."""

    type: Literal["file"] = "file"
    path: str


class CancelMessage(_Message):
    type: Literal["cancel"] = "cancel"


class SuccessMessage(_Message):
    type: Literal["success"] = "success"
    results: SerializableParseResults


class ErrorMessage(_Message):
    type: Literal["error"] = "error"
    kind: str
    error: str


class CancelledMessage(_Message):
    type: Literal["cancelled"] = "cancelled"


WorkerRequest = Annotated[
    Union[StartMessage, ChunkMessage, EndMessage, FileMessage, CancelMessage],
    Field(discriminator="type"),
]

WorkerResponse = Annotated[
    Union[SuccessMessage, ErrorMessage, CancelledMessage],
    Field(discriminator="type"),
]
