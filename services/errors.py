"""Exceptions raised by the ingestion pipeline."""

from __future__ import annotations

from typing import Dict, Type


class IngestionError(Exception):
    """Base class for anything that ends an ingestion early."""

    kind = "ingestion_error"


class HeaderMissingError(IngestionError):
    """The stream ended before a header row was seen."""

    kind = "header_missing"

    def __init__(self, message: str = "CSV file must have a header line") -> None:
        super().__init__(message)


class MissingColumnError(IngestionError):
    """A header row exists but lacks one of the required columns."""

    kind = "missing_column"

    def __init__(self, column: str, message: str | None = None) -> None:
        super().__init__(message or f"Missing required column: {column} (case-insensitive)")
        self.column = column


class ParseError(IngestionError):
    """The CSV text itself is malformed."""

    kind = "parse_error"


class CancellationError(IngestionError):
    """The caller interrupted the ingestion. Not a failure."""

    kind = "cancelled"

    def __init__(self, message: str = "CSV parsing was cancelled") -> None:
        super().__init__(message)


class ProtocolError(IngestionError):
    """A worker received messages out of order."""

    kind = "protocol"


_ERRORS_BY_KIND: Dict[str, Type[IngestionError]] = {
    error.kind: error
    for error in (HeaderMissingError, ParseError, CancellationError, ProtocolError)
}


def error_from_kind(kind: str, message: str) -> IngestionError:
    """Rebuild an exception that was flattened to ``(kind, message)`` for transport."""
    if kind == MissingColumnError.kind:
        # Messages look like "Missing required column: <name> (case-insensitive)".
        column = message.partition(": ")[2].rsplit(" (", 1)[0] or message
        return MissingColumnError(column, message)
    error_class = _ERRORS_BY_KIND.get(kind, IngestionError)
    return error_class(message)
