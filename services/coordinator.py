"""Drives one ingestion from a row source to final results."""

from __future__ import annotations

import logging
import time
from contextlib import closing
from enum import Enum
from os import PathLike
from threading import Event, Lock
from typing import BinaryIO, Dict, Iterable, Optional, Union
from uuid import uuid4

from models.records import ParseResults, Record
from services.accumulator import RecordDataAccumulator
from services.errors import CancellationError, HeaderMissingError, ParseError
from services.headers import normalize_headers
from services.tokenizer import (
    DEFAULT_ENCODING,
    CsvTokenizer,
    iter_chunk_lines,
    iter_stream_chunks,
)

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


class IngestionState(str, Enum):
    idle = "idle"
    validating_header = "validating_header"
    accumulating = "accumulating"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"


TERMINAL_STATES = frozenset(
    {IngestionState.completed, IngestionState.failed, IngestionState.cancelled}
)


class StreamingCoordinator:
    """Feeds rows from a single source through header validation and accumulation.

    An instance handles exactly one ingestion and owns its tokenizer, registry and
    histograms. ``cancel`` may be called from any thread; the loop notices it before
    the next row and before committing success. Whichever of cancellation and
    completion takes the state lock first wins.
    """

    def __init__(
        self,
        accumulator: Optional[RecordDataAccumulator] = None,
        *,
        ingestion_id: Optional[str] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.accumulator = accumulator or RecordDataAccumulator()
        self.ingestion_id = ingestion_id or uuid4().hex
        self.chunk_size = chunk_size
        self._state = IngestionState.idle
        self._state_lock = Lock()
        self._cancel_requested = Event()

    @property
    def state(self) -> IngestionState:
        return self._state

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested.is_set()

    def cancel(self) -> bool:
        """Ask the ingestion to stop. Returns ``False`` if it already ended or was asked."""
        with self._state_lock:
            if self._state in TERMINAL_STATES or self._cancel_requested.is_set():
                return False
            self._cancel_requested.set()
            state = self._state
        logger.info(
            "Cancellation requested",
            extra={"ingestion_id": self.ingestion_id, "state": state.value},
        )
        return True

    def parse_file(
        self, path: Union[str, "PathLike[str]"], encoding: str = DEFAULT_ENCODING
    ) -> ParseResults:
        with open(path, "r", encoding=encoding, newline="") as handle:
            return self.run(handle)

    def parse_stream(self, handle: BinaryIO, encoding: str = DEFAULT_ENCODING) -> ParseResults:
        return self.parse_chunks(iter_stream_chunks(handle, self.chunk_size), encoding=encoding)

    def parse_chunks(
        self, chunks: Iterable[bytes], encoding: str = DEFAULT_ENCODING
    ) -> ParseResults:
        return self.run(iter_chunk_lines(chunks, encoding=encoding))

    def run(self, lines: Iterable[str]) -> ParseResults:
        """Consume ``lines`` to the end and return the aggregated results.

        Raises ``HeaderMissingError``, ``MissingColumnError``, ``ParseError`` or
        ``CancellationError``; no partial result is ever returned.
        """
        with self._state_lock:
            if self._state is not IngestionState.idle:
                raise RuntimeError("A StreamingCoordinator handles a single ingestion.")

        started = time.perf_counter()
        tokenizer = CsvTokenizer(lines)
        row_count = 0
        try:
            with closing(tokenizer):
                self._raise_if_cancelled()
                columns, width = self._read_header(tokenizer)
                for values in tokenizer:
                    self._raise_if_cancelled()
                    if len(values) != width:
                        raise ParseError(
                            f"Invalid record length on line {tokenizer.line_num}: "
                            f"expected {width} fields, found {len(values)}"
                        )
                    self.accumulator.add(
                        Record.from_row({name: values[index] for name, index in columns.items()})
                    )
                    row_count += 1
            results = ParseResults(
                monitoring_locations=dict(self.accumulator.get_locations()),
                monitoring_location_results=self.accumulator.compute_results(),
            )
            self._commit_completed()
        except CancellationError:
            self._mark_cancelled(row_count)
            raise
        except Exception as exc:
            if self._cancel_requested.is_set():
                # Input cut short by the cancellation, not a malformed file.
                self._mark_cancelled(row_count)
                raise CancellationError() from exc
            self._set_state(IngestionState.failed)
            logger.warning(
                "Ingestion failed: %s",
                exc,
                extra={
                    "ingestion_id": self.ingestion_id,
                    "row_count": row_count,
                    "reason": type(exc).__name__,
                },
            )
            raise

        logger.info(
            "Ingestion completed",
            extra={
                "ingestion_id": self.ingestion_id,
                "row_count": row_count,
                "location_count": len(results.monitoring_locations),
                "processing_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return results

    def _read_header(self, tokenizer: CsvTokenizer) -> tuple[Dict[str, int], int]:
        try:
            raw_headers = next(tokenizer)
        except StopIteration:
            raise HeaderMissingError() from None

        self._set_state(IngestionState.validating_header)
        headers = normalize_headers(raw_headers)
        self._set_state(IngestionState.accumulating)
        # With duplicate headers the last column of a given name wins.
        columns = {name: index for index, name in enumerate(headers)}
        return columns, len(headers)

    def _mark_cancelled(self, row_count: int) -> None:
        self._set_state(IngestionState.cancelled)
        logger.info(
            "Ingestion cancelled",
            extra={"ingestion_id": self.ingestion_id, "row_count": row_count},
        )

    def _raise_if_cancelled(self) -> None:
        if self._cancel_requested.is_set():
            raise CancellationError()

    def _commit_completed(self) -> None:
        with self._state_lock:
            if self._cancel_requested.is_set():
                raise CancellationError()
            self._state = IngestionState.completed

    def _set_state(self, state: IngestionState) -> None:
        with self._state_lock:
            self._state = state
