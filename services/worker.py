"""Off-thread ingestion driven by tagged request/response messages.

The caller never touches the worker's accumulator. It posts requests
(``start``/``chunk``/``end``, ``file`` or ``cancel``) and receives exactly one
response (``success``, ``error`` or ``cancelled``) per ingestion.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from os import PathLike
from queue import Queue
from threading import Event, Lock, Thread, Timer, current_thread
from typing import Callable, Iterator, Optional, Union

from models.messages import (
    CancelledMessage,
    CancelMessage,
    ChunkMessage,
    EndMessage,
    ErrorMessage,
    FileMessage,
    SerializableParseResults,
    StartMessage,
    SuccessMessage,
    WorkerRequest,
    WorkerResponse,
)
from models.records import ParseResults
from services.coordinator import DEFAULT_CHUNK_SIZE, StreamingCoordinator
from services.errors import (
    CancellationError,
    IngestionError,
    ProtocolError,
    error_from_kind,
)
from settings import get_settings

logger = logging.getLogger(__name__)


class IngestionWorker:
    """Runs a single ingestion on its own daemon thread."""

    def __init__(
        self,
        on_message: Callable[[WorkerResponse], None],
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._on_message = on_message
        self._inbox: "Queue[WorkerRequest]" = Queue()
        self._terminated = Event()
        self._coordinator = StreamingCoordinator(chunk_size=chunk_size)
        self._thread = Thread(
            target=self._serve,
            name=f"ingestion-{self._coordinator.ingestion_id[:8]}",
            daemon=True,
        )
        self._thread.start()

    @property
    def ingestion_id(self) -> str:
        return self._coordinator.ingestion_id

    def post(self, message: WorkerRequest) -> None:
        """Deliver a request. Requests to a terminated worker are dropped."""
        if self._terminated.is_set():
            return
        if isinstance(message, CancelMessage):
            # A busy file ingestion is not reading the inbox; flag it directly.
            self._coordinator.cancel()
        self._inbox.put(message)

    def terminate(self) -> None:
        """Stop the ingestion and silence any response it would still send."""
        if self._terminated.is_set():
            return
        self._terminated.set()
        self._coordinator.cancel()
        self._inbox.put(CancelMessage())

    def join(self, timeout: Optional[float] = None) -> bool:
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def is_worker_thread(self) -> bool:
        return current_thread() is self._thread

    def _serve(self) -> None:
        request = self._inbox.get()
        try:
            results = self._dispatch(request)
        except CancellationError:
            self._emit(CancelledMessage())
        except IngestionError as exc:
            self._emit(ErrorMessage(kind=exc.kind, error=str(exc)))
        except Exception as exc:
            logger.exception(
                "Worker ingestion crashed", extra={"ingestion_id": self.ingestion_id}
            )
            self._emit(ErrorMessage(kind="internal", error=str(exc) or "Unknown error occurred"))
        else:
            self._emit(SuccessMessage(results=SerializableParseResults.from_results(results)))

    def _dispatch(self, request: WorkerRequest) -> ParseResults:
        if isinstance(request, FileMessage):
            return self._coordinator.parse_file(request.path)
        if isinstance(request, StartMessage):
            return self._coordinator.parse_chunks(self._iter_chunks())
        if isinstance(request, CancelMessage):
            raise CancellationError()
        raise ProtocolError(f'Unexpected "{request.type}" message; send "start" or "file" first.')

    def _iter_chunks(self) -> Iterator[bytes]:
        while True:
            request = self._inbox.get()
            if isinstance(request, ChunkMessage):
                yield request.data
            elif isinstance(request, EndMessage):
                return
            elif isinstance(request, CancelMessage):
                # Stop here; a partial trailing line must not be parsed as the end of input.
                raise CancellationError()
            else:
                raise ProtocolError(f'Unexpected "{request.type}" message during a chunked ingestion.')

    def _emit(self, message: WorkerResponse) -> None:
        if self._terminated.is_set():
            return
        self._on_message(message)


class CsvParseOperation:
    """Caller-side handle on a worker ingestion: a result future plus ``cancel``.

    After ``cancel`` the worker gets ``grace_period`` seconds to answer with
    ``cancelled``; past that the operation resolves as cancelled anyway and the
    worker is torn down. A ``success`` or ``error`` that arrives after ``cancel``
    was requested also resolves as cancelled.
    """

    def __init__(
        self,
        *,
        grace_period: Optional[float] = None,
        chunk_size: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self._grace_period = (
            grace_period if grace_period is not None else settings.cancel_grace_seconds
        )
        self._future: "Future[ParseResults]" = Future()
        self._lock = Lock()
        self._cancel_requested = False
        self._cancel_timer: Optional[Timer] = None
        self._worker: Optional[IngestionWorker] = IngestionWorker(
            self._handle_message,
            chunk_size=chunk_size or settings.chunk_size,
        )

    @property
    def future(self) -> "Future[ParseResults]":
        return self._future

    def result(self, timeout: Optional[float] = None) -> ParseResults:
        return self._future.result(timeout)

    def done(self) -> bool:
        return self._future.done()

    def cancel(self) -> None:
        """Request cancellation. Safe to call repeatedly or after completion."""
        with self._lock:
            worker = self._worker
            if self._cancel_requested or worker is None:
                return
            self._cancel_requested = True
            timer = Timer(self._grace_period, self._force_cancel)
            timer.daemon = True
            self._cancel_timer = timer
        timer.start()
        worker.post(CancelMessage())

    def _post(self, message: WorkerRequest) -> None:
        with self._lock:
            worker = self._worker
        if worker is not None:
            worker.post(message)

    def _force_cancel(self) -> None:
        with self._lock:
            worker = self._worker
        if worker is None:
            return
        logger.warning(
            "Worker did not acknowledge cancellation in %.3fs; terminating",
            self._grace_period,
            extra={"ingestion_id": worker.ingestion_id},
        )
        self._settle(exception=CancellationError())

    def _handle_message(self, message: WorkerResponse) -> None:
        with self._lock:
            cancelled = self._cancel_requested
        if cancelled or isinstance(message, CancelledMessage):
            self._settle(exception=CancellationError())
        elif isinstance(message, SuccessMessage):
            self._settle(result=message.results.to_results())
        else:
            self._settle(exception=error_from_kind(message.kind, message.error))

    def _settle(
        self,
        *,
        result: Optional[ParseResults] = None,
        exception: Optional[BaseException] = None,
    ) -> None:
        with self._lock:
            worker, self._worker = self._worker, None
            timer, self._cancel_timer = self._cancel_timer, None
        if worker is None:
            return
        if timer is not None:
            timer.cancel()
        worker.terminate()
        if not worker.is_worker_thread():
            worker.join(self._grace_period)
        if exception is not None:
            self._future.set_exception(exception)
        else:
            self._future.set_result(result)


class ChunkedParseOperation(CsvParseOperation):
    """Operation fed by the caller one byte chunk at a time."""

    def submit(self, chunk: bytes) -> None:
        self._post(ChunkMessage(data=bytes(chunk)))

    def finish(self) -> None:
        """Signal end of stream; results follow on the future."""
        self._post(EndMessage())


def parse_csv_file(
    path: Union[str, "PathLike[str]"],
    *,
    grace_period: Optional[float] = None,
) -> CsvParseOperation:
    """Ingest a local file on a worker thread."""
    operation = CsvParseOperation(grace_period=grace_period)
    operation._post(FileMessage(path=str(path)))
    return operation


def start_chunked_parse(
    *,
    grace_period: Optional[float] = None,
) -> ChunkedParseOperation:
    """Open a worker ingestion that accepts byte chunks via ``submit``."""
    operation = ChunkedParseOperation(grace_period=grace_period)
    operation._post(StartMessage())
    return operation
