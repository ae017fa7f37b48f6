"""Background ingestion of uploaded CSV files."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Optional
from uuid import uuid4

from fastapi import BackgroundTasks, UploadFile

from app.schemas import (
    ProcessingError,
    ProcessingResult,
    ProcessingStatus,
)
from datastore.result_table import ResultTable, build_default_table
from models.messages import SerializableParseResults
from services.coordinator import DEFAULT_CHUNK_SIZE, StreamingCoordinator
from services.errors import CancellationError, IngestionError
from settings import get_settings
from storage.upload_store import UploadStore, build_default_store

logger = logging.getLogger(__name__)


class ProcessorService:
    """Stages uploads, ingests them on a worker pool and records the outcome."""

    def __init__(
        self,
        store: UploadStore,
        table: ResultTable,
        workers: int = 4,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.store = store
        self.table = table
        self.chunk_size = chunk_size
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ingest")
        self._jobs: Dict[str, StreamingCoordinator] = {}
        self._futures: Dict[str, Future[None]] = {}
        self._jobs_lock = Lock()

    def enqueue_file(self, background_tasks: BackgroundTasks, file: UploadFile) -> str:
        """Stage the upload and schedule its ingestion."""
        file_id = str(uuid4())
        filename = Path(file.filename or "upload.csv").name
        key = f"{file_id}/{filename}"

        file.file.seek(0)
        size = self.store.put_stream(key, file.file)

        uploaded_at = datetime.now(timezone.utc)
        self.table.put_item(
            ProcessingResult(
                file_id=file_id,
                filename=filename,
                status=ProcessingStatus.uploaded,
                uploaded_at=uploaded_at,
            )
        )
        logger.info(
            "Upload staged (%d bytes)", size, extra={"file_id": file_id, "object_key": key}
        )

        coordinator = StreamingCoordinator(ingestion_id=file_id, chunk_size=self.chunk_size)
        with self._jobs_lock:
            self._jobs[file_id] = coordinator
            future = self.executor.submit(
                self._process_file,
                coordinator=coordinator,
                key=key,
                filename=filename,
                uploaded_at=uploaded_at,
            )
            self._futures[file_id] = future
        future.add_done_callback(lambda _f, fid=file_id: self._clear_job(fid))

        background_tasks.add_task(file.close)
        return file_id

    def fetch_result(self, file_id: str) -> ProcessingResult:
        result = self.table.get_item(file_id)
        if result is None:
            raise KeyError(f"Processing result for file {file_id!r} not found.")
        return result

    def list_results(self) -> list[ProcessingResult]:
        return sorted(self.table.scan(), key=lambda result: result.uploaded_at, reverse=True)

    def cancel(self, file_id: str) -> ProcessingResult:
        """Request cancellation of a pending ingestion; finished ones are left alone."""
        with self._jobs_lock:
            coordinator = self._jobs.get(file_id)
        if coordinator is not None:
            coordinator.cancel()
        return self.fetch_result(file_id)

    def wait(self, file_id: str, timeout: Optional[float] = None) -> None:
        """Block until the ingestion for ``file_id`` has recorded its outcome."""
        with self._jobs_lock:
            future = self._futures.get(file_id)
        if future is not None:
            future.result(timeout=timeout)

    def shutdown(self) -> None:
        with self._jobs_lock:
            coordinators = list(self._jobs.values())
        for coordinator in coordinators:
            coordinator.cancel()
        self.executor.shutdown(wait=False, cancel_futures=True)

    def _clear_job(self, file_id: str) -> None:
        with self._jobs_lock:
            self._jobs.pop(file_id, None)
            self._futures.pop(file_id, None)

    def _process_file(
        self,
        coordinator: StreamingCoordinator,
        key: str,
        filename: str,
        uploaded_at: datetime,
    ) -> None:
        file_id = coordinator.ingestion_id
        start_time = time.perf_counter()
        record = ProcessingResult(
            file_id=file_id,
            filename=filename,
            status=ProcessingStatus.processing,
            uploaded_at=uploaded_at,
        )
        self.table.put_item(record)

        results: Optional[SerializableParseResults] = None
        error: Optional[ProcessingError] = None
        try:
            with self.store.open_object(key) as handle:
                parsed = coordinator.parse_stream(handle)
            results = SerializableParseResults.from_results(parsed)
            status = ProcessingStatus.completed
        except CancellationError:
            status = ProcessingStatus.cancelled
        except IngestionError as exc:
            status = ProcessingStatus.failed
            error = ProcessingError(kind=exc.kind, message=str(exc))
        except Exception as exc:
            logger.exception("Unexpected ingestion failure", extra={"file_id": file_id})
            status = ProcessingStatus.failed
            error = ProcessingError(kind="internal", message=str(exc))
        finally:
            self.store.delete_object(key)

        processing_ms = int((time.perf_counter() - start_time) * 1000)
        self.table.put_item(
            record.model_copy(
                update={
                    "status": status,
                    "processed_at": datetime.now(timezone.utc),
                    "processing_ms": processing_ms,
                    "results": results,
                    "error": error,
                }
            )
        )
        logger.info(
            "Upload processed",
            extra={
                "file_id": file_id,
                "object_key": key,
                "state": status.value,
                "processing_ms": processing_ms,
            },
        )


@lru_cache
def build_default_processor(workers: Optional[int] = None) -> ProcessorService:
    """Factory that wires the processor from settings."""
    settings = get_settings()
    return ProcessorService(
        store=build_default_store(),
        table=build_default_table(),
        workers=workers or settings.processor_workers,
        chunk_size=settings.chunk_size,
    )
