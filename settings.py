from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_UPLOAD_ROOT_ENV = "UPLOAD_ROOT_PATH"
_RESULTS_PATH_ENV = "RESULTS_PERSISTENCE_PATH"
_WORKER_COUNT_ENV = "PROCESSOR_WORKER_COUNT"
_CHUNK_SIZE_ENV = "INGESTION_CHUNK_SIZE"
_CANCEL_GRACE_ENV = "CANCEL_GRACE_SECONDS"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    upload_root_path: Optional[str]
    results_persistence_path: Optional[str]
    processor_workers: int
    chunk_size: int
    cancel_grace_seconds: float
    log_level: str


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        upload_root_path=_read_optional_env(_UPLOAD_ROOT_ENV, None),
        results_persistence_path=_read_optional_env(_RESULTS_PATH_ENV, "./tmp/results.json"),
        processor_workers=_read_positive_int(_WORKER_COUNT_ENV, 4),
        chunk_size=_read_positive_int(_CHUNK_SIZE_ENV, 64 * 1024),
        cancel_grace_seconds=_read_positive_float(_CANCEL_GRACE_ENV, 0.15),
        log_level=_read_log_level("INFO"),
    )
