from __future__ import annotations

import json
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional

from app.schemas import PENDING_STATUSES, ProcessingError, ProcessingResult, ProcessingStatus
from settings import get_settings


class ResultTable:
    """Processing status per upload, keyed by ``file_id``, optionally mirrored to JSON."""

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self._items: Dict[str, ProcessingResult] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def put_item(self, item: ProcessingResult) -> None:
        with self._lock:
            self._items[item.file_id] = item.model_copy(deep=True)
            self._persist()

    def get_item(self, key: str) -> Optional[ProcessingResult]:
        with self._lock:
            item = self._items.get(key)
            return item.model_copy(deep=True) if item is not None else None

    def scan(self) -> List[ProcessingResult]:
        with self._lock:
            return [item.model_copy(deep=True) for item in self._items.values()]

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            file_id: item.model_dump(mode="json") for file_id, item in self._items.items()
        }
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return
        try:
            data = json.loads(self.persistence_path.read_text() or "{}")
        except (OSError, json.JSONDecodeError):
            data = {}
        for file_id, payload in data.items():
            item = ProcessingResult.model_validate(payload)
            if item.status in PENDING_STATUSES:
                # The ingestion that owned it did not survive the restart.
                item = item.model_copy(
                    update={
                        "status": ProcessingStatus.failed,
                        "processed_at": datetime.now(timezone.utc),
                        "error": ProcessingError(
                            kind="internal",
                            message="Processing was interrupted by a service restart.",
                        ),
                    }
                )
            self._items[file_id] = item


@lru_cache
def build_default_table(path: Optional[str] = None) -> ResultTable:
    settings = get_settings()
    table_path = settings.results_persistence_path if path is None else path
    return ResultTable(persistence_path=Path(table_path) if table_path else None)
