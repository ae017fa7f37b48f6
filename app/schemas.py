"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from models.messages import SerializableParseResults


class ProcessingStatus(str, Enum):
    """Lifecycle of an uploaded file as exposed via the API."""

    uploaded = "uploaded"
    processing = "processing"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"


PENDING_STATUSES = frozenset({ProcessingStatus.uploaded, ProcessingStatus.processing})


class FileUploadResponse(BaseModel):
    """Immediate response payload after accepting a file upload."""

    file_id: str = Field(..., description="Generated identifier for the uploaded file.")


class ProcessingError(BaseModel):
    """Why an ingestion stopped without results."""

    kind: str = Field(..., description="header_missing, missing_column, parse_error or internal.")
    message: str


class ProcessingResult(BaseModel):
    """Full record representing one uploaded file."""

    file_id: str
    filename: str
    status: ProcessingStatus
    uploaded_at: datetime
    processed_at: Optional[datetime] = None
    processing_ms: Optional[int] = Field(
        default=None, description="Duration in milliseconds from start to finish."
    )
    results: Optional[SerializableParseResults] = None
    error: Optional[ProcessingError] = None
