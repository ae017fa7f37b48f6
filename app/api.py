"""HTTP route definitions for the service."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, UploadFile, status

from app.schemas import FileUploadResponse, ProcessingResult
from services.processor import ProcessorService, build_default_processor

router = APIRouter()


def get_processor() -> ProcessorService:
    return build_default_processor()


@router.post(
    "/files",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=FileUploadResponse,
    summary="Upload a water-quality CSV file for asynchronous processing.",
)
async def upload_file(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(..., description="CSV file of water-quality observations."),
    processor: ProcessorService = Depends(get_processor),
) -> FileUploadResponse:
    file_id = processor.enqueue_file(background_tasks, file)
    return FileUploadResponse(file_id=file_id)


@router.get(
    "/files",
    response_model=list[ProcessingResult],
    summary="List every known upload, newest first.",
)
async def list_files(
    processor: ProcessorService = Depends(get_processor),
) -> list[ProcessingResult]:
    return processor.list_results()


@router.get(
    "/files/{file_id}",
    response_model=ProcessingResult,
    summary="Fetch processing status and temperature averages for a file.",
)
async def get_file_result(
    file_id: str,
    processor: ProcessorService = Depends(get_processor),
) -> ProcessingResult:
    try:
        return processor.fetch_result(file_id)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc


@router.post(
    "/files/{file_id}/cancel",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ProcessingResult,
    summary="Request cancellation of a file that is still being processed.",
)
async def cancel_file(
    file_id: str,
    processor: ProcessorService = Depends(get_processor),
) -> ProcessingResult:
    try:
        return processor.cancel(file_id)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
